"""inkwell_shared.authors — Author resolution and read-time content enrichment.

Posts and comments store the author's Cognito `sub` (immutable) plus a
username and, when the write-time lookup succeeded, a snapshot of the
author's display data. Both denormalized copies may be stale or missing, so
read paths resolve authors again against the identity directory.

Resolution order for one subject:

    1. cached username  -> AdminGetUser
    2. subject id       -> ListUsers(sub = ...) -> AdminGetUser(match) for full attributes
    3. nothing found    -> no author

Directory failures are contained per call and never fail the request; the
result type records which steps failed.

Enrichment resolves each distinct subject in a batch exactly once, fans the
lookups out over a thread pool, and returns new dicts in input order. Stored
items are never mutated.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from inkwell_shared import config
from inkwell_shared.identity import DirectoryUser
from inkwell_shared.serialization import _emit_structured_observability

logger = logging.getLogger(__name__)

SUBJECT_ID_FIELDS: Tuple[str, ...] = ("author_id", "authorId", "userId")
CACHED_USERNAME_FIELDS: Tuple[str, ...] = ("author_username", "authorUsername", "username")

SOURCE_USERNAME = "username"
SOURCE_SUBJECT_ID = "subject_id"


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuthorInfo:
    """Normalized author display data. Derived, never authoritative."""

    display_name: str
    canonical_username: Optional[str] = None
    avatar_key: Optional[str] = None

    @classmethod
    def from_directory_user(cls, user: DirectoryUser) -> "AuthorInfo":
        return cls(
            display_name=_clean(user.attributes.get("preferred_username")) or user.username,
            canonical_username=user.username,
            avatar_key=_clean(user.attributes.get("profile_picture_key")),
        )

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["AuthorInfo"]:
        """Read a stored snapshot; accepts directory-shaped legacy keys too."""
        if not isinstance(raw, dict):
            return None
        canonical = _clean(raw.get("canonical_username")) or _clean(raw.get("username"))
        display = (
            _clean(raw.get("display_name"))
            or _clean(raw.get("preferred_username"))
            or canonical
        )
        if not display:
            return None
        avatar = (
            _clean(raw.get("avatar_key"))
            or _clean(raw.get("profile_picture_key"))
            or _clean(raw.get("custom:profile_picture_key"))
        )
        return cls(display_name=display, canonical_username=canonical, avatar_key=avatar)

    def to_dict(self) -> Dict[str, str]:
        out = {"display_name": self.display_name}
        if self.canonical_username:
            out["canonical_username"] = self.canonical_username
        if self.avatar_key:
            out["avatar_key"] = self.avatar_key
        return out


@dataclass(frozen=True)
class AuthorResolution:
    """Outcome of resolving one subject. ``author`` is None when nothing matched."""

    subject_id: str
    author: Optional[AuthorInfo] = None
    source: Optional[str] = None
    failures: Tuple[str, ...] = ()

    @property
    def resolved(self) -> bool:
        return self.author is not None


# ---------------------------------------------------------------------------
# Item field access
# ---------------------------------------------------------------------------


def _first_field(item: Dict[str, Any], names: Sequence[str]) -> Optional[str]:
    for name in names:
        value = _clean(item.get(name))
        if value:
            return value
    return None


def subject_id_of(item: Dict[str, Any]) -> Optional[str]:
    return _first_field(item, SUBJECT_ID_FIELDS)


def cached_username_of(item: Dict[str, Any]) -> Optional[str]:
    return _first_field(item, CACHED_USERNAME_FIELDS)


def cached_author_of(item: Dict[str, Any]) -> Optional[AuthorInfo]:
    return AuthorInfo.from_dict(item.get("author"))


def is_enriched(item: Dict[str, Any]) -> bool:
    """True when the item already carries an author snapshot and display name."""
    author = item.get("author")
    return isinstance(author, dict) and bool(author) and bool(_clean(item.get("author_display_name")))


def author_fields(author: Optional[AuthorInfo]) -> Dict[str, Any]:
    """Attributes to denormalize onto a newly written item."""
    if author is None:
        return {}
    return {
        "author": author.to_dict(),
        "author_display_name": author.display_name,
        "author_avatar_key": author.avatar_key,
    }


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


def _attempt(
    step: str,
    subject_id: Optional[str],
    lookup: Callable[[str], Optional[DirectoryUser]],
    arg: str,
) -> Tuple[Optional[DirectoryUser], bool]:
    """Run one directory call. Returns (user, failed)."""
    try:
        return lookup(arg), False
    except Exception as exc:
        logger.warning("author lookup step %s failed for subject %s (%s): %s", step, subject_id, arg, exc)
        return None, True


def resolve_author(directory: Any, subject_id: Optional[str], cached_username: Optional[str] = None) -> AuthorResolution:
    """Resolve one subject to AuthorInfo. Never raises."""
    subject = _clean(subject_id) or ""
    failures: List[str] = []

    username = _clean(cached_username)
    if username:
        user, failed = _attempt("username", subject, directory.get_user_by_username, username)
        if failed:
            failures.append("username")
        if user is not None:
            return AuthorResolution(subject, AuthorInfo.from_directory_user(user), SOURCE_USERNAME, tuple(failures))

    if not subject:
        return AuthorResolution(subject, None, None, tuple(failures))

    match, failed = _attempt("subject_id", subject, directory.find_user_by_subject_id, subject)
    if failed:
        failures.append("subject_id")
    if match is not None and match.username:
        full, failed = _attempt("refetch", subject, directory.get_user_by_username, match.username)
        if failed:
            failures.append("refetch")
        record = full or match
        return AuthorResolution(subject, AuthorInfo.from_directory_user(record), SOURCE_SUBJECT_ID, tuple(failures))

    logger.info("no directory record for subject %s (username hint: %s)", subject, username)
    return AuthorResolution(subject, None, None, tuple(failures))


def prefetch_author(directory: Any, username: Optional[str], subject_id: Optional[str] = None) -> Optional[AuthorInfo]:
    """Single best-effort lookup used when writing a new item.

    Falls back to the subject id as the lookup name, which matches pools
    where the username is the sub.
    """
    name = _clean(username) or _clean(subject_id)
    if not name:
        return None
    user, _failed = _attempt("prefetch", subject_id, directory.get_user_by_username, name)
    return AuthorInfo.from_directory_user(user) if user is not None else None


def _resolve_all(
    directory: Any,
    pending: Dict[str, Optional[str]],
    max_workers: Optional[int],
) -> Dict[str, AuthorResolution]:
    if not pending:
        return {}

    limit = max_workers or config.AUTHOR_LOOKUP_MAX_WORKERS
    results: Dict[str, AuthorResolution] = {}
    with ThreadPoolExecutor(max_workers=max(1, min(len(pending), limit))) as pool:
        futures = {
            pool.submit(resolve_author, directory, subject, hint): subject
            for subject, hint in pending.items()
        }
        for future in as_completed(futures):
            subject = futures[future]
            try:
                results[subject] = future.result()
            except Exception as exc:
                logger.warning("author resolution worker failed for subject %s: %s", subject, exc)
                results[subject] = AuthorResolution(subject, failures=("worker",))
    return results


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------


def _apply_author(item: Dict[str, Any], resolved: Optional[AuthorInfo]) -> Dict[str, Any]:
    """Return a view of ``item`` with ``author`` and its flattened fields set.

    ``author`` is the resolved author, else the cached snapshot, else one
    synthesized from the cached username, else None. The flattened
    ``author_display_name`` and ``author_avatar_key`` take the chosen
    author's values first; where it has none (including when ``author`` is
    None), the item's previously stored flattened values are kept rather
    than blanked.
    """
    username = cached_username_of(item)
    chosen = resolved or cached_author_of(item)
    if chosen is None and username:
        chosen = AuthorInfo(display_name=username)

    view = dict(item)
    view["author"] = chosen.to_dict() if chosen else None
    view["author_display_name"] = (
        (chosen.display_name if chosen else None)
        or _clean(item.get("author_display_name"))
        or username
    )
    view["author_avatar_key"] = (chosen.avatar_key if chosen else None) or _clean(item.get("author_avatar_key"))
    return view


def enrich(
    items: Sequence[Dict[str, Any]],
    directory: Any,
    *,
    max_workers: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Attach author display data to a batch of posts or comments.

    Output has the same length and order as ``items``. Items that already
    carry an author snapshot are returned as-is; items without a subject id
    get ``author = None`` and are never looked up.
    """
    started = time.monotonic()

    pending: Dict[str, Optional[str]] = {}
    passthrough = 0
    for item in items:
        if is_enriched(item):
            passthrough += 1
            continue
        subject = subject_id_of(item)
        if not subject:
            continue
        hint = cached_username_of(item)
        if subject not in pending or (not pending[subject] and hint):
            pending[subject] = hint

    resolutions = _resolve_all(directory, pending, max_workers)

    out: List[Dict[str, Any]] = []
    for item in items:
        if is_enriched(item):
            out.append(item)
            continue
        subject = subject_id_of(item)
        if not subject:
            out.append({**item, "author": None})
            continue
        resolution = resolutions.get(subject)
        out.append(_apply_author(item, resolution.author if resolution else None))

    _emit_structured_observability(
        component="author_enrichment",
        event="batch_enriched",
        latency_ms=int((time.monotonic() - started) * 1000),
        error_code="directory_lookup_failed" if any(r.failures for r in resolutions.values()) else "",
        extra={
            "items": len(items),
            "passthrough": passthrough,
            "distinct_subjects": len(pending),
            "resolved": sum(1 for r in resolutions.values() if r.resolved),
            "failed_lookups": sum(len(r.failures) for r in resolutions.values()),
        },
    )
    return out
