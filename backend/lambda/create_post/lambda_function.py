"""create_post/lambda_function.py

Lambda API for publishing a blog post.

Route (via API Gateway proxy):
    POST    /posts
    OPTIONS /posts

Auth:
    Requires Cognito claims (authorizer context or verified id token).
    The post's author_id is always the caller's `sub`.

Request body:
    {"title": str, "content": str, "post_type": "text"|"image"|"video",
     "media_data": {...}}
    image posts require media_data.image_key or media_data.image_url;
    video posts require media_data.youtube_id.

Environment variables:
    POSTS_TABLE            default: Posts
    COGNITO_USER_POOL_ID   default: ""
    MAX_TITLE_LENGTH       default: 300
    MAX_POST_CONTENT_LENGTH default: 100000
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from inkwell_shared import config
from inkwell_shared.auth import authenticate
from inkwell_shared.authors import author_fields, prefetch_author
from inkwell_shared.http_utils import _error, _json_body, _options_response, _path_method, _response
from inkwell_shared.identity import IdentityDirectory
from inkwell_shared.serialization import _emit_structured_observability, _ensure_storable, _now_z, _unix_now_ms
from inkwell_shared.store import DocumentTable, StoreError

VALID_POST_TYPES = {"text", "image", "video"}
_METHODS = "POST,OPTIONS"

logger = logging.getLogger()
logger.setLevel(logging.INFO)

# ---------------------------------------------------------------------------
# Collaborators (module-level for container reuse)
# ---------------------------------------------------------------------------

_posts: Optional[DocumentTable] = None
_directory: Optional[IdentityDirectory] = None


def _get_posts() -> DocumentTable:
    global _posts
    if _posts is None:
        _posts = DocumentTable(config.POSTS_TABLE, ("post_id",))
    return _posts


def _get_directory() -> IdentityDirectory:
    global _directory
    if _directory is None:
        _directory = IdentityDirectory()
    return _directory


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _new_post_id() -> str:
    return f"post-{_unix_now_ms()}-{uuid.uuid4().hex[:6]}"


def _validate_post(body: Dict[str, Any]) -> Dict[str, Any]:
    title = body.get("title")
    content = body.get("content")
    if not isinstance(title, str) or not title.strip() or not isinstance(content, str) or not content.strip():
        raise ValueError("Missing required fields: title or content.")
    title = title.strip()
    if len(title) > config.MAX_TITLE_LENGTH:
        raise ValueError(f"Title exceeds {config.MAX_TITLE_LENGTH} characters.")
    if len(content) > config.MAX_POST_CONTENT_LENGTH:
        raise ValueError(f"Content exceeds {config.MAX_POST_CONTENT_LENGTH} characters.")

    post_type = str(body.get("post_type") or "text").strip().lower()
    if post_type not in VALID_POST_TYPES:
        raise ValueError(f"'post_type' must be one of: {', '.join(sorted(VALID_POST_TYPES))}.")

    media_data = body.get("media_data") or {}
    if not isinstance(media_data, dict):
        raise ValueError("'media_data' must be an object.")
    _ensure_storable(media_data, "media_data")
    if post_type == "image" and not (media_data.get("image_key") or media_data.get("image_url")):
        raise ValueError("Image post requires image_key or image_url in media_data.")
    if post_type == "video" and not media_data.get("youtube_id"):
        raise ValueError("Video post requires youtube_id in media_data.")

    return {
        "title": title,
        "content": content,
        "post_type": post_type,
        "media_data": media_data,
    }


# ---------------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------------


def handle(
    event: Dict[str, Any],
    *,
    store: Optional[DocumentTable] = None,
    directory: Optional[IdentityDirectory] = None,
) -> Dict[str, Any]:
    method, _path = _path_method(event)
    if method == "OPTIONS":
        return _options_response(_METHODS)

    principal, auth_error = authenticate(event)
    if auth_error is not None:
        return auth_error

    try:
        fields = _validate_post(_json_body(event))
    except ValueError as exc:
        return _error(400, str(exc))

    store = store if store is not None else _get_posts()
    directory = directory if directory is not None else _get_directory()

    author = prefetch_author(directory, principal.username, principal.subject_id)
    if author is None:
        logger.warning("continuing without cached author for sub %s", principal.subject_id)

    post_id = _new_post_id()
    item: Dict[str, Any] = {
        "post_id": post_id,
        **fields,
        "author_id": principal.subject_id,
        "author_username": principal.username,
        "created_at": _now_z(),
        **author_fields(author),
    }

    try:
        store.put_item(item)
    except StoreError as exc:
        return _error(500, str(exc))

    _emit_structured_observability(
        component="create_post",
        event="post_created",
        extra={"post_id": post_id, "post_type": fields["post_type"], "author_cached": author is not None},
    )
    return _response(
        201,
        {"success": True, "message": "Post created successfully", "post_id": post_id},
        methods=_METHODS,
    )


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    return handle(event)
