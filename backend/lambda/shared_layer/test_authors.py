"""Unit tests for inkwell_shared.authors: resolution order and batch enrichment.

Run from shared_layer directory:
    PYTHONPATH=python python3 -m pytest test_authors.py -v
"""

from __future__ import annotations

import json
import logging
import os
import sys
import threading

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "python"))

from unittest.mock import MagicMock

from inkwell_shared import authors
from inkwell_shared.authors import AuthorInfo, author_fields, enrich, is_enriched, prefetch_author, resolve_author
from inkwell_shared.identity import DirectoryUser, IdentityDirectory, IdentityDirectoryError


class FakeDirectory:
    """In-memory directory that records every call.

    ``users`` maps canonical username -> DirectoryUser (full record).
    ``subjects`` maps sub -> DirectoryUser as returned by search (may be partial).
    """

    def __init__(self, users=None, subjects=None, fail_usernames=(), fail_subjects=(), fail_all=False):
        self.users = dict(users or {})
        self.subjects = dict(subjects or {})
        self.fail_usernames = set(fail_usernames)
        self.fail_subjects = set(fail_subjects)
        self.fail_all = fail_all
        self.calls = []
        self._lock = threading.Lock()

    def _record(self, kind, arg):
        with self._lock:
            self.calls.append((kind, arg))

    def get_user_by_username(self, username):
        self._record("username", username)
        if self.fail_all or username in self.fail_usernames:
            raise IdentityDirectoryError(f"AdminGetUser failed for {username!r}")
        return self.users.get(username)

    def find_user_by_subject_id(self, subject_id):
        self._record("subject_id", subject_id)
        if self.fail_all or subject_id in self.fail_subjects:
            raise IdentityDirectoryError(f"ListUsers failed for sub {subject_id!r}")
        return self.subjects.get(subject_id)

    def count(self, kind):
        return sum(1 for k, _ in self.calls if k == kind)


def _user(username, preferred=None, picture=None):
    attributes = {}
    if preferred:
        attributes["preferred_username"] = preferred
    if picture:
        attributes["profile_picture_key"] = picture
    return DirectoryUser(username=username, attributes=attributes)


# ---------------------------------------------------------------------------
# resolve_author
# ---------------------------------------------------------------------------


def test_resolves_by_cached_username_against_cognito_shape():
    client = MagicMock()
    client.admin_get_user.return_value = {
        "Username": "alice",
        "UserAttributes": [
            {"Name": "sub", "Value": "sub-1"},
            {"Name": "preferred_username", "Value": "Alicia"},
            {"Name": "custom:profile_picture_key", "Value": "p/1.png"},
        ],
    }
    directory = IdentityDirectory(user_pool_id="us-east-1_pool", client=client)

    resolution = resolve_author(directory, "sub-1", "alice")

    assert resolution.resolved
    assert resolution.source == authors.SOURCE_USERNAME
    assert resolution.author == AuthorInfo(display_name="Alicia", canonical_username="alice", avatar_key="p/1.png")
    client.list_users.assert_not_called()


def test_unknown_subject_without_username_resolves_to_none():
    client = MagicMock()
    client.list_users.return_value = {"Users": []}
    directory = IdentityDirectory(user_pool_id="us-east-1_pool", client=client)

    resolution = resolve_author(directory, "sub-2", None)

    assert resolution.author is None
    assert not resolution.resolved
    client.admin_get_user.assert_not_called()
    client.list_users.assert_called_once()


def test_display_name_falls_back_to_username():
    directory = FakeDirectory(users={"dave": _user("dave")})
    resolution = resolve_author(directory, "sub-4", "dave")
    assert resolution.author.display_name == "dave"
    assert resolution.author.avatar_key is None


def test_failed_username_lookup_falls_back_to_subject_search():
    directory = FakeDirectory(
        users={"bob": _user("bob", preferred="Bobby", picture="p/bob.png")},
        subjects={"sub-3": _user("bob")},
        fail_usernames={"bob123"},
    )

    resolution = resolve_author(directory, "sub-3", "bob123")

    assert resolution.author == AuthorInfo(display_name="Bobby", canonical_username="bob", avatar_key="p/bob.png")
    assert resolution.source == authors.SOURCE_SUBJECT_ID
    assert resolution.failures == ("username",)
    assert directory.calls == [("username", "bob123"), ("subject_id", "sub-3"), ("username", "bob")]


def test_stale_username_not_found_falls_back_to_subject_search():
    directory = FakeDirectory(
        users={"bob": _user("bob", preferred="Bobby")},
        subjects={"sub-3": _user("bob")},
    )
    resolution = resolve_author(directory, "sub-3", "old-bob")
    assert resolution.author.display_name == "Bobby"
    assert resolution.failures == ()


def test_refetch_failure_uses_partial_search_record():
    directory = FakeDirectory(
        subjects={"sub-5": _user("erin", preferred="Erin S.")},
        fail_usernames={"erin"},
    )
    resolution = resolve_author(directory, "sub-5", None)
    assert resolution.author == AuthorInfo(display_name="Erin S.", canonical_username="erin")
    assert resolution.failures == ("refetch",)


def test_resolve_never_raises_when_directory_is_down():
    directory = FakeDirectory(fail_all=True)
    resolution = resolve_author(directory, "sub-6", "frank")
    assert resolution.author is None
    assert resolution.failures == ("username", "subject_id")


def test_resolve_contains_unexpected_exceptions():
    directory = MagicMock()
    directory.get_user_by_username.side_effect = RuntimeError("connection reset")
    directory.find_user_by_subject_id.side_effect = TimeoutError("read timeout")
    resolution = resolve_author(directory, "sub-7", "gina")
    assert resolution.author is None


def test_prefetch_uses_subject_id_when_username_missing():
    directory = FakeDirectory(users={"sub-8": _user("sub-8", preferred="Hank")})
    author = prefetch_author(directory, None, "sub-8")
    assert author.display_name == "Hank"
    assert directory.calls == [("username", "sub-8")]


def test_prefetch_failure_returns_none():
    directory = FakeDirectory(fail_all=True)
    assert prefetch_author(directory, "ivy", "sub-9") is None


# ---------------------------------------------------------------------------
# AuthorInfo helpers
# ---------------------------------------------------------------------------


def test_author_info_reads_legacy_snapshot_keys():
    info = AuthorInfo.from_dict({"username": "alice", "preferred_username": "Alicia", "custom:profile_picture_key": "p/1.png"})
    assert info == AuthorInfo(display_name="Alicia", canonical_username="alice", avatar_key="p/1.png")
    assert AuthorInfo.from_dict({}) is None
    assert AuthorInfo.from_dict("alice") is None


def test_author_fields_omit_empty_values():
    fields = author_fields(AuthorInfo(display_name="dave", canonical_username="dave"))
    assert fields["author"] == {"display_name": "dave", "canonical_username": "dave"}
    assert fields["author_display_name"] == "dave"
    assert fields["author_avatar_key"] is None
    assert author_fields(None) == {}


def test_is_enriched_requires_snapshot_and_display_name():
    assert is_enriched({"author": {"display_name": "A"}, "author_display_name": "A"})
    assert not is_enriched({"author": {}, "author_display_name": "A"})
    assert not is_enriched({"author": {"display_name": "A"}})


# ---------------------------------------------------------------------------
# enrich
# ---------------------------------------------------------------------------


def _post(post_id, subject=None, username=None, **extra):
    item = {"post_id": post_id, "title": f"Title {post_id}"}
    if subject:
        item["author_id"] = subject
    if username:
        item["author_username"] = username
    item.update(extra)
    return item


def test_batch_resolves_each_subject_once():
    directory = FakeDirectory(users={"alice": _user("alice", preferred="Alicia")})
    items = [_post("p1", "sub-1", "alice"), _post("p2", "sub-1", "alice"), _post("p3", "sub-2")]

    out = enrich(items, directory)

    assert [i["post_id"] for i in out] == ["p1", "p2", "p3"]
    assert directory.count("username") == 1
    assert directory.count("subject_id") == 1
    assert out[0]["author_display_name"] == "Alicia"
    assert out[1]["author"] == out[0]["author"]
    assert out[2]["author"] is None


def test_output_preserves_input_order_and_length():
    users = {f"user{n}": _user(f"user{n}", preferred=f"User {n}") for n in range(10)}
    directory = FakeDirectory(users=users)
    items = [_post(f"p{i}", f"sub-{i % 10}", f"user{i % 10}") for i in range(40)]

    out = enrich(items, directory, max_workers=4)

    assert len(out) == len(items)
    assert [i["post_id"] for i in out] == [i["post_id"] for i in items]
    for i, view in enumerate(out):
        assert view["author_display_name"] == f"User {i % 10}"


def test_lookup_count_bounded_by_distinct_subjects():
    directory = FakeDirectory(users={f"u{n}": _user(f"u{n}") for n in range(3)})
    items = [_post(f"p{i}", f"sub-{i % 3}", f"u{i % 3}") for i in range(50)]

    enrich(items, directory)

    assert directory.count("username") == 3
    assert directory.count("subject_id") == 0


def test_first_non_empty_username_hint_is_used():
    directory = FakeDirectory(users={"alice": _user("alice", preferred="Alicia")})
    items = [_post("p1", "sub-1"), _post("p2", "sub-1", "alice")]

    out = enrich(items, directory)

    assert directory.calls == [("username", "alice")]
    assert out[0]["author_display_name"] == "Alicia"


def test_legacy_field_names_are_recognized():
    directory = FakeDirectory(users={"alice": _user("alice", preferred="Alicia")})
    out = enrich([{"post_id": "p1", "authorId": "sub-1", "authorUsername": "alice"}], directory)
    assert out[0]["author"]["display_name"] == "Alicia"


def test_directory_outage_degrades_to_cached_fields():
    directory = FakeDirectory(fail_all=True)
    items = [
        _post("p1", "sub-1", "alice", author={"display_name": "Alicia (cached)"}),
        _post("p2", "sub-2", "bob"),
        _post("p3", "sub-3"),
    ]

    out = enrich(items, directory)

    assert len(out) == 3
    assert out[0]["author_display_name"] == "Alicia (cached)"
    assert out[1]["author"] == {"display_name": "bob"}
    assert out[1]["author_display_name"] == "bob"
    assert out[2]["author"] is None
    assert out[2]["author_display_name"] is None


def test_stored_flattened_fields_survive_when_no_author_is_chosen():
    directory = FakeDirectory(fail_all=True)
    item = _post("p1", "sub-1", author_display_name="Legacy Name", author_avatar_key="p/legacy.png")

    (view,) = enrich([item], directory)

    assert view["author"] is None
    assert view["author_display_name"] == "Legacy Name"
    assert view["author_avatar_key"] == "p/legacy.png"


def test_stored_avatar_fills_gap_in_chosen_author():
    directory = FakeDirectory(users={"alice": _user("alice", preferred="Alicia")})
    item = _post("p1", "sub-1", "alice", author_avatar_key="p/old.png")

    (view,) = enrich([item], directory)

    assert view["author_display_name"] == "Alicia"
    assert view["author_avatar_key"] == "p/old.png"


def test_resolved_directory_data_overrides_cached_snapshot():
    directory = FakeDirectory(users={"alice": _user("alice", preferred="Alicia", picture="p/new.png")})
    item = _post("p1", "sub-1", "alice", author={"display_name": "Old Name"}, author_avatar_key="p/old.png")

    (view,) = enrich([item], directory)

    assert view["author_display_name"] == "Alicia"
    assert view["author_avatar_key"] == "p/new.png"


def test_enriched_items_pass_through_untouched():
    directory = FakeDirectory()
    item = _post("p1", "sub-1", "alice", author={"display_name": "Alicia"}, author_display_name="Alicia")

    out = enrich([item], directory)

    assert out[0] is item
    assert directory.calls == []


def test_items_without_subject_are_never_looked_up():
    directory = FakeDirectory()
    item = {"post_id": "p1", "author_username": "ghost"}

    out = enrich([item], directory)

    assert out == [{"post_id": "p1", "author_username": "ghost", "author": None}]
    assert directory.calls == []


def test_input_items_are_not_mutated():
    directory = FakeDirectory(users={"alice": _user("alice", preferred="Alicia")})
    item = _post("p1", "sub-1", "alice")
    snapshot = dict(item)

    enrich([item], directory)

    assert item == snapshot


def test_empty_batch_makes_no_calls():
    directory = FakeDirectory()
    assert enrich([], directory) == []
    assert directory.calls == []


def test_lookups_for_distinct_subjects_run_concurrently():
    barrier = threading.Barrier(2, timeout=5)

    class BarrierDirectory(FakeDirectory):
        def get_user_by_username(self, username):
            # Both lookups must be in flight at once to pass the barrier.
            barrier.wait()
            return super().get_user_by_username(username)

    directory = BarrierDirectory(users={"alice": _user("alice"), "bob": _user("bob")})
    out = enrich([_post("p1", "sub-1", "alice"), _post("p2", "sub-2", "bob")], directory)

    assert [v["author"]["canonical_username"] for v in out] == ["alice", "bob"]


def test_batch_emits_observability_line(caplog):
    directory = FakeDirectory(users={"alice": _user("alice")}, fail_subjects={"sub-2"})
    with caplog.at_level(logging.INFO, logger="inkwell_shared.serialization"):
        enrich([_post("p1", "sub-1", "alice"), _post("p2", "sub-2")], directory)

    lines = [r.getMessage() for r in caplog.records if r.getMessage().startswith("[OBSERVABILITY]")]
    assert len(lines) == 1
    payload = json.loads(lines[0][len("[OBSERVABILITY] "):])
    assert payload["component"] == "author_enrichment"
    assert payload["distinct_subjects"] == 2
    assert payload["resolved"] == 1
    assert payload["failed_lookups"] == 1
    assert payload["error_code"] == "directory_lookup_failed"
