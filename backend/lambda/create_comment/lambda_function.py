"""create_comment/lambda_function.py

Lambda API for commenting on a blog post.

Route (via API Gateway proxy):
    POST    /posts/{id}/comments
    OPTIONS /posts/{id}/comments

Auth:
    Requires Cognito claims (authorizer context or verified id token).

Request body:
    {"text": str}

Environment variables:
    COMMENTS_TABLE         default: Comments
    COGNITO_USER_POOL_ID   default: ""
    MAX_COMMENT_LENGTH     default: 5000
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from inkwell_shared import config
from inkwell_shared.auth import authenticate
from inkwell_shared.authors import author_fields, prefetch_author
from inkwell_shared.http_utils import _error, _json_body, _options_response, _path_method, _path_param, _response
from inkwell_shared.identity import IdentityDirectory
from inkwell_shared.serialization import _emit_structured_observability, _now_z, _unix_now_ms
from inkwell_shared.store import DocumentTable, StoreError

_METHODS = "POST,OPTIONS"

logger = logging.getLogger()
logger.setLevel(logging.INFO)

_comments: Optional[DocumentTable] = None
_directory: Optional[IdentityDirectory] = None


def _get_comments() -> DocumentTable:
    global _comments
    if _comments is None:
        _comments = DocumentTable(config.COMMENTS_TABLE, ("post_id", "comment_id"))
    return _comments


def _get_directory() -> IdentityDirectory:
    global _directory
    if _directory is None:
        _directory = IdentityDirectory()
    return _directory


def _new_comment_id() -> str:
    # Millisecond prefix keeps the sort key in creation order.
    return f"comment-{_unix_now_ms()}-{uuid.uuid4().hex[:6]}"


def _validate_comment(body: Dict[str, Any]) -> str:
    text = body.get("text")
    if not isinstance(text, str) or not text.strip():
        raise ValueError("Missing required field: text.")
    text = text.strip()
    if len(text) > config.MAX_COMMENT_LENGTH:
        raise ValueError(f"Comment exceeds {config.MAX_COMMENT_LENGTH} characters.")
    return text


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

    post_id = _path_param(event, "id")
    if not post_id:
        return _error(400, "Missing postId parameter")

    try:
        text = _validate_comment(_json_body(event))
    except ValueError as exc:
        return _error(400, str(exc))

    store = store if store is not None else _get_comments()
    directory = directory if directory is not None else _get_directory()

    author = prefetch_author(directory, principal.username, principal.subject_id)
    if author is None:
        logger.warning("continuing without cached author for comment by sub %s", principal.subject_id)

    comment_id = _new_comment_id()
    item: Dict[str, Any] = {
        "post_id": post_id,
        "comment_id": comment_id,
        "author_id": principal.subject_id,
        "author_username": principal.username,
        "text": text,
        "created_at": _now_z(),
        **author_fields(author),
    }

    try:
        store.put_item(item)
    except StoreError as exc:
        return _error(500, str(exc))

    _emit_structured_observability(
        component="create_comment",
        event="comment_created",
        extra={"post_id": post_id, "comment_id": comment_id, "author_cached": author is not None},
    )
    return _response(
        201,
        {"success": True, "message": "Comment created", "post_id": post_id, "comment_id": comment_id},
        methods=_METHODS,
    )


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    return handle(event)
