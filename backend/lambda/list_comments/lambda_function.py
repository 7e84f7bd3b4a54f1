"""list_comments/lambda_function.py

Lambda API for the comments under one post, newest first, with authors
resolved in one batch.

Route (via API Gateway proxy):
    GET     /posts/{id}/comments
    OPTIONS /posts/{id}/comments

Environment variables:
    COMMENTS_TABLE             default: Comments
    COGNITO_USER_POOL_ID       default: ""
    AUTHOR_LOOKUP_MAX_WORKERS  default: 16
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from inkwell_shared import config
from inkwell_shared.authors import enrich
from inkwell_shared.http_utils import _error, _options_response, _path_method, _path_param, _response
from inkwell_shared.identity import IdentityDirectory
from inkwell_shared.store import DocumentTable, StoreError

_METHODS = "GET,OPTIONS"

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


def handle(
    event: Dict[str, Any],
    *,
    store: Optional[DocumentTable] = None,
    directory: Optional[IdentityDirectory] = None,
) -> Dict[str, Any]:
    method, _path = _path_method(event)
    if method == "OPTIONS":
        return _options_response(_METHODS)

    post_id = _path_param(event, "id")
    if not post_id:
        return _error(400, "Missing postId parameter")

    store = store if store is not None else _get_comments()
    try:
        comments = store.query(post_id, newest_first=True)
    except StoreError as exc:
        return _error(500, str(exc))

    if not comments:
        return _response(200, {"success": True, "post_id": post_id, "comments": [], "count": 0}, methods=_METHODS)

    directory = directory if directory is not None else _get_directory()
    enriched = enrich(comments, directory)
    return _response(
        200,
        {"success": True, "post_id": post_id, "comments": enriched, "count": len(enriched)},
        methods=_METHODS,
    )


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    return handle(event)
