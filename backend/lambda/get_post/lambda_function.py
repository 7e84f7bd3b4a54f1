"""get_post/lambda_function.py

Lambda API for reading one blog post with its author resolved.

Route (via API Gateway proxy):
    GET     /posts/{id}
    OPTIONS /posts/{id}

Environment variables:
    POSTS_TABLE            default: Posts
    COGNITO_USER_POOL_ID   default: ""
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

    store = store if store is not None else _get_posts()
    try:
        post = store.get_item({"post_id": post_id})
    except StoreError as exc:
        return _error(500, str(exc))

    if post is None:
        return _error(404, "Post not found", post_id=post_id)

    directory = directory if directory is not None else _get_directory()
    (enriched,) = enrich([post], directory)
    return _response(200, {"success": True, "post": enriched}, methods=_METHODS)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    return handle(event)
