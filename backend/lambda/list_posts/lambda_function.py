"""list_posts/lambda_function.py

Lambda API for the blog front page: every post, newest first, with authors
resolved in one batch.

Route (via API Gateway proxy):
    GET     /posts
    OPTIONS /posts

Environment variables:
    POSTS_TABLE                default: Posts
    COGNITO_USER_POOL_ID       default: ""
    AUTHOR_LOOKUP_MAX_WORKERS  default: 16
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from inkwell_shared import config
from inkwell_shared.authors import enrich
from inkwell_shared.http_utils import _error, _options_response, _path_method, _response
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


def _newest_first(posts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # ISO-8601 Z timestamps sort lexically; post ids break ties.
    return sorted(
        posts,
        key=lambda p: (str(p.get("created_at") or ""), str(p.get("post_id") or "")),
        reverse=True,
    )


def handle(
    event: Dict[str, Any],
    *,
    store: Optional[DocumentTable] = None,
    directory: Optional[IdentityDirectory] = None,
) -> Dict[str, Any]:
    method, _path = _path_method(event)
    if method == "OPTIONS":
        return _options_response(_METHODS)

    store = store if store is not None else _get_posts()
    try:
        posts = store.scan_all()
    except StoreError as exc:
        return _error(500, str(exc))

    if not posts:
        return _response(200, {"success": True, "posts": [], "count": 0}, methods=_METHODS)

    directory = directory if directory is not None else _get_directory()
    enriched = enrich(_newest_first(posts), directory)
    return _response(200, {"success": True, "posts": enriched, "count": len(enriched)}, methods=_METHODS)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    return handle(event)
