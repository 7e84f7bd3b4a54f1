"""profile_api/lambda_function.py

Lambda API for the caller's own author profile, stored as Cognito user
attributes. These are the attributes author resolution reads back.

Routes (via API Gateway proxy):
    GET     /profile
    PUT     /profile   {"preferred_username"?: str, "profile_picture_key"?: str}
                       ("preferredUsername" is accepted as an alias)
    OPTIONS /profile

Auth:
    Requires Cognito claims. Updates always target the authenticated caller;
    the request body cannot name another user.

Environment variables:
    COGNITO_USER_POOL_ID             default: ""
    COGNITO_CUSTOM_ATTRIBUTE_PREFIX  default: custom:
    MAX_PREFERRED_USERNAME_LENGTH    default: 64
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from inkwell_shared import config
from inkwell_shared.auth import Principal, authenticate
from inkwell_shared.http_utils import _error, _json_body, _options_response, _path_method, _response
from inkwell_shared.identity import DirectoryUser, IdentityDirectory, IdentityDirectoryError
from inkwell_shared.serialization import _emit_structured_observability

_METHODS = "GET,PUT,OPTIONS"
MAX_PICTURE_KEY_LENGTH = 1024

# The web client sends camelCase; snake_case wins when both are present.
PREFERRED_USERNAME_FIELDS = ("preferred_username", "preferredUsername")

_CLIENT_ERROR_CODES = {"AliasExistsException", "InvalidParameterException"}

logger = logging.getLogger()
logger.setLevel(logging.INFO)

_directory: Optional[IdentityDirectory] = None


def _get_directory() -> IdentityDirectory:
    global _directory
    if _directory is None:
        _directory = IdentityDirectory()
    return _directory


def _profile_payload(user: DirectoryUser) -> Dict[str, Any]:
    return {
        "username": user.username,
        "preferred_username": user.attributes.get("preferred_username") or user.username,
        "profile_picture_key": user.attributes.get("profile_picture_key"),
        "email": user.attributes.get("email"),
    }


def _find_caller(directory: IdentityDirectory, principal: Principal) -> Optional[DirectoryUser]:
    user = directory.get_user_by_username(principal.username)
    if user is None:
        match = directory.find_user_by_subject_id(principal.subject_id)
        if match is not None and match.username:
            user = directory.get_user_by_username(match.username) or match
    return user


def _validate_update(body: Dict[str, Any]) -> Dict[str, str]:
    updates: Dict[str, str] = {}

    name_field = next((f for f in PREFERRED_USERNAME_FIELDS if f in body), None)
    if name_field is not None:
        name = body.get(name_field)
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"'{name_field}' must be a non-empty string.")
        name = name.strip()
        if len(name) > config.MAX_PREFERRED_USERNAME_LENGTH:
            raise ValueError(f"'{name_field}' exceeds {config.MAX_PREFERRED_USERNAME_LENGTH} characters.")
        if not name.isprintable():
            raise ValueError(f"'{name_field}' contains invalid characters.")
        updates["preferred_username"] = name

    if "profile_picture_key" in body:
        key = body.get("profile_picture_key")
        if not isinstance(key, str) or not key.strip():
            raise ValueError("'profile_picture_key' must be a non-empty string.")
        key = key.strip()
        if len(key) > MAX_PICTURE_KEY_LENGTH or key.startswith("/") or ".." in key.split("/"):
            raise ValueError("'profile_picture_key' is not a valid storage key.")
        updates["profile_picture_key"] = key

    if not updates:
        raise ValueError("Provide 'preferred_username' and/or 'profile_picture_key'.")
    return updates


def _handle_get(principal: Principal, directory: IdentityDirectory) -> Dict[str, Any]:
    try:
        user = _find_caller(directory, principal)
    except IdentityDirectoryError as exc:
        logger.error("profile lookup failed for sub %s: %s", principal.subject_id, exc)
        return _error(500, str(exc))
    if user is None:
        return _error(404, "Profile not found")
    return _response(200, {"success": True, "profile": _profile_payload(user)}, methods=_METHODS)


def _handle_put(event: Dict[str, Any], principal: Principal, directory: IdentityDirectory) -> Dict[str, Any]:
    try:
        updates = _validate_update(_json_body(event))
    except ValueError as exc:
        return _error(400, str(exc))

    try:
        directory.update_user_attributes(principal.username, updates)
    except IdentityDirectoryError as exc:
        if exc.code in _CLIENT_ERROR_CODES:
            return _error(400, str(exc), code=exc.code)
        if exc.code == "UserNotFoundException":
            return _error(404, "Profile not found")
        logger.error("profile update failed for sub %s: %s", principal.subject_id, exc)
        return _error(500, str(exc))

    _emit_structured_observability(
        component="profile_api",
        event="profile_updated",
        extra={"subject_id": principal.subject_id, "attributes": sorted(updates)},
    )
    return _response(
        200,
        {"success": True, "username": principal.username, "updated": updates},
        methods=_METHODS,
    )


def handle(event: Dict[str, Any], *, directory: Optional[IdentityDirectory] = None) -> Dict[str, Any]:
    method, path = _path_method(event)
    if method == "OPTIONS":
        return _options_response(_METHODS)

    principal, auth_error = authenticate(event)
    if auth_error is not None:
        return auth_error

    directory = directory if directory is not None else _get_directory()
    if method == "GET":
        return _handle_get(principal, directory)
    if method == "PUT":
        return _handle_put(event, principal, directory)
    return _error(404, f"Unsupported route: {method} {path}")


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    return handle(event)
