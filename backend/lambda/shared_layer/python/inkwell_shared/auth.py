"""inkwell_shared.auth — Cognito principal extraction for Inkwell Lambdas.

Claims are normally injected by the API Gateway Cognito authorizer
(`requestContext.authorizer.claims` on REST APIs,
`requestContext.authorizer.jwt.claims` on HTTP APIs). When a function is
invoked without an authorizer, an id token from the `Authorization: Bearer`
header or the `inkwell_id_token` cookie is verified locally as an RS256 JWT
against the user pool JWKS.

Requires environment variables (for local verification only):
    COGNITO_USER_POOL_ID   e.g. us-east-1_H0an9OqvV
    COGNITO_CLIENT_ID      app client id (token audience)
"""

from __future__ import annotations

import json
import logging
import ssl
import time
import urllib.request
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import certifi
import jwt
from jwt.algorithms import RSAAlgorithm

from inkwell_shared import config
from inkwell_shared.http_utils import _error

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "inkwell_id_token"


@dataclass(frozen=True)
class Principal:
    """The authenticated caller."""

    subject_id: str
    username: str
    claims: Dict[str, Any]


# ---------------------------------------------------------------------------
# JWKS cache
# ---------------------------------------------------------------------------

_jwks_cache: Dict[str, Any] = {}
_jwks_fetched_at: float = 0.0
_JWKS_TTL: float = 3600.0


def _authorizer_claims(event: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    authorizer = (event.get("requestContext") or {}).get("authorizer") or {}
    claims = authorizer.get("claims")
    if isinstance(claims, dict) and claims:
        return claims
    jwt_ctx = authorizer.get("jwt") or {}
    claims = jwt_ctx.get("claims")
    if isinstance(claims, dict) and claims:
        return claims
    return None


def _extract_token(event: Dict[str, Any]) -> Optional[str]:
    """Extract an id token from the Authorization header or cookies."""
    headers = event.get("headers") or {}
    auth_header = headers.get("authorization") or headers.get("Authorization") or ""
    if auth_header.lower().startswith("bearer "):
        token = auth_header[len("bearer ") :].strip()
        if token:
            return token

    cookie_header = headers.get("cookie") or headers.get("Cookie") or ""
    cookie_parts: List[str] = []
    if cookie_header:
        cookie_parts.extend(part.strip() for part in cookie_header.split(";") if part.strip())

    event_cookies = event.get("cookies") or []
    if isinstance(event_cookies, list):
        cookie_parts.extend(part.strip() for part in event_cookies if isinstance(part, str) and part.strip())

    prefix = f"{TOKEN_COOKIE}="
    for part in cookie_parts:
        if part.startswith(prefix):
            return part[len(prefix) :]
    return None


def _get_jwks() -> Dict[str, Any]:
    """Fetch (and cache) the Cognito user pool JWKS."""
    global _jwks_cache, _jwks_fetched_at
    now = time.time()
    if _jwks_cache and (now - _jwks_fetched_at) < _JWKS_TTL:
        return _jwks_cache

    if not config.COGNITO_USER_POOL_ID:
        raise ValueError("COGNITO_USER_POOL_ID not set")

    region = config.COGNITO_USER_POOL_ID.split("_")[0]
    url = (
        f"https://cognito-idp.{region}.amazonaws.com/"
        f"{config.COGNITO_USER_POOL_ID}/.well-known/jwks.json"
    )

    context = ssl.create_default_context(cafile=certifi.where())
    with urllib.request.urlopen(url, timeout=5, context=context) as resp:
        data = json.loads(resp.read())

    new_cache: Dict[str, Any] = {}
    for key_data in data.get("keys", []):
        new_cache[key_data["kid"]] = RSAAlgorithm.from_jwk(json.dumps(key_data))

    _jwks_cache = new_cache
    _jwks_fetched_at = now
    return _jwks_cache


def _verify_token(token: str) -> Dict[str, Any]:
    """Verify a Cognito id token (RS256). Returns the decoded claims."""
    try:
        header = jwt.get_unverified_header(token)
    except jwt.PyJWTError as exc:
        raise ValueError(f"Invalid token header: {exc}") from exc

    kid = header.get("kid")
    alg = header.get("alg", "RS256")
    if alg != "RS256":
        raise ValueError(f"Unexpected token algorithm: {alg}")

    try:
        key = _get_jwks().get(kid)
    except OSError as exc:
        raise ValueError(f"Unable to fetch token signing keys: {exc}") from exc
    if key is None:
        raise ValueError("Token key ID not found in JWKS")

    try:
        return jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            audience=config.COGNITO_CLIENT_ID,
            options={"verify_exp": True},
        )
    except jwt.ExpiredSignatureError:
        raise ValueError("Token has expired. Please sign in again.")
    except jwt.InvalidAudienceError:
        raise ValueError("Token audience mismatch.")
    except jwt.PyJWTError as exc:
        raise ValueError(f"Token validation failed: {exc}") from exc


def _principal_from_claims(claims: Dict[str, Any]) -> Optional[Principal]:
    subject_id = str(claims.get("sub") or "").strip()
    if not subject_id:
        return None
    username = str(
        claims.get("cognito:username")
        or claims.get("username")
        or claims.get("email")
        or subject_id
    ).strip()
    return Principal(subject_id=subject_id, username=username, claims=dict(claims))


def authenticate(event: Dict[str, Any]) -> Tuple[Optional[Principal], Optional[Dict[str, Any]]]:
    """Resolve the calling principal.

    Returns (principal, None) on success or (None, error_response) on
    failure: 401 when no claims can be established, 403 when claims are
    present but carry no subject id.
    """
    claims = _authorizer_claims(event)
    if claims is None:
        token = _extract_token(event)
        if not token:
            return None, _error(401, "Unauthorized - missing authentication claims")
        try:
            claims = _verify_token(token)
        except ValueError as exc:
            logger.info("token verification failed: %s", exc)
            return None, _error(401, str(exc))

    principal = _principal_from_claims(claims)
    if principal is None:
        return None, _error(403, "Forbidden: subject id not found in authentication claims")
    return principal, None
