"""inkwell_shared.config — Environment configuration shared by Inkwell Lambdas.

Values are read once at import. Tests and callers may override the module
attributes directly.

Environment variables:
    POSTS_TABLE                      default: Posts
    COMMENTS_TABLE                   default: Comments
    DYNAMODB_REGION                  default: us-east-1
    COGNITO_USER_POOL_ID             default: ""
    COGNITO_CLIENT_ID                default: ""
    COGNITO_REGION                   default: region prefix of COGNITO_USER_POOL_ID
    COGNITO_CUSTOM_ATTRIBUTE_PREFIX  default: custom:
    CORS_ORIGIN                      default: *
    AUTHOR_LOOKUP_MAX_WORKERS        default: 16
    DIRECTORY_TIMEOUT_SECONDS        default: 5
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

POSTS_TABLE: str = os.environ.get("POSTS_TABLE", "Posts")
COMMENTS_TABLE: str = os.environ.get("COMMENTS_TABLE", "Comments")
DYNAMODB_REGION: str = os.environ.get("DYNAMODB_REGION", "us-east-1")

# ---------------------------------------------------------------------------
# Identity directory (Cognito user pool)
# ---------------------------------------------------------------------------

COGNITO_USER_POOL_ID: str = os.environ.get("COGNITO_USER_POOL_ID", "")
COGNITO_CLIENT_ID: str = os.environ.get("COGNITO_CLIENT_ID", "")
COGNITO_REGION: str = os.environ.get(
    "COGNITO_REGION",
    COGNITO_USER_POOL_ID.split("_")[0] if "_" in COGNITO_USER_POOL_ID else DYNAMODB_REGION,
)
COGNITO_CUSTOM_ATTRIBUTE_PREFIX: str = os.environ.get("COGNITO_CUSTOM_ATTRIBUTE_PREFIX", "custom:")
DIRECTORY_TIMEOUT_SECONDS: float = float(os.environ.get("DIRECTORY_TIMEOUT_SECONDS", "5"))
AUTHOR_LOOKUP_MAX_WORKERS: int = int(os.environ.get("AUTHOR_LOOKUP_MAX_WORKERS", "16"))

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

CORS_ORIGIN: str = os.environ.get("CORS_ORIGIN", "*")

# ---------------------------------------------------------------------------
# Content limits
# ---------------------------------------------------------------------------

MAX_TITLE_LENGTH: int = int(os.environ.get("MAX_TITLE_LENGTH", "300"))
MAX_POST_CONTENT_LENGTH: int = int(os.environ.get("MAX_POST_CONTENT_LENGTH", "100000"))
MAX_COMMENT_LENGTH: int = int(os.environ.get("MAX_COMMENT_LENGTH", "5000"))
MAX_PREFERRED_USERNAME_LENGTH: int = int(os.environ.get("MAX_PREFERRED_USERNAME_LENGTH", "64"))
