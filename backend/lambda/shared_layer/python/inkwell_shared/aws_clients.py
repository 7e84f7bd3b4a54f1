"""inkwell_shared.aws_clients — Lazy-singleton AWS service clients.

Clients are created on first call and cached for the lifetime of the Lambda
container, so cold starts only pay for the clients a function actually uses.
Creation is serialized by a lock: the first Cognito call usually happens on
an author-lookup worker thread, and boto3's default session is not
thread-safe.
"""

from __future__ import annotations

import threading
from typing import Optional

import boto3
from botocore.config import Config

from inkwell_shared import config

# ---------------------------------------------------------------------------
# Client singletons
# ---------------------------------------------------------------------------

_ddb = None
_cognito = None
_client_lock = threading.Lock()


def _get_ddb(region: Optional[str] = None):
    """Get (or create) the DynamoDB client singleton."""
    global _ddb
    if _ddb is None:
        with _client_lock:
            if _ddb is None:
                _ddb = boto3.client(
                    "dynamodb",
                    region_name=region or config.DYNAMODB_REGION,
                    config=Config(retries={"max_attempts": 5, "mode": "standard"}),
                )
    return _ddb


def _get_cognito(region: Optional[str] = None):
    """Get (or create) the Cognito identity provider client singleton.

    Author lookups run on a worker pool, so the pool size bounds the number
    of concurrent connections this client needs.
    """
    global _cognito
    if _cognito is None:
        with _client_lock:
            if _cognito is None:
                _cognito = boto3.client(
                    "cognito-idp",
                    region_name=region or config.COGNITO_REGION,
                    config=Config(
                        retries={"max_attempts": 3, "mode": "standard"},
                        connect_timeout=config.DIRECTORY_TIMEOUT_SECONDS,
                        read_timeout=config.DIRECTORY_TIMEOUT_SECONDS,
                        max_pool_connections=max(10, config.AUTHOR_LOOKUP_MAX_WORKERS),
                    ),
                )
    return _cognito
