"""inkwell_shared — Shared utilities for Inkwell blog Lambda functions.

Provides:
    - Cognito principal extraction (authorizer claims or verified id token)
    - DynamoDB and Cognito client singletons
    - HTTP response helpers with CORS
    - DynamoDB document table wrapper and serialization helpers
    - Identity directory client, author resolution and content enrichment
"""

__version__ = "1.0.0"
