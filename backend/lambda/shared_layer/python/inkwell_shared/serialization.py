"""inkwell_shared.serialization — DynamoDB serialization, timestamps, observability.

Provides TypeSerializer/TypeDeserializer wrappers and timestamp helpers used
across the Inkwell Lambdas.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
import time
from decimal import Decimal
from typing import Any, Dict, Optional

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer

logger = logging.getLogger(__name__)

_SER = TypeSerializer()
_DESER = TypeDeserializer()


def _to_dynamo_value(value: Any) -> Any:
    """Recursively convert floats to Decimal and drop None map entries."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamo_value(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_to_dynamo_value(v) for v in value]
    return value


def _from_dynamo_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == int(value) else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamo_value(v) for k, v in value.items()}
    if isinstance(value, (list, set)):
        return [_from_dynamo_value(v) for v in value]
    return value


def _serialize(value: Any) -> Dict[str, Any]:
    """Serialize a Python value for DynamoDB."""
    return _SER.serialize(_to_dynamo_value(value))


def _serialize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Serialize a whole item, skipping top-level None attributes."""
    return {k: _serialize(v) for k, v in item.items() if v is not None}


def _ensure_storable(value: Any, name: str) -> None:
    """Raise ValueError when ``value`` cannot be written as a DynamoDB attribute.

    Catches NaN/Infinity and numbers outside DynamoDB's 38-digit precision,
    both of which json.loads happily produces.
    """
    try:
        _serialize(value)
    except (TypeError, ArithmeticError) as exc:
        raise ValueError(f"'{name}' contains a value that cannot be stored: {exc}") from exc


def _deserialize(item: Dict[str, Any]) -> Dict[str, Any]:
    """Deserialize a DynamoDB item to a plain Python dict."""
    return {k: _from_dynamo_value(_DESER.deserialize(v)) for k, v in item.items()}


def _now_z() -> str:
    """Current UTC timestamp in ISO 8601 format with Z suffix."""
    return dt.datetime.now(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _unix_now() -> int:
    return int(time.time())


def _unix_now_ms() -> int:
    return int(time.time() * 1000)


def _emit_structured_observability(
    *,
    component: str,
    event: str,
    latency_ms: Optional[int] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    payload: Dict[str, Any] = {
        "timestamp": _now_z(),
        "component": component,
        "event": event,
        "latency_ms": int(max(0, latency_ms or 0)),
        "error_code": str(error_code or ""),
    }
    if extra:
        payload.update(extra)
    logger.info("[OBSERVABILITY] %s", json.dumps(payload, sort_keys=True, default=str))
