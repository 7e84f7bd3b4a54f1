"""inkwell_shared.store — DynamoDB document table wrapper.

A narrow get/put/query/scan surface over the low-level DynamoDB client.
Items go in and come out as plain Python dicts; every botocore or item
serialization failure is raised as StoreError so handlers have a single
exception to map to 500.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from inkwell_shared.aws_clients import _get_ddb
from inkwell_shared.serialization import _deserialize, _serialize, _serialize_item

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """Raised when a document store read or write fails."""


class DocumentTable:
    """One DynamoDB table addressed by its key attribute names.

    ``key_names`` is ``(partition_key,)`` or ``(partition_key, sort_key)``.
    """

    def __init__(self, table_name: str, key_names: Sequence[str], client: Any = None) -> None:
        if not key_names:
            raise ValueError("key_names must name at least the partition key")
        self.table_name = table_name
        self.key_names = tuple(key_names)
        self._client = client

    @property
    def partition_key(self) -> str:
        return self.key_names[0]

    @property
    def client(self):
        if self._client is None:
            self._client = _get_ddb()
        return self._client

    def _fail(self, operation: str, exc: Exception) -> StoreError:
        logger.error("DynamoDB %s failed on %s: %s", operation, self.table_name, exc)
        return StoreError(f"Failed to {operation} {self.table_name}: {exc}")

    def get_item(self, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        missing = [name for name in self.key_names if not key.get(name)]
        if missing:
            raise ValueError(f"Missing key attribute(s): {', '.join(missing)}")
        try:
            resp = self.client.get_item(
                TableName=self.table_name,
                Key={name: _serialize(key[name]) for name in self.key_names},
            )
        except (BotoCoreError, ClientError) as exc:
            raise self._fail("read", exc) from exc
        raw = resp.get("Item")
        if not raw:
            return None
        return _deserialize(raw)

    def put_item(self, item: Dict[str, Any]) -> None:
        missing = [name for name in self.key_names if not item.get(name)]
        if missing:
            raise ValueError(f"Missing key attribute(s): {', '.join(missing)}")
        try:
            serialized = _serialize_item(item)
        except (TypeError, ArithmeticError) as exc:
            raise self._fail("serialize", exc) from exc
        try:
            self.client.put_item(TableName=self.table_name, Item=serialized)
        except (BotoCoreError, ClientError) as exc:
            raise self._fail("write", exc) from exc

    def query(self, partition_value: str, newest_first: bool = True) -> List[Dict[str, Any]]:
        """Return every item in one partition, ordered by sort key."""
        items: List[Dict[str, Any]] = []
        try:
            paginator = self.client.get_paginator("query")
            for page in paginator.paginate(
                TableName=self.table_name,
                KeyConditionExpression="#pk = :pk",
                ExpressionAttributeNames={"#pk": self.partition_key},
                ExpressionAttributeValues={":pk": _serialize(partition_value)},
                ScanIndexForward=not newest_first,
            ):
                items.extend(_deserialize(raw) for raw in page.get("Items", []))
        except (BotoCoreError, ClientError) as exc:
            raise self._fail("query", exc) from exc
        return items

    def scan_all(self) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        try:
            paginator = self.client.get_paginator("scan")
            for page in paginator.paginate(TableName=self.table_name):
                items.extend(_deserialize(raw) for raw in page.get("Items", []))
        except (BotoCoreError, ClientError) as exc:
            raise self._fail("scan", exc) from exc
        return items
