"""DynamoDB access: a process-wide boto3 client and a thin async store adapter.

``DynamoDBStore`` speaks plain python item dicts; conversion to and from the
DynamoDB attribute-value wire format happens here and nowhere else. Every
boto3 call runs in a worker thread so callers can await it.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from adt_sync.config import Settings
from adt_sync.db.errors import StoreError

logger = logging.getLogger(__name__)

Item = Dict[str, Any]

_client = None
_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def get_client(settings: Optional[Settings] = None):
    """Return the shared DynamoDB client, creating it on first use."""
    global _client
    if _client is None:
        settings = settings or Settings.from_env()
        cfg = Config(retries={"max_attempts": 3, "mode": "standard"}, connect_timeout=10, read_timeout=30)
        try:
            _client = boto3.client(
                "dynamodb",
                region_name=settings.aws_region,
                endpoint_url=settings.dynamodb_endpoint_url,
                config=cfg,
            )
        except BotoCoreError as exc:
            raise RuntimeError(
                f"Failed to create DynamoDB client for region '{settings.aws_region}'. "
                f"Check AWS credentials and AWS_REGION / DYNAMODB_ENDPOINT_URL.\nError: {exc}"
            ) from exc
        logger.info("Created DynamoDB client (region=%s, endpoint=%s)",
                    settings.aws_region, settings.dynamodb_endpoint_url or "default")
    return _client


def close_client():
    global _client
    if _client is not None:
        _client.close()
        _client = None


def serialize_item(item: Item) -> Dict[str, Dict[str, Any]]:
    return {k: _serializer.serialize(v) for k, v in item.items()}


def deserialize_item(raw: Dict[str, Dict[str, Any]]) -> Item:
    return {k: _deserializer.deserialize(v) for k, v in raw.items()}


class DynamoDBStore:
    """Key-value store backed by one DynamoDB table with PK/SK string keys."""

    def __init__(self, table_name: str, *, client=None, pk_field: str = "PK") -> None:
        self.table_name = table_name
        self.pk_field = pk_field
        self._client = client if client is not None else get_client()

    def _call(self, operation: str, **kwargs) -> Dict[str, Any]:
        try:
            return getattr(self._client, operation)(**kwargs)
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"DynamoDB {operation} failed on table '{self.table_name}': {exc}") from exc

    async def _acall(self, operation: str, **kwargs) -> Dict[str, Any]:
        return await asyncio.to_thread(self._call, operation, **kwargs)

    async def batch_write_items(self, items: List[Item]) -> List[Item]:
        """Put items in one BatchWriteItem request. Returns the unprocessed items."""
        if not items:
            return []
        request = {self.table_name: [{"PutRequest": {"Item": serialize_item(i)}} for i in items]}
        resp = await self._acall("batch_write_item", RequestItems=request)
        unprocessed = (resp.get("UnprocessedItems") or {}).get(self.table_name) or []
        return [deserialize_item(r["PutRequest"]["Item"]) for r in unprocessed if "PutRequest" in r]

    async def batch_get_items(self, keys: List[Item]) -> Tuple[List[Item], List[Item]]:
        """Get items in one BatchGetItem request. Returns (found items, unprocessed keys)."""
        if not keys:
            return [], []
        request = {self.table_name: {"Keys": [serialize_item(k) for k in keys]}}
        resp = await self._acall("batch_get_item", RequestItems=request)
        found = (resp.get("Responses") or {}).get(self.table_name) or []
        pending = ((resp.get("UnprocessedKeys") or {}).get(self.table_name) or {}).get("Keys") or []
        return [deserialize_item(i) for i in found], [deserialize_item(k) for k in pending]

    async def query(
        self,
        partition: str,
        *,
        exclusive_start_key: Optional[Item] = None,
        limit: Optional[int] = None,
        scan_forward: bool = False,
    ) -> Tuple[List[Item], Optional[Item]]:
        """Query one page of a partition. Returns (items, LastEvaluatedKey or None)."""
        params: Dict[str, Any] = {
            "TableName": self.table_name,
            "KeyConditionExpression": "#pk = :pk",
            "ExpressionAttributeNames": {"#pk": self.pk_field},
            "ExpressionAttributeValues": {":pk": _serializer.serialize(partition)},
            "ScanIndexForward": scan_forward,
        }
        if exclusive_start_key:
            params["ExclusiveStartKey"] = serialize_item(exclusive_start_key)
        if limit:
            params["Limit"] = int(limit)
        resp = await self._acall("query", **params)
        items = [deserialize_item(i) for i in resp.get("Items") or []]
        last_key = resp.get("LastEvaluatedKey")
        return items, (deserialize_item(last_key) if last_key else None)

    async def get_item(self, key: Item) -> Optional[Item]:
        resp = await self._acall("get_item", TableName=self.table_name, Key=serialize_item(key))
        raw = resp.get("Item")
        return deserialize_item(raw) if raw else None
