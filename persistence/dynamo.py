from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterator

import boto3
from botocore.exceptions import ClientError

from .interfaces import PersisterSetupError
from .keys import SEPARATOR

logger = logging.getLogger(__name__)

# Single-letter attribute names keep item overhead small.
KEY_ATTR = "I"
DATA_ATTR = "D"

TYPE_STRING = "S"
TYPE_BINARY = "B"

READ_CAPACITY_UNITS = 1
WRITE_CAPACITY_UNITS = 1


@dataclass(frozen=True)
class DynamoConfig:
    table_name: str
    region: str
    access_key_id: str | None = None
    secret_access_key: str | None = None
    endpoint_url: str | None = None


def create_dynamo_client(config: DynamoConfig) -> Any:
    session = boto3.session.Session(
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.secret_access_key,
        region_name=config.region,
    )
    return session.client("dynamodb", endpoint_url=config.endpoint_url)


def _error_code(err: ClientError) -> str:
    return str(err.response.get("Error", {}).get("Code", ""))


class DynamoPersister:
    """
    Stores each key as one DynamoDB item: `I` (string hash key) plus `D` (binary payload).

    Namespace operations are answered with a filtered Scan, which reads the whole
    table. Empty namespaces are kept alive by a marker item whose key ends in "/".
    Moving a namespace copies then deletes, so it is not atomic.
    """

    name = "dynamo"

    def __init__(self, config: DynamoConfig, *, client_factory: Callable[[DynamoConfig], Any] | None = None) -> None:
        self._config = config
        self._client_factory = client_factory or create_dynamo_client

    @property
    def table_name(self) -> str:
        return self._config.table_name

    async def setup(self) -> Any:
        return await asyncio.to_thread(self._setup_sync)

    def _setup_sync(self) -> Any:
        client = self._client_factory(self._config)
        table = self._describe_table(client)
        if table is None:
            self._create_table(client)
            return client

        definitions = table.get("AttributeDefinitions")
        if not definitions:
            raise PersisterSetupError(
                f"Table {self.table_name} was already created, but expected it to have attribute definitions"
            )

        key_def = next((d for d in definitions if d.get("AttributeName") == KEY_ATTR), None)
        if key_def is None:
            raise PersisterSetupError(
                f"Table {self.table_name} was already created, but expected it to have an '{KEY_ATTR}' attribute"
            )
        if key_def.get("AttributeType") != TYPE_STRING:
            raise PersisterSetupError(
                f"Table {self.table_name} was already created, but expected its '{KEY_ATTR}' field to be of type string"
            )
        return client

    def _describe_table(self, client: Any) -> dict[str, Any] | None:
        try:
            output = client.describe_table(TableName=self.table_name)
        except ClientError as e:
            if _error_code(e) == "ResourceNotFoundException":
                return None
            raise
        return output.get("Table")

    def _create_table(self, client: Any) -> None:
        logger.info("DYNAMO SETUP: creating table %s", self.table_name)
        client.create_table(
            TableName=self.table_name,
            AttributeDefinitions=[{"AttributeName": KEY_ATTR, "AttributeType": TYPE_STRING}],
            KeySchema=[{"AttributeName": KEY_ATTR, "KeyType": "HASH"}],
            ProvisionedThroughput={
                "ReadCapacityUnits": READ_CAPACITY_UNITS,
                "WriteCapacityUnits": WRITE_CAPACITY_UNITS,
            },
        )
        client.get_waiter("table_exists").wait(TableName=self.table_name)

    # -- byte store -------------------------------------------------------

    def _key(self, key: str) -> dict[str, Any]:
        return {KEY_ATTR: {TYPE_STRING: key}}

    async def get(self, state: Any, key: str) -> bytes | None:
        output = await asyncio.to_thread(state.get_item, TableName=self.table_name, Key=self._key(key))
        item = output.get("Item")
        if not item:
            return None
        data = item.get(DATA_ATTR, {}).get(TYPE_BINARY)
        if data is None:
            raise PersisterSetupError(
                f"Table {self.table_name} is misconfigured. Expected field '{DATA_ATTR}' to be specified as binary"
            )
        return bytes(data)

    async def set(self, state: Any, key: str, data: bytes) -> None:
        await asyncio.to_thread(self._put_sync, state, key, data)

    async def remove(self, state: Any, key: str) -> None:
        await asyncio.to_thread(self._delete_sync, state, key)

    def _put_sync(self, client: Any, key: str, data: bytes) -> None:
        client.put_item(
            TableName=self.table_name,
            Item={KEY_ATTR: {TYPE_STRING: key}, DATA_ATTR: {TYPE_BINARY: bytes(data)}},
        )

    def _delete_sync(self, client: Any, key: str) -> None:
        client.delete_item(TableName=self.table_name, Key=self._key(key))

    # -- namespaces -------------------------------------------------------

    def _scan(self, client: Any, prefix: str) -> Iterator[tuple[str, bytes]]:
        kwargs: dict[str, Any] = {
            "TableName": self.table_name,
            "FilterExpression": "begins_with(#k, :p)",
            "ExpressionAttributeNames": {"#k": KEY_ATTR},
            "ExpressionAttributeValues": {":p": {TYPE_STRING: prefix + SEPARATOR}},
        }
        while True:
            output = client.scan(**kwargs)
            for item in output.get("Items", []):
                yield item[KEY_ATTR][TYPE_STRING], bytes(item.get(DATA_ATTR, {}).get(TYPE_BINARY, b""))
            last = output.get("LastEvaluatedKey")
            if not last:
                return
            kwargs["ExclusiveStartKey"] = last

    def _children_sync(self, client: Any, prefix: str) -> tuple[set[str], set[str]] | None:
        start = len(prefix) + 1
        found = False
        namespaces: set[str] = set()
        leaves: set[str] = set()
        for key, _data in self._scan(client, prefix):
            found = True
            rest = key[start:]
            if not rest:
                continue
            head, sep, _tail = rest.partition(SEPARATOR)
            if sep:
                namespaces.add(head)
            else:
                leaves.add(head)
        if not found:
            return None
        return namespaces, leaves

    async def list_namespaces(self, state: Any, prefix: str) -> list[str] | None:
        children = await asyncio.to_thread(self._children_sync, state, prefix)
        return None if children is None else sorted(children[0])

    async def list_leaves(self, state: Any, prefix: str) -> list[str] | None:
        children = await asyncio.to_thread(self._children_sync, state, prefix)
        return None if children is None else sorted(children[1])

    async def make_namespace(self, state: Any, prefix: str) -> None:
        await asyncio.to_thread(self._put_sync, state, prefix + SEPARATOR, b"")

    async def move_namespace(self, state: Any, old: str, new: str) -> None:
        await asyncio.to_thread(self._move_sync, state, old, new)

    def _move_sync(self, client: Any, old: str, new: str) -> None:
        if next(self._scan(client, new), None) is not None:
            raise FileExistsError(f"namespace {new} already exists in {self.table_name}")
        items = list(self._scan(client, old))
        if not items:
            raise FileNotFoundError(f"namespace {old} does not exist in {self.table_name}")
        for key, data in items:
            self._put_sync(client, new + key[len(old):], data)
        for key, _data in items:
            self._delete_sync(client, key)

    async def remove_namespace(self, state: Any, prefix: str) -> None:
        await asyncio.to_thread(self._remove_tree_sync, state, prefix)

    def _remove_tree_sync(self, client: Any, prefix: str) -> None:
        for key in [key for key, _data in self._scan(client, prefix)]:
            self._delete_sync(client, key)

    async def namespace_size(self, state: Any, prefix: str) -> int | None:
        return await asyncio.to_thread(self._size_sync, state, prefix)

    def _size_sync(self, client: Any, prefix: str) -> int | None:
        found = False
        total = 0
        for _key, data in self._scan(client, prefix):
            found = True
            total += len(data)
        return total if found else None
