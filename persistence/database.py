from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, Callable, Iterable

from .documents import Callback, DocumentModel, SubscriberRegistry
from .interfaces import Persister
from .keys import collection_prefix, database_prefix, validate_name
from .matching import TestValue, document_matches
from .meta import MetadataStore, MetaRecord
from .storage import Storage


class Outcome(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


class Access(str, Enum):
    GRANTED = "granted"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"


def _explicit_id(document: Any, id_field: str) -> str | None:
    if not isinstance(document, dict):
        return None
    raw = document.get(id_field)
    if isinstance(raw, bool):
        return None
    if isinstance(raw, str) and raw:
        return raw
    if isinstance(raw, int):
        return str(raw)
    return None


class DocumentDatabase:
    """
    Databases, collections and documents on top of one persister.

    Missing things come back as None / Outcome.NOT_FOUND, never as exceptions.
    Backend errors propagate unchanged.
    """

    def __init__(self, persister: Persister) -> None:
        self.storage = Storage(persister)
        self.meta = MetadataStore(self.storage)
        self._registry = SubscriberRegistry()

    async def ready(self) -> None:
        await self.storage.state()

    def collection(self, database: str, collection: str) -> DocumentModel:
        return DocumentModel(self.storage, self._registry, database, collection)

    # -------------------------------------------------------------------
    # Databases
    # -------------------------------------------------------------------
    async def database_exists(self, name: str) -> bool:
        return (await self.meta.read(name)) is not None

    async def create_database(self, name: str, meta: MetaRecord | None = None) -> Outcome:
        database_prefix(name)
        if await self.database_exists(name):
            return Outcome.CONFLICT
        await self.meta.write(name, meta or MetaRecord())
        return Outcome.OK

    async def rename_database(self, old: str, new: str, meta: MetaRecord | None = None) -> Outcome:
        """
        Move the whole namespace of `old` to `new`, then rewrite its meta. The request
        counters carry over; `auth` comes from `meta`.
        """
        database_prefix(new)
        current = await self.meta.read(old)
        if current is None:
            return Outcome.NOT_FOUND
        if old != new:
            if await self.storage.list_namespaces(database_prefix(new)) is not None:
                return Outcome.CONFLICT
            await self.storage.move_namespace(database_prefix(old), database_prefix(new))
        auth = meta.auth if meta is not None else current.auth
        await self.meta.write(new, current.model_copy(update={"auth": auth}))
        return Outcome.OK

    async def get_meta(self, name: str) -> MetaRecord | None:
        return await self.meta.read(name)

    async def check_access(self, name: str, token: str | None) -> Access:
        record = await self.meta.read(name)
        if record is None:
            return Access.NOT_FOUND
        if record.auth is None:
            return Access.GRANTED
        if token is None or not token.strip():
            return Access.UNAUTHORIZED
        if token.strip() != record.auth:
            return Access.FORBIDDEN
        return Access.GRANTED

    async def remove_database(self, name: str) -> None:
        await self.storage.remove_namespace(database_prefix(name))

    async def database_size(self, name: str) -> int | None:
        return await self.storage.namespace_size(database_prefix(name))

    async def request_counts(self, name: str) -> tuple[int, int] | None:
        return await self.meta.requests(name)

    # -------------------------------------------------------------------
    # Collections
    # -------------------------------------------------------------------
    async def list_collections(self, database: str) -> list[str] | None:
        return await self.storage.list_namespaces(database_prefix(database))

    async def collection_exists(self, database: str, collection: str) -> bool:
        return (await self.storage.list_leaves(collection_prefix(database, collection))) is not None

    async def create_collection(self, database: str, collection: str) -> Outcome:
        prefix = collection_prefix(database, collection)
        if not await self.database_exists(database):
            return Outcome.NOT_FOUND
        if await self.collection_exists(database, collection):
            return Outcome.CONFLICT
        await self.storage.make_namespace(prefix)
        return Outcome.OK

    async def rename_collection(self, database: str, old: str, new: str) -> Outcome:
        """
        Fails with CONFLICT if `new` already holds documents; an empty `new` is replaced.
        """
        old_prefix = collection_prefix(database, old)
        new_prefix = collection_prefix(database, new)
        if not await self.collection_exists(database, old):
            return Outcome.NOT_FOUND
        if old == new:
            return Outcome.OK
        existing = await self.storage.list_leaves(new_prefix)
        if existing:
            return Outcome.CONFLICT
        if existing is not None:
            await self.storage.remove_namespace(new_prefix)
        await self.storage.move_namespace(old_prefix, new_prefix)
        return Outcome.OK

    async def remove_collection(self, database: str, collection: str) -> None:
        await self.storage.remove_namespace(collection_prefix(database, collection))

    # -------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------
    async def list_documents(self, database: str, collection: str) -> list[str] | None:
        return await self.collection(database, collection).list_ids()

    async def get_document(self, database: str, collection: str, document_id: str) -> Any | None:
        document = await self.collection(database, collection).get(document_id)
        if document is not None:
            await self.meta.add_requests(database, 1, 0)
        return document

    async def set_document(
        self, database: str, collection: str, document: Any, id_field: str = "id"
    ) -> str | None:
        """
        Store `document` and return its id, or None if `database` does not exist.
        """
        model = self.collection(database, collection)
        document_id = _explicit_id(document, id_field)
        if document_id is not None:
            validate_name("document", document_id)
        if not await self.database_exists(database):
            return None
        if document_id is None:
            document_id = await self._new_document_id(model)
        await model.set(document_id, document)
        await self.meta.add_requests(database, 0, 1)
        return document_id

    async def _new_document_id(self, model: DocumentModel) -> str:
        while True:
            candidate = str(uuid.uuid4())
            if not await model.exists(candidate):
                return candidate

    async def remove_document(self, database: str, collection: str, document_id: str) -> None:
        await self.collection(database, collection).remove(document_id)

    async def subscribe(
        self, database: str, collection: str, document_id: str, callback: Callback
    ) -> Callable[[], None]:
        return await self.collection(database, collection).subscribe(document_id, callback)

    # -------------------------------------------------------------------
    # Queries (full scans, no index)
    # -------------------------------------------------------------------
    async def _scan(
        self, database: str, collection: str, path: str, test_values: Iterable[TestValue], *, first_only: bool
    ) -> list[str] | None:
        model = self.collection(database, collection)
        ids = await model.list_ids()
        if ids is None:
            return None
        tests = list(test_values)
        found: list[str] = []
        for document_id in ids:
            document = await model.get(document_id)
            if document is None:
                # removed since listing
                continue
            if document_matches(document, path, tests):
                found.append(document_id)
                if first_only:
                    break
        await self.meta.add_requests(database, 1, 0)
        return found

    async def find_document_by_key(
        self, database: str, collection: str, path: str, test_values: Iterable[TestValue]
    ) -> str | None:
        found = await self._scan(database, collection, path, test_values, first_only=True)
        return found[0] if found else None

    async def find_documents_by_key(
        self, database: str, collection: str, path: str, test_values: Iterable[TestValue]
    ) -> list[str] | None:
        return await self._scan(database, collection, path, test_values, first_only=False)
