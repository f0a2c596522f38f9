from __future__ import annotations

import logging
from typing import Any, Callable

from json_store import decode_json, encode_json

from .keys import collection_prefix, document_key
from .storage import Storage

logger = logging.getLogger(__name__)

Callback = Callable[[Any], None]

_UNSET: Any = object()


class CorruptDocumentError(ValueError):
    pass


class InvalidDocumentError(ValueError):
    pass


class Subscription:
    """
    One registration of a callback for one document key.

    While `pending`, the initial value has not been delivered yet; writes that land
    in that window are remembered so the initial notification carries the newest value.
    """

    def __init__(self, registry: "SubscriberRegistry", key: str, callback: Callback) -> None:
        self._registry = registry
        self.key = key
        self.callback = callback
        self.active = True
        self.pending = True
        self.latest: Any = _UNSET

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        self._registry._discard(self)


class SubscriberRegistry:
    """
    In-process document key -> callbacks map. Callbacks run in insertion order.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscription]] = {}

    def register(self, key: str, callback: Callback) -> Subscription:
        subscription = Subscription(self, key, callback)
        self._subscribers.setdefault(key, []).append(subscription)
        return subscription

    def _discard(self, subscription: Subscription) -> None:
        entries = self._subscribers.get(subscription.key)
        if not entries:
            return
        self._subscribers[subscription.key] = [s for s in entries if s is not subscription]
        if not self._subscribers[subscription.key]:
            del self._subscribers[subscription.key]

    def count(self, key: str) -> int:
        return len(self._subscribers.get(key, ()))

    def notify(self, key: str, value: Any) -> None:
        # Iterate a snapshot; `active` is re-checked so callbacks cancelled mid-loop are skipped.
        for subscription in tuple(self._subscribers.get(key, ())):
            if not subscription.active:
                continue
            if subscription.pending:
                subscription.latest = value
                continue
            self.deliver(subscription, value)

    def deliver(self, subscription: Subscription, value: Any) -> None:
        try:
            subscription.callback(value)
        except Exception:
            logger.exception("SUBSCRIBER: callback for %s failed", subscription.key)


class DocumentModel:
    """
    JSON documents of one collection, stored through a Storage.

    `None` means "no document": it is what `get` returns for a missing id and what
    subscribers receive on removal, so it cannot be stored as a value.
    """

    def __init__(self, storage: Storage, registry: SubscriberRegistry, database: str, collection: str) -> None:
        self._storage = storage
        self._registry = registry
        self.database = database
        self.collection = collection
        # validates both names up front
        self.prefix = collection_prefix(database, collection)

    def key(self, document_id: str) -> str:
        return document_key(self.database, self.collection, document_id)

    async def get(self, document_id: str) -> Any | None:
        key = self.key(document_id)
        raw = await self._storage.get(key)
        if raw is None:
            return None
        try:
            return decode_json(raw)
        except ValueError as e:
            raise CorruptDocumentError(f"document at {key} is not valid JSON: {e}") from e

    async def exists(self, document_id: str) -> bool:
        return (await self._storage.get(self.key(document_id))) is not None

    async def set(self, document_id: str, value: Any) -> None:
        if value is None:
            raise InvalidDocumentError("documents may not be null")
        key = self.key(document_id)
        try:
            data = encode_json(value)
        except (TypeError, ValueError) as e:
            raise InvalidDocumentError(f"document {key} is not representable as JSON: {e}") from e
        await self._storage.set(key, data)
        self._registry.notify(key, decode_json(data))

    async def remove(self, document_id: str) -> None:
        key = self.key(document_id)
        await self._storage.remove(key)
        self._registry.notify(key, None)

    async def list_ids(self) -> list[str] | None:
        return await self._storage.list_leaves(self.prefix)

    async def subscribe(self, document_id: str, callback: Callback) -> Callable[[], None]:
        """
        Register `callback` for `document_id`.

        The current value (or None) is delivered once before this returns; after
        that every set/remove of the id delivers one notification. The returned
        function cancels the registration and may be called any number of times.
        """
        key = self.key(document_id)
        subscription = self._registry.register(key, callback)
        try:
            current = await self.get(document_id)
        except BaseException:
            subscription.cancel()
            raise
        initial = current if subscription.latest is _UNSET else subscription.latest
        subscription.pending = False
        subscription.latest = _UNSET
        if subscription.active:
            self._registry.deliver(subscription, initial)
        return subscription.cancel
