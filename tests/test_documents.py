from __future__ import annotations

import asyncio
from typing import Any

import pytest

from persistence import CorruptDocumentError, DocumentDatabase, MemoryPersister
from persistence.keys import document_key


def test_set_get_remove_roundtrip(database):
    async def _run():
        model = database.collection("db", "things")
        value = {"name": "widget", "tags": ["a", "b"], "dims": {"w": 1.5, "h": 2}, "ok": True, "none": None}

        assert await model.get("t1") is None
        await model.set("t1", value)
        assert await model.get("t1") == value
        assert await model.exists("t1")

        await model.remove("t1")
        assert await model.get("t1") is None
        await model.remove("t1")
        await model.remove("never-existed")

    asyncio.run(_run())


def test_null_documents_are_rejected(memory_database):
    async def _run():
        with pytest.raises(ValueError):
            await memory_database.collection("db", "c").set("x", None)

    asyncio.run(_run())


def test_malformed_stored_bytes_raise(database):
    async def _run():
        await database.storage.set(document_key("db", "c", "bad"), b"{not json")
        with pytest.raises(CorruptDocumentError):
            await database.collection("db", "c").get("bad")

    asyncio.run(_run())


def test_subscription_lifecycle(database):
    async def _run():
        model = database.collection("db", "c")
        seen: list[Any] = []

        unsubscribe = await model.subscribe("x", seen.append)
        assert seen == [None]

        await model.set("x", {"v": 1})
        await model.set("other", {"v": 99})
        await model.remove("other")
        await model.set("x", {"v": 2})
        await model.remove("x")
        assert seen == [None, {"v": 1}, {"v": 2}, None]

        unsubscribe()
        unsubscribe()
        await model.set("x", {"v": 3})
        assert seen == [None, {"v": 1}, {"v": 2}, None]

    asyncio.run(_run())


def test_subscription_delivers_existing_value_first(memory_database):
    async def _run():
        model = memory_database.collection("db", "c")
        await model.set("x", [1, 2, 3])
        seen: list[Any] = []
        await model.subscribe("x", seen.append)
        assert seen == [[1, 2, 3]]

    asyncio.run(_run())


def test_subscriptions_are_shared_across_model_instances(memory_database):
    async def _run():
        seen: list[Any] = []
        await memory_database.create_database("db")
        await memory_database.subscribe("db", "c", "x", seen.append)
        await memory_database.set_document("db", "c", {"id": "x", "n": 1})
        await memory_database.remove_document("db", "c", "x")
        assert seen == [None, {"id": "x", "n": 1}, None]

    asyncio.run(_run())


def test_notification_order_and_duplicate_registrations(memory_database):
    async def _run():
        model = memory_database.collection("db", "c")
        calls: list[str] = []

        def first(value: Any) -> None:
            calls.append("first")

        def second(value: Any) -> None:
            calls.append("second")

        await model.subscribe("x", first)
        await model.subscribe("x", second)
        await model.subscribe("x", first)
        calls.clear()

        await model.set("x", 1)
        assert calls == ["first", "second", "first"]

    asyncio.run(_run())


def test_callback_unsubscribing_itself_does_not_skip_others(memory_database):
    async def _run():
        model = memory_database.collection("db", "c")
        calls: list[str] = []
        handles: dict[str, Any] = {}

        def once(value: Any) -> None:
            calls.append("once")
            if value is not None:
                handles["once"]()

        def always(value: Any) -> None:
            calls.append("always")

        handles["once"] = await model.subscribe("x", once)
        await model.subscribe("x", always)
        calls.clear()

        await model.set("x", 1)
        await model.set("x", 2)
        assert calls == ["once", "always", "always"]

    asyncio.run(_run())


def test_callback_cancelled_by_an_earlier_callback_is_not_called(memory_database):
    async def _run():
        model = memory_database.collection("db", "c")
        calls: list[str] = []
        handles: dict[str, Any] = {}

        def killer(value: Any) -> None:
            calls.append("killer")
            if value is not None:
                handles["victim"]()

        def victim(value: Any) -> None:
            calls.append("victim")

        await model.subscribe("x", killer)
        handles["victim"] = await model.subscribe("x", victim)
        calls.clear()

        await model.set("x", 1)
        assert calls == ["killer"]

    asyncio.run(_run())


def test_failing_callback_does_not_break_write_or_others(memory_database, caplog):
    async def _run():
        model = memory_database.collection("db", "c")
        seen: list[Any] = []

        def broken(value: Any) -> None:
            if value is not None:
                raise RuntimeError("boom")

        await model.subscribe("x", broken)
        await model.subscribe("x", seen.append)

        await model.set("x", {"v": 1})
        assert await model.get("x") == {"v": 1}
        assert seen == [None, {"v": 1}]

    asyncio.run(_run())
    assert "callback for db/c/x failed" in caplog.text


def test_list_ids(database):
    async def _run():
        model = database.collection("db", "c")
        assert await model.list_ids() is None
        await model.set("b", 1)
        await model.set("a", 2)
        assert sorted(await model.list_ids()) == ["a", "b"]

    asyncio.run(_run())


class StallingReadPersister(MemoryPersister):
    """
    The next `get` reads its value, then waits for `release` before returning it.
    """

    def __init__(self) -> None:
        super().__init__()
        self.reading: asyncio.Event | None = None
        self.release: asyncio.Event | None = None

    async def get(self, state, key):
        value = await super().get(state, key)
        if self.release is not None:
            release, self.release = self.release, None
            self.reading.set()
            await release.wait()
        return value


def test_write_during_initial_fetch_is_folded_into_the_first_notification():
    async def _run():
        persister = StallingReadPersister()
        model = DocumentDatabase(persister).collection("db", "c")
        await model.set("x", {"v": 1})

        persister.reading = asyncio.Event()
        release = persister.release = asyncio.Event()
        seen: list[Any] = []
        task = asyncio.create_task(model.subscribe("x", seen.append))
        await persister.reading.wait()

        # the fetch already holds {"v": 1}; this write lands before it returns
        await model.set("x", {"v": 2})
        assert seen == []

        release.set()
        await task
        assert seen == [{"v": 2}]

        await model.set("x", {"v": 3})
        assert seen == [{"v": 2}, {"v": 3}]

    asyncio.run(_run())
