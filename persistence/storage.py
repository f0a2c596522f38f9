from __future__ import annotations

import asyncio
import logging
from typing import Any

from .interfaces import Persister

logger = logging.getLogger(__name__)


class Storage:
    """
    Binds one persister to its setup state.

    Setup is single-flight: the first call starts `persister.setup()` and every call
    issued before it completes awaits the same future. A failed setup stays failed.
    """

    def __init__(self, persister: Persister) -> None:
        self._persister = persister
        self._setup: asyncio.Future[Any] | None = None
        self._ready = False
        self._state: Any = None

    @property
    def persister(self) -> Persister:
        return self._persister

    @property
    def name(self) -> str:
        return self._persister.name

    async def state(self) -> Any:
        if self._ready:
            return self._state
        if self._setup is None:
            self._setup = asyncio.ensure_future(self._run_setup())
        # A cancelled caller must not cancel the setup other callers share.
        return await asyncio.shield(self._setup)

    async def _run_setup(self) -> Any:
        logger.info("PERSISTER SETUP: starting %s", self._persister.name)
        try:
            state = await self._persister.setup()
        except Exception:
            logger.error("PERSISTER SETUP: %s failed", self._persister.name)
            raise
        self._state = state
        self._ready = True
        logger.info("PERSISTER SETUP: %s ready", self._persister.name)
        return state

    async def get(self, key: str) -> bytes | None:
        state = await self.state()
        return await self._persister.get(state, key)

    async def set(self, key: str, data: bytes) -> None:
        state = await self.state()
        await self._persister.set(state, key, data)

    async def remove(self, key: str) -> None:
        state = await self.state()
        await self._persister.remove(state, key)

    async def list_namespaces(self, prefix: str) -> list[str] | None:
        state = await self.state()
        return await self._persister.list_namespaces(state, prefix)

    async def list_leaves(self, prefix: str) -> list[str] | None:
        state = await self.state()
        return await self._persister.list_leaves(state, prefix)

    async def make_namespace(self, prefix: str) -> None:
        state = await self.state()
        await self._persister.make_namespace(state, prefix)

    async def move_namespace(self, old: str, new: str) -> None:
        state = await self.state()
        await self._persister.move_namespace(state, old, new)

    async def remove_namespace(self, prefix: str) -> None:
        state = await self.state()
        await self._persister.remove_namespace(state, prefix)

    async def namespace_size(self, prefix: str) -> int | None:
        state = await self.state()
        return await self._persister.namespace_size(state, prefix)
