from __future__ import annotations

from typing import Any, Protocol


class Persister(Protocol):
    """
    Byte store reached by string key. Keys are "/"-separated; a namespace is any
    prefix ending at a "/" boundary.

    `setup()` runs once per process and its result is passed back as `state` to
    every other call.
    """

    name: str

    async def setup(self) -> Any:
        """One-time initialization; the returned state is opaque to callers."""
        ...

    async def get(self, state: Any, key: str) -> bytes | None:
        """Return the stored bytes, or None if nothing is stored under `key`."""
        ...

    async def set(self, state: Any, key: str, data: bytes) -> None:
        """Overwrite `key` unconditionally."""
        ...

    async def remove(self, state: Any, key: str) -> None:
        """Delete `key`; no-op if it is absent."""
        ...

    async def list_namespaces(self, state: Any, prefix: str) -> list[str] | None:
        """Names of the child namespaces of `prefix`, or None if `prefix` does not exist."""
        ...

    async def list_leaves(self, state: Any, prefix: str) -> list[str] | None:
        """Names of the keys directly under `prefix`, or None if `prefix` does not exist."""
        ...

    async def make_namespace(self, state: Any, prefix: str) -> None:
        ...

    async def move_namespace(self, state: Any, old: str, new: str) -> None:
        """Move everything under `old` to `new`. `new` must not exist."""
        ...

    async def remove_namespace(self, state: Any, prefix: str) -> None:
        """Recursively delete `prefix`; no-op if it is absent."""
        ...

    async def namespace_size(self, state: Any, prefix: str) -> int | None:
        """Total stored bytes under `prefix`, or None if it does not exist."""
        ...


class PersisterSetupError(RuntimeError):
    """A backend found its storage in a state it cannot safely use."""
