from __future__ import annotations

from dataclasses import dataclass, field

from .keys import SEPARATOR


@dataclass
class MemoryState:
    values: dict[str, bytes] = field(default_factory=dict)
    # Every namespace that exists, including ancestors of stored keys.
    namespaces: set[str] = field(default_factory=set)

    def touch_ancestors(self, key: str) -> None:
        parts = key.split(SEPARATOR)
        for i in range(1, len(parts)):
            self.namespaces.add(SEPARATOR.join(parts[:i]))


def _under(key: str, prefix: str) -> bool:
    return key.startswith(prefix + SEPARATOR)


def _rebase(key: str, old: str, new: str) -> str:
    return new + key[len(old):]


class MemoryPersister:
    """
    Process-memory persister with the same semantics as the on-disk one.
    Nothing survives the process.
    """

    name = "memory"

    def __init__(self) -> None:
        self.setup_calls = 0

    async def setup(self) -> MemoryState:
        self.setup_calls += 1
        return MemoryState()

    async def get(self, state: MemoryState, key: str) -> bytes | None:
        return state.values.get(key)

    async def set(self, state: MemoryState, key: str, data: bytes) -> None:
        state.values[key] = bytes(data)
        state.touch_ancestors(key)

    async def remove(self, state: MemoryState, key: str) -> None:
        state.values.pop(key, None)

    async def list_namespaces(self, state: MemoryState, prefix: str) -> list[str] | None:
        if prefix not in state.namespaces:
            return None
        start = len(prefix) + 1
        return sorted(
            ns[start:] for ns in state.namespaces if _under(ns, prefix) and SEPARATOR not in ns[start:]
        )

    async def list_leaves(self, state: MemoryState, prefix: str) -> list[str] | None:
        if prefix not in state.namespaces:
            return None
        start = len(prefix) + 1
        return sorted(k[start:] for k in state.values if _under(k, prefix) and SEPARATOR not in k[start:])

    async def make_namespace(self, state: MemoryState, prefix: str) -> None:
        state.namespaces.add(prefix)
        state.touch_ancestors(prefix)

    async def move_namespace(self, state: MemoryState, old: str, new: str) -> None:
        if old not in state.namespaces:
            raise FileNotFoundError(old)
        if new in state.namespaces:
            raise FileExistsError(new)
        for key in [k for k in state.values if _under(k, old)]:
            state.values[_rebase(key, old, new)] = state.values.pop(key)
        moved = {ns for ns in state.namespaces if ns == old or _under(ns, old)}
        state.namespaces -= moved
        state.namespaces.update(_rebase(ns, old, new) for ns in moved)
        state.touch_ancestors(new)

    async def remove_namespace(self, state: MemoryState, prefix: str) -> None:
        for key in [k for k in state.values if _under(k, prefix)]:
            del state.values[key]
        state.namespaces = {ns for ns in state.namespaces if ns != prefix and not _under(ns, prefix)}

    async def namespace_size(self, state: MemoryState, prefix: str) -> int | None:
        if prefix not in state.namespaces:
            return None
        return sum(len(v) for k, v in state.values.items() if _under(k, prefix))
