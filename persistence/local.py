from __future__ import annotations

import asyncio
import os
import shutil
from pathlib import Path

from json_store import atomic_write_bytes, read_bytes

from .keys import LEAF_SUFFIX, SEPARATOR
from .locks import FILE_WRITE_LOCKS

SAFE_CHAR = ":"


def _safe_segment(segment: str) -> str:
    segment = segment.replace("\\", SAFE_CHAR)
    if os.sep != "/":
        segment = segment.replace(os.sep, SAFE_CHAR)
    return segment


def _is_temp_file(name: str) -> bool:
    return name.startswith(".") and name.endswith(".tmp")


class LocalPersister:
    """
    Stores each key as one file under `directory`.

    Key segments become path components, so `db/coll/id` lands in
    `<directory>/db/coll/id<suffix>` and namespaces are plain directories.
    """

    name = "local"

    def __init__(self, directory: Path | str, *, suffix: str = LEAF_SUFFIX) -> None:
        self._directory = Path(directory)
        self._suffix = suffix

    @property
    def directory(self) -> Path:
        return self._directory

    async def setup(self) -> Path:
        return await asyncio.to_thread(self._setup_sync)

    def _setup_sync(self) -> Path:
        root = self._directory
        if root.exists() and not root.is_dir():
            raise NotADirectoryError(f"Expected {root} to be a directory")
        root.mkdir(parents=True, exist_ok=True)
        return root

    def _namespace_path(self, root: Path, prefix: str) -> Path:
        return root.joinpath(*(_safe_segment(s) for s in prefix.split(SEPARATOR)))

    def _leaf_path(self, root: Path, key: str) -> Path:
        *parents, leaf = key.split(SEPARATOR)
        return root.joinpath(*(_safe_segment(s) for s in parents), _safe_segment(leaf) + self._suffix)

    # -- byte store -------------------------------------------------------

    async def get(self, state: Path, key: str) -> bytes | None:
        return await asyncio.to_thread(read_bytes, self._leaf_path(state, key))

    async def set(self, state: Path, key: str, data: bytes) -> None:
        await asyncio.to_thread(self._set_sync, self._leaf_path(state, key), data)

    async def remove(self, state: Path, key: str) -> None:
        await asyncio.to_thread(self._remove_sync, self._leaf_path(state, key))

    def _set_sync(self, path: Path, data: bytes) -> None:
        with FILE_WRITE_LOCKS.lock_for(path):
            atomic_write_bytes(path, data)

    def _remove_sync(self, path: Path) -> None:
        with FILE_WRITE_LOCKS.lock_for(path):
            path.unlink(missing_ok=True)

    # -- namespaces -------------------------------------------------------

    async def list_namespaces(self, state: Path, prefix: str) -> list[str] | None:
        return await asyncio.to_thread(self._list_namespaces_sync, self._namespace_path(state, prefix))

    async def list_leaves(self, state: Path, prefix: str) -> list[str] | None:
        return await asyncio.to_thread(self._list_leaves_sync, self._namespace_path(state, prefix))

    async def make_namespace(self, state: Path, prefix: str) -> None:
        path = self._namespace_path(state, prefix)
        await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)

    async def move_namespace(self, state: Path, old: str, new: str) -> None:
        await asyncio.to_thread(
            self._move_sync, self._namespace_path(state, old), self._namespace_path(state, new)
        )

    async def remove_namespace(self, state: Path, prefix: str) -> None:
        await asyncio.to_thread(self._remove_tree_sync, self._namespace_path(state, prefix))

    async def namespace_size(self, state: Path, prefix: str) -> int | None:
        return await asyncio.to_thread(self._size_sync, self._namespace_path(state, prefix))

    def _list_namespaces_sync(self, path: Path) -> list[str] | None:
        if not path.is_dir():
            return None
        return sorted(entry.name for entry in path.iterdir() if entry.is_dir())

    def _list_leaves_sync(self, path: Path) -> list[str] | None:
        if not path.is_dir():
            return None
        names: list[str] = []
        for entry in path.iterdir():
            if not entry.is_file() or _is_temp_file(entry.name):
                continue
            if not entry.name.endswith(self._suffix) or len(entry.name) == len(self._suffix):
                continue
            names.append(entry.name[: len(entry.name) - len(self._suffix)])
        return sorted(names)

    def _move_sync(self, old: Path, new: Path) -> None:
        if new.exists():
            raise FileExistsError(f"{new} already exists")
        new.parent.mkdir(parents=True, exist_ok=True)
        os.rename(old, new)

    def _remove_tree_sync(self, path: Path) -> None:
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass

    def _size_sync(self, path: Path) -> int | None:
        if not path.is_dir():
            return None
        total = 0
        for dirpath, _dirnames, filenames in os.walk(path):
            for filename in filenames:
                try:
                    total += os.stat(os.path.join(dirpath, filename)).st_size
                except FileNotFoundError:
                    # removed while walking
                    continue
        return total
