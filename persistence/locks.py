from __future__ import annotations

import os
import threading
from pathlib import Path


class StripedPathLocks:
    """
    Fixed pool of locks; a normalized file path always maps to the same lock.

    Guards single file writes only. Nothing holds one of these across operations.
    """

    def __init__(self, stripes: int = 64) -> None:
        self._locks = [threading.Lock() for _ in range(stripes)]

    def lock_for(self, path: Path) -> threading.Lock:
        key = os.path.normcase(os.path.abspath(path))
        return self._locks[hash(key) % len(self._locks)]


FILE_WRITE_LOCKS = StripedPathLocks()
