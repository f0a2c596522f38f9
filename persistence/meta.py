from __future__ import annotations

from pydantic import BaseModel, ValidationError, field_validator

from json_store import decode_json, encode_json

from .keys import meta_key
from .storage import Storage


def _parse_requests(raw: str) -> tuple[int, int]:
    reads, _, writes = raw.partition(":")
    return int(reads or 0), int(writes or 0)


class MetaRecord(BaseModel):
    """
    Mirrors the on-disk meta.json schema:
      { "auth": "<token>" | null, "requests": "<reads>:<writes>" }
    """

    auth: str | None = None
    requests: str = "0:0"

    @field_validator("requests")
    @classmethod
    def _check_requests(cls, value: str) -> str:
        try:
            reads, writes = _parse_requests(value)
        except ValueError as e:
            raise ValueError(f"requests must look like '<reads>:<writes>', got {value!r}") from e
        if reads < 0 or writes < 0:
            raise ValueError("request counters must be non-negative")
        return f"{reads}:{writes}"

    @property
    def reads(self) -> int:
        return _parse_requests(self.requests)[0]

    @property
    def writes(self) -> int:
        return _parse_requests(self.requests)[1]

    def with_requests(self, reads: int, writes: int) -> "MetaRecord":
        return self.model_copy(update={"requests": f"{self.reads + reads}:{self.writes + writes}"})


class CorruptMetaError(ValueError):
    pass


class MetadataStore:
    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    async def read(self, database: str) -> MetaRecord | None:
        key = meta_key(database)
        raw = await self._storage.get(key)
        if raw is None:
            return None
        try:
            return MetaRecord.model_validate(decode_json(raw))
        except (ValueError, ValidationError) as e:
            raise CorruptMetaError(f"meta record at {key} is not valid: {e}") from e

    async def write(self, database: str, record: MetaRecord) -> None:
        await self._storage.set(meta_key(database), encode_json(record.model_dump(mode="json")))

    async def add_requests(self, database: str, reads: int, writes: int) -> MetaRecord | None:
        """
        Read-modify-write of the request counters. Not atomic: concurrent callers
        can overwrite each other's increments.
        """
        if reads < 0 or writes < 0:
            raise ValueError("request deltas must be non-negative")
        record = await self.read(database)
        if record is None:
            return None
        updated = record.with_requests(reads, writes)
        await self.write(database, updated)
        return updated

    async def requests(self, database: str) -> tuple[int, int] | None:
        record = await self.read(database)
        if record is None:
            return None
        return record.reads, record.writes
