from __future__ import annotations

from typing import Any

SEPARATOR = "/"
META_LEAF = "meta"
# Stored leaves carry this suffix on disk, next to namespace directories of the same level.
LEAF_SUFFIX = ".json"

# "/" is the key separator, ":" is the local backend's substitute for it and "\"
# is a path separator on some platforms.
_FORBIDDEN_CHARS = ("/", "\\", ":")


class InvalidNameError(ValueError):
    pass


def validate_name(kind: str, value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise InvalidNameError(f"{kind} name must be a non-empty string")
    if value in (".", ".."):
        raise InvalidNameError(f"{kind} name may not be '{value}'")
    for ch in _FORBIDDEN_CHARS:
        if ch in value:
            raise InvalidNameError(f"{kind} name may not contain '{ch}': {value!r}")
    if any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in value):
        raise InvalidNameError(f"{kind} name may not contain control characters: {value!r}")
    return value


def database_prefix(database: str) -> str:
    return validate_name("database", database)


def collection_prefix(database: str, collection: str) -> str:
    prefix = database_prefix(database)
    validate_name("collection", collection)
    if collection.endswith(LEAF_SUFFIX):
        raise InvalidNameError(f"collection name may not end with '{LEAF_SUFFIX}': {collection!r}")
    return SEPARATOR.join((prefix, collection))


def document_key(database: str, collection: str, document_id: str) -> str:
    return SEPARATOR.join((collection_prefix(database, collection), validate_name("document", document_id)))


def meta_key(database: str) -> str:
    return SEPARATOR.join((database_prefix(database), META_LEAF))
