from __future__ import annotations

from .database import Access, DocumentDatabase, Outcome
from .documents import CorruptDocumentError, DocumentModel, InvalidDocumentError, SubscriberRegistry
from .dynamo import DynamoConfig, DynamoPersister
from .interfaces import Persister, PersisterSetupError
from .keys import InvalidNameError
from .local import LocalPersister
from .matching import InvalidTestValueError, NOT_FOUND, parse_test_values
from .memory import MemoryPersister
from .meta import MetadataStore, MetaRecord
from .storage import Storage

__all__ = [
    "Access",
    "CorruptDocumentError",
    "DocumentDatabase",
    "DocumentModel",
    "DynamoConfig",
    "DynamoPersister",
    "InvalidDocumentError",
    "InvalidNameError",
    "InvalidTestValueError",
    "LocalPersister",
    "MemoryPersister",
    "MetaRecord",
    "MetadataStore",
    "NOT_FOUND",
    "Outcome",
    "Persister",
    "PersisterSetupError",
    "Storage",
    "SubscriberRegistry",
    "parse_test_values",
]
