from __future__ import annotations

from settings import Settings

from .dynamo import DynamoConfig, DynamoPersister
from .interfaces import Persister
from .local import LocalPersister
from .memory import MemoryPersister


def persister_from_settings(settings: Settings) -> Persister:
    if settings.persister == "local":
        return LocalPersister(settings.data_root)
    if settings.persister == "dynamo":
        return DynamoPersister(
            DynamoConfig(
                table_name=settings.dynamo_table,
                region=settings.aws_region,
                access_key_id=settings.aws_access_key_id,
                secret_access_key=settings.aws_secret_access_key,
                endpoint_url=settings.dynamo_endpoint_url,
            )
        )
    if settings.persister == "memory":
        return MemoryPersister()
    raise ValueError(f"Unknown persister {settings.persister!r} (expected local, dynamo or memory)")
