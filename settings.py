from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_optional(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


@dataclass(frozen=True)
class Settings:
    # Persistence backend: "local", "dynamo" or "memory"
    persister: str
    data_root: Path

    # DynamoDB
    dynamo_table: str
    aws_region: str
    aws_access_key_id: str | None
    aws_secret_access_key: str | None
    dynamo_endpoint_url: str | None

    # Token required for creating/renaming/removing databases (None = open)
    root_auth: str | None

    # Debug
    debug_log_requests: bool


def get_settings() -> Settings:
    persister = (os.getenv("DEADBASE_PERSISTER", "local")).strip().lower()

    data_root_raw = _env_optional("DEADBASE_DATA_ROOT")
    data_root = Path(data_root_raw) if data_root_raw else Path.cwd() / "data"

    return Settings(
        persister=persister,
        data_root=data_root,
        dynamo_table=os.getenv("DEADBASE_DYNAMO_TABLE", "deadbase"),
        aws_region=os.getenv("AWS_REGION", "us-east-1"),
        aws_access_key_id=_env_optional("AWS_ACCESS_KEY_ID"),
        aws_secret_access_key=_env_optional("AWS_SECRET_ACCESS_KEY"),
        dynamo_endpoint_url=_env_optional("DEADBASE_DYNAMO_ENDPOINT"),
        root_auth=_env_optional("DEADBASE_ROOT_AUTH"),
        debug_log_requests=_env_bool("DEBUG_LOG_REQUESTS", False),
    )
