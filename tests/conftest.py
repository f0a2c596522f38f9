from __future__ import annotations

from pathlib import Path
import sys


import pytest


# Ensure the repository root (parent of ./tests) is importable during pytest collection.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


def make_settings(tmp_path: Path, **overrides):
    from settings import Settings

    values = dict(
        persister="local",
        data_root=tmp_path / "data",
        dynamo_table="deadbase-test",
        aws_region="us-east-1",
        aws_access_key_id=None,
        aws_secret_access_key=None,
        dynamo_endpoint_url=None,
        root_auth=None,
        debug_log_requests=False,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def data_root(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture(params=["local", "memory"])
def database(request: pytest.FixtureRequest, data_root: Path):
    """
    A DocumentDatabase over each built-in backend that needs no network.
    """
    from persistence import DocumentDatabase, LocalPersister, MemoryPersister

    if request.param == "local":
        return DocumentDatabase(LocalPersister(data_root))
    return DocumentDatabase(MemoryPersister())


@pytest.fixture
def memory_database():
    from persistence import DocumentDatabase, MemoryPersister

    return DocumentDatabase(MemoryPersister())


@pytest.fixture
def local_database(data_root: Path):
    from persistence import DocumentDatabase, LocalPersister

    return DocumentDatabase(LocalPersister(data_root))


ROOT_TOKEN = "root-secret"


@pytest.fixture
def client(tmp_path: Path, local_database):
    from fastapi.testclient import TestClient

    import app as app_module

    settings = make_settings(tmp_path, root_auth=ROOT_TOKEN)
    with TestClient(app_module.create_app(database=local_database, settings=settings)) as c:
        yield c


@pytest.fixture
def settings_for(tmp_path: Path):
    def _make(**overrides):
        return make_settings(tmp_path, **overrides)

    return _make
