from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from persistence import Access, DocumentDatabase, MetaRecord, Outcome, parse_test_values
from settings import Settings

router = APIRouter(tags=["database"])
logger = logging.getLogger(__name__)

# Header carrying both the root token and per-database tokens.
AUTH_HEADER = "Authentication"


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------
def ok(data: Any) -> JSONResponse:
    return JSONResponse({"error": None, "data": data}, status_code=200)


def _database(request: Request) -> DocumentDatabase:
    return request.app.state.database


def _settings(request: Request) -> Settings:
    return request.app.state.settings


def _not_found(what: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"The requested {what} was not found")


def _require_root(request: Request) -> None:
    expected = _settings(request).root_auth
    if expected is None:
        return
    given = request.headers.get(AUTH_HEADER)
    if not given or not given.strip():
        raise HTTPException(status_code=401, detail="Expected an authorization header to be sent")
    if given.strip() != expected:
        raise HTTPException(status_code=403, detail="You do not have permission to perform this operation")


async def _require_access(request: Request, database: str) -> DocumentDatabase:
    db = _database(request)
    access = await db.check_access(database, request.headers.get(AUTH_HEADER))
    if access is Access.NOT_FOUND:
        raise _not_found(f"database ('{database}')")
    if access is Access.UNAUTHORIZED:
        raise HTTPException(status_code=401, detail="Expected an authorization header to be sent")
    if access is Access.FORBIDDEN:
        raise HTTPException(status_code=403, detail="You do not have permission to access this database")
    return db


async def _require_collection(db: DocumentDatabase, database: str, collection: str) -> None:
    if not await db.collection_exists(database, collection):
        raise _not_found(f'collection ("{collection}")')


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Expected a JSON payload")


async def _json_object(request: Request) -> dict[str, Any]:
    data = await _json_body(request)
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Expected a JSON payload")
    return data


def _required_str(data: dict[str, Any], field: str) -> str:
    value = data.get(field)
    if not isinstance(value, str) or not value:
        raise HTTPException(status_code=400, detail=f'Expected a "{field}" property in payload')
    return value


def _auth_token(data: dict[str, Any]) -> str | None:
    auth = data.get("auth")
    if auth is None or auth == "":
        return None
    if not isinstance(auth, str):
        raise HTTPException(status_code=400, detail='Expected "auth" to be a string')
    return auth


# -------------------------------------------------------------------
# Databases
# -------------------------------------------------------------------
@router.post("/")
async def create_database(request: Request) -> JSONResponse:
    _require_root(request)
    data = await _json_object(request)
    name = _required_str(data, "name")

    outcome = await _database(request).create_database(name, MetaRecord(auth=_auth_token(data)))
    if outcome is Outcome.CONFLICT:
        raise HTTPException(status_code=406, detail="Database already exists")
    return ok(name)


@router.get("/{database}")
async def database_info(request: Request, database: str) -> JSONResponse:
    db = await _require_access(request, database)
    size = await db.database_size(database)
    counts = await db.request_counts(database) or (0, 0)
    return ok({"size": size or 0, "requests": list(counts)})


@router.put("/{database}")
async def edit_database(request: Request, database: str) -> JSONResponse:
    _require_root(request)
    data = await _json_object(request)
    name = _required_str(data, "name")

    outcome = await _database(request).rename_database(database, name, MetaRecord(auth=_auth_token(data)))
    if outcome is Outcome.NOT_FOUND:
        raise _not_found(f"database ('{database}')")
    if outcome is Outcome.CONFLICT:
        raise HTTPException(status_code=406, detail="New database name already exists")
    return ok(name)


@router.delete("/{database}")
async def delete_database(request: Request, database: str) -> JSONResponse:
    _require_root(request)
    await _database(request).remove_database(database)
    return ok(database)


# -------------------------------------------------------------------
# Collections
# -------------------------------------------------------------------
@router.post("/{database}/collections")
async def create_collection(request: Request, database: str) -> JSONResponse:
    db = await _require_access(request, database)
    data = await _json_object(request)
    name = _required_str(data, "name")

    outcome = await db.create_collection(database, name)
    if outcome is Outcome.NOT_FOUND:
        raise _not_found(f"database ('{database}')")
    if outcome is Outcome.CONFLICT:
        raise HTTPException(status_code=406, detail="New collection name already exists")
    return ok(name)


@router.get("/{database}/collections")
async def list_collections(request: Request, database: str) -> JSONResponse:
    db = await _require_access(request, database)
    return ok(await db.list_collections(database) or [])


@router.get("/{database}/collections/{collection}")
async def get_collection(request: Request, database: str, collection: str) -> JSONResponse:
    db = await _require_access(request, database)
    await _require_collection(db, database, collection)
    return ok(collection)


@router.put("/{database}/collections/{collection}")
async def rename_collection(request: Request, database: str, collection: str) -> JSONResponse:
    db = await _require_access(request, database)
    await _require_collection(db, database, collection)
    data = await _json_object(request)
    name = _required_str(data, "name")

    outcome = await db.rename_collection(database, collection, name)
    if outcome is Outcome.NOT_FOUND:
        raise _not_found(f'collection ("{collection}")')
    if outcome is Outcome.CONFLICT:
        raise HTTPException(status_code=406, detail="New collection name already exists")
    return ok(name)


@router.delete("/{database}/collections/{collection}")
async def delete_collection(request: Request, database: str, collection: str) -> JSONResponse:
    db = await _require_access(request, database)
    await _require_collection(db, database, collection)
    await db.remove_collection(database, collection)
    return ok(collection)


# -------------------------------------------------------------------
# Documents
# -------------------------------------------------------------------
@router.post("/{database}/collections/{collection}/setDocument")
async def set_document(request: Request, database: str, collection: str, idField: str = "id") -> JSONResponse:
    db = await _require_access(request, database)
    await _require_collection(db, database, collection)
    document = await _json_body(request)
    if document is None:
        raise HTTPException(status_code=400, detail="Expected a JSON payload")

    document_id = await db.set_document(database, collection, document, id_field=idField or "id")
    if document_id is None:
        raise _not_found(f"database ('{database}')")
    return ok(document_id)


@router.get("/{database}/collections/{collection}/documents")
async def list_documents(request: Request, database: str, collection: str) -> JSONResponse:
    db = await _require_access(request, database)
    documents = await db.list_documents(database, collection)
    if documents is None:
        raise _not_found(f'collection ("{collection}")')
    return ok(documents)


@router.get("/{database}/collections/{collection}/documents/{document}")
async def get_document(request: Request, database: str, collection: str, document: str) -> JSONResponse:
    db = await _require_access(request, database)
    await _require_collection(db, database, collection)

    value = await db.get_document(database, collection, document)
    if value is None:
        raise _not_found(f'document ("{document}")')
    return ok(value)


@router.delete("/{database}/collections/{collection}/documents/{document}")
async def delete_document(request: Request, database: str, collection: str, document: str) -> JSONResponse:
    db = await _require_access(request, database)
    await _require_collection(db, database, collection)

    if not await db.collection(database, collection).exists(document):
        raise _not_found(f'document ("{document}")')
    await db.remove_document(database, collection, document)
    return ok(document)


# -------------------------------------------------------------------
# Queries
# -------------------------------------------------------------------
async def _query_params(request: Request) -> tuple[str, list[Any]]:
    data = await _json_object(request)
    key = data.get("key")
    if not isinstance(key, str) or not key:
        raise HTTPException(status_code=400, detail='Expected a "key" property')
    if "values" not in data:
        raise HTTPException(status_code=400, detail='Expected a "values" property')
    return key, parse_test_values(data["values"])


@router.post("/{database}/collections/{collection}/findDocumentByKey")
async def find_document_by_key(request: Request, database: str, collection: str) -> JSONResponse:
    db = await _require_access(request, database)
    await _require_collection(db, database, collection)
    key, values = await _query_params(request)

    return ok(await db.find_document_by_key(database, collection, key, values))


@router.post("/{database}/collections/{collection}/findManyDocumentsByKey")
async def find_many_documents_by_key(request: Request, database: str, collection: str) -> JSONResponse:
    db = await _require_access(request, database)
    await _require_collection(db, database, collection)
    key, values = await _query_params(request)

    return ok(await db.find_documents_by_key(database, collection, key, values) or [])
