from __future__ import annotations

from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import Request
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.results import DeleteResult, InsertOneResult, UpdateResult
from pymongo.server_api import ServerApi

from fintrack.config import Config
from fintrack.schema import get_index_specs


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


def connect(cfg: Config) -> MongoClient:
    """Create the process-wide MongoClient.

    The client pools connections internally, so one instance is shared by
    every request for the lifetime of the app.
    """
    if not cfg.MONGO_URL:
        raise RuntimeError("MONGO_URL is not configured")

    kwargs: Dict[str, Any] = {}
    if cfg.MONGO_SERVER_API:
        kwargs["server_api"] = ServerApi("1")
    return MongoClient(cfg.MONGO_URL, **kwargs)


def init_db(db: Database) -> None:
    """Create indexes. Safe to run repeatedly."""
    _debug(f"Ensuring indexes on {db.name}")
    for collection, specs in get_index_specs().items():
        for keys, options in specs:
            db[collection].create_index(keys, **options)


def ping(client: MongoClient) -> None:
    client.admin.command("ping")


def get_db(request: Request) -> Database:
    """FastAPI dependency: the database handle owned by the app."""
    return request.app.state.db


# -----------------------------
# Ids + JSON
# -----------------------------


def parse_object_id(raw: str) -> Optional[ObjectId]:
    s = (raw or "").strip()
    if not ObjectId.is_valid(s):
        return None
    return ObjectId(s)


def to_jsonable(value: Any) -> Any:
    """Render ObjectIds as hex strings, recursively."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def insert_result(res: InsertOneResult) -> Dict[str, Any]:
    return {"acknowledged": bool(res.acknowledged), "insertedId": str(res.inserted_id)}


def update_result(res: UpdateResult) -> Dict[str, Any]:
    upserted = res.upserted_id
    return {
        "acknowledged": bool(res.acknowledged),
        "matchedCount": int(res.matched_count),
        "modifiedCount": int(res.modified_count),
        "upsertedId": str(upserted) if upserted is not None else None,
        "upsertedCount": 1 if upserted is not None else 0,
    }


def delete_result(res: DeleteResult) -> Dict[str, Any]:
    return {"acknowledged": bool(res.acknowledged), "deletedCount": int(res.deleted_count)}
