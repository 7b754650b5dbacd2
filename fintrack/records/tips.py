from __future__ import annotations

from typing import Any, Dict, List

import pymongo
from bson import ObjectId
from pymongo.database import Database
from pymongo.results import DeleteResult, InsertOneResult, UpdateResult

from fintrack.schema import TIP_FIELDS, TIPS, pick_fields
from fintrack.util.time import utcnow_iso


def list_all(db: Database) -> List[Dict[str, Any]]:
    """Newest first."""
    return list(db[TIPS].find().sort("date", pymongo.DESCENDING))


def insert(db: Database, fields: Dict[str, Any]) -> InsertOneResult:
    doc = pick_fields(fields, TIP_FIELDS)
    doc["date"] = utcnow_iso()
    return db[TIPS].insert_one(doc)


def update(db: Database, tip_id: ObjectId, fields: Dict[str, Any]) -> UpdateResult:
    sets = pick_fields(fields, TIP_FIELDS)
    if not sets:
        raise ValueError("no_fields")
    return db[TIPS].update_one({"_id": tip_id}, {"$set": sets})


def delete(db: Database, tip_id: ObjectId) -> DeleteResult:
    return db[TIPS].delete_one({"_id": tip_id})
