from __future__ import annotations

from typing import Any, Dict, List

from bson import ObjectId
from pymongo.database import Database
from pymongo.results import DeleteResult, InsertOneResult

from fintrack.schema import CATEGORIES, CATEGORY_FIELDS, pick_fields


def list_all(db: Database) -> List[Dict[str, Any]]:
    return list(db[CATEGORIES].find())


def insert(db: Database, fields: Dict[str, Any]) -> InsertOneResult:
    doc = pick_fields(fields, CATEGORY_FIELDS)
    name = str(doc.get("name") or "").strip()
    if not name:
        raise ValueError("name_blank")
    doc["name"] = name
    return db[CATEGORIES].insert_one(doc)


def delete(db: Database, category_id: ObjectId) -> DeleteResult:
    return db[CATEGORIES].delete_one({"_id": category_id})
