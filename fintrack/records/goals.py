from __future__ import annotations

from typing import Any, Dict, List

from bson import ObjectId
from pymongo.database import Database
from pymongo.results import DeleteResult, InsertOneResult, UpdateResult

from fintrack.models import OwnerScope
from fintrack.schema import GOAL_FIELDS, GOALS, pick_fields
from fintrack.util.time import utcnow_iso


def list_for_owner(db: Database, scope: OwnerScope) -> List[Dict[str, Any]]:
    return list(db[GOALS].find(scope.filter()))


def insert(db: Database, scope: OwnerScope, fields: Dict[str, Any]) -> InsertOneResult:
    doc = pick_fields(fields, GOAL_FIELDS)
    doc["createdAt"] = utcnow_iso()
    return db[GOALS].insert_one(scope.stamp(doc))


def update(db: Database, scope: OwnerScope, goal_id: ObjectId, fields: Dict[str, Any]) -> UpdateResult:
    sets = pick_fields(fields, GOAL_FIELDS)
    if not sets:
        raise ValueError("no_fields")
    return db[GOALS].update_one(scope.filter(_id=goal_id), {"$set": sets})


def delete(db: Database, scope: OwnerScope, goal_id: ObjectId) -> DeleteResult:
    return db[GOALS].delete_one(scope.filter(_id=goal_id))
