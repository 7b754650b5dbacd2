from __future__ import annotations

import re
from typing import Any, Dict, List, Tuple

import pymongo
from bson import ObjectId
from pymongo.database import Database
from pymongo.results import DeleteResult, InsertOneResult, UpdateResult

from fintrack.models import OwnerScope
from fintrack.schema import TRANSACTION_FIELDS, TRANSACTION_SORT_FIELDS, TRANSACTIONS, pick_fields
from fintrack.util.paging import skip_for
from fintrack.util.time import utcnow_iso


def build_query(
    scope: OwnerScope,
    *,
    type_: str = "all",
    category: str = "all",
    search: str = "",
) -> Dict[str, Any]:
    q = scope.filter()
    if type_ and type_ != "all":
        q["type"] = type_
    if category and category != "all":
        q["category"] = category
    s = (search or "").strip()
    if s:
        pattern = re.escape(s)
        q["$or"] = [
            {"note": {"$regex": pattern, "$options": "i"}},
            {"category": {"$regex": pattern, "$options": "i"}},
        ]
    return q


def list_page(
    db: Database,
    scope: OwnerScope,
    *,
    page: int,
    limit: int,
    type_: str = "all",
    category: str = "all",
    search: str = "",
    sort_by: str = "date",
    order: str = "desc",
) -> Tuple[List[Dict[str, Any]], int]:
    if sort_by not in TRANSACTION_SORT_FIELDS:
        raise ValueError("invalid_sort_by")
    direction = pymongo.ASCENDING if order == "asc" else pymongo.DESCENDING

    q = build_query(scope, type_=type_, category=category, search=search)
    total = db[TRANSACTIONS].count_documents(q)
    rows = (
        db[TRANSACTIONS]
        .find(q)
        .sort(sort_by, direction)
        .skip(skip_for(page, limit))
        .limit(int(limit))
    )
    return list(rows), int(total)


def list_all(db: Database, scope: OwnerScope) -> List[Dict[str, Any]]:
    return list(db[TRANSACTIONS].find(scope.filter()).sort("date", pymongo.DESCENDING))


def insert(db: Database, scope: OwnerScope, fields: Dict[str, Any]) -> InsertOneResult:
    doc = pick_fields(fields, TRANSACTION_FIELDS)
    doc["amount"] = float(doc.get("amount") or 0)
    doc["date"] = doc.get("date") or utcnow_iso()
    return db[TRANSACTIONS].insert_one(scope.stamp(doc))


def update(db: Database, scope: OwnerScope, txn_id: ObjectId, fields: Dict[str, Any]) -> UpdateResult:
    sets = pick_fields(fields, TRANSACTION_FIELDS)
    if "amount" in sets:
        sets["amount"] = float(sets["amount"] or 0)
    if not sets:
        raise ValueError("no_fields")
    return db[TRANSACTIONS].update_one(scope.filter(_id=txn_id), {"$set": sets})


def delete(db: Database, scope: OwnerScope, txn_id: ObjectId) -> DeleteResult:
    return db[TRANSACTIONS].delete_one(scope.filter(_id=txn_id))
