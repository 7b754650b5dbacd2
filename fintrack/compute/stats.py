"""Aggregation pipelines behind the dashboard numbers.

All arithmetic runs inside MongoDB; Python only reshapes the results.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pymongo.database import Database

from fintrack.schema import OWNER_FIELD, TRANSACTIONS, USERS
from fintrack.util.time import current_year


def _debug(msg: str) -> None:
    print(f"[stats] {msg}")


def user_totals_pipeline(email: str) -> List[Dict[str, Any]]:
    return [
        {"$match": {OWNER_FIELD: email}},
        {
            "$group": {
                "_id": None,
                "totalIncome": {"$sum": {"$cond": [{"$eq": ["$type", "income"]}, "$amount", 0]}},
                "totalExpense": {"$sum": {"$cond": [{"$eq": ["$type", "expense"]}, "$amount", 0]}},
            }
        },
    ]


def user_totals(db: Database, email: str) -> Dict[str, float]:
    """Income/expense totals over all of a user's transactions (filters ignored)."""
    rows = list(db[TRANSACTIONS].aggregate(user_totals_pipeline(email)))
    if not rows:
        return {"totalIncome": 0, "totalExpense": 0}
    r = rows[0]
    return {"totalIncome": r.get("totalIncome") or 0, "totalExpense": r.get("totalExpense") or 0}


def monthly_pipeline(year: int) -> List[Dict[str, Any]]:
    # Dates are stored as ISO strings, so the year is a prefix and the
    # month is characters 5-6.
    return [
        {"$match": {"date": {"$regex": f"^{int(year)}-"}}},
        {
            "$group": {
                "_id": {"$substr": ["$date", 5, 2]},
                "count": {"$sum": 1},
                "total": {"$sum": "$amount"},
            }
        },
        {"$sort": {"_id": 1}},
    ]


def monthly_stats(db: Database, year: int) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for r in db[TRANSACTIONS].aggregate(monthly_pipeline(year)):
        try:
            month = int(r["_id"])
        except (TypeError, ValueError):
            _debug(f"skipping unparseable month bucket: {r.get('_id')!r}")
            continue
        out.append({"_id": month, "count": int(r.get("count") or 0), "total": r.get("total") or 0})
    return out


def admin_overview(db: Database, year: Optional[int] = None) -> Dict[str, Any]:
    y = int(year) if year is not None else current_year()

    users_count = db[USERS].count_documents({"role": {"$ne": "admin"}})
    transactions_count = db[TRANSACTIONS].count_documents({})

    amount_rows = list(db[TRANSACTIONS].aggregate([{"$group": {"_id": None, "total": {"$sum": "$amount"}}}]))
    total_amount = (amount_rows[0].get("total") or 0) if amount_rows else 0

    return {
        "usersCount": int(users_count),
        "transactionsCount": int(transactions_count),
        "totalAmount": total_amount,
        "monthlyStats": monthly_stats(db, y),
    }
