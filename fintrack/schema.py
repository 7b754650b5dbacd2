"""Collection names, index definitions and mutable-field allow-lists.

MongoDB has no DDL, so this module is the closest thing to a schema:
`init_db` creates the indexes listed here and the record modules only ever
write the fields named in the allow-lists.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

import pymongo

USERS = "users"
TRANSACTIONS = "transactions"
CATEGORIES = "categories"
GOALS = "goals"
TIPS = "tips"

ROLES = ("user", "admin")

# Fields a client may set via create/update endpoints.
USER_PROFILE_FIELDS = ("fullname", "photo")
TRANSACTION_FIELDS = ("type", "amount", "category", "note", "date")
GOAL_FIELDS = ("title", "targetAmount", "currentAmount", "deadline", "category", "note")
CATEGORY_FIELDS = ("name",)
TIP_FIELDS = ("title", "description", "category")

TRANSACTION_SORT_FIELDS = ("date", "amount", "category", "type")

# Owner field stamped onto every transaction and goal.
OWNER_FIELD = "userEmail"


def get_index_specs() -> Dict[str, List[Tuple[List[Tuple[str, int]], Dict[str, Any]]]]:
    """Return {collection: [(keys, options), ...]} for `init_db`."""
    return {
        USERS: [
            ([("email", pymongo.ASCENDING)], {"unique": True, "name": "uniq_email"}),
            ([("role", pymongo.ASCENDING)], {"name": "idx_role"}),
        ],
        TRANSACTIONS: [
            (
                [(OWNER_FIELD, pymongo.ASCENDING), ("date", pymongo.DESCENDING)],
                {"name": "idx_owner_date"},
            ),
            ([("date", pymongo.DESCENDING)], {"name": "idx_date"}),
        ],
        GOALS: [
            ([(OWNER_FIELD, pymongo.ASCENDING)], {"name": "idx_owner"}),
        ],
        TIPS: [
            ([("date", pymongo.DESCENDING)], {"name": "idx_date"}),
        ],
    }


def pick_fields(doc: Dict[str, Any], allowed: Tuple[str, ...]) -> Dict[str, Any]:
    """Keep only allow-listed keys; drops anything else the client sent."""
    return {k: v for k, v in doc.items() if k in allowed}
