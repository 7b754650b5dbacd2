from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError
from pymongo.results import DeleteResult, UpdateResult

from fintrack.config import Config
from fintrack.schema import ROLES, USER_PROFILE_FIELDS, USERS, pick_fields
from fintrack.util.paging import skip_for
from fintrack.util.time import utcnow_iso

from .security import hash_password, verify_and_update_password


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def public_user(row: Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    d.pop("password", None)
    if "_id" in d:
        d["_id"] = str(d["_id"])
    return d


def get_user_by_email(db: Database, email: str) -> Optional[Dict[str, Any]]:
    e = normalize_email(email)
    if not e:
        return None
    return db[USERS].find_one({"email": e})


def verify_user_credentials(db: Database, email: str, password: str) -> Tuple[Optional[Dict[str, Any]], str]:
    """Return (user, reason). reason is "" on success, else user_not_found|invalid_credentials."""
    row = get_user_by_email(db, email)
    if row is None:
        return None, "user_not_found"
    ok, new_hash = verify_and_update_password(password, str(row.get("password") or ""))
    if not ok:
        return None, "invalid_credentials"
    if new_hash:
        # Legacy bcrypt hashes are replaced on the first successful login.
        db[USERS].update_one({"_id": row["_id"]}, {"$set": {"password": new_hash}})
        row["password"] = new_hash
    return row, ""


def create_user(
    db: Database,
    *,
    email: str,
    password: str,
    fullname: str | None = None,
    photo: str | None = None,
    role: str = "user",
) -> ObjectId:
    e = normalize_email(email)
    if not e:
        raise ValueError("email_blank")
    if role not in ROLES:
        raise ValueError("invalid_role")

    # The unique index on email backs this check.
    if db[USERS].find_one({"email": e}, {"_id": 1}) is not None:
        raise ValueError("user_exists")

    doc = {
        "email": e,
        "password": hash_password(password),
        "fullname": fullname,
        "photo": photo,
        "role": role,
        "createdAt": utcnow_iso(),
    }
    try:
        res = db[USERS].insert_one(doc)
    except DuplicateKeyError:
        raise ValueError("user_exists")
    return res.inserted_id


def list_users(db: Database, *, page: int, limit: int, search: str = "") -> Tuple[List[Dict[str, Any]], int]:
    q: Dict[str, Any] = {}
    s = (search or "").strip()
    if s:
        pattern = re.escape(s)
        q["$or"] = [
            {"fullname": {"$regex": pattern, "$options": "i"}},
            {"email": {"$regex": pattern, "$options": "i"}},
        ]

    total = db[USERS].count_documents(q)
    rows = db[USERS].find(q).skip(skip_for(page, limit)).limit(int(limit))
    return [public_user(r) for r in rows], int(total)


def set_user_role(db: Database, user_id: ObjectId, role: str) -> UpdateResult:
    if role not in ROLES:
        raise ValueError("invalid_role")
    return db[USERS].update_one({"_id": user_id}, {"$set": {"role": role}})


def delete_user(db: Database, user_id: ObjectId) -> DeleteResult:
    # Transactions and goals owned by the user are left in place.
    return db[USERS].delete_one({"_id": user_id})


def update_profile(db: Database, email: str, fields: Dict[str, Any]) -> UpdateResult:
    sets = pick_fields(fields, USER_PROFILE_FIELDS)
    if not sets:
        raise ValueError("no_fields")
    return db[USERS].update_one({"email": normalize_email(email)}, {"$set": sets})


def bootstrap_admin_if_needed(db: Database, cfg: Config) -> Optional[Dict[str, Any]]:
    """Create the first admin user if the users collection is empty.

    Controlled via environment variables so a fresh deployment has a way to
    reach the admin routes:

    - AUTH_BOOTSTRAP_ADMIN_EMAIL
    - AUTH_BOOTSTRAP_ADMIN_PASSWORD

    This only runs when there are 0 users and both values are set.
    """

    email = normalize_email(cfg.AUTH_BOOTSTRAP_ADMIN_EMAIL or "")
    password = cfg.AUTH_BOOTSTRAP_ADMIN_PASSWORD or ""
    if not email or not password:
        return None

    if db[USERS].count_documents({}) > 0:
        return None

    create_user(db, email=email, password=password, fullname="Administrator", role="admin")
    row = get_user_by_email(db, email)
    assert row is not None
    return public_user(row)
