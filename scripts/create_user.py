"""Create a user directly in MongoDB, or change the role of an existing one.

Usage:
  python scripts/create_user.py --email alice@example.com --password '...' --role admin

If the email is already registered, only its role is set to --role; the
stored password is left untouched.

NOTE: Handy for promoting the first admin on a fresh deployment.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from fintrack.config import load_config
from fintrack.db import connect, init_db
from fintrack.auth.crud import create_user, get_user_by_email, public_user, set_user_role


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--fullname", default=None)
    ap.add_argument("--role", choices=["user", "admin"], default="user")
    args = ap.parse_args()

    cfg = load_config()
    if not cfg.MONGO_URL:
        print("Error: MONGO_URL is not defined in the environment.")
        raise SystemExit(1)

    client = connect(cfg)
    try:
        db = client[cfg.MONGO_DB_NAME]
        init_db(db)
        action = "Created"
        existing = get_user_by_email(db, args.email)
        if existing is not None:
            set_user_role(db, existing["_id"], args.role)
            action = "Updated role for"
        else:
            try:
                create_user(db, email=args.email, password=args.password, fullname=args.fullname, role=args.role)
            except ValueError as e:
                print(f"Could not create user: {e}")
                raise SystemExit(1)
        u = public_user(get_user_by_email(db, args.email) or {})
    finally:
        client.close()

    print(f"{action} user:")
    print(u)


if __name__ == "__main__":
    main()
