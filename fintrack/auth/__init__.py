"""Authentication / authorization helpers.

Auth is deliberately small:

- Users collection (email/password hash + role)
- JWT access tokens, valid for one hour, carried in an httpOnly cookie

Routes compose the gate declaratively:

- `require_authenticated` - any valid token
- `require_admin` - valid token and role == "admin" (checked against the DB)
- `owner_scope` - valid token; yields an OwnerScope for per-user records
"""

from .deps import (
    get_current_identity,
    owner_scope,
    require_admin,
    require_authenticated,
    require_ownership,
    require_role,
)
from .crud import bootstrap_admin_if_needed, create_user

__all__ = [
    "get_current_identity",
    "owner_scope",
    "require_admin",
    "require_authenticated",
    "require_ownership",
    "require_role",
    "bootstrap_admin_if_needed",
    "create_user",
]
