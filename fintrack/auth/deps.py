from __future__ import annotations

from typing import Any, Callable, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pymongo.database import Database

from fintrack.db import get_db
from fintrack.models import OwnerScope
from fintrack.schema import OWNER_FIELD

from .crud import get_user_by_email, normalize_email, public_user
from .security import decode_access_token


_bearer = HTTPBearer(auto_error=False)

UNAUTHORIZED = "Unauthorized access"
FORBIDDEN = "Forbidden access"


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def _unauthorized() -> HTTPException:
    # Same message for every failure.
    return HTTPException(status_code=401, detail=UNAUTHORIZED, headers={"WWW-Authenticate": "Bearer"})


def get_current_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Dict[str, Any]:
    """Authenticate a request from its session token.

    Supports both:
      - the httpOnly session cookie set by /login and /jwt
      - Authorization: Bearer <jwt> (scripts / API clients)

    The decoded claims are attached to request.state.identity. No database
    lookup happens here; only the signature and expiry are checked.
    """

    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise HTTPException(status_code=500, detail="Server configuration missing")

    token: str | None = None

    # Prefer Bearer token when explicitly provided.
    if credentials is not None and credentials.credentials:
        token = credentials.credentials

    if not token:
        token = request.cookies.get(cfg.AUTH_COOKIE_NAME)

    if not token:
        raise _unauthorized()

    try:
        payload = decode_access_token(token=token, secret=cfg.ACCESS_TOKEN_SECRET)
    except jwt.ExpiredSignatureError:
        _debug("rejected expired token")
        raise _unauthorized()
    except (jwt.InvalidTokenError, ValueError):
        raise _unauthorized()

    email = normalize_email(str(payload.get("email") or ""))
    if not email:
        raise _unauthorized()

    identity = dict(payload)
    identity["email"] = email
    request.state.identity = identity
    return identity


def require_role(role: str) -> Callable[..., Dict[str, Any]]:
    """Build a dependency that admits only users holding `role`.

    The role is read from the users collection on every request, so a
    demotion takes effect immediately, even for tokens already issued.
    """

    def _require_role(
        identity: Dict[str, Any] = Depends(get_current_identity),
        db: Database = Depends(get_db),
    ) -> Dict[str, Any]:
        row = get_user_by_email(db, identity["email"])
        if row is None or row.get("role") != role:
            raise HTTPException(status_code=403, detail=FORBIDDEN)
        return public_user(row)

    return _require_role


def require_ownership(field: str = OWNER_FIELD) -> Callable[..., OwnerScope]:
    """Build a dependency yielding the caller's OwnerScope for `field`."""

    def _require_ownership(identity: Dict[str, Any] = Depends(get_current_identity)) -> OwnerScope:
        return OwnerScope(owner=identity["email"], field=field)

    return _require_ownership


require_authenticated = get_current_identity
require_admin = require_role("admin")
owner_scope = require_ownership(OWNER_FIELD)
