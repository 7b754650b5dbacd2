from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import jwt
from passlib.context import CryptContext


# bcrypt verifies hashes written by the previous Node service; new hashes are pbkdf2.
_pwd = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")
_JWT_ALG = "HS256"


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except Exception:
        # Unknown hash formats count as a mismatch.
        return False


def verify_and_update_password(password: str, password_hash: str) -> Tuple[bool, Optional[str]]:
    """Verify and return (ok, new_hash); new_hash is set when the stored hash uses a deprecated scheme."""
    if not password or not password_hash:
        return False, None
    try:
        return _pwd.verify_and_update(password, password_hash)
    except Exception:
        return False, None


def create_access_token(
    *,
    secret: str,
    email: str,
    expires_minutes: int,
    now: Optional[datetime] = None,
) -> str:
    if not secret:
        raise ValueError("jwt_secret_blank")
    if not email:
        raise ValueError("email_blank")

    now = now or datetime.now(timezone.utc)
    exp = now + timedelta(minutes=max(1, int(expires_minutes)))

    payload: Dict[str, Any] = {
        "sub": email,
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def decode_access_token(*, token: str, secret: str) -> Dict[str, Any]:
    if not token:
        raise ValueError("token_blank")
    if not secret:
        raise ValueError("jwt_secret_blank")
    return jwt.decode(token, secret, algorithms=[_JWT_ALG], options={"require": ["exp"]})
