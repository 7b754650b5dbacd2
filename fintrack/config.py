import os
from dataclasses import dataclass
from typing import List, Optional

# Optional: load a local .env file if present.
try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    # If python-dotenv isn't installed or .env isn't present, that's fine.
    pass


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    IMPORTANT: Provide secrets via environment variables or a .env file.
    Do not hardcode secrets in source code.
    """

    # -----------------
    # Database
    # -----------------
    # Required. The API refuses to start without it.
    MONGO_URL: str | None = (os.environ.get("MONGO_URL") or "").strip() or None
    MONGO_DB_NAME: str = os.environ.get("MONGO_DB_NAME", "FinTrackDB")

    # -----------------
    # HTTP
    # -----------------
    API_HOST: str = os.environ.get("API_HOST", "0.0.0.0")
    PORT: int = int(os.environ.get("PORT", "3000"))

    # Frontend origin(s) allowed by CORS (comma separated).
    SITE_URL: str = os.environ.get("SITE_URL", "http://localhost:5173")

    # "production" switches the session cookie to Secure + SameSite=None.
    APP_ENV: str = (os.environ.get("APP_ENV") or os.environ.get("NODE_ENV") or "development").strip().lower()

    # -----------------
    # Auth (JWT)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set ACCESS_TOKEN_SECRET to a strong random value.
    ACCESS_TOKEN_SECRET: str = os.environ.get("ACCESS_TOKEN_SECRET", "dev_change_me")
    AUTH_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("AUTH_TOKEN_EXPIRE_MINUTES", "60"))  # 1 hour
    AUTH_COOKIE_NAME: str = os.environ.get("AUTH_COOKIE_NAME", "token")
    AUTH_COOKIE_PATH: str = os.environ.get("AUTH_COOKIE_PATH", "/")

    # Bootstrap first admin user if the users collection is empty.
    # Nothing is created unless both are set.
    AUTH_BOOTSTRAP_ADMIN_EMAIL: str | None = os.environ.get("AUTH_BOOTSTRAP_ADMIN_EMAIL")
    AUTH_BOOTSTRAP_ADMIN_PASSWORD: str | None = os.environ.get("AUTH_BOOTSTRAP_ADMIN_PASSWORD")

    # Mirrors the MongoDB server API pinning used by the hosted cluster.
    MONGO_SERVER_API: bool = _env_bool("MONGO_SERVER_API", True) is True

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in (self.SITE_URL or "").split(",") if o.strip()]


def load_config() -> Config:
    return Config()
