"""Shared fixtures for the API tests.

Every test gets a fresh in-memory MongoDB (mongomock) injected into
create_app, three seeded users (alice, bob, admin) and helpers that build
session cookies for them.
"""

import sys
import unittest
from pathlib import Path
from typing import Dict

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import mongomock
from fastapi.testclient import TestClient

from fintrack.api.server import create_app
from fintrack.auth.crud import create_user
from fintrack.auth.security import create_access_token
from fintrack.config import Config
from fintrack.db import init_db

SECRET = "test-secret"

ALICE = "alice@example.com"
BOB = "bob@example.com"
ADMIN = "admin@example.com"


def make_config(**overrides) -> Config:
    values = dict(
        MONGO_URL="mongodb://localhost:27017",
        MONGO_DB_NAME="FinTrackTest",
        ACCESS_TOKEN_SECRET=SECRET,
        AUTH_TOKEN_EXPIRE_MINUTES=60,
        AUTH_COOKIE_NAME="token",
        APP_ENV="development",
        SITE_URL="http://localhost:5173",
        AUTH_BOOTSTRAP_ADMIN_EMAIL=None,
        AUTH_BOOTSTRAP_ADMIN_PASSWORD=None,
    )
    values.update(overrides)
    return Config(**values)


def token_for(email: str, secret: str = SECRET, minutes: int = 60) -> str:
    return create_access_token(secret=secret, email=email, expires_minutes=minutes)


def cookie_header(token: str) -> Dict[str, str]:
    return {"Cookie": f"token={token}"}


class ApiTestCase(unittest.TestCase):
    """Base class: app + client + seeded users."""

    config_overrides: Dict = {}

    def setUp(self) -> None:
        self.cfg = make_config(**self.config_overrides)
        self.mongo = mongomock.MongoClient()
        self.app = create_app(self.cfg, client=self.mongo)
        self.db = self.app.state.db
        init_db(self.db)
        self.client = TestClient(self.app)

        self.alice_id = create_user(self.db, email=ALICE, password="alice-pw", fullname="Alice Adams")
        self.bob_id = create_user(self.db, email=BOB, password="bob-pw", fullname="Bob Brown")
        self.admin_id = create_user(self.db, email=ADMIN, password="admin-pw", fullname="Root", role="admin")

    def tearDown(self) -> None:
        self.client.close()
        self.mongo.drop_database(self.cfg.MONGO_DB_NAME)

    def as_user(self, email: str) -> Dict[str, str]:
        return cookie_header(token_for(email))
