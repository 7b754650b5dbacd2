"""App factory, configuration, error mapping and index bootstrap."""

import importlib.util
import io
import os
import sys
import unittest
from contextlib import redirect_stdout
from unittest.mock import patch

import mongomock
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from tests.support import ROOT, ApiTestCase, make_config
from fintrack.api.server import create_app
from fintrack.auth.crud import bootstrap_admin_if_needed, create_user, get_user_by_email
from fintrack.config import _env_bool
from fintrack.db import init_db, parse_object_id, to_jsonable
from fintrack.util.paging import MAX_PAGE, skip_for
from fintrack.util.time import normalize_iso_date


class TestCreateApp(unittest.TestCase):
    def test_exits_without_connection_string(self):
        with self.assertRaises(SystemExit) as ctx:
            create_app(make_config(MONGO_URL=None))
        self.assertEqual(ctx.exception.code, 1)

    def test_injected_client_is_shared(self):
        mongo = mongomock.MongoClient()
        app = create_app(make_config(MONGO_URL=None), client=mongo)
        self.assertIs(app.state.mongo, mongo)
        self.assertEqual(app.state.db.name, "FinTrackTest")


class TestRoutesAndErrors(ApiTestCase):
    def test_root_and_health(self):
        r = self.client.get("/")
        self.assertEqual(r.text, "FinTrack Server is running!")
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    def test_unknown_route_has_error_body(self):
        r = self.client.get("/nope")
        self.assertEqual(r.status_code, 404)
        self.assertEqual(r.json(), {"success": False, "message": "Not Found"})

    def test_storage_failure_is_generic_500(self):
        boom = ServerSelectionTimeoutError("db-host-7:27017 connection refused")
        with patch("fintrack.records.categories.list_all", side_effect=boom):
            r = self.client.get("/categories")
        self.assertEqual(r.status_code, 500)
        self.assertEqual(r.json(), {"success": False, "message": "Internal server error"})
        self.assertNotIn("db-host-7", r.text)

    def test_cors_allows_site_origin_with_credentials(self):
        r = self.client.options(
            "/categories",
            headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "GET"},
        )
        self.assertEqual(r.headers.get("access-control-allow-origin"), "http://localhost:5173")
        self.assertEqual(r.headers.get("access-control-allow-credentials"), "true")


class TestLifespan(unittest.TestCase):
    def test_startup_creates_indexes_and_bootstrap_admin(self):
        cfg = make_config(
            AUTH_BOOTSTRAP_ADMIN_EMAIL="Boss@Example.com",
            AUTH_BOOTSTRAP_ADMIN_PASSWORD="boss-pw",
        )
        mongo = mongomock.MongoClient()
        app = create_app(cfg, client=mongo)
        with patch("fintrack.api.server.ping"):
            with TestClient(app) as client:
                self.assertEqual(client.get("/health").status_code, 200)
                db = app.state.db
                self.assertIn("uniq_email", db["users"].index_information())
                self.assertEqual(get_user_by_email(db, "boss@example.com")["role"], "admin")


class TestBootstrapAdmin(unittest.TestCase):
    def setUp(self):
        self.db = mongomock.MongoClient()["FinTrackBoot"]
        init_db(self.db)

    def test_needs_both_values(self):
        cfg = make_config(AUTH_BOOTSTRAP_ADMIN_EMAIL="boss@example.com", AUTH_BOOTSTRAP_ADMIN_PASSWORD=None)
        self.assertIsNone(bootstrap_admin_if_needed(self.db, cfg))
        self.assertEqual(self.db["users"].count_documents({}), 0)

    def test_only_when_empty(self):
        cfg = make_config(AUTH_BOOTSTRAP_ADMIN_EMAIL="boss@example.com", AUTH_BOOTSTRAP_ADMIN_PASSWORD="pw")
        created = bootstrap_admin_if_needed(self.db, cfg)
        self.assertEqual(created["role"], "admin")
        self.assertNotIn("password", created)
        self.assertIsNone(bootstrap_admin_if_needed(self.db, cfg))
        self.assertEqual(self.db["users"].count_documents({}), 1)


class TestConfig(unittest.TestCase):
    def test_env_bool(self):
        with patch.dict(os.environ, {"X_FLAG": "Yes"}):
            self.assertTrue(_env_bool("X_FLAG"))
        with patch.dict(os.environ, {"X_FLAG": "off"}):
            self.assertFalse(_env_bool("X_FLAG", True))
        with patch.dict(os.environ, {"X_FLAG": "maybe"}):
            self.assertIsNone(_env_bool("X_FLAG"))

    def test_derived_values(self):
        cfg = make_config(APP_ENV="production", SITE_URL="https://a.example, https://b.example ,")
        self.assertTrue(cfg.is_production)
        self.assertEqual(cfg.cors_origins, ["https://a.example", "https://b.example"])
        self.assertFalse(make_config().is_production)


class TestIds(unittest.TestCase):
    def test_parse_object_id(self):
        self.assertIsNone(parse_object_id("xyz"))
        self.assertIsNone(parse_object_id(""))
        oid = parse_object_id("0123456789abcdef01234567")
        self.assertEqual(str(oid), "0123456789abcdef01234567")
        self.assertEqual(to_jsonable({"a": [oid]}), {"a": ["0123456789abcdef01234567"]})


class TestDatesAndPaging(unittest.TestCase):
    def test_dates_are_normalized(self):
        cases = {
            "2025-03-01": "2025-03-01",
            "2025-03-01T10:00:00Z": "2025-03-01T10:00:00Z",
            "2025-03-01T10:00:00.123456+00:00": "2025-03-01T10:00:00Z",
            "2025-03-01T10:00:00": "2025-03-01T10:00:00Z",
            "2025-01-31T23:00:00-05:00": "2025-02-01T04:00:00Z",
        }
        for raw, stored in cases.items():
            with self.subTest(raw=raw):
                self.assertEqual(normalize_iso_date(raw), stored)

    def test_impossible_dates_rejected(self):
        for raw in ("2025-13-45", "2025-02-30", "2025-02-09junk", "yesterday", ""):
            with self.subTest(raw=raw):
                with self.assertRaises(ValueError):
                    normalize_iso_date(raw)

    def test_skip_is_clamped(self):
        self.assertEqual(skip_for(0, 10), 0)
        self.assertEqual(skip_for(3, 10), 20)
        self.assertEqual(skip_for(10**19, 100), (MAX_PAGE - 1) * 100)
        self.assertLess(skip_for(10**19, 100), 2**63)


class TestCreateUserScript(unittest.TestCase):
    def setUp(self):
        path = ROOT / "scripts" / "create_user.py"
        spec = importlib.util.spec_from_file_location("create_user_script", path)
        self.script = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(self.script)
        self.cfg = make_config()
        self.mongo = mongomock.MongoClient()
        self.db = self.mongo[self.cfg.MONGO_DB_NAME]

    def run_script(self, *argv):
        out = io.StringIO()
        with patch.object(self.script, "load_config", return_value=self.cfg), patch.object(
            self.script, "connect", return_value=self.mongo
        ), patch.object(sys, "argv", ["create_user.py", *argv]), redirect_stdout(out):
            self.script.main()
        return out.getvalue()

    def test_creates_new_user(self):
        out = self.run_script("--email", "New@Example.com", "--password", "pw", "--role", "admin")
        self.assertIn("Created user", out)
        self.assertEqual(get_user_by_email(self.db, "new@example.com")["role"], "admin")

    def test_promotes_existing_user_without_touching_password(self):
        create_user(self.db, email="old@example.com", password="old-pw")
        before = get_user_by_email(self.db, "old@example.com")["password"]

        out = self.run_script("--email", "old@example.com", "--password", "other", "--role", "admin")
        self.assertIn("Updated role", out)
        row = get_user_by_email(self.db, "old@example.com")
        self.assertEqual(row["role"], "admin")
        self.assertEqual(row["password"], before)


if __name__ == "__main__":
    unittest.main()
