"""Categories and tips: public reads, admin-only writes."""

import unittest

from bson import ObjectId

from tests.support import ADMIN, ALICE, ApiTestCase


class TestCategories(ApiTestCase):
    def test_public_list(self):
        self.db["categories"].insert_many([{"name": "Food"}, {"name": "Rent"}])
        r = self.client.get("/categories")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(sorted(c["name"] for c in r.json()), ["Food", "Rent"])

    def test_admin_creates_and_deletes(self):
        r = self.client.post("/categories", json={"name": " Travel "}, headers=self.as_user(ADMIN))
        self.assertEqual(r.status_code, 201)
        cid = r.json()["insertedId"]
        self.assertEqual(self.db["categories"].find_one({"_id": ObjectId(cid)})["name"], "Travel")

        r = self.client.delete(f"/categories/{cid}", headers=self.as_user(ADMIN))
        self.assertEqual(r.json()["deletedCount"], 1)
        self.assertEqual(self.client.delete(f"/categories/{cid}", headers=self.as_user(ADMIN)).status_code, 404)

    def test_blank_name(self):
        r = self.client.post("/categories", json={"name": "   "}, headers=self.as_user(ADMIN))
        self.assertEqual(r.status_code, 400)

    def test_user_cannot_write(self):
        r = self.client.post("/categories", json={"name": "Hack"}, headers=self.as_user(ALICE))
        self.assertEqual(r.status_code, 403)
        self.assertEqual(self.client.post("/categories", json={"name": "Hack"}).status_code, 401)
        self.assertEqual(self.db["categories"].count_documents({}), 0)


class TestTips(ApiTestCase):
    def test_public_list_newest_first(self):
        self.db["tips"].insert_many(
            [
                {"title": "old", "description": "d", "date": "2024-01-01T00:00:00Z"},
                {"title": "new", "description": "d", "date": "2025-01-01T00:00:00Z"},
            ]
        )
        r = self.client.get("/tips")
        self.assertEqual([t["title"] for t in r.json()], ["new", "old"])

    def test_admin_lifecycle(self):
        h = self.as_user(ADMIN)
        r = self.client.post(
            "/tips",
            json={"title": "Budget", "description": "Track every expense", "category": "Basics", "date": "1999-01-01"},
            headers=h,
        )
        self.assertEqual(r.status_code, 201)
        tid = r.json()["insertedId"]
        row = self.db["tips"].find_one({"_id": ObjectId(tid)})
        self.assertNotEqual(row["date"], "1999-01-01")
        self.assertTrue(row["date"].endswith("Z"))

        r = self.client.patch(f"/tips/{tid}", json={"title": "Budget 101"}, headers=h)
        self.assertEqual(r.status_code, 200)
        row = self.db["tips"].find_one({"_id": ObjectId(tid)})
        self.assertEqual(row["title"], "Budget 101")
        self.assertEqual(row["description"], "Track every expense")
        self.assertEqual(row["category"], "Basics")

        self.assertEqual(self.client.delete(f"/tips/{tid}", headers=h).status_code, 200)
        self.assertEqual(self.client.patch(f"/tips/{tid}", json={"title": "x"}, headers=h).status_code, 404)

    def test_user_cannot_write(self):
        h = self.as_user(ALICE)
        self.assertEqual(self.client.post("/tips", json={"title": "t", "description": "d"}, headers=h).status_code, 403)
        tid = self.db["tips"].insert_one({"title": "t", "description": "d", "date": "2025-01-01"}).inserted_id
        self.assertEqual(self.client.patch(f"/tips/{tid}", json={"title": "x"}, headers=h).status_code, 403)
        self.assertEqual(self.client.delete(f"/tips/{tid}", headers=h).status_code, 403)


if __name__ == "__main__":
    unittest.main()
