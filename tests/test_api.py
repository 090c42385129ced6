import os
import sys
import tempfile
import time
import unittest
from unittest import mock
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_api import TrackerAPI


class APITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.tmp.name, "test_api.db")
        self.yaml_path = os.path.join(self.tmp.name, "test_api.yaml")
        self.api = TrackerAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        self.client = TestClient(self.api.app)

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def _entry(self, date: str = "2024-01-01", weight=80.5, calories=2000) -> int:
        resp = self.client.post(
            "/api/daily-entries",
            json={"date": date, "weight": weight, "calories": calories},
        )
        self.assertEqual(resp.status_code, 201)
        return resp.json()["id"]

    def _exercise(self, entry_id: int, ex_type: str = "Running", details: str = "5km") -> int:
        resp = self.client.post(
            "/api/exercises",
            json={"entry_id": entry_id, "type": ex_type, "details": details},
        )
        self.assertEqual(resp.status_code, 201)
        return resp.json()["id"]


class DailyEntryEndpointTest(APITestCase):
    def test_health(self) -> None:
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "ok")
        self.assertIn("X-Request-ID", resp.headers)

    def test_request_id_is_echoed(self) -> None:
        resp = self.client.get("/health", headers={"X-Request-ID": "abc123"})
        self.assertEqual(resp.headers["X-Request-ID"], "abc123")

    def test_create_entry(self) -> None:
        resp = self.client.post(
            "/api/daily-entries",
            json={"date": "2024-01-01", "weight": 80.5, "calories": 2000},
        )
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(
            resp.json(),
            {"id": 1, "date": "2024-01-01", "weight": 80.5, "calories": 2000.0},
        )

    def test_duplicate_date_conflict(self) -> None:
        eid = self._entry()
        resp = self.client.post("/api/daily-entries", json={"date": "2024-01-01"})
        self.assertEqual(resp.status_code, 409)
        detail = resp.json()["detail"]
        self.assertEqual(detail["entry_id"], eid)
        self.assertEqual(detail["message"], "Entry already exists for this date")

    def test_racing_duplicate_returns_conflict(self) -> None:
        eid = self._entry()
        existing = self.api.entries.fetch_by_date("2024-01-01")
        with mock.patch.object(
            self.api.entries, "fetch_by_date", side_effect=[None, existing]
        ):
            resp = self.client.post("/api/daily-entries", json={"date": "2024-01-01"})
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["detail"]["entry_id"], eid)
        self._entry("2024-01-02")
        self._entry("2024-01-03")

    def test_create_validation(self) -> None:
        resp = self.client.post("/api/daily-entries", json={"weight": 80})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"], "date is required")
        resp = self.client.post("/api/daily-entries", json={"date": "01/02/2024"})
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post(
            "/api/daily-entries", json={"date": "2024-01-02", "weight": "heavy"}
        )
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post(
            "/api/daily-entries", json={"date": "2024-01-02", "weight": -3}
        )
        self.assertEqual(resp.status_code, 400)

    def test_list_and_get(self) -> None:
        first = self._entry("2024-01-01")
        self._entry("2024-01-03")
        self._entry("2024-01-02")
        resp = self.client.get("/api/daily-entries")
        self.assertEqual(
            [e["date"] for e in resp.json()],
            ["2024-01-03", "2024-01-02", "2024-01-01"],
        )
        resp = self.client.get(f"/api/daily-entries/{first}")
        self.assertEqual(resp.json()["date"], "2024-01-01")
        resp = self.client.get("/api/daily-entries/date/2024-01-02")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["weight"], 80.5)
        self.assertEqual(self.client.get("/api/daily-entries/999").status_code, 404)
        resp = self.client.get("/api/daily-entries/date/2024-02-01")
        self.assertEqual(resp.status_code, 404)
        raw = self.client.get("/api/daily-entries/raw").json()
        self.assertEqual(raw[0]["date"], "2024-01-01")

    def test_update_entry(self) -> None:
        eid = self._entry()
        resp = self.client.put(
            f"/api/daily-entries/{eid}", json={"weight": 79.0, "calories": None}
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"id": eid, "weight": 79.0, "calories": None})
        resp = self.client.put("/api/daily-entries/999", json={"weight": 70})
        self.assertEqual(resp.status_code, 404)
        resp = self.client.put(f"/api/daily-entries/{eid}", json={"calories": -1})
        self.assertEqual(resp.status_code, 400)

    def test_delete_entry_cascades(self) -> None:
        eid = self._entry()
        self._exercise(eid)
        resp = self.client.delete(f"/api/daily-entries/{eid}")
        self.assertEqual(resp.json(), {"message": "Entry deleted successfully"})
        self.assertEqual(self.client.get(f"/api/exercises/entry/{eid}").json(), [])
        self.assertEqual(self.client.get("/api/exercises/raw").json(), [])
        resp = self.client.delete(f"/api/daily-entries/{eid}")
        self.assertEqual(resp.status_code, 404)


class ExerciseEndpointTest(APITestCase):
    def test_exercise_crud(self) -> None:
        eid = self._entry("2024-02-01")
        xid = self._exercise(eid, "Push-ups", "3 sets of 10")
        rows = self.client.get(f"/api/exercises/entry/{eid}").json()
        self.assertEqual(rows[0]["date"], "2024-02-01")
        self.assertEqual(rows[0]["type"], "Push-ups")
        rows = self.client.get("/api/exercises/date/2024-02-01").json()
        self.assertEqual([r["id"] for r in rows], [xid])

        resp = self.client.put(
            f"/api/exercises/{xid}", json={"type": "Pull-ups", "details": "3 sets of 5"}
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["type"], "Pull-ups")

        resp = self.client.delete(f"/api/exercises/{xid}")
        self.assertEqual(resp.json(), {"message": "Exercise deleted successfully"})
        self.assertEqual(self.client.delete(f"/api/exercises/{xid}").status_code, 404)

    def test_exercise_validation(self) -> None:
        eid = self._entry()
        resp = self.client.post("/api/exercises", json={"entry_id": eid})
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post("/api/exercises", json={"type": "Running"})
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post(
            "/api/exercises", json={"entry_id": 999, "type": "Running"}
        )
        self.assertEqual(resp.status_code, 404)
        resp = self.client.post(
            "/api/exercises",
            json={"entry_id": eid, "type": "Running", "date": "2024-05-05"},
        )
        self.assertEqual(resp.status_code, 400)
        xid = self._exercise(eid)
        resp = self.client.put(f"/api/exercises/{xid}", json={"type": " "})
        self.assertEqual(resp.status_code, 400)
        resp = self.client.put("/api/exercises/999", json={"type": "Running"})
        self.assertEqual(resp.status_code, 404)


class DataEndpointTest(APITestCase):
    def _seed(self) -> None:
        first = self._entry("2024-03-01", 80.0, 2100)
        second = self._entry("2024-03-02", 79.6, 1900)
        self._exercise(first, "Running", "5km")
        self._exercise(second, "Running", "6km")

    def test_export_import_round_trip(self) -> None:
        self._seed()
        exported = self.client.get("/api/daily-entries/export/all").json()
        self.assertEqual(len(exported[0]["exercises"]), 1)
        self.client.delete(f"/api/daily-entries/{exported[0]['id']}")
        resp = self.client.post("/api/daily-entries/import", json=exported)
        self.assertEqual(resp.json(), {"success": True, "count": 2})
        self.assertEqual(
            self.client.get("/api/daily-entries/export/all").json(), exported
        )

    def test_import_rejects_invalid_payloads(self) -> None:
        self._seed()
        before = self.client.get("/api/data/dump").json()
        resp = self.client.post("/api/daily-entries/import", json={"date": "2024-01-01"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"], "Invalid data format")
        resp = self.client.post(
            "/api/daily-entries/import",
            json=[{"date": "2024-01-01"}, {"date": "not-a-date"}],
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.client.get("/api/data/dump").json(), before)

    def test_import_rejects_wrongly_typed_fields(self) -> None:
        self._seed()
        before = self.client.get("/api/data/dump").json()
        payloads = [
            [{"date": "2024-01-01", "weight": [1]}],
            [{"date": "2024-01-01", "created_at": {"a": 1}}],
            [{"date": "2024-01-01", "exercises": [{"type": "Run", "created_at": [1]}]}],
            [{"date": "2024-01-01", "id": {}}],
        ]
        for payload in payloads:
            resp = self.client.post("/api/daily-entries/import", json=payload)
            self.assertEqual(resp.status_code, 400)
            self.assertTrue(resp.json()["detail"].startswith("record 0:"))
        self.assertEqual(self.client.get("/api/data/dump").json(), before)
        self._entry("2024-05-01")

    def test_raw_data(self) -> None:
        self._seed()
        resp = self.client.get(
            "/api/raw-data", params={"includeMetadata": "true", "startDate": "2024-03-02"}
        )
        body = resp.json()
        self.assertEqual(len(body["dailyEntries"]), 1)
        self.assertEqual(body["metadata"]["exercise_count"], 1)
        resp = self.client.get("/api/raw-data", params={"format": "csv"})
        self.assertTrue(resp.headers["content-type"].startswith("text/csv"))
        self.assertIn("attachment", resp.headers["content-disposition"])
        self.assertTrue(resp.text.startswith("date,weight,calories"))
        resp = self.client.get("/api/raw-data", params={"format": "xml"})
        self.assertEqual(resp.status_code, 400)
        resp = self.client.get("/api/raw-data", params={"startDate": "March"})
        self.assertEqual(resp.status_code, 400)

    def test_stats(self) -> None:
        self._seed()
        overview = self.client.get("/api/stats/overview").json()
        self.assertEqual(overview["entries"], 2)
        self.assertEqual(overview["exercises"], 2)
        self.assertEqual(overview["weight_change"], -0.4)
        weight = self.client.get("/api/stats/weight", params={"days": 3}).json()
        self.assertEqual(weight["stats"]["count"], 2)
        self.assertEqual(len(weight["forecast"]), 3)
        calories = self.client.get("/api/stats/calories").json()
        self.assertEqual(calories["stats"]["total"], 4000.0)
        exercises = self.client.get(
            "/api/stats/exercises", params={"type": "Running"}
        ).json()
        self.assertEqual(exercises["types"], ["Running"])
        self.assertEqual([p["value"] for p in exercises["progress"]], [5, 6])


class SecurityTest(APITestCase):
    def test_api_key_required_when_configured(self) -> None:
        self.api.settings.set_text("api_token", "secret")
        self.assertEqual(self.client.get("/api/daily-entries").status_code, 401)
        resp = self.client.get(
            "/api/daily-entries", headers={"X-API-Key": "wrong"}
        )
        self.assertEqual(resp.status_code, 401)
        resp = self.client.get(
            "/api/daily-entries", headers={"X-API-Key": "secret"}
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.get("/health").status_code, 200)

    def test_rate_limit(self) -> None:
        api = TrackerAPI(db_path=self.db_path, yaml_path=self.yaml_path, rate_limit=2)
        client = TestClient(api.app)
        self.assertEqual(client.get("/health").status_code, 200)
        self.assertEqual(client.get("/health").status_code, 200)
        self.assertEqual(client.get("/health").status_code, 429)

    def test_api_key_check_skips_yaml_reload(self) -> None:
        self.api.settings.set_text("api_token", "secret")
        with open(self.yaml_path, "w", encoding="utf-8") as fh:
            fh.write("weight_unit: stone\n")
        with mock.patch.object(
            self.api.settings, "_sync_from_yaml", side_effect=AssertionError
        ):
            resp = self.client.get(
                "/api/daily-entries", headers={"X-API-Key": "secret"}
            )
            self.assertEqual(resp.status_code, 200)
            self.assertEqual(self.client.get("/api/daily-entries").status_code, 401)
        resp = self.client.get("/api/daily-entries", headers={"X-API-Key": "secret"})
        self.assertEqual(resp.status_code, 200)

    def test_rate_limiter_forgets_idle_clients(self) -> None:
        api = TrackerAPI(
            db_path=self.db_path, yaml_path=self.yaml_path, rate_limit=5, rate_window=60
        )
        client = TestClient(api.app)
        limiter = api.rate_limiter
        limiter.requests["10.0.0.1"] = [time.time() - 120]
        limiter.requests["10.0.0.2"] = []
        self.assertEqual(client.get("/health").status_code, 200)
        self.assertNotIn("10.0.0.1", limiter.requests)
        self.assertNotIn("10.0.0.2", limiter.requests)
        self.assertEqual(len(limiter.requests), 1)


if __name__ == "__main__":
    unittest.main()
