import os
import sys
import tempfile
import unittest
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from client import TrackerClient, TrackerAPIError
from rest_api import TrackerAPI


class ClientTest(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.api = TrackerAPI(
            db_path=os.path.join(self.tmp.name, "client.db"),
            yaml_path=os.path.join(self.tmp.name, "client.yaml"),
        )
        self.session = TestClient(self.api.app)
        self.client = TrackerClient("http://testserver", session=self.session)

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def test_entry_lifecycle(self) -> None:
        created = self.client.create_entry("2024-01-01", 80.0, 2000)
        eid = created["id"]
        self.assertEqual(self.client.get_entry(eid)["weight"], 80.0)
        self.assertEqual(self.client.get_entry_by_date("2024-01-01")["id"], eid)
        self.assertIsNone(self.client.get_entry_by_date("2024-01-02"))
        updated = self.client.update_entry(eid, 79.5, 1800)
        self.assertEqual(updated["weight"], 79.5)
        self.assertEqual(len(self.client.list_entries()), 1)
        self.assertEqual(
            self.client.delete_entry(eid)["message"], "Entry deleted successfully"
        )
        self.assertEqual(self.client.list_entries(), [])

    def test_errors_carry_status_and_message(self) -> None:
        eid = self.client.create_entry("2024-01-01", 80.0)["id"]
        with self.assertRaises(TrackerAPIError) as ctx:
            self.client.create_entry("2024-01-01", 81.0)
        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(ctx.exception.message, "Entry already exists for this date")
        self.assertEqual(ctx.exception.detail["entry_id"], eid)
        with self.assertRaises(TrackerAPIError) as ctx:
            self.client.get_entry(999)
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.message, "Entry not found")

    def test_exercises(self) -> None:
        eid = self.client.create_entry("2024-01-01", 80.0)["id"]
        ex = self.client.create_exercise(eid, "Running", "5km")
        self.assertEqual(ex["date"], "2024-01-01")
        self.client.update_exercise(ex["id"], "Running", "6km")
        rows = self.client.list_exercises(eid)
        self.assertEqual(rows[0]["details"], "6km")
        self.assertEqual(len(self.client.list_exercises_by_date("2024-01-01")), 1)
        self.client.delete_exercise(ex["id"])
        self.assertEqual(self.client.list_exercises(eid), [])

    def test_export_import_and_raw_data(self) -> None:
        eid = self.client.create_entry("2024-01-01", 80.0)["id"]
        self.client.create_exercise(eid, "Push-ups", "3 sets of 10")
        backup = self.client.export_data()
        self.client.delete_entry(eid)
        self.assertEqual(self.client.import_data(backup), 1)
        self.assertEqual(len(self.client.data_dump()["exercises"]), 1)
        csv_text = self.client.raw_data(fmt="csv")
        self.assertIn("Push-ups", csv_text)
        raw = self.client.raw_data(include_metadata=True)
        self.assertEqual(raw["metadata"]["daily_entry_count"], 1)
        self.assertEqual(self.client.stats_overview()["entries"], 1)
        self.assertEqual(self.client.health()["status"], "ok")

    def test_api_key_header(self) -> None:
        self.api.settings.set_text("api_token", "secret")
        with self.assertRaises(TrackerAPIError) as ctx:
            self.client.list_entries()
        self.assertEqual(ctx.exception.status_code, 401)
        keyed = TrackerClient("http://testserver", api_key="secret", session=self.session)
        self.assertEqual(keyed.list_entries(), [])


if __name__ == "__main__":
    unittest.main()
