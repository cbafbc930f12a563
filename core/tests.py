import json
import logging

from django.test import TestCase
from rest_framework.test import APIClient

from common.logging import JsonFormatter
from core.models import AuditLog, Location
from inventory.models import ItemSize
from inventory.services import create_item


class LocationApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.mckinney = Location.objects.create(name="McKinney", city="McKinney", zip_code="75069")

    def test_create_location_returns_201_and_writes_audit_log(self):
        response = self.client.post(
            "/api/v1/locations/",
            {"name": "Plano", "city": "Plano", "state": "tx", "zip_code": "75074"},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["state"], "TX")
        self.assertTrue(payload["is_active"])
        self.assertTrue(AuditLog.objects.filter(action="location.create", entity_id=payload["id"]).exists())

    def test_duplicate_location_name_is_conflict(self):
        response = self.client.post("/api/v1/locations/", {"name": "mckinney"}, format="json")

        self.assertEqual(response.status_code, 409)
        payload = response.json()
        self.assertEqual(payload["code"], "conflict")
        self.assertEqual(payload["status"], 409)
        self.assertIn("already exists", payload["message"])

    def test_invalid_zip_code_is_rejected(self):
        response = self.client.post("/api/v1/locations/", {"name": "Allen", "zip_code": "7502"}, format="json")

        self.assertEqual(response.status_code, 400)
        payload = response.json()
        self.assertEqual(payload["code"], "validation_error")
        self.assertIn("zip_code", payload["errors"])

    def test_zip_plus_four_is_accepted(self):
        response = self.client.post("/api/v1/locations/", {"name": "Allen", "zip_code": "75002-1234"}, format="json")

        self.assertEqual(response.status_code, 201)

    def test_toggle_flips_active_flag(self):
        response = self.client.patch(f"/api/v1/locations/{self.mckinney.id}/toggle/")

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["is_active"])
        self.mckinney.refresh_from_db()
        self.assertFalse(self.mckinney.is_active)

        response = self.client.patch(f"/api/v1/locations/{self.mckinney.id}/toggle/")
        self.assertTrue(response.json()["is_active"])

    def test_active_filter_hides_inactive_locations(self):
        Location.objects.create(name="Closed", is_active=False)

        response = self.client.get("/api/v1/locations/?active=true")

        self.assertEqual(response.status_code, 200)
        names = [row["name"] for row in response.json()]
        self.assertEqual(names, ["McKinney"])

        all_names = [row["name"] for row in self.client.get("/api/v1/locations/").json()]
        self.assertEqual(all_names, ["Closed", "McKinney"])

    def test_locations_cannot_be_deleted(self):
        response = self.client.delete(f"/api/v1/locations/{self.mckinney.id}/")

        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.json()["code"], "method_not_allowed")

    def test_new_location_gets_stock_rows_for_existing_items(self):
        create_item(name="Jackets", has_sizes=True, sizes=["S", "M"])

        response = self.client.post("/api/v1/locations/", {"name": "Frisco"}, format="json")

        self.assertEqual(response.status_code, 201)
        rows = ItemSize.objects.filter(location_id=response.json()["id"]).order_by("sort_order")
        self.assertEqual([row.size_label for row in rows], ["S", "M"])
        self.assertTrue(all(row.current_quantity == 0 for row in rows))

    def test_reactivated_location_is_backfilled(self):
        closed = Location.objects.create(name="Closed", is_active=False)
        create_item(name="Wipes")
        self.assertFalse(ItemSize.objects.filter(location=closed).exists())

        self.client.patch(f"/api/v1/locations/{closed.id}/toggle/")

        self.assertEqual(ItemSize.objects.filter(location=closed, size_label="N/A").count(), 1)

    def test_unknown_location_is_not_found_envelope(self):
        response = self.client.get("/api/v1/locations/00000000-0000-0000-0000-000000000000/")

        self.assertEqual(response.status_code, 404)
        payload = response.json()
        self.assertEqual(payload["code"], "not_found")
        self.assertEqual(payload["status"], 404)


class AuditLogApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_request_id_is_propagated_to_audit_log_and_response(self):
        response = self.client.post(
            "/api/v1/locations/",
            {"name": "Plano"},
            format="json",
            HTTP_X_REQUEST_ID="req-123",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response["X-Request-ID"], "req-123")
        log = AuditLog.objects.get(action="location.create")
        self.assertEqual(log.request_id, "req-123")

    def test_audit_logs_are_read_only(self):
        response = self.client.post("/api/v1/audit-logs/", {"action": "x"}, format="json")

        self.assertEqual(response.status_code, 405)

    def test_audit_log_filter_and_csv_export(self):
        self.client.post("/api/v1/locations/", {"name": "Plano"}, format="json")
        location = Location.objects.get(name="Plano")
        self.client.patch(f"/api/v1/locations/{location.id}/toggle/")

        response = self.client.get("/api/v1/audit-logs/?action=location.toggle")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["count"], 1)

        export = self.client.get("/api/v1/audit-logs/export/")
        self.assertEqual(export.status_code, 200)
        self.assertEqual(export["Content-Type"], "text/csv")
        lines = export.content.decode().strip().splitlines()
        self.assertTrue(lines[0].startswith("id,created_at,actor"))
        self.assertEqual(len(lines), 3)


class JsonFormatterTests(TestCase):
    def test_formatter_includes_stock_context(self):
        record = logging.LogRecord("inventory.services", logging.WARNING, __file__, 1, "Rejected %s", ("checkout",), None)
        record.entity = "checkout"
        record.shortages = [{"item_name": "Wipes", "requested": 8, "available": 7}]

        payload = json.loads(JsonFormatter().format(record))

        self.assertEqual(payload["message"], "Rejected checkout")
        self.assertEqual(payload["level"], "WARNING")
        self.assertEqual(payload["entity"], "checkout")
        self.assertEqual(payload["shortages"][0]["available"], 7)
        self.assertNotIn("request_id", payload)
