from datetime import timedelta
from unittest import mock

from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient

from common.exceptions import InsufficientStockError
from core.models import AuditLog, Location
from inventory.models import Checkout, CheckoutItem, InventoryAdjustment, InventoryTransfer, Item, ItemSize
from inventory.reports import stock_status
from inventory.services import (
    create_addition,
    create_checkout,
    create_item,
    create_transfer,
    set_stock_quantity,
    update_line_quantity,
)
from volunteers.models import VolunteerSession


def checkout_payload(location, lines, **overrides):
    payload = {
        "location": str(location.id),
        "worker_first_name": "Dana",
        "worker_last_name": "Case",
        "department": "CPS",
        "case_number": "C-100",
        "parent_guardian_first_name": "Pat",
        "parent_guardian_last_name": "Guardian",
        "zip_code": "75069",
        "number_of_children": 2,
        "items": lines,
    }
    payload.update(overrides)
    return payload


def checkout_header(location):
    return {
        "location": location,
        "worker_first_name": "Dana",
        "worker_last_name": "Case",
        "department": "CPS",
        "case_number": "C-1",
        "parent_guardian_first_name": "Pat",
        "parent_guardian_last_name": "Guardian",
        "zip_code": "75069",
    }


class StockTestMixin:
    def setUp(self):
        self.client = APIClient()
        self.mckinney = Location.objects.create(name="McKinney")
        self.plano = Location.objects.create(name="Plano")
        self.wipes = create_item(name="Baby Wipes", unit_type="pack", min_stock_level=5)
        self.wipes_row = ItemSize.objects.get(item=self.wipes, location=self.mckinney)
        self.stock(self.wipes_row, 10)

    def stock(self, row, quantity):
        ItemSize.objects.filter(pk=row.pk).update(current_quantity=quantity)
        row.refresh_from_db()

    def quantity(self, row):
        return ItemSize.objects.get(pk=row.pk).current_quantity

    def line(self, row, quantity, field="quantity"):
        return {"item_id": str(row.item_id), "size_id": str(row.id), field: quantity}


class ItemApiTests(StockTestMixin, TestCase):
    def test_item_with_sizes_gets_a_row_per_location_and_size(self):
        response = self.client.post(
            "/api/v1/items/",
            {"name": "Onesies", "has_sizes": True, "sizes": ["S", "M"], "min_stock_level": 3},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        item = Item.objects.get(name="Onesies")
        rows = ItemSize.objects.filter(item=item)
        self.assertEqual(rows.count(), 4)
        self.assertEqual(set(rows.values_list("size_label", flat=True)), {"S", "M"})
        self.assertTrue(all(row.current_quantity == 0 and row.min_stock_level == 3 for row in rows))
        self.assertTrue(item.qr_code.startswith("RR-"))

    def test_item_without_sizes_gets_no_size_label(self):
        rows = ItemSize.objects.filter(item=self.wipes)

        self.assertEqual(rows.count(), 2)
        self.assertEqual(set(rows.values_list("size_label", flat=True)), {"N/A"})

    def test_sized_item_requires_sizes(self):
        response = self.client.post("/api/v1/items/", {"name": "Shoes", "has_sizes": True, "sizes": []}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertFalse(Item.objects.filter(name="Shoes").exists())

    def test_duplicate_item_name_is_conflict(self):
        response = self.client.post("/api/v1/items/", {"name": "baby wipes"}, format="json")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "conflict")

    def test_item_detail_lists_stock_rows_for_location(self):
        response = self.client.get(f"/api/v1/items/{self.wipes.id}/?location_id={self.mckinney.id}")

        self.assertEqual(response.status_code, 200)
        sizes = response.json()["sizes"]
        self.assertEqual(len(sizes), 1)
        self.assertEqual(sizes[0]["current_quantity"], 10)
        self.assertEqual(sizes[0]["location_name"], "McKinney")

    def test_item_list_is_paginated_and_searchable(self):
        create_item(name="Diapers", description="size 4")

        response = self.client.get("/api/v1/items/?search=wipe")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["count"], 1)
        self.assertEqual(payload["results"][0]["name"], "Baby Wipes")

    def test_item_list_page_size_is_capped(self):
        create_item(name="Diapers")

        response = self.client.get("/api/v1/items/?page_size=1")

        payload = response.json()
        self.assertEqual(payload["count"], 2)
        self.assertEqual(len(payload["results"]), 1)
        self.assertIsNotNone(payload["next"])

    def test_min_stock_level_change_is_copied_to_stock_rows(self):
        response = self.client.patch(f"/api/v1/items/{self.wipes.id}/", {"min_stock_level": 8}, format="json")

        self.assertEqual(response.status_code, 200)
        levels = set(ItemSize.objects.filter(item=self.wipes).values_list("min_stock_level", flat=True))
        self.assertEqual(levels, {8})

    def test_has_sizes_cannot_change(self):
        response = self.client.patch(f"/api/v1/items/{self.wipes.id}/", {"has_sizes": True}, format="json")

        self.assertEqual(response.status_code, 400)

    def test_unreferenced_item_can_be_deleted(self):
        item = create_item(name="Bibs")

        response = self.client.delete(f"/api/v1/items/{item.id}/")

        self.assertEqual(response.status_code, 204)
        self.assertFalse(ItemSize.objects.filter(item_id=item.id).exists())

    def test_referenced_item_cannot_be_deleted(self):
        self.client.post("/api/v1/checkouts/", checkout_payload(self.mckinney, [self.line(self.wipes_row, 1)]), format="json")

        response = self.client.delete(f"/api/v1/items/{self.wipes.id}/")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "conflict")
        self.assertTrue(Item.objects.filter(pk=self.wipes.pk).exists())
        self.assertFalse(AuditLog.objects.filter(action="item.delete").exists())

    def test_qr_lookup_and_image(self):
        response = self.client.get(f"/api/v1/items/qr/{self.wipes.qr_code.lower()}/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["id"], str(self.wipes.id))

        image = self.client.get(f"/api/v1/items/{self.wipes.id}/qr-code/")
        self.assertEqual(image.status_code, 200)
        self.assertEqual(image["Content-Type"], "image/png")
        self.assertTrue(image.content.startswith(b"\x89PNG"))

        svg = self.client.get(f"/api/v1/items/{self.wipes.id}/qr-code/?format=svg")
        self.assertEqual(svg.status_code, 200)
        self.assertEqual(svg["Content-Type"], "image/svg+xml")
        self.assertIn(b"<svg", svg.content)

    def test_unknown_qr_code_is_not_found(self):
        response = self.client.get("/api/v1/items/qr/RR-MISSING/")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "not_found")

    def test_item_is_not_kept_when_audit_write_fails(self):
        client = APIClient(raise_request_exception=False)

        with mock.patch("inventory.views.create_audit_log", side_effect=RuntimeError("audit unavailable")):
            response = client.post("/api/v1/items/", {"name": "Diapers"}, format="json")

        self.assertEqual(response.status_code, 500)
        self.assertFalse(Item.objects.filter(name="Diapers").exists())
        self.assertFalse(ItemSize.objects.filter(item__name="Diapers").exists())


class MovementApiTests(StockTestMixin, TestCase):
    def test_checkout_then_addition_moves_stock(self):
        response = self.client.post(
            "/api/v1/checkouts/",
            checkout_payload(self.mckinney, [self.line(self.wipes_row, 3)]),
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["total_items"], 3)
        self.assertEqual(payload["items"][0]["item_name"], "Baby Wipes")
        self.assertEqual(payload["items"][0]["size_label"], "N/A")
        self.assertEqual(self.quantity(self.wipes_row), 7)

        response = self.client.post(
            "/api/v1/checkouts/",
            checkout_payload(self.mckinney, [self.line(self.wipes_row, 8)]),
            format="json",
        )
        self.assertEqual(response.status_code, 409)
        payload = response.json()
        self.assertEqual(payload["code"], "insufficient_stock")
        self.assertIn("Requested: 8, Available: 7", payload["message"])
        self.assertEqual(payload["errors"]["shortages"][0]["available"], 7)
        self.assertEqual(self.quantity(self.wipes_row), 7)
        self.assertEqual(Checkout.objects.count(), 1)

        response = self.client.post(
            "/api/v1/additions/",
            {"location": str(self.mckinney.id), "volunteer_name": "Sam", "items": [self.line(self.wipes_row, 5)]},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(self.quantity(self.wipes_row), 12)

    def test_replayed_movements_match_running_total(self):
        header = checkout_header(self.mckinney)
        expected = 10
        for kind, quantity in [("add", 4), ("out", 9), ("out", 6), ("add", 2), ("out", 7), ("out", 1)]:
            line = [{"item": self.wipes, "size": self.wipes_row, "quantity": quantity}]
            if kind == "add":
                create_addition({"location": self.mckinney, "volunteer_name": "Sam"}, line)
                expected += quantity
            elif quantity <= expected:
                create_checkout(header, line)
                expected -= quantity
            else:
                with self.assertRaises(InsufficientStockError):
                    create_checkout(header, line)
            self.assertEqual(self.quantity(self.wipes_row), expected)
            self.assertGreaterEqual(expected, 0)

    def test_date_range_must_be_ordered(self):
        response = self.client.get("/api/v1/checkouts/?date_from=2024-05-02&date_to=2024-05-01")

        self.assertEqual(response.status_code, 400)

    def test_impossible_calendar_date_is_rejected(self):
        response = self.client.get("/api/v1/checkouts/?date_from=2024-02-30")

        self.assertEqual(response.status_code, 400)
        self.assertIn("date_from", response.json()["errors"])

    def test_multi_line_checkout_is_all_or_nothing(self):
        onesies = create_item(name="Onesies", has_sizes=True, sizes=["S"])
        onesie_row = ItemSize.objects.get(item=onesies, location=self.mckinney)
        self.stock(onesie_row, 1)

        response = self.client.post(
            "/api/v1/checkouts/",
            checkout_payload(self.mckinney, [self.line(self.wipes_row, 2), self.line(onesie_row, 5)]),
            format="json",
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(self.quantity(self.wipes_row), 10)
        self.assertEqual(self.quantity(onesie_row), 1)
        self.assertFalse(CheckoutItem.objects.exists())

    def test_same_row_on_two_lines_is_checked_cumulatively(self):
        with self.assertRaises(InsufficientStockError):
            create_checkout(
                {
                    "location": self.mckinney,
                    "worker_first_name": "Dana",
                    "worker_last_name": "Case",
                    "department": "CPS",
                    "case_number": "C-1",
                    "parent_guardian_first_name": "Pat",
                    "parent_guardian_last_name": "Guardian",
                    "zip_code": "75069",
                },
                [
                    {"item": self.wipes, "size": self.wipes_row, "quantity": 6},
                    {"item": self.wipes, "size": self.wipes_row, "quantity": 6},
                ],
            )

        self.assertEqual(self.quantity(self.wipes_row), 10)

    def test_checkout_needs_at_least_one_line(self):
        response = self.client.post("/api/v1/checkouts/", checkout_payload(self.mckinney, []), format="json")

        self.assertEqual(response.status_code, 400)

    def test_unknown_size_in_body_is_bad_request(self):
        line = {"item_id": str(self.wipes.id), "size_id": "00000000-0000-0000-0000-000000000000", "quantity": 1}

        response = self.client.post("/api/v1/checkouts/", checkout_payload(self.mckinney, [line]), format="json")

        self.assertEqual(response.status_code, 400)

    def test_size_from_another_location_is_rejected(self):
        plano_row = ItemSize.objects.get(item=self.wipes, location=self.plano)
        self.stock(plano_row, 4)

        response = self.client.post(
            "/api/v1/checkouts/",
            checkout_payload(self.mckinney, [self.line(plano_row, 1)]),
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.quantity(plano_row), 4)

    def test_inactive_location_cannot_record_checkouts(self):
        self.mckinney.is_active = False
        self.mckinney.save()

        response = self.client.post(
            "/api/v1/checkouts/",
            checkout_payload(self.mckinney, [self.line(self.wipes_row, 1)]),
            format="json",
        )

        self.assertEqual(response.status_code, 400)

    def test_transfer_moves_stock_between_locations(self):
        response = self.client.post(
            "/api/v1/transfers/",
            {
                "from_location": str(self.mckinney.id),
                "to_location": str(self.plano.id),
                "volunteer_name": "Sam",
                "items": [self.line(self.wipes_row, 4)],
            },
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(self.quantity(self.wipes_row), 6)
        plano_row = ItemSize.objects.get(item=self.wipes, location=self.plano)
        self.assertEqual(plano_row.current_quantity, 4)
        self.assertEqual(response.json()["items"][0]["destination_size"], str(plano_row.id))

    def test_transfer_creates_missing_destination_row(self):
        frisco = Location.objects.create(name="Frisco")
        self.assertFalse(ItemSize.objects.filter(location=frisco).exists())

        create_transfer(
            {"from_location": self.mckinney, "to_location": frisco, "volunteer_name": "Sam"},
            [{"item": self.wipes, "size": self.wipes_row, "quantity": 2}],
        )

        self.assertEqual(ItemSize.objects.get(item=self.wipes, location=frisco).current_quantity, 2)

    def test_same_location_transfer_is_rejected(self):
        response = self.client.post(
            "/api/v1/transfers/",
            {
                "from_location": str(self.mckinney.id),
                "to_location": str(self.mckinney.id),
                "volunteer_name": "Sam",
                "items": [self.line(self.wipes_row, 1)],
            },
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.quantity(self.wipes_row), 10)

    def test_short_transfer_leaves_both_locations_untouched(self):
        plano_row = ItemSize.objects.get(item=self.wipes, location=self.plano)

        response = self.client.post(
            "/api/v1/transfers/",
            {
                "from_location": str(self.mckinney.id),
                "to_location": str(self.plano.id),
                "volunteer_name": "Sam",
                "items": [self.line(self.wipes_row, 11)],
            },
            format="json",
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["errors"]["shortages"][0]["available"], 10)
        self.assertEqual(self.quantity(self.wipes_row), 10)
        self.assertEqual(self.quantity(plano_row), 0)
        self.assertFalse(InventoryTransfer.objects.exists())

    def test_adjustment_lines_can_be_negative_but_not_zero(self):
        response = self.client.post(
            "/api/v1/adjustments/",
            {
                "location": str(self.mckinney.id),
                "admin_name": "Lee",
                "reason": "Count",
                "items": [self.line(self.wipes_row, -3, field="quantity_adjustment")],
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["total_items"], 3)
        self.assertEqual(self.quantity(self.wipes_row), 7)

        response = self.client.post(
            "/api/v1/adjustments/",
            {
                "location": str(self.mckinney.id),
                "admin_name": "Lee",
                "reason": "Count",
                "items": [self.line(self.wipes_row, 0, field="quantity_adjustment")],
            },
            format="json",
        )
        self.assertEqual(response.status_code, 400)

    def test_updating_a_line_applies_the_difference(self):
        checkout = self.client.post(
            "/api/v1/checkouts/",
            checkout_payload(self.mckinney, [self.line(self.wipes_row, 3)]),
            format="json",
        ).json()
        line_id = checkout["items"][0]["id"]

        response = self.client.patch(f"/api/v1/checkouts/{checkout['id']}/items/{line_id}/", {"quantity": 5}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["total_items"], 5)
        self.assertEqual(self.quantity(self.wipes_row), 5)

        response = self.client.patch(f"/api/v1/checkouts/{checkout['id']}/items/{line_id}/", {"quantity": 20}, format="json")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(self.quantity(self.wipes_row), 5)

    def test_line_update_uses_current_line_quantity(self):
        checkout = create_checkout(
            checkout_header(self.mckinney),
            [{"item": self.wipes, "size": self.wipes_row, "quantity": 3}],
        )
        stale_line = CheckoutItem.objects.get(checkout=checkout)
        update_line_quantity("checkout", CheckoutItem.objects.get(pk=stale_line.pk), 5)

        update_line_quantity("checkout", stale_line, 6)

        self.assertEqual(self.quantity(self.wipes_row), 4)
        self.assertEqual(CheckoutItem.objects.get(pk=stale_line.pk).quantity, 6)
        self.assertEqual(Checkout.objects.get(pk=checkout.pk).total_items, 6)

    def test_adjustment_total_counts_absolute_values_through_line_edits(self):
        onesies = create_item(name="Onesies", has_sizes=True, sizes=["S"])
        onesie_row = ItemSize.objects.get(item=onesies, location=self.mckinney)
        adjustment = self.client.post(
            "/api/v1/adjustments/",
            {
                "location": str(self.mckinney.id),
                "admin_name": "Lee",
                "reason": "Count",
                "items": [
                    self.line(self.wipes_row, -3, field="quantity_adjustment"),
                    self.line(onesie_row, 2, field="quantity_adjustment"),
                ],
            },
            format="json",
        ).json()
        self.assertEqual(adjustment["total_items"], 5)
        lines = {line["size"]: line["id"] for line in adjustment["items"]}
        url = f"/api/v1/adjustments/{adjustment['id']}/items/"

        response = self.client.patch(f"{url}{lines[str(self.wipes_row.id)]}/", {"quantity_adjustment": -1}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["total_items"], 3)
        self.assertEqual(self.quantity(self.wipes_row), 9)

        response = self.client.delete(f"{url}{lines[str(onesie_row.id)]}/")

        self.assertEqual(response.status_code, 204)
        self.assertEqual(InventoryAdjustment.objects.get(pk=adjustment["id"]).total_items, 1)
        self.assertEqual(self.quantity(onesie_row), 0)
        self.assertEqual(self.quantity(self.wipes_row), 9)

    def test_deleting_a_line_reverses_its_stock(self):
        onesies = create_item(name="Onesies", has_sizes=True, sizes=["S"])
        onesie_row = ItemSize.objects.get(item=onesies, location=self.mckinney)
        self.stock(onesie_row, 4)
        checkout = self.client.post(
            "/api/v1/checkouts/",
            checkout_payload(self.mckinney, [self.line(self.wipes_row, 3), self.line(onesie_row, 2)]),
            format="json",
        ).json()
        onesie_line = next(line for line in checkout["items"] if line["size"] == str(onesie_row.id))

        response = self.client.delete(f"/api/v1/checkouts/{checkout['id']}/items/{onesie_line['id']}/")

        self.assertEqual(response.status_code, 204)
        self.assertEqual(self.quantity(onesie_row), 4)
        self.assertEqual(Checkout.objects.get(pk=checkout["id"]).total_items, 3)

    def test_deleting_a_checkout_restores_stock(self):
        checkout = self.client.post(
            "/api/v1/checkouts/",
            checkout_payload(self.mckinney, [self.line(self.wipes_row, 3)]),
            format="json",
        ).json()

        response = self.client.delete(f"/api/v1/checkouts/{checkout['id']}/")

        self.assertEqual(response.status_code, 204)
        self.assertEqual(self.quantity(self.wipes_row), 10)
        self.assertTrue(AuditLog.objects.filter(action="checkout.delete").exists())

    def test_deleting_an_addition_that_was_already_used_is_rejected(self):
        addition = create_addition(
            {"location": self.mckinney, "volunteer_name": "Sam"},
            [{"item": self.wipes, "size": self.wipes_row, "quantity": 5}],
        )
        self.stock(self.wipes_row, 2)

        response = self.client.delete(f"/api/v1/additions/{addition.id}/")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(self.quantity(self.wipes_row), 2)

    def test_unknown_checkout_in_url_is_not_found(self):
        response = self.client.get("/api/v1/checkouts/00000000-0000-0000-0000-000000000000/")

        self.assertEqual(response.status_code, 404)

    def test_checkout_list_filters_by_location(self):
        self.client.post("/api/v1/checkouts/", checkout_payload(self.mckinney, [self.line(self.wipes_row, 1)]), format="json")

        mine = self.client.get(f"/api/v1/checkouts/?location_id={self.mckinney.id}").json()
        other = self.client.get(f"/api/v1/checkouts/?location_id={self.plano.id}").json()

        self.assertEqual(mine["count"], 1)
        self.assertEqual(other["count"], 0)


class StockRowApiTests(StockTestMixin, TestCase):
    def test_set_quantity_records_adjustment_of_difference(self):
        response = self.client.put(
            f"/api/v1/items/sizes/{self.wipes_row.id}/quantity/",
            {"quantity": 4, "admin_name": "Lee"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["current_quantity"], 4)
        adjustment = InventoryAdjustment.objects.get()
        self.assertEqual(adjustment.reason, "Quantity set")
        self.assertEqual(adjustment.items.get().quantity_adjustment, -6)

    def test_set_quantity_to_current_value_records_nothing(self):
        response = self.client.put(f"/api/v1/items/sizes/{self.wipes_row.id}/quantity/", {"quantity": 10}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertFalse(InventoryAdjustment.objects.exists())

    def test_set_quantity_uses_current_stock_not_a_stale_row(self):
        stale = ItemSize.objects.get(pk=self.wipes_row.pk)
        create_checkout(
            checkout_header(self.mckinney),
            [{"item": self.wipes, "size": self.wipes_row, "quantity": 7}],
        )

        row = set_stock_quantity(stale, 5, admin_name="Lee")

        self.assertEqual(row.current_quantity, 5)
        self.assertEqual(self.quantity(self.wipes_row), 5)
        adjustment = InventoryAdjustment.objects.get()
        self.assertEqual(adjustment.items.get().quantity_adjustment, 2)
        self.assertIn("3 → 5", adjustment.notes)

    def test_negative_set_quantity_is_rejected(self):
        response = self.client.put(f"/api/v1/items/sizes/{self.wipes_row.id}/quantity/", {"quantity": -1}, format="json")

        self.assertEqual(response.status_code, 400)

    def test_adjust_quantity(self):
        response = self.client.patch(
            f"/api/v1/items/sizes/{self.wipes_row.id}/adjust/",
            {"adjustment": 3, "reason": "Found a box"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["current_quantity"], 13)
        self.assertEqual(InventoryAdjustment.objects.get().reason, "Found a box")

    def test_adjust_below_zero_is_conflict(self):
        response = self.client.patch(f"/api/v1/items/sizes/{self.wipes_row.id}/adjust/", {"adjustment": -11}, format="json")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(self.quantity(self.wipes_row), 10)

    def test_zero_adjustment_is_rejected(self):
        response = self.client.patch(f"/api/v1/items/sizes/{self.wipes_row.id}/adjust/", {"adjustment": 0}, format="json")

        self.assertEqual(response.status_code, 400)

    def test_unknown_stock_row_is_not_found(self):
        response = self.client.patch(
            "/api/v1/items/sizes/00000000-0000-0000-0000-000000000000/adjust/",
            {"adjustment": 1},
            format="json",
        )

        self.assertEqual(response.status_code, 404)


@override_settings(REPORT_CACHE_SECONDS=0)
class ReportApiTests(StockTestMixin, TestCase):
    def checkout(self, row, quantity, **header):
        fields = {
            "location": row.location,
            "worker_first_name": "Dana",
            "worker_last_name": "Case",
            "department": "CPS",
            "case_number": "C-1",
            "parent_guardian_first_name": "Pat",
            "parent_guardian_last_name": "Guardian",
            "zip_code": "75069",
        }
        fields.update(header)
        return create_checkout(fields, [{"item": row.item, "size": row, "quantity": quantity}])

    def test_stock_status_thresholds(self):
        self.assertEqual(stock_status(5, 5), "LOW")
        self.assertEqual(stock_status(6, 5), "OK")
        self.assertEqual(stock_status(10, 5), "OK")
        self.assertEqual(stock_status(11, 5), "HIGH")

    def test_current_inventory_and_low_stock(self):
        response = self.client.get(f"/api/v1/reports/current-inventory/?location_id={self.mckinney.id}")

        self.assertEqual(response.status_code, 200)
        rows = response.json()["results"]
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["stock_status"], "OK")

        self.checkout(self.wipes_row, 7)
        low = self.client.get("/api/v1/reports/low-stock/").json()["results"]
        mckinney_row = next(row for row in low if row["location_name"] == "McKinney")
        self.assertEqual(mckinney_row["current_quantity"], 3)
        self.assertEqual(mckinney_row["needed_quantity"], 7)

    def test_checkouts_and_popular_items(self):
        self.checkout(self.wipes_row, 2)
        self.checkout(self.wipes_row, 3)

        checkouts = self.client.get("/api/v1/reports/checkouts/").json()["results"]
        self.assertEqual(len(checkouts), 2)
        self.assertEqual(checkouts[0]["case_worker"], "Dana Case")

        popular = self.client.get("/api/v1/reports/popular-items/?limit=5").json()["results"]
        self.assertEqual(popular[0]["item_name"], "Baby Wipes")
        self.assertEqual(popular[0]["times_checked_out"], 2)
        self.assertEqual(popular[0]["total_quantity"], 5)

    def test_invalid_limit_is_rejected(self):
        response = self.client.get("/api/v1/reports/popular-items/?limit=abc")

        self.assertEqual(response.status_code, 400)

    def test_report_as_csv(self):
        response = self.client.get("/api/v1/reports/current-inventory/?format=csv")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "text/csv")
        header = response.content.decode().splitlines()[0]
        self.assertTrue(header.startswith("size_id,item_id,item_name"))

    def test_monthly_summary(self):
        today = timezone.localdate()
        self.checkout(self.wipes_row, 4)
        create_addition(
            {"location": self.mckinney, "volunteer_name": "Sam", "addition_date": today},
            [{"item": self.wipes, "size": self.wipes_row, "quantity": 6}],
        )
        VolunteerSession.objects.create(
            location=self.mckinney,
            volunteer_name="Sam",
            session_date=today,
            start_time="09:00",
            end_time="12:00",
            hours_worked="3.00",
        )

        response = self.client.get(f"/api/v1/reports/monthly-summary/?month={today:%Y-%m}")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["total_items_distributed"], 4)
        self.assertEqual(payload["total_checkouts"], 1)
        self.assertEqual(payload["new_items_added"], 6)
        self.assertEqual(payload["unique_volunteers"], 1)
        self.assertEqual(payload["most_active_location"], "McKinney")
        self.assertEqual(payload["least_active_location"], "Plano")
        self.assertEqual(payload["top_items"][0]["total_quantity"], 4)

    def test_monthly_summary_rejects_bad_month(self):
        response = self.client.get("/api/v1/reports/monthly-summary/?month=2024-13")

        self.assertEqual(response.status_code, 400)

    def test_monthly_summary_rejects_out_of_range_year(self):
        for month in ("0-05", "10000-01"):
            response = self.client.get(f"/api/v1/reports/monthly-summary/?month={month}")

            self.assertEqual(response.status_code, 400, month)
            self.assertIn("month", response.json()["errors"])

    def test_report_rejects_impossible_date(self):
        response = self.client.get("/api/v1/reports/checkouts/?date_to=2024-13-01")

        self.assertEqual(response.status_code, 400)

    def test_monthly_movements_net_change(self):
        self.checkout(self.wipes_row, 4)
        create_transfer(
            {"from_location": self.mckinney, "to_location": self.plano, "volunteer_name": "Sam"},
            [{"item": self.wipes, "size": self.wipes_row, "quantity": 2}],
        )

        rows = self.client.get("/api/v1/reports/monthly-movements/").json()["results"]

        mckinney = next(row for row in rows if row["location_name"] == "McKinney")
        plano = next(row for row in rows if row["location_name"] == "Plano")
        self.assertEqual(mckinney["checkouts"], 4)
        self.assertEqual(mckinney["transfers_out"], 2)
        self.assertEqual(mckinney["net_change"], -6)
        self.assertEqual(plano["transfers_in"], 2)
        self.assertEqual(plano["net_change"], 2)

    def test_transaction_history(self):
        yesterday = timezone.localdate() - timedelta(days=1)
        self.checkout(self.wipes_row, 1, checkout_date=yesterday)
        self.client.patch(f"/api/v1/items/sizes/{self.wipes_row.id}/adjust/", {"adjustment": 2}, format="json")

        response = self.client.get(f"/api/v1/reports/transaction-history/{self.wipes.id}/")

        self.assertEqual(response.status_code, 200)
        rows = response.json()["results"]
        self.assertEqual([row["transaction_type"] for row in rows], ["MANUAL_ADJUSTMENT", "CHECKOUT"])
        self.assertEqual(rows[1]["quantity"], -1)
        self.assertEqual(rows[1]["date"], yesterday.isoformat())

    def test_transaction_history_for_unknown_item(self):
        response = self.client.get("/api/v1/reports/transaction-history/00000000-0000-0000-0000-000000000000/")

        self.assertEqual(response.status_code, 404)

    def test_export_by_report_type(self):
        response = self.client.get("/api/v1/reports/export/item-master/")

        self.assertEqual(response.status_code, 200)
        self.assertIn('filename="item-master.csv"', response["Content-Disposition"])
        self.assertIn("Baby Wipes", response.content.decode())

    def test_export_of_unknown_report_is_rejected(self):
        response = self.client.get("/api/v1/reports/export/forecast/")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "validation_error")


class ReportCacheTests(StockTestMixin, TestCase):
    @override_settings(REPORT_CACHE_SECONDS=60)
    def test_writes_invalidate_cached_reports(self):
        url = f"/api/v1/reports/current-inventory/?location_id={self.mckinney.id}"
        first = self.client.get(url).json()["results"][0]["current_quantity"]

        with self.captureOnCommitCallbacks(execute=True):
            self.client.patch(f"/api/v1/items/sizes/{self.wipes_row.id}/adjust/", {"adjustment": 1}, format="json")

        second = self.client.get(url).json()["results"][0]["current_quantity"]
        self.assertEqual(first, 10)
        self.assertEqual(second, 11)


class SeedDemoDataTests(TestCase):
    def test_seed_command_creates_demo_inventory(self):
        call_command("seed_demo_data")

        self.assertTrue(Location.objects.filter(name="McKinney").exists())
        self.assertTrue(Item.objects.exists())
        self.assertTrue(Checkout.objects.exists())
        self.assertTrue(VolunteerSession.objects.exists())
        self.assertFalse(ItemSize.objects.filter(current_quantity__lt=0).exists())
