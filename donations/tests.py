import io
import shutil
import tempfile

from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from openpyxl import Workbook, load_workbook
from PIL import Image
from rest_framework.test import APIClient

from core.models import AuditLog, Location
from donations.models import Category, CategorySize, DonatedItem, DonatedItemPhoto, Size
from donations.services import create_donated_item

IMPORT_HEADER = "categoryName,sizeName,condition,location,receivedDate,donorInfo,approxPrice,isActive"


def png_upload(name="photo.png"):
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color="red").save(buffer, format="PNG")
    return SimpleUploadedFile(name, buffer.getvalue(), content_type="image/png")


class CategoryApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.location = Location.objects.create(name="McKinney")
        self.shirts = Category.objects.create(name="Shirts")
        self.small = Size.objects.create(name="S")

    def test_create_category_gets_qr_value(self):
        response = self.client.post("/api/v1/categories/", {"name": "Shoes", "low_stock_threshold": 3}, format="json")

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertTrue(payload["qr_code_value"].startswith("item-"))
        self.assertEqual(payload["total_quantity"], 0)

    def test_duplicate_category_is_conflict(self):
        response = self.client.post("/api/v1/categories/", {"name": "shirts"}, format="json")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "conflict")

    def test_category_in_use_cannot_be_deleted(self):
        create_donated_item(category=self.shirts, location=self.location)

        response = self.client.delete(f"/api/v1/categories/{self.shirts.id}/")

        self.assertEqual(response.status_code, 409)
        self.assertTrue(Category.objects.filter(pk=self.shirts.pk).exists())

    def test_unused_category_can_be_deleted(self):
        response = self.client.delete(f"/api/v1/categories/{self.shirts.id}/")

        self.assertEqual(response.status_code, 204)
        self.assertTrue(AuditLog.objects.filter(action="category.delete").exists())

    def test_category_total_counts_active_items(self):
        create_donated_item(category=self.shirts, location=self.location)
        create_donated_item(category=self.shirts, location=self.location, is_active=False)

        rows = self.client.get("/api/v1/categories/").json()

        self.assertEqual(rows[0]["total_quantity"], 1)

    def test_category_qr_lookup(self):
        response = self.client.get(f"/api/v1/categories/qr/{self.shirts.qr_code_value}/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["id"], str(self.shirts.id))

        missing = self.client.get("/api/v1/categories/qr/item-unknown/")
        self.assertEqual(missing.status_code, 404)

    def test_size_association_is_idempotent(self):
        url = f"/api/v1/categories/{self.shirts.id}/sizes/"

        first = self.client.post(url, {"size_id": str(self.small.id)}, format="json")
        second = self.client.post(url, {"size_id": str(self.small.id)}, format="json")

        self.assertEqual(first.status_code, 201)
        self.assertEqual(second.status_code, 200)
        self.assertEqual(CategorySize.objects.filter(category=self.shirts).count(), 1)
        self.assertEqual([row["name"] for row in self.client.get(url).json()], ["S"])

    def test_remove_size_association(self):
        CategorySize.objects.create(category=self.shirts, size=self.small)

        response = self.client.delete(f"/api/v1/categories/{self.shirts.id}/sizes/{self.small.id}/")

        self.assertEqual(response.status_code, 204)
        self.assertFalse(CategorySize.objects.exists())

        again = self.client.delete(f"/api/v1/categories/{self.shirts.id}/sizes/{self.small.id}/")
        self.assertEqual(again.status_code, 404)

    def test_linked_size_cannot_be_deleted(self):
        CategorySize.objects.create(category=self.shirts, size=self.small)

        response = self.client.delete(f"/api/v1/sizes/{self.small.id}/")

        self.assertEqual(response.status_code, 409)

    def test_duplicate_size_is_conflict(self):
        response = self.client.post("/api/v1/sizes/", {"name": "s"}, format="json")

        self.assertEqual(response.status_code, 409)


class DonatedItemApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.mckinney = Location.objects.create(name="McKinney")
        self.plano = Location.objects.create(name="Plano")
        self.shirts = Category.objects.create(name="Shirts")
        self.small = Size.objects.create(name="S")
        CategorySize.objects.create(category=self.shirts, size=self.small)
        self.item = create_donated_item(category=self.shirts, size=self.small, location=self.mckinney)

    def test_create_donated_item(self):
        response = self.client.post(
            "/api/v1/donated-items/",
            {
                "category": str(self.shirts.id),
                "size": str(self.small.id),
                "condition": "Gently Used",
                "location": str(self.mckinney.id),
                "approx_price": "4.50",
            },
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["category_name"], "Shirts")
        self.assertEqual(payload["size_name"], "S")
        self.assertTrue(payload["qr_code_value"].startswith("item-"))

    def test_size_must_belong_to_category(self):
        medium = Size.objects.create(name="M")

        response = self.client.post(
            "/api/v1/donated-items/",
            {"category": str(self.shirts.id), "size": str(medium.id), "location": str(self.mckinney.id)},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("size", response.json()["errors"])

    def test_negative_price_is_rejected(self):
        response = self.client.post(
            "/api/v1/donated-items/",
            {"category": str(self.shirts.id), "location": str(self.mckinney.id), "approx_price": "-1"},
            format="json",
        )

        self.assertEqual(response.status_code, 400)

    def test_list_filters(self):
        create_donated_item(category=self.shirts, location=self.plano, is_active=False)

        active = self.client.get("/api/v1/donated-items/?is_active=true").json()
        at_plano = self.client.get(f"/api/v1/donated-items/?location_id={self.plano.id}").json()

        self.assertEqual(active["count"], 1)
        self.assertEqual(at_plano["count"], 1)
        self.assertFalse(at_plano["results"][0]["is_active"])

    def test_donated_items_cannot_be_deleted(self):
        response = self.client.delete(f"/api/v1/donated-items/{self.item.id}/")

        self.assertEqual(response.status_code, 405)

    def test_deactivate(self):
        response = self.client.patch(f"/api/v1/donated-items/{self.item.id}/deactivate/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["message"], "Item deactivated successfully")
        self.item.refresh_from_db()
        self.assertFalse(self.item.is_active)

        again = self.client.patch(f"/api/v1/donated-items/{self.item.id}/deactivate/")
        self.assertEqual(again.json()["message"], "Item is already inactive")

    def test_transfer(self):
        response = self.client.patch(
            f"/api/v1/donated-items/{self.item.id}/transfer/",
            {"location": str(self.plano.id)},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["previous_location"], "McKinney")
        self.assertEqual(payload["new_location"], "Plano")
        self.item.refresh_from_db()
        self.assertEqual(self.item.location, self.plano)
        self.assertTrue(AuditLog.objects.filter(action="donated_item.transfer").exists())

    def test_transfer_to_inactive_location_is_rejected(self):
        self.plano.is_active = False
        self.plano.save()

        response = self.client.patch(
            f"/api/v1/donated-items/{self.item.id}/transfer/",
            {"location": str(self.plano.id)},
            format="json",
        )

        self.assertEqual(response.status_code, 400)

    def test_qr_lookup(self):
        response = self.client.get(f"/api/v1/donated-items/qr/{self.item.qr_code_value}/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["id"], str(self.item.id))


class PhotoApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media_root, ignore_errors=True)
        settings_override = override_settings(MEDIA_ROOT=self.media_root)
        settings_override.enable()
        self.addCleanup(settings_override.disable)

        location = Location.objects.create(name="McKinney")
        category = Category.objects.create(name="Shirts")
        self.item = create_donated_item(category=category, location=location)

    def test_upload_list_and_delete_photo(self):
        url = f"/api/v1/donated-items/{self.item.id}/photos/"

        response = self.client.post(url, {"photo": png_upload(), "description": "front"}, format="multipart")

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertTrue(payload["file_path"].startswith("uploads/"))
        self.assertTrue(payload["file_path"].endswith(".png"))
        self.assertEqual(payload["url"], f"/media/{payload['file_path']}")
        self.assertTrue(default_storage.exists(payload["file_path"]))

        listed = self.client.get(url).json()
        self.assertEqual([row["description"] for row in listed], ["front"])

        deleted = self.client.delete(f"/api/v1/photos/{payload['id']}/")
        self.assertEqual(deleted.status_code, 204)
        self.assertFalse(DonatedItemPhoto.objects.exists())
        self.assertFalse(default_storage.exists(payload["file_path"]))

    def test_non_image_upload_is_rejected(self):
        upload = SimpleUploadedFile("notes.txt", b"hello", content_type="text/plain")

        response = self.client.post(f"/api/v1/donated-items/{self.item.id}/photos/", {"photo": upload}, format="multipart")

        self.assertEqual(response.status_code, 400)
        self.assertFalse(DonatedItemPhoto.objects.exists())

    def test_missing_photo_is_rejected(self):
        response = self.client.post(f"/api/v1/donated-items/{self.item.id}/photos/", {}, format="multipart")

        self.assertEqual(response.status_code, 400)

    @override_settings(PHOTO_MAX_UPLOAD_BYTES=10)
    def test_oversized_photo_is_rejected(self):
        response = self.client.post(
            f"/api/v1/donated-items/{self.item.id}/photos/",
            {"photo": png_upload()},
            format="multipart",
        )

        self.assertEqual(response.status_code, 400)

    def test_deleting_photo_with_missing_file_still_succeeds(self):
        photo = DonatedItemPhoto.objects.create(donated_item=self.item, file_path="uploads/gone.png")

        response = self.client.delete(f"/api/v1/photos/{photo.id}/")

        self.assertEqual(response.status_code, 204)

    def test_unknown_photo_is_not_found(self):
        response = self.client.delete("/api/v1/photos/00000000-0000-0000-0000-000000000000/")

        self.assertEqual(response.status_code, 404)


class ImportApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        Location.objects.create(name="McKinney")

    def upload(self, content, name="items.csv", content_type="text/csv"):
        return self.client.post(
            "/api/v1/import/",
            {"file": SimpleUploadedFile(name, content, content_type=content_type)},
            format="multipart",
        )

    def test_csv_import_reports_row_errors(self):
        lines = [IMPORT_HEADER]
        for index in range(10):
            lines.append(f"Shirts,S,Gently Used,McKinney,2024-03-{index + 1:02d},Donor {index},$5.00,true")
        lines.insert(4, ",S,New,McKinney,2024-03-01,,,")
        lines.append("Pants,M,New,McKinney,03/01/2024,,,")

        response = self.upload("\n".join(lines).encode("utf-8"))

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["successCount"], 10)
        self.assertEqual(payload["errorCount"], 2)
        self.assertTrue(payload["errors"][0].startswith("[Row 5] categoryName"))
        self.assertTrue(payload["errors"][1].startswith("[Row 13] receivedDate"))
        self.assertEqual(DonatedItem.objects.count(), 10)
        self.assertTrue(CategorySize.objects.filter(category__name="Shirts", size__name="S").exists())
        self.assertFalse(Category.objects.filter(name="Pants").exists())

    def test_unknown_location_and_condition_are_row_errors(self):
        content = "\n".join(
            [
                IMPORT_HEADER,
                "Shirts,,Brand New,McKinney,2024-03-01,,,",
                "Shirts,,New,Nowhere,2024-03-01,,,",
            ]
        ).encode("utf-8")

        payload = self.upload(content).json()

        self.assertEqual(payload["successCount"], 0)
        self.assertEqual(payload["errorCount"], 2)
        self.assertIn("condition", payload["errors"][0])
        self.assertIn("location", payload["errors"][1])

    def test_xlsx_import(self):
        workbook = Workbook()
        sheet = workbook.active
        sheet.append(IMPORT_HEADER.split(","))
        sheet.append(["Coats", "L", "New", "McKinney", "2024-01-15", "Church drive", 12, "yes"])
        buffer = io.BytesIO()
        workbook.save(buffer)

        response = self.upload(
            buffer.getvalue(),
            name="items.xlsx",
            content_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["successCount"], 1)
        item = DonatedItem.objects.get()
        self.assertEqual(item.size.name, "L")
        self.assertEqual(str(item.approx_price), "12.00")

    def test_missing_file_is_rejected(self):
        response = self.client.post("/api/v1/import/", {}, format="multipart")

        self.assertEqual(response.status_code, 400)
        self.assertIn("file", response.json()["errors"])

    def test_header_only_file_is_rejected(self):
        response = self.upload(f"{IMPORT_HEADER}\n".encode("utf-8"))

        self.assertEqual(response.status_code, 400)

    def test_ragged_csv_is_rejected(self):
        response = self.upload(f"{IMPORT_HEADER}\nShirts,S\n".encode("utf-8"))

        self.assertEqual(response.status_code, 400)
        self.assertIn("line 2", response.json()["message"])

    def test_non_utf8_file_is_rejected(self):
        response = self.upload(f"{IMPORT_HEADER}\n".encode("utf-8") + b"\xff\xfe,,,\n")

        self.assertEqual(response.status_code, 400)


class ExportApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        location = Location.objects.create(name="McKinney")
        category = Category.objects.create(name="Shirts")
        create_donated_item(category=category, location=location, donor_info="Church")

    def test_csv_export(self):
        response = self.client.get("/api/v1/export/?format=csv")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "text/csv")
        self.assertIn("inventory-export-", response["Content-Disposition"])
        lines = response.content.decode().strip().splitlines()
        self.assertTrue(lines[0].startswith("itemId,categoryId,categoryName"))
        self.assertIn("None", lines[1])

    def test_xlsx_export_has_inventory_and_categories_sheets(self):
        response = self.client.get("/api/v1/export/?format=xlsx")

        self.assertEqual(response.status_code, 200)
        workbook = load_workbook(io.BytesIO(response.content))
        self.assertEqual(workbook.sheetnames, ["Inventory", "Categories"])
        self.assertEqual(workbook["Inventory"].max_row, 2)
        self.assertEqual(workbook["Categories"]["B2"].value, "Shirts")

    def test_txt_export_is_tab_delimited(self):
        response = self.client.get("/api/v1/export/?format=txt")

        self.assertEqual(response.status_code, 200)
        self.assertIn("\t", response.content.decode().splitlines()[0])

    def test_unknown_format_is_rejected(self):
        response = self.client.get("/api/v1/export/?format=pdf")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "validation_error")
