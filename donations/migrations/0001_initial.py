import uuid

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone

import donations.models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("core", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Category",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255, unique=True)),
                ("description", models.TextField(blank=True, default="")),
                ("low_stock_threshold", models.PositiveIntegerField(default=5)),
                ("qr_code_value", models.CharField(default=donations.models.generate_qr_value, max_length=64, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "verbose_name_plural": "categories",
            },
        ),
        migrations.CreateModel(
            name="Size",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=64, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="CategorySize",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "category",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="size_links", to="donations.category"),
                ),
                (
                    "size",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="category_links", to="donations.size"),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=["category", "size"], name="uniq_categorysize_category_size"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DonatedItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "condition",
                    models.CharField(
                        choices=[("New", "New"), ("Gently Used", "Gently Used"), ("Heavily Used", "Heavily Used")],
                        default="New",
                        max_length=16,
                    ),
                ),
                ("qr_code_value", models.CharField(default=donations.models.generate_qr_value, max_length=64, unique=True)),
                ("received_date", models.DateField(default=django.utils.timezone.localdate)),
                ("donor_info", models.TextField(blank=True, default="")),
                ("approx_price", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "category",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="donated_items", to="donations.category"),
                ),
                (
                    "location",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="donated_items", to="core.location"),
                ),
                (
                    "size",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="donated_items",
                        to="donations.size",
                    ),
                ),
            ],
            options={
                "ordering": ["-received_date", "-created_at"],
                "indexes": [
                    models.Index(fields=["category", "is_active"], name="donated_category_active_idx"),
                    models.Index(fields=["location", "is_active"], name="donated_location_active_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("approx_price__isnull", True), ("approx_price__gte", 0), _connector="OR"),
                        name="donateditem_price_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DonatedItemPhoto",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("file_path", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "donated_item",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="photos", to="donations.donateditem"),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
