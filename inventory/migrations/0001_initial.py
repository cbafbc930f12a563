import uuid

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone

import inventory.models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("core", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Item",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255, unique=True)),
                ("description", models.TextField(blank=True, default="")),
                ("storage_location", models.CharField(blank=True, default="", max_length=255)),
                ("qr_code", models.CharField(default=inventory.models.generate_item_qr_code, max_length=32, unique=True)),
                ("has_sizes", models.BooleanField(default=False)),
                ("unit_type", models.CharField(default="each", max_length=32)),
                ("min_stock_level", models.PositiveIntegerField(default=5)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="ItemSize",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("size_label", models.CharField(default="N/A", max_length=64)),
                ("current_quantity", models.IntegerField(default=0)),
                ("min_stock_level", models.PositiveIntegerField(default=5)),
                ("sort_order", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "item",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="sizes", to="inventory.item"),
                ),
                (
                    "location",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="stock_rows", to="core.location"),
                ),
            ],
            options={
                "ordering": ["item__name", "location__name", "sort_order", "size_label"],
                "indexes": [
                    models.Index(fields=["location", "item"], name="itemsize_location_item_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=["item", "location", "size_label"], name="uniq_itemsize_item_location_label"),
                    models.CheckConstraint(condition=models.Q(current_quantity__gte=0), name="itemsize_quantity_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Checkout",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("checkout_date", models.DateField(default=django.utils.timezone.localdate)),
                ("worker_first_name", models.CharField(max_length=128)),
                ("worker_last_name", models.CharField(max_length=128)),
                ("department", models.CharField(max_length=255)),
                ("case_number", models.CharField(max_length=128)),
                ("allegations", models.JSONField(blank=True, default=list)),
                ("parent_guardian_first_name", models.CharField(max_length=128)),
                ("parent_guardian_last_name", models.CharField(max_length=128)),
                ("zip_code", models.CharField(max_length=16)),
                ("alleged_perpetrator_first_name", models.CharField(blank=True, max_length=128, null=True)),
                ("alleged_perpetrator_last_name", models.CharField(blank=True, max_length=128, null=True)),
                ("number_of_children", models.PositiveIntegerField(default=1)),
                ("total_items", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "location",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="checkouts", to="core.location"),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["location", "checkout_date"], name="checkout_location_date_idx"),
                    models.Index(fields=["checkout_date"], name="checkout_date_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CheckoutItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("quantity", models.PositiveIntegerField()),
                ("item_name", models.CharField(max_length=255)),
                ("size_label", models.CharField(max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "checkout",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="inventory.checkout"),
                ),
                (
                    "item",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="checkout_items", to="inventory.item"),
                ),
                (
                    "size",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="checkout_items", to="inventory.itemsize"),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["item", "size_label"], name="checkoutitem_item_size_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(quantity__gt=0), name="checkoutitem_quantity_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="InventoryAddition",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("addition_date", models.DateField(default=django.utils.timezone.localdate)),
                ("volunteer_name", models.CharField(max_length=255)),
                ("source", models.CharField(blank=True, default="", max_length=255)),
                ("notes", models.TextField(blank=True, default="")),
                ("total_items", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "location",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="additions", to="core.location"),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["location", "addition_date"], name="addition_location_date_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="InventoryAdditionItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("quantity", models.PositiveIntegerField()),
                ("item_name", models.CharField(max_length=255)),
                ("size_label", models.CharField(max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "addition",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="inventory.inventoryaddition"),
                ),
                (
                    "item",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="addition_items", to="inventory.item"),
                ),
                (
                    "size",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="addition_items", to="inventory.itemsize"),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(quantity__gt=0), name="additionitem_quantity_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="InventoryTransfer",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("transfer_date", models.DateField(default=django.utils.timezone.localdate)),
                ("volunteer_name", models.CharField(max_length=255)),
                ("reason", models.CharField(blank=True, default="", max_length=255)),
                ("notes", models.TextField(blank=True, default="")),
                ("total_items", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "from_location",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="outgoing_transfers", to="core.location"),
                ),
                (
                    "to_location",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="incoming_transfers", to="core.location"),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["from_location", "to_location"], name="transfer_from_to_idx"),
                    models.Index(fields=["transfer_date"], name="transfer_date_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("from_location", models.F("to_location")), _negated=True),
                        name="transfer_locations_differ",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="InventoryTransferItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("quantity", models.PositiveIntegerField()),
                ("item_name", models.CharField(max_length=255)),
                ("size_label", models.CharField(max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "transfer",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="inventory.inventorytransfer"),
                ),
                (
                    "item",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="transfer_items", to="inventory.item"),
                ),
                (
                    "size",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="transfer_out_items", to="inventory.itemsize"),
                ),
                (
                    "destination_size",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="transfer_in_items", to="inventory.itemsize"),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(quantity__gt=0), name="transferitem_quantity_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="InventoryAdjustment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("adjustment_date", models.DateField(default=django.utils.timezone.localdate)),
                ("admin_name", models.CharField(default="Unknown", max_length=255)),
                ("reason", models.CharField(default="Manual adjustment", max_length=255)),
                ("notes", models.TextField(blank=True, default="")),
                ("total_items", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "location",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="adjustments", to="core.location"),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["location", "adjustment_date"], name="adjustment_location_date_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="InventoryAdjustmentItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("quantity_adjustment", models.IntegerField()),
                ("item_name", models.CharField(max_length=255)),
                ("size_label", models.CharField(max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "adjustment",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="inventory.inventoryadjustment"),
                ),
                (
                    "item",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="adjustment_items", to="inventory.item"),
                ),
                (
                    "size",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="adjustment_items", to="inventory.itemsize"),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity_adjustment", 0), _negated=True),
                        name="adjustmentitem_nonzero",
                    ),
                ],
            },
        ),
    ]
