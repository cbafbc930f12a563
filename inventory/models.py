import uuid

from django.db import models
from django.utils import timezone

from core.models import Location

NO_SIZE_LABEL = "N/A"


def generate_item_qr_code():
    return f"RR-{uuid.uuid4().hex[:8].upper()}"


class Item(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, unique=True)
    description = models.TextField(blank=True, default="")
    storage_location = models.CharField(max_length=255, blank=True, default="")
    qr_code = models.CharField(max_length=32, unique=True, default=generate_item_qr_code)
    has_sizes = models.BooleanField(default=False)
    unit_type = models.CharField(max_length=32, default="each")
    min_stock_level = models.PositiveIntegerField(default=5)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class ItemSize(models.Model):
    """Stock row: the quantity of one item/size at one location."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    item = models.ForeignKey(Item, on_delete=models.CASCADE, related_name="sizes")
    location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name="stock_rows")
    size_label = models.CharField(max_length=64, default=NO_SIZE_LABEL)
    current_quantity = models.IntegerField(default=0)
    min_stock_level = models.PositiveIntegerField(default=5)
    sort_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["item__name", "location__name", "sort_order", "size_label"]
        constraints = [
            models.UniqueConstraint(fields=["item", "location", "size_label"], name="uniq_itemsize_item_location_label"),
            models.CheckConstraint(condition=models.Q(current_quantity__gte=0), name="itemsize_quantity_non_negative"),
        ]
        indexes = [
            models.Index(fields=["location", "item"], name="itemsize_location_item_idx"),
        ]

    def __str__(self):
        return f"{self.item.name} ({self.size_label}) @ {self.location.name}"


class Checkout(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name="checkouts")
    checkout_date = models.DateField(default=timezone.localdate)
    worker_first_name = models.CharField(max_length=128)
    worker_last_name = models.CharField(max_length=128)
    department = models.CharField(max_length=255)
    case_number = models.CharField(max_length=128)
    allegations = models.JSONField(default=list, blank=True)
    parent_guardian_first_name = models.CharField(max_length=128)
    parent_guardian_last_name = models.CharField(max_length=128)
    zip_code = models.CharField(max_length=16)
    alleged_perpetrator_first_name = models.CharField(max_length=128, null=True, blank=True)
    alleged_perpetrator_last_name = models.CharField(max_length=128, null=True, blank=True)
    number_of_children = models.PositiveIntegerField(default=1)
    total_items = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["location", "checkout_date"], name="checkout_location_date_idx"),
            models.Index(fields=["checkout_date"], name="checkout_date_idx"),
        ]

    @property
    def actor_name(self):
        return f"{self.worker_first_name} {self.worker_last_name}".strip()


class CheckoutItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    checkout = models.ForeignKey(Checkout, on_delete=models.CASCADE, related_name="items")
    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name="checkout_items")
    size = models.ForeignKey(ItemSize, on_delete=models.PROTECT, related_name="checkout_items")
    quantity = models.PositiveIntegerField()
    item_name = models.CharField(max_length=255)
    size_label = models.CharField(max_length=64)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gt=0), name="checkoutitem_quantity_positive"),
        ]
        indexes = [
            models.Index(fields=["item", "size_label"], name="checkoutitem_item_size_idx"),
        ]


class InventoryAddition(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name="additions")
    addition_date = models.DateField(default=timezone.localdate)
    volunteer_name = models.CharField(max_length=255)
    source = models.CharField(max_length=255, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    total_items = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["location", "addition_date"], name="addition_location_date_idx"),
        ]

    @property
    def actor_name(self):
        return self.volunteer_name


class InventoryAdditionItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    addition = models.ForeignKey(InventoryAddition, on_delete=models.CASCADE, related_name="items")
    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name="addition_items")
    size = models.ForeignKey(ItemSize, on_delete=models.PROTECT, related_name="addition_items")
    quantity = models.PositiveIntegerField()
    item_name = models.CharField(max_length=255)
    size_label = models.CharField(max_length=64)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gt=0), name="additionitem_quantity_positive"),
        ]


class InventoryTransfer(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    from_location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name="outgoing_transfers")
    to_location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name="incoming_transfers")
    transfer_date = models.DateField(default=timezone.localdate)
    volunteer_name = models.CharField(max_length=255)
    reason = models.CharField(max_length=255, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    total_items = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["from_location", "to_location"], name="transfer_from_to_idx"),
            models.Index(fields=["transfer_date"], name="transfer_date_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(from_location=models.F("to_location")),
                name="transfer_locations_differ",
            ),
        ]

    @property
    def location(self):
        return self.from_location

    @property
    def actor_name(self):
        return self.volunteer_name


class InventoryTransferItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    transfer = models.ForeignKey(InventoryTransfer, on_delete=models.CASCADE, related_name="items")
    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name="transfer_items")
    size = models.ForeignKey(ItemSize, on_delete=models.PROTECT, related_name="transfer_out_items")
    destination_size = models.ForeignKey(ItemSize, on_delete=models.PROTECT, related_name="transfer_in_items")
    quantity = models.PositiveIntegerField()
    item_name = models.CharField(max_length=255)
    size_label = models.CharField(max_length=64)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(condition=models.Q(quantity__gt=0), name="transferitem_quantity_positive"),
        ]


class InventoryAdjustment(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name="adjustments")
    adjustment_date = models.DateField(default=timezone.localdate)
    admin_name = models.CharField(max_length=255, default="Unknown")
    reason = models.CharField(max_length=255, default="Manual adjustment")
    notes = models.TextField(blank=True, default="")
    total_items = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["location", "adjustment_date"], name="adjustment_location_date_idx"),
        ]

    @property
    def actor_name(self):
        return self.admin_name


class InventoryAdjustmentItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    adjustment = models.ForeignKey(InventoryAdjustment, on_delete=models.CASCADE, related_name="items")
    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name="adjustment_items")
    size = models.ForeignKey(ItemSize, on_delete=models.PROTECT, related_name="adjustment_items")
    quantity_adjustment = models.IntegerField()
    item_name = models.CharField(max_length=255)
    size_label = models.CharField(max_length=64)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(condition=~models.Q(quantity_adjustment=0), name="adjustmentitem_nonzero"),
        ]
