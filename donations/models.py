import uuid

from django.db import models
from django.utils import timezone

from core.models import Location


def generate_qr_value():
    return f"item-{uuid.uuid4()}"


class Category(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, unique=True)
    description = models.TextField(blank=True, default="")
    low_stock_threshold = models.PositiveIntegerField(default=5)
    qr_code_value = models.CharField(max_length=64, unique=True, default=generate_qr_value)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "categories"

    def __str__(self):
        return self.name


class Size(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=64, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class CategorySize(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    category = models.ForeignKey(Category, on_delete=models.CASCADE, related_name="size_links")
    size = models.ForeignKey(Size, on_delete=models.PROTECT, related_name="category_links")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["category", "size"], name="uniq_categorysize_category_size"),
        ]


class DonatedItem(models.Model):
    class Condition(models.TextChoices):
        NEW = "New", "New"
        GENTLY_USED = "Gently Used", "Gently Used"
        HEAVILY_USED = "Heavily Used", "Heavily Used"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name="donated_items")
    size = models.ForeignKey(Size, on_delete=models.PROTECT, related_name="donated_items", null=True, blank=True)
    condition = models.CharField(max_length=16, choices=Condition.choices, default=Condition.NEW)
    location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name="donated_items")
    qr_code_value = models.CharField(max_length=64, unique=True, default=generate_qr_value)
    received_date = models.DateField(default=timezone.localdate)
    donor_info = models.TextField(blank=True, default="")
    approx_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-received_date", "-created_at"]
        indexes = [
            models.Index(fields=["category", "is_active"], name="donated_category_active_idx"),
            models.Index(fields=["location", "is_active"], name="donated_location_active_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(approx_price__isnull=True) | models.Q(approx_price__gte=0),
                name="donateditem_price_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.category.name} ({self.qr_code_value})"


class DonatedItemPhoto(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    donated_item = models.ForeignKey(DonatedItem, on_delete=models.CASCADE, related_name="photos")
    file_path = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
