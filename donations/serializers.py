from decimal import Decimal, InvalidOperation

from rest_framework import serializers

from common.utils import ensure_unique, parse_bool
from core.models import Location
from donations.models import Category, CategorySize, DonatedItem, DonatedItemPhoto, Size
from donations.services import photo_url


class CategorySerializer(serializers.ModelSerializer):
    total_quantity = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = [
            "id",
            "name",
            "description",
            "low_stock_threshold",
            "qr_code_value",
            "total_quantity",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "qr_code_value", "created_at", "updated_at"]
        extra_kwargs = {"name": {"validators": []}}

    def get_total_quantity(self, obj):
        annotated = getattr(obj, "total_quantity", None)
        if annotated is not None:
            return annotated
        return obj.donated_items.filter(is_active=True).count()

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Category name is required.")
        ensure_unique(Category.objects.all(), field="name__iexact", value=value, label="Category", instance=self.instance)
        return value


class SizeSerializer(serializers.ModelSerializer):
    class Meta:
        model = Size
        fields = ["id", "name", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]
        extra_kwargs = {"name": {"validators": []}}

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Size name is required.")
        ensure_unique(Size.objects.all(), field="name__iexact", value=value, label="Size", instance=self.instance)
        return value


class CategorySizeLinkSerializer(serializers.Serializer):
    size_id = serializers.PrimaryKeyRelatedField(queryset=Size.objects.all(), source="size")


class DonatedItemSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source="category.name", read_only=True)
    size_name = serializers.CharField(source="size.name", read_only=True, default=None)
    location_name = serializers.CharField(source="location.name", read_only=True)
    approx_price = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=Decimal("0"),
        required=False,
        allow_null=True,
    )

    class Meta:
        model = DonatedItem
        fields = [
            "id",
            "category",
            "category_name",
            "size",
            "size_name",
            "condition",
            "location",
            "location_name",
            "qr_code_value",
            "received_date",
            "donor_info",
            "approx_price",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "qr_code_value", "created_at", "updated_at"]

    def validate_location(self, value):
        if not value.is_active:
            raise serializers.ValidationError(f"Location '{value.name}' is inactive.")
        return value

    def validate(self, attrs):
        category = attrs.get("category", getattr(self.instance, "category", None))
        size = attrs.get("size", getattr(self.instance, "size", None))
        if size is not None and category is not None:
            if not CategorySize.objects.filter(category=category, size=size).exists():
                raise serializers.ValidationError({"size": f"Size '{size.name}' is not associated with category '{category.name}'."})
        return attrs


class DonatedItemTransferSerializer(serializers.Serializer):
    location = serializers.PrimaryKeyRelatedField(queryset=Location.objects.all())

    def validate_location(self, value):
        if not value.is_active:
            raise serializers.ValidationError(f"Location '{value.name}' is inactive.")
        return value


class DonatedItemPhotoSerializer(serializers.ModelSerializer):
    url = serializers.SerializerMethodField()

    class Meta:
        model = DonatedItemPhoto
        fields = ["id", "donated_item", "file_path", "description", "url", "created_at"]
        read_only_fields = fields

    def get_url(self, obj):
        return photo_url(obj.file_path)


class DonatedItemImportSerializer(serializers.Serializer):
    """One row of an import file, with the file's camelCase column names."""

    categoryName = serializers.CharField(max_length=255, error_messages={"blank": "Category name is required"})
    sizeName = serializers.CharField(max_length=64, required=False, allow_blank=True)
    condition = serializers.CharField(required=False, allow_blank=True)
    location = serializers.CharField(error_messages={"blank": "Location is required"})
    receivedDate = serializers.DateField(
        input_formats=["%Y-%m-%d"],
        error_messages={"invalid": "Received date must be in YYYY-MM-DD format"},
    )
    donorInfo = serializers.CharField(required=False, allow_blank=True, default="")
    approxPrice = serializers.CharField(required=False, allow_blank=True)
    isActive = serializers.CharField(required=False, allow_blank=True)

    def validate_condition(self, value):
        if not value:
            return DonatedItem.Condition.NEW
        if value not in DonatedItem.Condition.values:
            choices = ", ".join(DonatedItem.Condition.values)
            raise serializers.ValidationError(f"Condition must be one of: {choices}")
        return value

    def validate_location(self, value):
        location = Location.objects.filter(name__iexact=value.strip(), is_active=True).first()
        if location is None:
            raise serializers.ValidationError(f"Unknown or inactive location '{value}'")
        return location

    def validate_approxPrice(self, value):
        if value is None or not value.strip():
            return None
        try:
            price = Decimal(value.strip().lstrip("$"))
        except InvalidOperation:
            raise serializers.ValidationError("Approximate price must be a number")
        if not price.is_finite():
            raise serializers.ValidationError("Approximate price must be a number")
        if price < 0:
            raise serializers.ValidationError("Approximate price cannot be negative")
        return price.quantize(Decimal("0.01"))

    def validate_isActive(self, value):
        return parse_bool(value, default=True)

    def validate(self, attrs):
        attrs.setdefault("condition", DonatedItem.Condition.NEW)
        attrs.setdefault("isActive", True)
        attrs["categoryName"] = attrs["categoryName"].strip()
        attrs["sizeName"] = attrs.get("sizeName", "").strip()
        return attrs
