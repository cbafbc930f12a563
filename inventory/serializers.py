from rest_framework import serializers

from common.utils import ensure_unique
from core.models import Location
from inventory.models import (
    Checkout,
    CheckoutItem,
    InventoryAddition,
    InventoryAdditionItem,
    InventoryAdjustment,
    InventoryAdjustmentItem,
    InventoryTransfer,
    InventoryTransferItem,
    Item,
    ItemSize,
)


class ItemSizeSerializer(serializers.ModelSerializer):
    location_name = serializers.CharField(source="location.name", read_only=True)

    class Meta:
        model = ItemSize
        fields = [
            "id",
            "item",
            "location",
            "location_name",
            "size_label",
            "current_quantity",
            "min_stock_level",
            "sort_order",
            "updated_at",
        ]
        read_only_fields = fields


class ItemSerializer(serializers.ModelSerializer):
    sizes = serializers.ListField(
        child=serializers.CharField(max_length=64),
        write_only=True,
        required=False,
    )

    class Meta:
        model = Item
        fields = [
            "id",
            "name",
            "description",
            "storage_location",
            "qr_code",
            "has_sizes",
            "unit_type",
            "min_stock_level",
            "sizes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "qr_code", "created_at", "updated_at"]
        extra_kwargs = {"name": {"validators": []}}

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Item name is required.")
        ensure_unique(Item.objects.all(), field="name__iexact", value=value, label="Item", instance=self.instance)
        return value

    def validate(self, attrs):
        if self.instance is not None:
            if "has_sizes" in attrs and attrs["has_sizes"] != self.instance.has_sizes:
                raise serializers.ValidationError({"has_sizes": "has_sizes cannot be changed after creation."})
            attrs.pop("sizes", None)
        return attrs


class ItemDetailSerializer(ItemSerializer):
    """Read shape for one item: ``sizes`` lists its stock rows."""

    sizes = serializers.SerializerMethodField()

    def get_sizes(self, obj):
        rows = obj.sizes.select_related("location").order_by("location__name", "sort_order", "size_label")
        location_id = self.context.get("location_id")
        if location_id:
            rows = rows.filter(location_id=location_id)
        return ItemSizeSerializer(rows, many=True).data


class SetQuantitySerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=0)
    admin_name = serializers.CharField(required=False, allow_blank=True, default="Unknown")


class AdjustQuantitySerializer(serializers.Serializer):
    adjustment = serializers.IntegerField()
    admin_name = serializers.CharField(required=False, allow_blank=True, default="Unknown")
    reason = serializers.CharField(required=False, allow_blank=True, default="Manual adjustment")

    def validate_adjustment(self, value):
        if value == 0:
            raise serializers.ValidationError("Adjustment must be non-zero.")
        return value


class MovementLineSerializer(serializers.Serializer):
    """Incoming line: ``item_id``, ``size_id`` and a quantity."""

    item_id = serializers.PrimaryKeyRelatedField(queryset=Item.objects.all(), source="item")
    size_id = serializers.PrimaryKeyRelatedField(queryset=ItemSize.objects.select_related("item", "location"), source="size")
    quantity = serializers.IntegerField(min_value=1)


class AdjustmentLineSerializer(serializers.Serializer):
    item_id = serializers.PrimaryKeyRelatedField(queryset=Item.objects.all(), source="item")
    size_id = serializers.PrimaryKeyRelatedField(queryset=ItemSize.objects.select_related("item", "location"), source="size")
    quantity_adjustment = serializers.IntegerField()

    def validate_quantity_adjustment(self, value):
        if value == 0:
            raise serializers.ValidationError("Adjustment must be non-zero.")
        return value


class LineQuantitySerializer(serializers.Serializer):
    """Accepts ``quantity``, or ``quantity_adjustment`` for adjustment lines."""

    quantity = serializers.IntegerField(required=False)
    quantity_adjustment = serializers.IntegerField(required=False)

    def validate(self, attrs):
        value = attrs.get("quantity", attrs.get("quantity_adjustment"))
        if value is None:
            raise serializers.ValidationError({"quantity": "This field is required."})
        attrs["value"] = value
        return attrs


class CheckoutItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = CheckoutItem
        fields = ["id", "item", "size", "item_name", "size_label", "quantity", "created_at"]
        read_only_fields = fields


class MovementSerializer(serializers.ModelSerializer):
    """Header plus nested lines; lines are written by the stock services, not here."""

    line_serializer_class = MovementLineSerializer

    def get_fields(self):
        fields = super().get_fields()
        fields["items"] = self.line_serializer_class(many=True, write_only=True, allow_empty=False)
        return fields

    def header_fields(self):
        data = dict(self.validated_data)
        data.pop("items", None)
        return data

    def lines(self):
        return list(self.validated_data["items"])

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data["items"] = self.read_line_serializer_class(instance.items.all(), many=True).data
        return data


class CheckoutSerializer(MovementSerializer):
    location_name = serializers.CharField(source="location.name", read_only=True)
    read_line_serializer_class = CheckoutItemSerializer
    allegations = serializers.ListField(child=serializers.CharField(max_length=255), required=False, default=list)

    class Meta:
        model = Checkout
        fields = [
            "id",
            "location",
            "location_name",
            "checkout_date",
            "worker_first_name",
            "worker_last_name",
            "department",
            "case_number",
            "allegations",
            "parent_guardian_first_name",
            "parent_guardian_last_name",
            "zip_code",
            "alleged_perpetrator_first_name",
            "alleged_perpetrator_last_name",
            "number_of_children",
            "total_items",
            "created_at",
        ]
        read_only_fields = ["id", "total_items", "created_at"]

    def validate_location(self, value):
        return _active_location(value)


class AdditionItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InventoryAdditionItem
        fields = ["id", "item", "size", "item_name", "size_label", "quantity", "created_at"]
        read_only_fields = fields


class AdditionSerializer(MovementSerializer):
    location_name = serializers.CharField(source="location.name", read_only=True)
    read_line_serializer_class = AdditionItemSerializer

    class Meta:
        model = InventoryAddition
        fields = ["id", "location", "location_name", "addition_date", "volunteer_name", "source", "notes", "total_items", "created_at"]
        read_only_fields = ["id", "total_items", "created_at"]

    def validate_location(self, value):
        return _active_location(value)


class TransferItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InventoryTransferItem
        fields = ["id", "item", "size", "destination_size", "item_name", "size_label", "quantity", "created_at"]
        read_only_fields = fields


class TransferSerializer(MovementSerializer):
    from_location_name = serializers.CharField(source="from_location.name", read_only=True)
    to_location_name = serializers.CharField(source="to_location.name", read_only=True)
    read_line_serializer_class = TransferItemSerializer

    class Meta:
        model = InventoryTransfer
        fields = [
            "id",
            "from_location",
            "from_location_name",
            "to_location",
            "to_location_name",
            "transfer_date",
            "volunteer_name",
            "reason",
            "notes",
            "total_items",
            "created_at",
        ]
        read_only_fields = ["id", "total_items", "created_at"]

    def validate_from_location(self, value):
        return _active_location(value)

    def validate_to_location(self, value):
        return _active_location(value)

    def validate(self, attrs):
        if attrs.get("from_location") and attrs.get("from_location") == attrs.get("to_location"):
            raise serializers.ValidationError({"to_location": "Destination must differ from source location."})
        return attrs


class AdjustmentItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InventoryAdjustmentItem
        fields = ["id", "item", "size", "item_name", "size_label", "quantity_adjustment", "created_at"]
        read_only_fields = fields


class AdjustmentSerializer(MovementSerializer):
    location_name = serializers.CharField(source="location.name", read_only=True)
    line_serializer_class = AdjustmentLineSerializer
    read_line_serializer_class = AdjustmentItemSerializer

    class Meta:
        model = InventoryAdjustment
        fields = ["id", "location", "location_name", "adjustment_date", "admin_name", "reason", "notes", "total_items", "created_at"]
        read_only_fields = ["id", "total_items", "created_at"]

    def validate_location(self, value):
        return _active_location(value)


def _active_location(location: Location) -> Location:
    if not location.is_active:
        raise serializers.ValidationError(f"Location '{location.name}' is inactive.")
    return location
