from rest_framework import serializers

from common.utils import ensure_unique
from core.models import AuditLog, Location


class LocationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Location
        fields = [
            "id",
            "name",
            "city",
            "state",
            "address",
            "phone",
            "zip_code",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]
        # Duplicates surface as 409 from validate_name instead of DRF's 400.
        extra_kwargs = {"name": {"validators": []}}

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Location name is required.")
        ensure_unique(Location.objects.all(), field="name__iexact", value=value, label="Location", instance=self.instance)
        return value

    def validate_state(self, value):
        return value.strip().upper()

    def validate_zip_code(self, value):
        value = value.strip()
        if value and not (value.isdigit() and len(value) in (5, 9)) and not _is_zip_plus_four(value):
            raise serializers.ValidationError("ZIP code must be 5 digits or ZIP+4.")
        return value


def _is_zip_plus_four(value):
    head, sep, tail = value.partition("-")
    return bool(sep) and head.isdigit() and len(head) == 5 and tail.isdigit() and len(tail) == 4


class AuditLogSerializer(serializers.ModelSerializer):
    location_name = serializers.CharField(source="location.name", read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = [
            "id",
            "location",
            "location_name",
            "actor_name",
            "action",
            "entity",
            "entity_id",
            "before_snapshot",
            "after_snapshot",
            "request_id",
            "created_at",
        ]
        read_only_fields = fields
