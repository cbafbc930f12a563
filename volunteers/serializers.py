from rest_framework import serializers

from volunteers.models import VolunteerSession
from volunteers.services import calculate_hours


class VolunteerSessionSerializer(serializers.ModelSerializer):
    location_name = serializers.CharField(source="location.name", read_only=True)
    start_time = serializers.TimeField(format="%H:%M", input_formats=["%H:%M", "%H:%M:%S"])
    end_time = serializers.TimeField(
        format="%H:%M",
        input_formats=["%H:%M", "%H:%M:%S"],
        required=False,
        allow_null=True,
    )

    class Meta:
        model = VolunteerSession
        fields = [
            "id",
            "location",
            "location_name",
            "volunteer_name",
            "session_date",
            "start_time",
            "end_time",
            "hours_worked",
            "tasks_performed",
            "notes",
            "created_at",
        ]
        read_only_fields = ["id", "hours_worked", "created_at"]

    def validate_volunteer_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Volunteer name is required.")
        return value

    def validate(self, attrs):
        start_time = attrs.get("start_time", getattr(self.instance, "start_time", None))
        end_time = attrs.get("end_time", getattr(self.instance, "end_time", None))
        if self.instance is not None and "start_time" not in attrs and "end_time" not in attrs:
            return attrs
        if start_time is not None and end_time is not None:
            attrs["hours_worked"] = calculate_hours(start_time, end_time)
        else:
            attrs["hours_worked"] = None
        return attrs
