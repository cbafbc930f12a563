import uuid

from django.db import models
from django.utils import timezone

from core.models import Location


class VolunteerSession(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name="volunteer_sessions")
    volunteer_name = models.CharField(max_length=255)
    session_date = models.DateField(default=timezone.localdate)
    start_time = models.TimeField()
    end_time = models.TimeField(null=True, blank=True)
    hours_worked = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    tasks_performed = models.TextField(blank=True, default="")
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-session_date", "-start_time"]
        indexes = [
            models.Index(fields=["location", "session_date"], name="volsession_location_date_idx"),
            models.Index(fields=["volunteer_name"], name="volsession_name_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(hours_worked__isnull=True) | models.Q(hours_worked__gte=0),
                name="volunteersession_hours_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.volunteer_name} @ {self.location_id} on {self.session_date}"
