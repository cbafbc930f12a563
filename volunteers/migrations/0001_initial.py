import uuid

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("core", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="VolunteerSession",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("volunteer_name", models.CharField(max_length=255)),
                ("session_date", models.DateField(default=django.utils.timezone.localdate)),
                ("start_time", models.TimeField()),
                ("end_time", models.TimeField(blank=True, null=True)),
                ("hours_worked", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("tasks_performed", models.TextField(blank=True, default="")),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "location",
                    models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="volunteer_sessions", to="core.location"),
                ),
            ],
            options={
                "ordering": ["-session_date", "-start_time"],
                "indexes": [
                    models.Index(fields=["location", "session_date"], name="volsession_location_date_idx"),
                    models.Index(fields=["volunteer_name"], name="volsession_name_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("hours_worked__isnull", True), ("hours_worked__gte", 0), _connector="OR"),
                        name="volunteersession_hours_non_negative",
                    ),
                ],
            },
        ),
    ]
