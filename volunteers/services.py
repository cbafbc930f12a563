from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from django.db.models import Avg, Count, Max, Sum
from django.db.models.functions import Coalesce

from volunteers.models import VolunteerSession

TWO_PLACES = Decimal("0.01")


def calculate_hours(start_time, end_time):
    """Hours between two times of day; an end before the start wraps past midnight."""
    start = datetime.combine(datetime.min.date(), start_time)
    end = datetime.combine(datetime.min.date(), end_time)
    if end < start:
        end += timedelta(days=1)
    seconds = Decimal((end - start).total_seconds())
    return (seconds / Decimal(3600)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def filter_sessions(queryset, *, location_id=None, volunteer_name=None, date_from=None, date_to=None):
    if location_id:
        queryset = queryset.filter(location_id=location_id)
    if volunteer_name:
        queryset = queryset.filter(volunteer_name__icontains=volunteer_name)
    if date_from:
        queryset = queryset.filter(session_date__gte=date_from)
    if date_to:
        queryset = queryset.filter(session_date__lte=date_to)
    return queryset


def _round(value):
    return Decimal(value or 0).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def volunteer_stats(*, location_id=None, date_from=None, date_to=None):
    sessions = filter_sessions(
        VolunteerSession.objects.all(),
        location_id=location_id,
        date_from=date_from,
        date_to=date_to,
    )
    overall = sessions.aggregate(
        total_sessions=Count("id"),
        total_hours=Sum("hours_worked"),
        unique_volunteers=Count("volunteer_name", distinct=True),
        average_hours=Avg("hours_worked"),
    )
    by_location = (
        sessions.values("location_id", "location__name")
        .annotate(sessions=Count("id"), hours=Coalesce(Sum("hours_worked"), Decimal("0")))
        .order_by("-sessions", "location__name")
    )
    recent = (
        sessions.values("volunteer_name")
        .annotate(
            last_session=Max("session_date"),
            total_sessions=Count("id"),
            total_hours=Coalesce(Sum("hours_worked"), Decimal("0")),
        )
        .order_by("-last_session", "volunteer_name")[:10]
    )
    return {
        "total_sessions": overall["total_sessions"],
        "total_hours": _round(overall["total_hours"]),
        "unique_volunteers": overall["unique_volunteers"],
        "average_hours_per_session": _round(overall["average_hours"]),
        "by_location": [
            {
                "location_id": row["location_id"],
                "location_name": row["location__name"],
                "sessions": row["sessions"],
                "hours": _round(row["hours"]),
            }
            for row in by_location
        ],
        "recent_volunteers": [
            {
                "volunteer_name": row["volunteer_name"],
                "last_session": row["last_session"],
                "total_sessions": row["total_sessions"],
                "total_hours": _round(row["total_hours"]),
            }
            for row in recent
        ],
    }
