from rest_framework import viewsets
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from common.audit import create_audit_log, get_request_id
from common.cache import invalidate_reports
from common.utils import parse_date_range, parse_uuid_param
from volunteers.models import VolunteerSession
from volunteers.serializers import VolunteerSessionSerializer
from volunteers.services import filter_sessions, volunteer_stats


def _parse_limit(params, maximum=1000):
    raw = params.get("limit")
    if raw in (None, ""):
        return None
    try:
        limit = int(raw)
    except (TypeError, ValueError):
        raise ValidationError({"limit": f"Limit must be an integer between 1 and {maximum}."})
    if not 1 <= limit <= maximum:
        raise ValidationError({"limit": f"Limit must be between 1 and {maximum}."})
    return limit


class VolunteerSessionViewSet(viewsets.ModelViewSet):
    queryset = VolunteerSession.objects.select_related("location")
    serializer_class = VolunteerSessionSerializer

    def get_queryset(self):
        qs = super().get_queryset()
        if self.action != "list":
            return qs
        params = self.request.query_params
        date_from, date_to = parse_date_range(params)
        return filter_sessions(
            qs,
            location_id=parse_uuid_param(params, "location_id"),
            volunteer_name=params.get("volunteer_name", "").strip(),
            date_from=date_from,
            date_to=date_to,
        ).order_by("-session_date", "-start_time", "-created_at")

    def list(self, request, *args, **kwargs):
        limit = _parse_limit(request.query_params)
        if limit is None:
            return super().list(request, *args, **kwargs)
        sessions = self.get_queryset()[:limit]
        return Response(self.get_serializer(sessions, many=True).data)

    def perform_create(self, serializer):
        instance = serializer.save()
        self._audit("volunteer_session.create", instance, after_snapshot=serializer.data)
        invalidate_reports()

    def perform_update(self, serializer):
        before_snapshot = self.get_serializer(serializer.instance).data
        instance = serializer.save()
        self._audit("volunteer_session.update", instance, before_snapshot=before_snapshot, after_snapshot=serializer.data)
        invalidate_reports()

    def perform_destroy(self, instance):
        self._audit("volunteer_session.delete", instance, before_snapshot=self.get_serializer(instance).data)
        instance.delete()
        invalidate_reports()

    def _audit(self, action_name, instance, before_snapshot=None, after_snapshot=None):
        create_audit_log(
            action=action_name,
            entity="volunteer_session",
            entity_id=instance.id,
            actor_name=instance.volunteer_name,
            location_id=instance.location_id,
            before_snapshot=before_snapshot,
            after_snapshot=after_snapshot,
            request_id=get_request_id(self.request),
        )


class VolunteerStatsView(APIView):
    def get(self, request):
        params = request.query_params
        date_from, date_to = parse_date_range(params)
        stats = volunteer_stats(
            location_id=parse_uuid_param(params, "location_id"),
            date_from=date_from,
            date_to=date_to,
        )
        return Response(stats)
