import csv
import logging

from django.http import HttpResponse
from django.utils.dateparse import parse_datetime
from rest_framework import mixins, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from common.audit import create_audit_log, get_request_id
from common.cache import invalidate_reports
from common.utils import parse_bool
from core.models import AuditLog, Location
from core.serializers import AuditLogSerializer, LocationSerializer
from inventory.services import provision_location_stock_rows

logger = logging.getLogger(__name__)


class LocationViewSet(
    mixins.CreateModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.ListModelMixin,
    viewsets.GenericViewSet,
):
    """Locations are deactivated through ``toggle``, never deleted."""

    queryset = Location.objects.all()
    serializer_class = LocationSerializer
    pagination_class = None

    def get_queryset(self):
        qs = super().get_queryset()
        active = parse_bool(self.request.query_params.get("active"))
        if active is not None:
            qs = qs.filter(is_active=active)
        return qs

    def perform_create(self, serializer):
        instance = serializer.save()
        if instance.is_active:
            provision_location_stock_rows(instance)
        self._audit("location.create", instance, after_snapshot=self.get_serializer(instance).data)

    def perform_update(self, serializer):
        before_snapshot = self.get_serializer(serializer.instance).data
        instance = serializer.save()
        self._audit("location.update", instance, before_snapshot=before_snapshot, after_snapshot=self.get_serializer(instance).data)
        invalidate_reports()

    @action(detail=True, methods=["patch"], url_path="toggle")
    def toggle(self, request, pk=None):
        location = self.get_object()
        location.is_active = not location.is_active
        location.save(update_fields=["is_active", "updated_at"])
        if location.is_active:
            provision_location_stock_rows(location)
        logger.info("Location %s active=%s", location.name, location.is_active)
        self._audit("location.toggle", location, after_snapshot={"is_active": location.is_active})
        invalidate_reports()
        return Response(self.get_serializer(location).data)

    def _audit(self, action_name, instance, before_snapshot=None, after_snapshot=None):
        create_audit_log(
            action=action_name,
            entity="location",
            entity_id=instance.id,
            location_id=instance.id,
            before_snapshot=before_snapshot,
            after_snapshot=after_snapshot,
            request_id=get_request_id(self.request),
        )


class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = AuditLog.objects.select_related("location")
    serializer_class = AuditLogSerializer

    def get_queryset(self):
        qs = self.queryset.order_by("-created_at")
        params = self.request.query_params

        start_date = params.get("start_date")
        end_date = params.get("end_date")
        if start_date:
            dt = parse_datetime(start_date)
            if dt:
                qs = qs.filter(created_at__gte=dt)
        if end_date:
            dt = parse_datetime(end_date)
            if dt:
                qs = qs.filter(created_at__lte=dt)
        for field in ("action", "entity", "entity_id", "location_id"):
            value = params.get(field)
            if value:
                qs = qs.filter(**{field: value})
        return qs

    @action(detail=False, methods=["get"], url_path="export")
    def export(self, request):
        logs = self.get_queryset()
        response = HttpResponse(content_type="text/csv")
        response["Content-Disposition"] = 'attachment; filename="audit-logs.csv"'

        writer = csv.writer(response)
        writer.writerow(["id", "created_at", "actor", "location", "action", "entity", "entity_id", "request_id"])
        for log in logs:
            writer.writerow(
                [
                    log.id,
                    log.created_at.isoformat(),
                    log.actor_name,
                    getattr(log.location, "name", ""),
                    log.action,
                    log.entity,
                    log.entity_id or "",
                    log.request_id or "",
                ]
            )
        return response
