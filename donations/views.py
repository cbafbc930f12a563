from django.db import transaction
from django.db.models import Count, Q
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from common.audit import create_audit_log, get_request_id
from common.utils import parse_bool, parse_uuid_param
from donations.models import Category, CategorySize, DonatedItem, DonatedItemPhoto, Size
from donations.serializers import (
    CategorySerializer,
    CategorySizeLinkSerializer,
    DonatedItemPhotoSerializer,
    DonatedItemSerializer,
    DonatedItemTransferSerializer,
    SizeSerializer,
)
from donations.services import associate_size, attach_photo, delete_photo, transfer_donated_item
from donations.tabular import import_donated_items, read_import_rows, render_export


class AuditedModelViewSet(viewsets.ModelViewSet):
    audit_entity = None

    def _audit(self, action_name, instance, before_snapshot=None, after_snapshot=None):
        create_audit_log(
            action=f"{self.audit_entity}.{action_name}",
            entity=self.audit_entity,
            entity_id=instance.id,
            location_id=getattr(instance, "location_id", None),
            before_snapshot=before_snapshot,
            after_snapshot=after_snapshot,
            request_id=get_request_id(self.request),
        )

    def perform_create(self, serializer):
        instance = serializer.save()
        self._audit("create", instance, after_snapshot=serializer.data)

    def perform_update(self, serializer):
        before_snapshot = self.get_serializer(serializer.instance).data
        instance = serializer.save()
        self._audit("update", instance, before_snapshot=before_snapshot, after_snapshot=serializer.data)

    def perform_destroy(self, instance):
        with transaction.atomic():
            self._audit("delete", instance, before_snapshot=self.get_serializer(instance).data)
            instance.delete()


class CategoryViewSet(AuditedModelViewSet):
    serializer_class = CategorySerializer
    audit_entity = "category"
    pagination_class = None

    def get_queryset(self):
        return Category.objects.annotate(
            total_quantity=Count("donated_items", filter=Q(donated_items__is_active=True)),
        ).order_by("name")

    @action(detail=False, methods=["get"], url_path=r"qr/(?P<qr_code_value>[^/]+)")
    def by_qr_code(self, request, qr_code_value=None):
        category = self.get_queryset().filter(qr_code_value=qr_code_value).first()
        if category is None:
            raise NotFound(f"No category with QR code '{qr_code_value}'.")
        return Response(self.get_serializer(category).data)

    @action(detail=True, methods=["get", "post"], url_path="sizes")
    def sizes(self, request, pk=None):
        category = self.get_object()
        if request.method == "GET":
            sizes = Size.objects.filter(category_links__category=category).order_by("name")
            return Response(SizeSerializer(sizes, many=True).data)

        serializer = CategorySizeLinkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        size = serializer.validated_data["size"]
        created = associate_size(category, size)
        if created:
            self._audit("size_add", category, after_snapshot={"size": size.id})
        return Response(SizeSerializer(size).data, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)

    @action(detail=True, methods=["delete"], url_path=r"sizes/(?P<size_id>[0-9a-fA-F-]+)")
    def remove_size(self, request, pk=None, size_id=None):
        category = self.get_object()
        link = CategorySize.objects.filter(category=category, size_id=size_id).first()
        if link is None:
            raise NotFound("Size is not associated with this category.")
        link.delete()
        self._audit("size_remove", category, before_snapshot={"size": size_id})
        return Response(status=status.HTTP_204_NO_CONTENT)


class SizeViewSet(AuditedModelViewSet):
    queryset = Size.objects.order_by("name")
    serializer_class = SizeSerializer
    audit_entity = "size"
    pagination_class = None


class DonatedItemViewSet(AuditedModelViewSet):
    """Donated pieces are deactivated, never deleted."""

    http_method_names = ["get", "post", "put", "patch", "head", "options"]
    queryset = DonatedItem.objects.select_related("category", "size", "location")
    serializer_class = DonatedItemSerializer
    audit_entity = "donated_item"

    def get_queryset(self):
        qs = super().get_queryset()
        if self.action != "list":
            return qs
        params = self.request.query_params
        category_id = parse_uuid_param(params, "category_id")
        if category_id:
            qs = qs.filter(category_id=category_id)
        location_id = parse_uuid_param(params, "location_id")
        if location_id:
            qs = qs.filter(location_id=location_id)
        is_active = parse_bool(params.get("is_active"))
        if is_active is not None:
            qs = qs.filter(is_active=is_active)
        return qs.order_by("-received_date", "-created_at")

    @action(detail=False, methods=["get"], url_path=r"qr/(?P<qr_code_value>[^/]+)")
    def by_qr_code(self, request, qr_code_value=None):
        item = self.get_queryset().filter(qr_code_value=qr_code_value).first()
        if item is None:
            raise NotFound(f"No donated item with QR code '{qr_code_value}'.")
        return Response(self.get_serializer(item).data)

    @action(detail=True, methods=["patch"], url_path="deactivate")
    def deactivate(self, request, pk=None):
        item = self.get_object()
        if not item.is_active:
            return Response({"message": "Item is already inactive", "item": self.get_serializer(item).data})
        item.is_active = False
        item.save(update_fields=["is_active", "updated_at"])
        self._audit("deactivate", item, after_snapshot={"is_active": False})
        return Response({"message": "Item deactivated successfully", "item": self.get_serializer(item).data})

    @action(detail=True, methods=["patch"], url_path="transfer")
    def transfer(self, request, pk=None):
        item = self.get_object()
        serializer = DonatedItemTransferSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        location = serializer.validated_data["location"]
        previous, moved = transfer_donated_item(item, location, request_id=get_request_id(request))
        if not moved:
            message = f"Item is already at {location.name}"
        else:
            message = f"Item transferred to {location.name} successfully"
        return Response(
            {
                "message": message,
                "previous_location": previous.name,
                "new_location": location.name,
                "item": self.get_serializer(item).data,
            }
        )

    @action(
        detail=True,
        methods=["get", "post"],
        url_path="photos",
        parser_classes=[MultiPartParser, FormParser, JSONParser],
    )
    def photos(self, request, pk=None):
        item = self.get_object()
        if request.method == "GET":
            return Response(DonatedItemPhotoSerializer(item.photos.all(), many=True).data)

        photo = attach_photo(
            item,
            request.FILES.get("photo"),
            description=request.data.get("description", ""),
            request_id=get_request_id(request),
        )
        return Response(DonatedItemPhotoSerializer(photo).data, status=status.HTTP_201_CREATED)


class PhotoDetailView(APIView):
    def delete(self, request, photo_id):
        photo = get_object_or_404(DonatedItemPhoto, pk=photo_id)
        delete_photo(photo, request_id=get_request_id(request))
        return Response(status=status.HTTP_204_NO_CONTENT)


class ImportView(APIView):
    parser_classes = [MultiPartParser, FormParser, JSONParser]

    def post(self, request):
        rows = read_import_rows(request.FILES.get("file"))
        return Response(import_donated_items(rows, request_id=get_request_id(request)))


class ExportView(APIView):
    def get(self, request):
        content, content_type, filename = render_export(request.query_params.get("format", ""))
        response = HttpResponse(content, content_type=content_type)
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        return response
