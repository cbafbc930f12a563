from django.db import transaction
from django.db.models import Q
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.response import Response
from rest_framework.views import APIView

from common.audit import create_audit_log, get_request_id
from common.cache import invalidate_reports
from common.utils import parse_date_range, parse_uuid_param
from inventory.models import (
    Checkout,
    InventoryAddition,
    InventoryAdjustment,
    InventoryTransfer,
    Item,
    ItemSize,
)
from inventory.qr import render_qr_png, render_qr_svg
from inventory.serializers import (
    AdditionSerializer,
    AdjustQuantitySerializer,
    AdjustmentSerializer,
    CheckoutSerializer,
    ItemDetailSerializer,
    ItemSerializer,
    ItemSizeSerializer,
    LineQuantitySerializer,
    SetQuantitySerializer,
    TransferSerializer,
)
from inventory.services import (
    adjust_stock_quantity,
    create_item,
    delete_line,
    delete_movement,
    get_movement_kind,
    record_movement,
    set_stock_quantity,
    sync_item_min_stock_level,
    update_line_quantity,
)


class ItemViewSet(viewsets.ModelViewSet):
    queryset = Item.objects.all()
    serializer_class = ItemSerializer

    def get_serializer_class(self):
        if self.action == "retrieve":
            return ItemDetailSerializer
        return super().get_serializer_class()

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context["location_id"] = parse_uuid_param(self.request.query_params, "location_id")
        return context

    def get_queryset(self):
        qs = super().get_queryset()
        if self.action != "list":
            return qs
        params = self.request.query_params
        location_id = parse_uuid_param(params, "location_id")
        if location_id:
            qs = qs.filter(sizes__location_id=location_id).distinct()
        search = params.get("search", "").strip()
        if search:
            qs = qs.filter(Q(name__icontains=search) | Q(description__icontains=search))
        return qs

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        sizes = data.pop("sizes", None)
        with transaction.atomic():
            serializer.instance = create_item(sizes=sizes, **data)
            create_audit_log(
                action="item.create",
                entity="item",
                entity_id=serializer.instance.id,
                after_snapshot=ItemSerializer(serializer.instance).data,
                request_id=get_request_id(self.request),
            )

    def perform_update(self, serializer):
        previous_min = serializer.instance.min_stock_level
        with transaction.atomic():
            instance = serializer.save()
            if instance.min_stock_level != previous_min:
                sync_item_min_stock_level(instance)
        invalidate_reports()

    def perform_destroy(self, instance):
        with transaction.atomic():
            create_audit_log(
                action="item.delete",
                entity="item",
                entity_id=instance.id,
                before_snapshot=ItemSerializer(instance).data,
                request_id=get_request_id(self.request),
            )
            instance.delete()
        invalidate_reports()

    @action(detail=False, methods=["get"], url_path=r"qr/(?P<qr_code>[^/.]+)")
    def by_qr_code(self, request, qr_code=None):
        item = Item.objects.filter(qr_code__iexact=qr_code).first()
        if item is None:
            raise NotFound(f"No item with QR code '{qr_code}'.")
        return Response(ItemDetailSerializer(item, context=self.get_serializer_context()).data)

    @action(detail=True, methods=["get"], url_path="qr-code")
    def qr_code_image(self, request, pk=None):
        item = self.get_object()
        if request.query_params.get("format") == "svg":
            return HttpResponse(render_qr_svg(item.qr_code), content_type="image/svg+xml")
        response = HttpResponse(render_qr_png(item.qr_code), content_type="image/png")
        response["Content-Disposition"] = f'inline; filename="{item.qr_code}.png"'
        return response

    @action(detail=True, methods=["get"], url_path="sizes")
    def sizes(self, request, pk=None):
        item = self.get_object()
        rows = item.sizes.select_related("location").order_by("location__name", "sort_order", "size_label")
        location_id = parse_uuid_param(request.query_params, "location_id")
        if location_id:
            rows = rows.filter(location_id=location_id)
        return Response(ItemSizeSerializer(rows, many=True).data)


def _stock_row(size_id):
    return get_object_or_404(ItemSize.objects.select_related("item", "location"), pk=size_id)


class SetStockQuantityView(APIView):
    def put(self, request, size_id):
        size = _stock_row(size_id)
        serializer = SetQuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        size = set_stock_quantity(
            size,
            serializer.validated_data["quantity"],
            admin_name=serializer.validated_data["admin_name"],
            request_id=get_request_id(request),
        )
        return Response(ItemSizeSerializer(size).data)


class AdjustStockQuantityView(APIView):
    def patch(self, request, size_id):
        size = _stock_row(size_id)
        serializer = AdjustQuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        size = adjust_stock_quantity(
            size,
            serializer.validated_data["adjustment"],
            admin_name=serializer.validated_data["admin_name"],
            reason=serializer.validated_data["reason"],
            request_id=get_request_id(request),
        )
        return Response(ItemSizeSerializer(size).data)


class MovementViewSet(
    mixins.CreateModelMixin,
    mixins.RetrieveModelMixin,
    mixins.ListModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """Shared create/list/delete and line maintenance for stock movements."""

    movement_kind = ""
    date_field = ""
    location_fields = ("location_id",)

    def get_queryset(self):
        qs = super().get_queryset().prefetch_related("items")
        params = self.request.query_params
        location_id = parse_uuid_param(params, "location_id")
        if location_id:
            location_filter = Q()
            for field in self.location_fields:
                location_filter |= Q(**{field: location_id})
            qs = qs.filter(location_filter)
        date_from, date_to = parse_date_range(params)
        if date_from:
            qs = qs.filter(**{f"{self.date_field}__gte": date_from})
        if date_to:
            qs = qs.filter(**{f"{self.date_field}__lte": date_to})
        return qs.order_by(f"-{self.date_field}", "-created_at")

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        header = record_movement(
            self.movement_kind,
            serializer.header_fields(),
            serializer.lines(),
            request_id=get_request_id(request),
        )
        return Response(self.get_serializer(header).data, status=status.HTTP_201_CREATED)

    def perform_destroy(self, instance):
        delete_movement(self.movement_kind, instance, request_id=get_request_id(self.request))

    def _line(self, header, line_id):
        kind = get_movement_kind(self.movement_kind)
        line = kind.lines(header).filter(pk=line_id).first()
        if line is None:
            raise NotFound("Line item not found.")
        return line

    @action(detail=True, methods=["patch", "delete"], url_path=r"items/(?P<line_id>[0-9a-fA-F-]+)")
    def line(self, request, pk=None, line_id=None):
        header = self.get_object()
        line = self._line(header, line_id)
        if request.method == "DELETE":
            delete_line(self.movement_kind, line, request_id=get_request_id(request))
            return Response(status=status.HTTP_204_NO_CONTENT)

        serializer = LineQuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        update_line_quantity(self.movement_kind, line, serializer.validated_data["value"], request_id=get_request_id(request))
        header.refresh_from_db()
        return Response(self.get_serializer(header).data)


class CheckoutViewSet(MovementViewSet):
    queryset = Checkout.objects.select_related("location")
    serializer_class = CheckoutSerializer
    movement_kind = "checkout"
    date_field = "checkout_date"


class AdditionViewSet(MovementViewSet):
    queryset = InventoryAddition.objects.select_related("location")
    serializer_class = AdditionSerializer
    movement_kind = "addition"
    date_field = "addition_date"


class TransferViewSet(MovementViewSet):
    queryset = InventoryTransfer.objects.select_related("from_location", "to_location")
    serializer_class = TransferSerializer
    movement_kind = "transfer"
    date_field = "transfer_date"
    location_fields = ("from_location_id", "to_location_id")


class AdjustmentViewSet(MovementViewSet):
    queryset = InventoryAdjustment.objects.select_related("location")
    serializer_class = AdjustmentSerializer
    movement_kind = "adjustment"
    date_field = "adjustment_date"

