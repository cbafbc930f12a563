import calendar
import csv
from collections import OrderedDict
from datetime import date
from decimal import Decimal

from django.db.models import Count, F, IntegerField, Max, Q, Sum
from django.db.models.functions import Abs, Coalesce
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from common.cache import cached_report
from common.utils import parse_date_range, parse_uuid_param
from core.models import Location
from inventory.models import (
    Checkout,
    CheckoutItem,
    InventoryAdditionItem,
    InventoryAdjustmentItem,
    InventoryTransferItem,
    Item,
    ItemSize,
)
from volunteers.models import VolunteerSession

ZERO_HOURS = Decimal("0.00")


def stock_status(quantity, min_level):
    if quantity <= min_level:
        return "LOW"
    if quantity > min_level * 2:
        return "HIGH"
    return "OK"


def _month_bounds(raw):
    """``YYYY-MM`` to the first and last day of that month; default is the current month."""
    if not raw:
        today = timezone.localdate()
        raw = f"{today.year}-{today.month}"
    try:
        year_text, month_text = raw.split("-")
        year, month = int(year_text), int(month_text)
        # monthrange and date() raise ValueError for out-of-range months and years.
        last_day = calendar.monthrange(year, month)[1]
        return date(year, month, 1), date(year, month, last_day)
    except ValueError:
        raise ValidationError({"month": "Month must be in YYYY-MM format."})


class BaseReportView(APIView):
    """A report is a cached payload that can also be downloaded as CSV."""

    report_key = ""

    def _parse_limit(self, request, default=10, minimum=1, maximum=1000):
        raw_limit = request.query_params.get("limit")
        if raw_limit is None:
            return default

        try:
            limit = int(raw_limit)
        except (TypeError, ValueError):
            raise ValidationError({"limit": f"Limit must be an integer between {minimum} and {maximum}."})

        if not minimum <= limit <= maximum:
            raise ValidationError({"limit": f"Limit must be between {minimum} and {maximum}."})
        return limit

    def _csv_response(self, filename, rows):
        response = HttpResponse(content_type="text/csv")
        response["Content-Disposition"] = f'attachment; filename="{filename}"'

        if not rows:
            return response

        writer = csv.DictWriter(response, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
        return response

    def build(self, request):
        raise NotImplementedError

    def csv_rows(self, payload):
        return payload

    def payload(self, request):
        return cached_report(request, self.report_key, lambda: self.build(request))

    def csv_export(self, request):
        return self._csv_response(f"{self.report_key}.csv", self.csv_rows(self.payload(request)))

    def get(self, request, **kwargs):
        if request.query_params.get("format") == "csv":
            return self.csv_export(request)
        payload = self.payload(request)
        if isinstance(payload, list):
            return Response({"results": payload})
        return Response(payload)


class CurrentInventoryReportView(BaseReportView):
    report_key = "current-inventory"

    def build(self, request):
        qs = ItemSize.objects.filter(location__is_active=True).select_related("item", "location")
        location_id = parse_uuid_param(request.query_params, "location_id")
        if location_id:
            qs = qs.filter(location_id=location_id)
        rows = []
        for row in qs.order_by("item__name", "location__name", "sort_order", "size_label"):
            rows.append(
                {
                    "size_id": str(row.id),
                    "item_id": str(row.item_id),
                    "item_name": row.item.name,
                    "size_label": row.size_label,
                    "location_id": str(row.location_id),
                    "location_name": row.location.name,
                    "current_quantity": row.current_quantity,
                    "min_stock_level": row.min_stock_level,
                    "unit_type": row.item.unit_type,
                    "storage_location": row.item.storage_location,
                    "stock_status": stock_status(row.current_quantity, row.min_stock_level),
                }
            )
        return rows


class LowStockReportView(BaseReportView):
    report_key = "low-stock"

    def build(self, request):
        qs = (
            ItemSize.objects.filter(location__is_active=True, current_quantity__lte=F("min_stock_level"))
            .select_related("item", "location")
            .annotate(shortfall=F("min_stock_level") - F("current_quantity"))
        )
        location_id = parse_uuid_param(request.query_params, "location_id")
        if location_id:
            qs = qs.filter(location_id=location_id)
        return [
            {
                "size_id": str(row.id),
                "item_id": str(row.item_id),
                "item_name": row.item.name,
                "size_label": row.size_label,
                "location_name": row.location.name,
                "current_quantity": row.current_quantity,
                "min_stock_level": row.min_stock_level,
                "needed_quantity": row.min_stock_level * 2 - row.current_quantity,
                "unit_type": row.item.unit_type,
            }
            for row in qs.order_by("-shortfall", "item__name", "size_label")
        ]


class CheckoutsReportView(BaseReportView):
    report_key = "checkouts"

    def build(self, request):
        params = request.query_params
        date_from, date_to = parse_date_range(params)
        qs = Checkout.objects.select_related("location").annotate(line_count=Count("items"))
        location_id = parse_uuid_param(params, "location_id")
        if location_id:
            qs = qs.filter(location_id=location_id)
        if date_from:
            qs = qs.filter(checkout_date__gte=date_from)
        if date_to:
            qs = qs.filter(checkout_date__lte=date_to)
        return [
            {
                "checkout_id": str(checkout.id),
                "checkout_date": checkout.checkout_date.isoformat(),
                "location_name": checkout.location.name,
                "case_worker": checkout.actor_name,
                "department": checkout.department,
                "case_number": checkout.case_number,
                "number_of_children": checkout.number_of_children,
                "total_items": checkout.total_items,
                "line_count": checkout.line_count,
            }
            for checkout in qs.order_by("-checkout_date", "-created_at")
        ]


class PopularItemsReportView(BaseReportView):
    report_key = "popular-items"

    def build(self, request):
        params = request.query_params
        date_from, date_to = parse_date_range(params)
        limit = self._parse_limit(request)
        qs = CheckoutItem.objects.all()
        location_id = parse_uuid_param(params, "location_id")
        if location_id:
            qs = qs.filter(checkout__location_id=location_id)
        if date_from:
            qs = qs.filter(checkout__checkout_date__gte=date_from)
        if date_to:
            qs = qs.filter(checkout__checkout_date__lte=date_to)
        rows = (
            qs.values("item_id", "item__name", "size_label")
            .annotate(
                times_checked_out=Count("checkout", distinct=True),
                total_quantity=Sum("quantity"),
                last_checkout=Max("checkout__checkout_date"),
            )
            .order_by("-times_checked_out", "-total_quantity", "item__name")[:limit]
        )
        return [
            {
                "item_id": str(row["item_id"]),
                "item_name": row["item__name"],
                "size_label": row["size_label"],
                "times_checked_out": row["times_checked_out"],
                "total_quantity": row["total_quantity"],
                "last_checkout": row["last_checkout"].isoformat(),
            }
            for row in rows
        ]


def _filtered_sessions(params):
    date_from, date_to = parse_date_range(params)
    qs = VolunteerSession.objects.all()
    location_id = parse_uuid_param(params, "location_id")
    if location_id:
        qs = qs.filter(location_id=location_id)
    if date_from:
        qs = qs.filter(session_date__gte=date_from)
    if date_to:
        qs = qs.filter(session_date__lte=date_to)
    return qs


class VolunteerHoursReportView(BaseReportView):
    report_key = "volunteer-hours"

    def build(self, request):
        rows = (
            _filtered_sessions(request.query_params)
            .values("volunteer_name", "location__name")
            .annotate(
                sessions=Count("id"),
                total_hours=Coalesce(Sum("hours_worked"), ZERO_HOURS),
                last_session=Max("session_date"),
            )
            .order_by("-total_hours", "volunteer_name")
        )
        return [
            {
                "volunteer_name": row["volunteer_name"],
                "location_name": row["location__name"],
                "sessions": row["sessions"],
                "total_hours": row["total_hours"],
                "last_session": row["last_session"].isoformat(),
            }
            for row in rows
        ]


class DailyVolunteersReportView(BaseReportView):
    report_key = "daily-volunteers"

    def build(self, request):
        rows = (
            _filtered_sessions(request.query_params)
            .values("session_date", "location__name")
            .annotate(
                volunteer_count=Count("volunteer_name", distinct=True),
                total_hours=Coalesce(Sum("hours_worked"), ZERO_HOURS),
            )
            .order_by("-session_date", "location__name")
        )
        return [
            {
                "session_date": row["session_date"].isoformat(),
                "location_name": row["location__name"],
                "volunteer_count": row["volunteer_count"],
                "total_hours": row["total_hours"],
            }
            for row in rows
        ]


class ItemMasterReportView(BaseReportView):
    report_key = "item-master"

    def build(self, request):
        active = Q(sizes__location__is_active=True)
        items = Item.objects.annotate(
            total_quantity=Coalesce(Sum("sizes__current_quantity", filter=active), 0, output_field=IntegerField()),
            size_count=Count("sizes__size_label", distinct=True),
            location_count=Count("sizes__location", filter=active, distinct=True),
        )
        return [
            {
                "item_id": str(item.id),
                "name": item.name,
                "description": item.description,
                "qr_code": item.qr_code,
                "has_sizes": item.has_sizes,
                "unit_type": item.unit_type,
                "storage_location": item.storage_location,
                "min_stock_level": item.min_stock_level,
                "total_quantity": item.total_quantity,
                "size_count": item.size_count,
                "location_count": item.location_count,
            }
            for item in items.order_by("name")
        ]


class MonthlySummaryReportView(BaseReportView):
    report_key = "monthly-summary"

    def build(self, request):
        start, end = _month_bounds(request.query_params.get("month"))
        in_month = {"checkout__checkout_date__range": (start, end)}
        checkout_lines = CheckoutItem.objects.filter(**in_month)
        sessions = VolunteerSession.objects.filter(session_date__range=(start, end))
        volunteer_totals = sessions.aggregate(
            hours=Coalesce(Sum("hours_worked"), ZERO_HOURS),
            volunteers=Count("volunteer_name", distinct=True),
        )

        activity = list(
            Location.objects.filter(is_active=True)
            .annotate(checkout_count=Count("checkouts", filter=Q(checkouts__checkout_date__range=(start, end))))
            .values("name", "checkout_count")
        )
        ranked = sorted(activity, key=lambda row: (-row["checkout_count"], row["name"]))
        most_active = ranked[0] if ranked else None
        least_active = min(activity, key=lambda row: (row["checkout_count"], row["name"]), default=None)

        top_items = (
            checkout_lines.values("item__name", "size_label")
            .annotate(total_quantity=Sum("quantity"))
            .order_by("-total_quantity", "item__name")[:10]
        )
        return OrderedDict(
            month=start.strftime("%Y-%m"),
            total_items_distributed=checkout_lines.aggregate(total=Coalesce(Sum("quantity"), 0))["total"],
            total_checkouts=Checkout.objects.filter(checkout_date__range=(start, end)).count(),
            new_items_added=InventoryAdditionItem.objects.filter(addition__addition_date__range=(start, end)).aggregate(
                total=Coalesce(Sum("quantity"), 0)
            )["total"],
            total_volunteer_hours=volunteer_totals["hours"],
            unique_volunteers=volunteer_totals["volunteers"],
            most_active_location=most_active["name"] if most_active else "N/A",
            least_active_location=least_active["name"] if least_active else "N/A",
            top_items=[
                {"item_name": row["item__name"], "size_label": row["size_label"], "total_quantity": row["total_quantity"]}
                for row in top_items
            ],
        )

    def csv_rows(self, payload):
        return [{"metric": key, "value": value} for key, value in payload.items() if key != "top_items"]


MOVEMENT_COLUMNS = (
    "additions",
    "checkouts",
    "transfers_in",
    "transfers_out",
    "manual_additions",
    "manual_subtractions",
)


class MonthlyMovementsReportView(BaseReportView):
    report_key = "monthly-movements"

    def build(self, request):
        start, end = _month_bounds(request.query_params.get("month"))
        sources = (
            ("additions", InventoryAdditionItem.objects.filter(addition__addition_date__range=(start, end)), "addition__location", "quantity"),
            ("checkouts", CheckoutItem.objects.filter(checkout__checkout_date__range=(start, end)), "checkout__location", "quantity"),
            ("transfers_out", InventoryTransferItem.objects.filter(transfer__transfer_date__range=(start, end)), "transfer__from_location", "quantity"),
            ("transfers_in", InventoryTransferItem.objects.filter(transfer__transfer_date__range=(start, end)), "transfer__to_location", "quantity"),
            (
                "manual_additions",
                InventoryAdjustmentItem.objects.filter(adjustment__adjustment_date__range=(start, end), quantity_adjustment__gt=0),
                "adjustment__location",
                "quantity_adjustment",
            ),
            (
                "manual_subtractions",
                InventoryAdjustmentItem.objects.filter(adjustment__adjustment_date__range=(start, end), quantity_adjustment__lt=0),
                "adjustment__location",
                "quantity_adjustment",
            ),
        )

        movements = {}
        for column, qs, location_path, quantity_field in sources:
            grouped = qs.values("item_id", "item__name", "size_label", f"{location_path}_id", f"{location_path}__name").annotate(
                total=Sum(Abs(quantity_field)),
                count=Count("id"),
            )
            for row in grouped:
                key = (row["item_id"], row["size_label"], row[f"{location_path}_id"])
                entry = movements.get(key)
                if entry is None:
                    entry = OrderedDict(
                        item_id=str(row["item_id"]),
                        item_name=row["item__name"],
                        size_label=row["size_label"],
                        location_name=row[f"{location_path}__name"],
                    )
                    for name in MOVEMENT_COLUMNS:
                        entry[name] = 0
                        entry[f"{name}_count"] = 0
                    movements[key] = entry
                entry[column] += row["total"]
                entry[f"{column}_count"] += row["count"]

        rows = []
        for entry in movements.values():
            entry["net_change"] = (
                entry["additions"]
                - entry["checkouts"]
                + entry["transfers_in"]
                - entry["transfers_out"]
                + entry["manual_additions"]
                - entry["manual_subtractions"]
            )
            rows.append(entry)
        rows.sort(key=lambda row: (row["item_name"], row["size_label"], row["location_name"]))
        return rows


class TransactionHistoryReportView(BaseReportView):
    report_key = "transaction-history"

    def build(self, request):
        item = get_object_or_404(Item, pk=self.kwargs["item_id"])
        params = request.query_params
        date_from, date_to = parse_date_range(params)
        location_id = parse_uuid_param(params, "location_id")

        def entry(kind, when, created_at, location, size_label, quantity, reference_id, actor, notes=""):
            return {
                "transaction_type": kind,
                "date": when,
                "created_at": created_at,
                "location_id": str(location.id),
                "location_name": location.name,
                "size_label": size_label,
                "quantity": quantity,
                "reference_id": str(reference_id),
                "actor": actor,
                "notes": notes,
            }

        history = []
        for line in item.checkout_items.select_related("checkout__location"):
            header = line.checkout
            history.append(
                entry("CHECKOUT", header.checkout_date, line.created_at, header.location, line.size_label, -line.quantity, header.id, header.actor_name, header.department)
            )
        for line in item.addition_items.select_related("addition__location"):
            header = line.addition
            history.append(
                entry("ADDITION", header.addition_date, line.created_at, header.location, line.size_label, line.quantity, header.id, header.volunteer_name, header.source)
            )
        for line in item.transfer_items.select_related("transfer__from_location", "transfer__to_location"):
            header = line.transfer
            history.append(
                entry("TRANSFER_OUT", header.transfer_date, line.created_at, header.from_location, line.size_label, -line.quantity, header.id, header.volunteer_name, header.reason)
            )
            history.append(
                entry("TRANSFER_IN", header.transfer_date, line.created_at, header.to_location, line.size_label, line.quantity, header.id, header.volunteer_name, header.reason)
            )
        for line in item.adjustment_items.select_related("adjustment__location"):
            header = line.adjustment
            history.append(
                entry(
                    "MANUAL_ADJUSTMENT",
                    header.adjustment_date,
                    line.created_at,
                    header.location,
                    line.size_label,
                    line.quantity_adjustment,
                    header.id,
                    header.admin_name,
                    header.notes or header.reason,
                )
            )

        if location_id:
            history = [row for row in history if row["location_id"] == str(location_id)]
        if date_from:
            history = [row for row in history if row["date"] >= date_from]
        if date_to:
            history = [row for row in history if row["date"] <= date_to]
        history.sort(key=lambda row: (row["date"], row["created_at"]), reverse=True)
        for row in history:
            row["date"] = row["date"].isoformat()
            row["created_at"] = row["created_at"].isoformat()
        return history


REPORT_VIEWS = OrderedDict(
    (view.report_key, view)
    for view in (
        CurrentInventoryReportView,
        LowStockReportView,
        CheckoutsReportView,
        PopularItemsReportView,
        VolunteerHoursReportView,
        DailyVolunteersReportView,
        ItemMasterReportView,
        MonthlySummaryReportView,
        MonthlyMovementsReportView,
    )
)


class ReportExportView(APIView):
    def get(self, request, report_type):
        view_class = REPORT_VIEWS.get(report_type)
        if view_class is None:
            raise ValidationError({"report_type": f"Unknown report type '{report_type}'. Choose one of: {', '.join(REPORT_VIEWS)}."})
        view = view_class()
        view.request = request
        view.kwargs = {}
        return view.csv_export(request)
