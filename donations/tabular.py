"""CSV/XLSX import and CSV/XLSX/TXT export of donated items."""

from __future__ import annotations

import csv
import io
import logging
import os
import zipfile
from collections import OrderedDict
from datetime import date, datetime

from django.db import IntegrityError, transaction
from django.utils import timezone
from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from rest_framework.exceptions import ValidationError

from common.audit import create_audit_log
from donations.models import Category, DonatedItem
from donations.serializers import DonatedItemImportSerializer
from donations.services import create_donated_item, get_or_create_category, get_or_create_size

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = (
    "itemId",
    "categoryId",
    "categoryName",
    "sizeName",
    "condition",
    "location",
    "receivedDate",
    "donorInfo",
    "approxPrice",
    "isActive",
)

CATEGORY_COLUMNS = ("id", "name", "description", "low_stock_threshold", "qr_code_value", "created_at", "updated_at")

EXPORT_FORMATS = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "txt": "text/plain",
}


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def _csv_records(upload) -> list[list[str]]:
    try:
        text = upload.read().decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ValidationError({"file": "CSV import files must be UTF-8 encoded."}) from exc
    try:
        return [row for row in csv.reader(io.StringIO(text))]
    except csv.Error as exc:
        raise ValidationError({"file": f"CSV parsing error: {exc}"}) from exc


def _xlsx_records(upload) -> list[list[str]]:
    try:
        workbook = load_workbook(filename=io.BytesIO(upload.read()), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise ValidationError({"file": "The spreadsheet could not be read."}) from exc
    try:
        sheet = workbook.worksheets[0]
        return [[_cell_text(cell) for cell in row] for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def read_import_rows(upload) -> list[dict[str, str]]:
    """Return one dict per non-empty data row, keyed by the header row."""
    if upload is None:
        raise ValidationError({"file": "No file uploaded. Please upload a CSV file."})

    _, ext = os.path.splitext(upload.name or "")
    records = _xlsx_records(upload) if ext.lower() == ".xlsx" else _csv_records(upload)
    records = [record for record in records if any(cell.strip() for cell in record)]
    if not records:
        raise ValidationError({"file": "The file contains no data."})

    header = [cell.strip() for cell in records[0]]
    rows = []
    for position, record in enumerate(records[1:], start=2):
        # Trailing empty spreadsheet cells are not a shape error.
        while len(record) > len(header) and not record[-1].strip():
            record = record[:-1]
        if len(record) != len(header):
            raise ValidationError(
                {"file": f"CSV parsing error: line {position} has {len(record)} fields, expected {len(header)}."}
            )
        rows.append(dict(zip(header, record)))

    if not rows:
        raise ValidationError({"file": "The file contains no data."})
    return rows


def _row_errors(row_number, detail) -> list[str]:
    messages = []
    if isinstance(detail, dict):
        for field, field_errors in detail.items():
            for message in field_errors if isinstance(field_errors, list) else [field_errors]:
                messages.append(f"[Row {row_number}] {field}: {message}")
    else:
        for message in detail if isinstance(detail, list) else [detail]:
            messages.append(f"[Row {row_number}] {message}")
    return messages


def import_donated_items(rows, *, request_id=None) -> dict:
    """Create one donated item per valid row; each row commits on its own."""
    results = {"successCount": 0, "errorCount": 0, "errors": []}

    for index, row in enumerate(rows):
        row_number = index + 2
        serializer = DonatedItemImportSerializer(data=row)
        if not serializer.is_valid():
            results["errorCount"] += 1
            results["errors"].extend(_row_errors(row_number, serializer.errors))
            continue

        data = serializer.validated_data
        try:
            with transaction.atomic():
                category = get_or_create_category(data["categoryName"])
                size = get_or_create_size(data["sizeName"]) if data.get("sizeName") else None
                create_donated_item(
                    category=category,
                    size=size,
                    condition=data["condition"],
                    location=data["location"],
                    received_date=data["receivedDate"],
                    donor_info=data.get("donorInfo", ""),
                    approx_price=data.get("approxPrice"),
                    is_active=data["isActive"],
                )
        except IntegrityError as exc:
            results["errorCount"] += 1
            results["errors"].append(f"[Row {row_number}] {exc}")
            continue
        results["successCount"] += 1

    create_audit_log(
        action="donated_item.import",
        entity="donated_item",
        after_snapshot={"successCount": results["successCount"], "errorCount": results["errorCount"]},
        request_id=request_id,
    )
    logger.info(
        "Imported %s donated items with %s errors",
        results["successCount"],
        results["errorCount"],
        extra={"entity": "donated_item", "total_items": results["successCount"]},
    )
    return results


def export_rows() -> list[OrderedDict]:
    items = DonatedItem.objects.select_related("category", "size", "location").order_by("category__name", "-received_date")
    return [
        OrderedDict(
            itemId=str(item.id),
            categoryId=str(item.category_id),
            categoryName=item.category.name,
            sizeName=item.size.name if item.size else "None",
            condition=item.condition,
            location=item.location.name,
            receivedDate=item.received_date.isoformat(),
            donorInfo=item.donor_info,
            approxPrice="" if item.approx_price is None else str(item.approx_price),
            isActive="Yes" if item.is_active else "No",
        )
        for item in items
    ]


def _category_rows() -> list[list]:
    return [
        [
            str(category.id),
            category.name,
            category.description,
            category.low_stock_threshold,
            category.qr_code_value,
            category.created_at.isoformat(),
            category.updated_at.isoformat(),
        ]
        for category in Category.objects.order_by("name")
    ]


def _render_csv(rows) -> bytes:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    writer.writerows(rows)
    return output.getvalue().encode("utf-8")


def _render_txt(rows) -> bytes:
    lines = ["\t".join(EXPORT_COLUMNS)]
    lines.extend("\t".join(row[column] for column in EXPORT_COLUMNS) for row in rows)
    return "\n".join(lines).encode("utf-8")


def _render_xlsx(rows) -> bytes:
    workbook = Workbook()
    inventory_sheet = workbook.active
    inventory_sheet.title = "Inventory"
    inventory_sheet.append(list(EXPORT_COLUMNS))
    for row in rows:
        inventory_sheet.append([row[column] for column in EXPORT_COLUMNS])

    categories_sheet = workbook.create_sheet("Categories")
    categories_sheet.append(list(CATEGORY_COLUMNS))
    for row in _category_rows():
        categories_sheet.append(row)

    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()


RENDERERS = {"csv": _render_csv, "xlsx": _render_xlsx, "txt": _render_txt}


def render_export(export_format):
    """Return ``(content, content_type, filename)`` for one of csv, xlsx or txt."""
    if export_format not in EXPORT_FORMATS:
        raise ValidationError({"format": "Format must be one of: csv, xlsx, txt."})
    content = RENDERERS[export_format](export_rows())
    stamp = timezone.now().strftime("%Y-%m-%dT%H-%M-%S-%f")
    return content, EXPORT_FORMATS[export_format], f"inventory-export-{stamp}.{export_format}"
