import logging
from collections import OrderedDict

from django.db import transaction
from django.db.models import F, Sum
from django.db.models.functions import Abs, Coalesce
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from common.audit import create_audit_log
from common.cache import invalidate_reports
from common.exceptions import InsufficientStockError
from core.models import Location
from inventory.models import (
    NO_SIZE_LABEL,
    Checkout,
    CheckoutItem,
    InventoryAddition,
    InventoryAdditionItem,
    InventoryAdjustment,
    InventoryAdjustmentItem,
    InventoryTransfer,
    InventoryTransferItem,
    Item,
    ItemSize,
)

logger = logging.getLogger(__name__)


class MovementKind:
    """How one header type writes stock.

    Subclasses describe which stock rows a line touches and by how much;
    everything else (locking, the non-negative check, total recomputation,
    audit) is shared.
    """

    name = ""
    header_model = None
    line_model = None
    header_field = ""
    quantity_field = "quantity"
    allows_negative = False

    def header_location_id(self, header):
        return header.location_id

    def total_expression(self):
        return F(self.quantity_field)

    def validate_quantity(self, quantity, index=None):
        field = f"items[{index}].{self.quantity_field}" if index is not None else self.quantity_field
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError({field: "Quantity must be a whole number."})
        if self.allows_negative:
            if quantity == 0:
                raise ValidationError({field: "Adjustment must be non-zero."})
        elif quantity <= 0:
            raise ValidationError({field: "Quantity must be greater than zero."})

    def deltas(self, line, quantity=None):
        raise NotImplementedError

    def line_quantity(self, line):
        return getattr(line, self.quantity_field)

    def lines(self, header):
        return self.line_model.objects.filter(**{self.header_field: header})


class CheckoutKind(MovementKind):
    name = "checkout"
    header_model = Checkout
    line_model = CheckoutItem
    header_field = "checkout"

    def deltas(self, line, quantity=None):
        quantity = line.quantity if quantity is None else quantity
        return [(line.size_id, -quantity)]


class AdditionKind(MovementKind):
    name = "addition"
    header_model = InventoryAddition
    line_model = InventoryAdditionItem
    header_field = "addition"

    def deltas(self, line, quantity=None):
        quantity = line.quantity if quantity is None else quantity
        return [(line.size_id, quantity)]


class TransferKind(MovementKind):
    name = "transfer"
    header_model = InventoryTransfer
    line_model = InventoryTransferItem
    header_field = "transfer"

    def header_location_id(self, header):
        return header.from_location_id

    def deltas(self, line, quantity=None):
        quantity = line.quantity if quantity is None else quantity
        return [(line.size_id, -quantity), (line.destination_size_id, quantity)]


class AdjustmentKind(MovementKind):
    name = "adjustment"
    header_model = InventoryAdjustment
    line_model = InventoryAdjustmentItem
    header_field = "adjustment"
    quantity_field = "quantity_adjustment"
    allows_negative = True

    def total_expression(self):
        return Abs(F(self.quantity_field))

    def deltas(self, line, quantity=None):
        quantity = line.quantity_adjustment if quantity is None else quantity
        return [(line.size_id, quantity)]


MOVEMENT_KINDS = {
    kind.name: kind
    for kind in (CheckoutKind(), AdditionKind(), TransferKind(), AdjustmentKind())
}


def get_movement_kind(name):
    return MOVEMENT_KINDS[name]


# -- items and stock rows ----------------------------------------------------


def normalize_size_labels(sizes):
    labels = []
    seen = set()
    for raw in sizes or []:
        label = str(raw).strip()
        if not label:
            continue
        key = label.lower()
        if key in seen:
            raise ValidationError({"sizes": f"Duplicate size '{label}'."})
        seen.add(key)
        labels.append(label)
    return labels


def item_size_labels(item):
    """Size labels of an item in display order, as defined by its stock rows."""
    ordered = OrderedDict()
    for label, sort_order in item.sizes.order_by("sort_order", "size_label").values_list("size_label", "sort_order"):
        ordered.setdefault(label, sort_order)
    return ordered


@transaction.atomic
def create_item(*, sizes=None, **fields):
    """Create an item plus a zero-quantity stock row per active location and size."""
    item = Item.objects.create(**fields)
    labels = normalize_size_labels(sizes) if item.has_sizes else []
    if item.has_sizes and not labels:
        raise ValidationError({"sizes": "At least one size is required when has_sizes is true."})
    if not labels:
        labels = [NO_SIZE_LABEL]

    rows = [
        ItemSize(
            item=item,
            location=location,
            size_label=label,
            current_quantity=0,
            min_stock_level=item.min_stock_level,
            sort_order=index,
        )
        for location in Location.objects.filter(is_active=True)
        for index, label in enumerate(labels)
    ]
    ItemSize.objects.bulk_create(rows)
    transaction.on_commit(invalidate_reports)
    logger.info("Item created with %s stock rows", len(rows), extra={"entity": "item", "entity_id": str(item.id)})
    return item


def sync_item_min_stock_level(item):
    ItemSize.objects.filter(item=item).update(min_stock_level=item.min_stock_level, updated_at=timezone.now())


def provision_location_stock_rows(location):
    """Give ``location`` a zero-quantity row for every known item/size label."""
    existing = set(ItemSize.objects.filter(location=location).values_list("item_id", "size_label"))
    rows = []
    for item in Item.objects.all():
        for label, sort_order in item_size_labels(item).items():
            if (item.id, label) in existing:
                continue
            rows.append(
                ItemSize(
                    item=item,
                    location=location,
                    size_label=label,
                    current_quantity=0,
                    min_stock_level=item.min_stock_level,
                    sort_order=sort_order,
                )
            )
    if rows:
        ItemSize.objects.bulk_create(rows)
    return len(rows)


def _destination_row(source_row, to_location_id):
    row, created = ItemSize.objects.get_or_create(
        item_id=source_row.item_id,
        location_id=to_location_id,
        size_label=source_row.size_label,
        defaults={
            "current_quantity": 0,
            "min_stock_level": source_row.min_stock_level,
            "sort_order": source_row.sort_order,
        },
    )
    if created:
        logger.info(
            "Created destination stock row for transfer",
            extra={"entity": "item_size", "entity_id": str(row.id), "location_id": str(to_location_id)},
        )
    return row


# -- stock locking and mutation ----------------------------------------------


def _lock_rows(row_ids):
    # Fixed lock order keeps concurrent multi-row writers from deadlocking.
    locked = ItemSize.objects.select_for_update(of=("self",)).select_related("item", "location").filter(pk__in=set(row_ids)).order_by("pk")
    return {row.pk: row for row in locked}


def _shortage(row, requested, available):
    return {
        "item_id": str(row.item_id),
        "item_name": row.item.name,
        "size_id": str(row.pk),
        "size_label": row.size_label,
        "location": row.location.name,
        "requested": requested,
        "available": available,
    }


def _write_quantities(rows, quantities):
    now = timezone.now()
    for row_id, quantity in quantities.items():
        row = rows[row_id]
        if row.current_quantity != quantity:
            ItemSize.objects.filter(pk=row_id).update(current_quantity=quantity, updated_at=now)
            row.current_quantity = quantity


def apply_stock_changes(changes):
    """Apply ``[(row_id, delta), ...]`` in order on locked rows.

    Each change is checked against the running quantity of its row; a change
    that would go negative is skipped and reported. If anything was reported
    the caller's transaction must not commit.
    """
    rows = _lock_rows(row_id for row_id, _ in changes)
    quantities = {row_id: row.current_quantity for row_id, row in rows.items()}
    shortages = []
    for row_id, delta in changes:
        if row_id not in rows:
            raise ValidationError({"size_id": f"Stock row {row_id} does not exist."})
        new_quantity = quantities[row_id] + delta
        if new_quantity < 0:
            shortages.append(_shortage(rows[row_id], -delta, quantities[row_id]))
            continue
        quantities[row_id] = new_quantity
    if not shortages:
        _write_quantities(rows, quantities)
    return shortages


def recompute_total(kind, header):
    total = kind.lines(header).aggregate(total=Coalesce(Sum(kind.total_expression()), 0))["total"]
    kind.header_model.objects.filter(pk=header.pk).update(total_items=total)
    header.total_items = total
    return total


def _raise_shortages(kind, header, shortages):
    logger.warning(
        "Rejected %s: insufficient stock",
        kind.name,
        extra={"entity": kind.name, "entity_id": str(header.pk), "shortages": shortages},
    )
    raise InsufficientStockError(shortages)


def _audit(kind, header, action, *, request_id=None, before=None, after=None):
    create_audit_log(
        action=f"{kind.name}.{action}",
        entity=kind.name,
        entity_id=header.pk,
        actor_name=header.actor_name,
        location_id=kind.header_location_id(header),
        before_snapshot=before,
        after_snapshot=after,
        request_id=request_id,
    )


def _validate_line(kind, header_location_id, index, line):
    item = line["item"]
    size = line["size"]
    kind.validate_quantity(line[kind.quantity_field], index)
    if size.item_id != item.id:
        raise ValidationError({f"items[{index}].size_id": f"Size does not belong to item '{item.name}'."})
    if size.location_id != header_location_id:
        raise ValidationError({f"items[{index}].size_id": "Size is not stocked at the selected location."})


def _line_snapshot(kind, line):
    return {
        "item_id": str(line.item_id),
        "size_id": str(line.size_id),
        "item_name": line.item_name,
        "size_label": line.size_label,
        kind.quantity_field: kind.line_quantity(line),
    }


def record_movement(kind_name, header_fields, lines, *, request_id=None):
    """Insert a header and its lines, moving stock, as one unit of work.

    ``lines`` is a list of ``{"item": Item, "size": ItemSize, <quantity>: int}``
    in caller order. Validation happens before anything is written; stock
    shortfalls roll the whole unit back and raise ``InsufficientStockError``.
    """
    kind = get_movement_kind(kind_name)
    if not lines:
        raise ValidationError({"items": "At least one item is required."})

    probe = kind.header_model(**header_fields)
    location_id = kind.header_location_id(probe)
    if kind.name == "transfer" and probe.from_location_id == probe.to_location_id:
        raise ValidationError({"to_location": "Destination must differ from source location."})
    for index, line in enumerate(lines):
        _validate_line(kind, location_id, index, line)

    with transaction.atomic():
        header = kind.header_model.objects.create(**header_fields)
        created_lines = []
        for line in lines:
            item = line["item"]
            size = line["size"]
            values = {
                kind.header_field: header,
                "item": item,
                "size": size,
                kind.quantity_field: line[kind.quantity_field],
                "item_name": item.name,
                "size_label": size.size_label,
            }
            if kind.name == "transfer":
                values["destination_size"] = _destination_row(size, header.to_location_id)
            created_lines.append(kind.line_model(**values))

        changes = [change for line in created_lines for change in kind.deltas(line)]
        shortages = apply_stock_changes(changes)
        if shortages:
            _raise_shortages(kind, header, shortages)

        for line in created_lines:
            line.save()
        recompute_total(kind, header)
        _audit(
            kind,
            header,
            "create",
            request_id=request_id,
            after={"total_items": header.total_items, "items": [_line_snapshot(kind, line) for line in created_lines]},
        )
        transaction.on_commit(invalidate_reports)

    logger.info(
        "Recorded %s",
        kind.name,
        extra={"entity": kind.name, "entity_id": str(header.pk), "location_id": str(location_id), "total_items": header.total_items},
    )
    return header


def create_checkout(header_fields, lines, *, request_id=None):
    return record_movement("checkout", header_fields, lines, request_id=request_id)


def create_addition(header_fields, lines, *, request_id=None):
    return record_movement("addition", header_fields, lines, request_id=request_id)


def create_transfer(header_fields, lines, *, request_id=None):
    return record_movement("transfer", header_fields, lines, request_id=request_id)


def create_adjustment(header_fields, lines, *, request_id=None):
    return record_movement("adjustment", header_fields, lines, request_id=request_id)


def _lock_header(kind, header):
    return kind.header_model.objects.select_for_update().get(pk=header.pk)


def _lock_line(kind, line):
    locked = kind.line_model.objects.select_for_update().filter(pk=line.pk).first()
    if locked is None:
        raise NotFound("Line item not found.")
    return locked


def update_line_quantity(kind_name, line, quantity, *, request_id=None):
    """Change a line's quantity, moving stock by the difference from its locked value."""
    kind = get_movement_kind(kind_name)
    kind.validate_quantity(quantity)

    with transaction.atomic():
        header = _lock_header(kind, getattr(line, kind.header_field))
        line = _lock_line(kind, line)
        previous = kind.line_quantity(line)
        if previous == quantity:
            return line
        changes = kind.deltas(line, quantity - previous)
        shortages = apply_stock_changes(changes)
        if shortages:
            _raise_shortages(kind, header, shortages)
        setattr(line, kind.quantity_field, quantity)
        line.save(update_fields=[kind.quantity_field])
        recompute_total(kind, header)
        _audit(
            kind,
            header,
            "line.update",
            request_id=request_id,
            before={kind.quantity_field: previous},
            after=_line_snapshot(kind, line),
        )
        transaction.on_commit(invalidate_reports)
    return line


def delete_line(kind_name, line, *, request_id=None):
    """Remove a line and reverse its stock effect."""
    kind = get_movement_kind(kind_name)
    with transaction.atomic():
        header = _lock_header(kind, getattr(line, kind.header_field))
        line = _lock_line(kind, line)
        changes = [(row_id, -delta) for row_id, delta in kind.deltas(line)]
        shortages = apply_stock_changes(changes)
        if shortages:
            _raise_shortages(kind, header, shortages)
        snapshot = _line_snapshot(kind, line)
        line.delete()
        recompute_total(kind, header)
        _audit(kind, header, "line.delete", request_id=request_id, before=snapshot, after={"total_items": header.total_items})
        transaction.on_commit(invalidate_reports)
    return header


def delete_movement(kind_name, header, *, request_id=None):
    """Delete a header and all of its lines, reversing every stock effect."""
    kind = get_movement_kind(kind_name)
    with transaction.atomic():
        header = _lock_header(kind, header)
        lines = list(kind.lines(header).select_for_update().order_by("pk"))
        changes = [(row_id, -delta) for line in lines for row_id, delta in kind.deltas(line)]
        shortages = apply_stock_changes(changes)
        if shortages:
            _raise_shortages(kind, header, shortages)
        _audit(
            kind,
            header,
            "delete",
            request_id=request_id,
            before={"total_items": header.total_items, "items": [_line_snapshot(kind, line) for line in lines]},
        )
        header.delete()
        transaction.on_commit(invalidate_reports)


# -- single-row shortcuts ----------------------------------------------------


def _lock_stock_row(size):
    return ItemSize.objects.select_for_update(of=("self",)).select_related("item", "location").get(pk=size.pk)


def adjust_stock_quantity(size, adjustment, *, admin_name="Unknown", reason="Manual adjustment", request_id=None):
    """Record a one-line adjustment against ``size`` and return the refreshed row."""
    get_movement_kind("adjustment").validate_quantity(adjustment)
    with transaction.atomic():
        size = _lock_stock_row(size)
        current = size.current_quantity
        sign = "+" if adjustment > 0 else ""
        notes = (
            f"Manual inventory adjustment: {current} → {current + adjustment} "
            f"({sign}{adjustment}) {size.size_label} {size.item.name}"
        )
        create_adjustment(
            {
                "location_id": size.location_id,
                "adjustment_date": timezone.localdate(),
                "admin_name": admin_name or "Unknown",
                "reason": reason or "Manual adjustment",
                "notes": notes,
            },
            [{"item": size.item, "size": size, "quantity_adjustment": adjustment}],
            request_id=request_id,
        )
    size.refresh_from_db()
    return size


def set_stock_quantity(size, quantity, *, admin_name="Unknown", request_id=None):
    """Bring ``size`` to an absolute quantity through an adjustment of the difference."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
        raise ValidationError({"quantity": "Quantity cannot be negative."})
    with transaction.atomic():
        size = _lock_stock_row(size)
        difference = quantity - size.current_quantity
        if difference == 0:
            return size
        return adjust_stock_quantity(
            size,
            difference,
            admin_name=admin_name,
            reason="Quantity set",
            request_id=request_id,
        )
