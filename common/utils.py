import datetime
import decimal
import uuid

from django.utils.dateparse import parse_date
from rest_framework.exceptions import ValidationError

from common.exceptions import ConflictError

TRUE_VALUES = {"1", "true", "t", "yes", "y", "on"}
FALSE_VALUES = {"0", "false", "f", "no", "n", "off"}


def _to_json_compatible(value):
    if isinstance(value, dict):
        return {key: _to_json_compatible(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_to_json_compatible(item) for item in value]
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, decimal.Decimal):
        return str(value)
    if isinstance(value, (datetime.date, datetime.datetime, datetime.time)):
        return value.isoformat()
    return value


def parse_bool(value, default=None):
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    return default


def parse_date_param(params, name):
    raw = params.get(name)
    if not raw:
        return None
    try:
        parsed = parse_date(raw) if isinstance(raw, str) else None
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError({name: "Date must be in YYYY-MM-DD format."})
    return parsed


def parse_date_range(params):
    date_from = parse_date_param(params, "date_from")
    date_to = parse_date_param(params, "date_to")
    if date_from and date_to and date_from > date_to:
        raise ValidationError({"date_range": "date_from must be before or equal to date_to."})
    return date_from, date_to


def parse_uuid_param(params, name):
    raw = params.get(name)
    if not raw:
        return None
    try:
        return uuid.UUID(str(raw))
    except (TypeError, ValueError):
        raise ValidationError({name: "Must be a valid UUID."})


def ensure_unique(queryset, *, field, value, label, instance=None):
    """Raise a 409 when another row already holds ``value`` for ``field``."""
    if value is None:
        return
    clash = queryset.filter(**{field: value})
    if instance is not None:
        clash = clash.exclude(pk=instance.pk)
    if clash.exists():
        raise ConflictError(f"{label} with name '{value}' already exists")
