import logging
import os
import time
import uuid

from django.conf import settings
from django.core.files.storage import default_storage
from django.db import transaction
from rest_framework.exceptions import ValidationError

from common.audit import create_audit_log
from donations.models import Category, CategorySize, DonatedItem, DonatedItemPhoto, Size

logger = logging.getLogger(__name__)


def photo_url(file_path):
    return f"{settings.MEDIA_URL}{file_path}"


def _photo_name(original_name):
    _, ext = os.path.splitext(original_name or "")
    return f"{settings.PHOTO_UPLOAD_DIR}/{int(time.time() * 1000)}-{uuid.uuid4()}{ext.lower()}"


def validate_photo_upload(upload):
    if upload is None:
        raise ValidationError({"photo": "No file uploaded. Please provide an image file."})
    content_type = getattr(upload, "content_type", "") or ""
    if content_type not in settings.PHOTO_ALLOWED_CONTENT_TYPES:
        raise ValidationError({"photo": "Only image files are allowed."})
    if upload.size > settings.PHOTO_MAX_UPLOAD_BYTES:
        limit_mb = settings.PHOTO_MAX_UPLOAD_BYTES // (1024 * 1024)
        raise ValidationError({"photo": f"Image exceeds the {limit_mb} MB limit."})


def remove_photo_file(file_path):
    """Best-effort delete; a file that is already gone counts as removed."""
    try:
        default_storage.delete(file_path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning(
            "Could not remove photo file %s",
            file_path,
            exc_info=True,
            extra={"entity": "donated_item_photo"},
        )


def attach_photo(donated_item, upload, *, description="", request_id=None):
    validate_photo_upload(upload)
    stored_name = default_storage.save(_photo_name(upload.name), upload)
    try:
        with transaction.atomic():
            photo = DonatedItemPhoto.objects.create(
                donated_item=donated_item,
                file_path=stored_name,
                description=description or "",
            )
            create_audit_log(
                action="photo.create",
                entity="donated_item_photo",
                entity_id=photo.id,
                location_id=donated_item.location_id,
                after_snapshot={"donated_item": donated_item.id, "file_path": stored_name},
                request_id=request_id,
            )
    except Exception:
        remove_photo_file(stored_name)
        raise
    logger.info("Photo stored at %s", stored_name, extra={"entity": "donated_item", "entity_id": str(donated_item.id)})
    return photo


def delete_photo(photo, *, request_id=None):
    file_path = photo.file_path
    with transaction.atomic():
        create_audit_log(
            action="photo.delete",
            entity="donated_item_photo",
            entity_id=photo.id,
            before_snapshot={"donated_item": photo.donated_item_id, "file_path": file_path},
            request_id=request_id,
        )
        photo.delete()
    remove_photo_file(file_path)


def associate_size(category, size):
    """Link ``size`` to ``category``; returns True when the link is new."""
    _, created = CategorySize.objects.get_or_create(category=category, size=size)
    return created


def transfer_donated_item(donated_item, location, *, request_id=None):
    previous = donated_item.location
    if previous.pk == location.pk:
        return previous, False
    with transaction.atomic():
        donated_item.location = location
        donated_item.save(update_fields=["location", "updated_at"])
        create_audit_log(
            action="donated_item.transfer",
            entity="donated_item",
            entity_id=donated_item.id,
            location_id=location.id,
            before_snapshot={"location": previous.id},
            after_snapshot={"location": location.id},
            request_id=request_id,
        )
    return previous, True


def get_or_create_category(name):
    category = Category.objects.filter(name__iexact=name).first()
    if category is None:
        category = Category.objects.create(name=name)
    return category


def get_or_create_size(name):
    size = Size.objects.filter(name__iexact=name).first()
    if size is None:
        size = Size.objects.create(name=name)
    return size


def create_donated_item(*, category, size=None, **fields):
    item = DonatedItem.objects.create(category=category, size=size, **fields)
    if size is not None:
        associate_size(category, size)
    return item
