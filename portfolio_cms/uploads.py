"""
Upload ingestion and lifecycle.

Files are written through Django's default storage; the rest of the app
only ever sees the resulting public URL.
"""
import logging
import uuid

from django.core.exceptions import ValidationError
from django.core.files.storage import default_storage
from django.db import DatabaseError, transaction
from django.utils import timezone
from PIL import Image

from . import cache
from .conf import cms_settings
from .exceptions import ConflictError, NotFoundError, PersistenceError
from .models import Upload, UploadReference
from .permissions import EDITOR, OWNER, mutation

logger = logging.getLogger(__name__)

DEFAULT_MIME = "application/octet-stream"


def _guess_extension(filename, mime_type):
    if filename and "." in filename:
        return filename.rsplit(".", 1)[1].lower()
    if "/" in mime_type:
        return mime_type.split("/", 1)[1].lower()
    return None


def read_image_metadata(file_obj):
    """
    Return (width, height, format) for an image file, or Nones.

    The file position is reset afterwards.
    """
    try:
        with Image.open(file_obj) as img:
            width, height = img.size
            image_format = img.format
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        logger.warning("Failed to read image metadata: %s", exc)
        return None, None, None
    finally:
        file_obj.seek(0)
    return width, height, (image_format or "").lower() or None


@mutation(OWNER, EDITOR)
def ingest_upload(file_obj):
    """
    Store an uploaded file and record it.

    Returns {"id", "path", "public_url", "width", "height"}.
    """
    if file_obj is None:
        raise ValidationError({"file": ["File is required."]})
    if file_obj.size > cms_settings.UPLOAD_MAX_SIZE_BYTES:
        raise ValidationError({
            "file": [ValidationError(
                f"File exceeds {cms_settings.UPLOAD_MAX_SIZE_MB}MB limit.",
                code="file_too_large",
            )],
        })

    mime_type = getattr(file_obj, "content_type", None) or DEFAULT_MIME
    extension = _guess_extension(getattr(file_obj, "name", ""), mime_type)

    width = height = None
    if mime_type.startswith("image/"):
        width, height, image_format = read_image_metadata(file_obj)
        if image_format:
            extension = "jpg" if image_format == "jpeg" else image_format

    directory = timezone.now().strftime(cms_settings.UPLOAD_PATH_FORMAT)
    object_path = f"{directory}{uuid.uuid4()}.{extension or 'bin'}"

    try:
        stored_path = default_storage.save(object_path, file_obj)
        public_url = default_storage.url(stored_path)
        upload = Upload.objects.create(
            path=stored_path,
            public_url=public_url,
            size=file_obj.size,
            mime=mime_type,
            width=width,
            height=height,
        )
    except (OSError, DatabaseError) as exc:
        logger.exception("Failed to store upload %s", object_path)
        raise PersistenceError("Could not store file") from exc

    cache.invalidate(tags=[cache.MEDIA_UPLOADS])
    logger.info("Stored upload %s (%s, %d bytes)", stored_path, mime_type, upload.size)
    return {
        "id": upload.pk,
        "path": stored_path,
        "public_url": public_url,
        "width": width,
        "height": height,
    }


@mutation(OWNER, EDITOR)
def soft_delete_upload(upload_id):
    """Hide an upload from the media library. Refused while it is in use."""
    upload = Upload.objects.filter(pk=upload_id).first()
    if upload is None:
        raise NotFoundError(f"Upload {upload_id} does not exist")
    if upload.references.exists():
        raise ConflictError("Cannot delete upload with active references")

    upload.deleted = True
    upload.save(update_fields=["deleted"])
    cache.invalidate(tags=[cache.MEDIA_UPLOADS])
    return True


def sync_references(entity_table, entity_id, urls):
    """Make the uploads referenced by an entity exactly those served at ``urls``."""
    with transaction.atomic():
        UploadReference.objects.filter(
            entity_table=entity_table, entity_id=entity_id
        ).delete()
        UploadReference.objects.bulk_create(
            UploadReference(upload=upload, entity_table=entity_table, entity_id=entity_id)
            for upload in Upload.objects.active().filter(public_url__in=list(urls))
        )
