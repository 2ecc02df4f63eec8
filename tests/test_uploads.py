"""
Tests for upload ingestion and soft deletion.
"""
import io

import pytest
from django.core.exceptions import ValidationError
from django.core.files.uploadedfile import SimpleUploadedFile
from PIL import Image

from portfolio_cms import services, uploads
from portfolio_cms.exceptions import AuthorizationError, ConflictError
from portfolio_cms.models import Upload, UploadReference


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path)
    return tmp_path


def png_file(name="photo.png", size=(4, 3)):
    buffer = io.BytesIO()
    Image.new("RGB", size, color="red").save(buffer, format="PNG")
    return SimpleUploadedFile(name, buffer.getvalue(), content_type="image/png")


class TestIngestUpload:
    """Tests for uploads.ingest_upload."""

    def test_image_upload(self, owner, media_root):
        result = uploads.ingest_upload(png_file(), user=owner)

        assert result["width"] == 4
        assert result["height"] == 3
        assert result["path"].endswith(".png")
        assert result["public_url"] == f"https://cdn.example.com/media/{result['path']}"
        assert (media_root / result["path"]).exists()

        upload = Upload.objects.get(pk=result["id"])
        assert upload.mime == "image/png"
        assert not upload.deleted

    def test_extension_follows_image_format(self, owner):
        result = uploads.ingest_upload(png_file(name="photo.jpg"), user=owner)
        assert result["path"].endswith(".png")

    def test_non_image_upload(self, owner):
        document = SimpleUploadedFile("notes.pdf", b"%PDF-1.4", content_type="application/pdf")
        result = uploads.ingest_upload(document, user=owner)

        assert result["path"].endswith(".pdf")
        assert result["width"] is None
        assert result["height"] is None

    def test_unreadable_image_is_still_stored(self, owner):
        broken = SimpleUploadedFile("broken.png", b"not an image", content_type="image/png")
        result = uploads.ingest_upload(broken, user=owner)

        assert result["path"].endswith(".png")
        assert result["width"] is None

    def test_missing_file(self, owner):
        with pytest.raises(ValidationError) as excinfo:
            uploads.ingest_upload(None, user=owner)
        assert "file" in excinfo.value.message_dict

    def test_file_too_large(self, owner, settings):
        settings.PORTFOLIO_CMS = {"UPLOAD_MAX_SIZE_MB": 1}
        big = SimpleUploadedFile("big.bin", b"x" * (1024 * 1024 + 1))

        with pytest.raises(ValidationError) as excinfo:
            uploads.ingest_upload(big, user=owner)

        assert excinfo.value.error_dict["file"][0].code == "file_too_large"
        assert Upload.objects.count() == 0

    def test_viewer_is_refused(self, viewer):
        with pytest.raises(AuthorizationError):
            uploads.ingest_upload(png_file(), user=viewer)


class TestSoftDelete:
    """Tests for uploads.soft_delete_upload and reference tracking."""

    def test_referenced_upload_cannot_be_deleted(self, owner, make_payload):
        result = uploads.ingest_upload(png_file(), user=owner)
        post_id, _ = services.upsert_post(
            make_payload(hero_image_url=result["public_url"]), user=owner
        )
        assert UploadReference.objects.filter(entity_id=post_id).count() == 1

        with pytest.raises(ConflictError) as excinfo:
            uploads.soft_delete_upload(result["id"], user=owner)
        assert excinfo.value.message == "Cannot delete upload with active references"

        services.delete_post(post_id, user=owner)
        assert uploads.soft_delete_upload(result["id"], user=owner)
        assert Upload.objects.get(pk=result["id"]).deleted

    def test_content_images_are_referenced(self, owner, make_payload):
        result = uploads.ingest_upload(png_file(), user=owner)
        body = {"type": "doc", "content": [
            {"type": "image", "attrs": {"src": result["public_url"]}},
        ]}
        post_id, _ = services.upsert_post(make_payload(content_json=body), user=owner)

        reference = UploadReference.objects.get(entity_id=post_id)
        assert reference.entity_table == "post"
        assert str(reference.upload_id) == str(result["id"])

    def test_deleted_uploads_are_not_referenced(self, owner, make_payload):
        result = uploads.ingest_upload(png_file(), user=owner)
        uploads.soft_delete_upload(result["id"], user=owner)

        post_id, _ = services.upsert_post(
            make_payload(hero_image_url=result["public_url"]), user=owner
        )

        assert not UploadReference.objects.filter(entity_id=post_id).exists()
