# Overview: Pytest coverage for product photo storage against a mocked storage API.

import io

import pytest

from stockroom.models import Product
from stockroom.services import storage_service
from stockroom.validation import ValidationError

from conftest import ORG_A

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _upload(client, headers, product_id, *, data=PNG_BYTES, filename="photo.png", content_type="image/png"):
    return client.post(
        f'/api/products/{product_id}/photos',
        headers=headers,
        data={"file": (io.BytesIO(data), filename, content_type)},
        content_type="multipart/form-data",
    )


class TestValidateImage:
    def test_accepts_supported_types(self):
        for mime in storage_service.ALLOWED_MIME_TYPES:
            storage_service.validate_image(mime, 10)

    @pytest.mark.parametrize("mime,size,message", [
        ("application/pdf", 10, "File must be an image"),
        ("image/gif", 10, "Only JPEG, PNG, WebP, and AVIF images are allowed"),
        ("image/png", 5 * 1024 * 1024 + 1, "File size must be less than 5MB"),
        ("image/png", 0, "File is empty"),
    ])
    def test_rejections(self, mime, size, message):
        with pytest.raises(ValidationError, match=message):
            storage_service.validate_image(mime, size)

    def test_object_path_is_tenant_prefixed(self):
        path = storage_service.build_object_path("org_x", "prod_1", "Front View.JPG", "image/jpeg")
        assert path.startswith("org_x/prod_1/")
        assert path.endswith(".jpg")

    def test_object_path_falls_back_to_mime_extension(self):
        path = storage_service.build_object_path("org_x", "prod_1", "noext", "image/webp")
        assert path.endswith(".webp")


class TestPhotoRoutes:
    def test_upload_appends_path(self, client, db_session, admin_a, product_a, fake_storage):
        response = _upload(client, admin_a, product_a["id"])
        assert response.status_code == 201
        path = response.json["path"]
        assert path.startswith(f"{ORG_A}/{product_a['id']}/")
        assert response.json["photo_urls"] == [path]
        assert fake_storage.objects[path] == PNG_BYTES
        assert fake_storage.requests[0].headers["content-type"] == "image/png"

    def test_upload_requires_file(self, client, db_session, admin_a, product_a, fake_storage):
        response = client.post(f'/api/products/{product_a["id"]}/photos', headers=admin_a, data={},
                               content_type="multipart/form-data")
        assert response.status_code == 400
        assert response.json["error"] == "No file provided"

    def test_upload_rejects_non_images(self, client, db_session, admin_a, product_a, fake_storage):
        response = _upload(client, admin_a, product_a["id"], filename="notes.txt", content_type="text/plain")
        assert response.status_code == 400
        assert fake_storage.requests == []

    def test_upload_storage_failure_is_502(self, client, db_session, admin_a, product_a, fake_storage):
        fake_storage.status_override = 503
        response = _upload(client, admin_a, product_a["id"])
        assert response.status_code == 502
        assert response.json["error"] == "Upload failed"
        # 5xx is retried
        assert len(fake_storage.requests) == 3
        assert not db_session.get(Product, product_a["id"]).photo_urls

    def test_list_skips_unsignable_paths(self, client, db_session, admin_a, product_a, fake_storage):
        first = _upload(client, admin_a, product_a["id"]).json["path"]
        second = _upload(client, admin_a, product_a["id"]).json["path"]
        fake_storage.fail_sign.add(first)

        response = client.get(f'/api/products/{product_a["id"]}/photos', headers=admin_a)
        assert response.status_code == 200
        assert [p["path"] for p in response.json] == [second]
        assert response.json[0]["url"].startswith("http")
        assert "token=t" in response.json[0]["url"]

    def test_delete_photo(self, client, db_session, admin_a, product_a, fake_storage):
        path = _upload(client, admin_a, product_a["id"]).json["path"]

        response = client.delete(f'/api/products/{product_a["id"]}/photos', headers=admin_a, json={"path": path})
        assert response.status_code == 200
        assert response.json == {"photo_urls": []}
        assert path not in fake_storage.objects

    def test_delete_unknown_photo(self, client, db_session, admin_a, product_a, fake_storage):
        response = client.delete(f'/api/products/{product_a["id"]}/photos', headers=admin_a,
                                 json={"path": f"{ORG_A}/{product_a['id']}/missing.png"})
        assert response.status_code == 404
        assert response.json["error"] == "Photo not found"

    def test_foreign_product_is_404(self, client, db_session, admin_b, product_a, fake_storage):
        response = _upload(client, admin_b, product_a["id"])
        assert response.status_code == 404
        assert fake_storage.requests == []


class TestCleanup:
    def test_orphans_found_and_removed(self, app, db_session, admin_a, client, product_a, fake_storage):
        kept = _upload(client, admin_a, product_a["id"]).json["path"]
        orphan = f"{ORG_A}/{product_a['id']}/old.png"
        fake_storage.objects[orphan] = b"x"

        assert storage_service.cleanup_orphaned_images(ORG_A, dry_run=True) == [orphan]
        assert orphan in fake_storage.objects

        assert storage_service.cleanup_orphaned_images(ORG_A) == [orphan]
        assert orphan not in fake_storage.objects
        assert kept in fake_storage.objects

    def test_leftovers_of_deleted_products_are_found(self, db_session, product_a, fake_storage):
        gone = f"{ORG_A}/0b6f1c1e-0000-4000-8000-000000000000/stale.png"
        other_org = "org_beta/p1/keep.png"
        fake_storage.objects[gone] = b"x"
        fake_storage.objects[other_org] = b"x"

        assert storage_service.cleanup_orphaned_images(ORG_A) == [gone]
        assert gone not in fake_storage.objects
        assert other_org in fake_storage.objects


class TestProductDeleteRemovesPhotos:
    def test_hard_delete_removes_objects(self, client, db_session, admin_a, product_a, fake_storage):
        path = _upload(client, admin_a, product_a["id"]).json["path"]

        response = client.delete(f'/api/products/{product_a["id"]}', headers=admin_a)
        assert response.json["deleted"] is True
        assert path not in fake_storage.objects
        assert storage_service.cleanup_orphaned_images(ORG_A) == []

    def test_storage_outage_does_not_block_delete(self, client, db_session, admin_a, product_a, fake_storage):
        path = _upload(client, admin_a, product_a["id"]).json["path"]
        fake_storage.status_override = 503

        response = client.delete(f'/api/products/{product_a["id"]}', headers=admin_a)
        assert response.status_code == 200
        assert db_session.get(Product, product_a["id"]) is None

        fake_storage.status_override = None
        assert storage_service.cleanup_orphaned_images(ORG_A) == [path]
