# tests/test_uploads.py

"""Tests for the media upload endpoints and media cleanup on local storage."""
import os
from dataclasses import replace
from io import BytesIO

from fastapi.testclient import TestClient

from product_service.main import create_app

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
MP4_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64


def upload_dir(client: TestClient) -> str:
    return client.app.state.media_store.upload_dir


def stored_files(client: TestClient) -> list:
    directory = upload_dir(client)
    if not os.path.isdir(directory):
        return []
    return sorted(os.listdir(directory))


def test_upload_image_success(local_client: TestClient):
    response = local_client.post(
        "/upload",
        files={"file": ("Living Room (1).PNG", BytesIO(PNG_BYTES), "image/png")},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["fileType"] == "image"
    assert body["mimetype"] == "image/png"
    assert body["size"] == len(PNG_BYTES)
    assert body["fileName"].startswith("Living_Room_1-")
    assert body["fileName"].endswith(".png")
    assert body["filePath"] == f"/uploads/{body['fileName']}"
    assert body["fileUrl"].endswith(body["filePath"])
    assert stored_files(local_client) == [body["fileName"]]

    served = local_client.get(body["filePath"])
    assert served.status_code == 200
    assert served.content == PNG_BYTES


def test_upload_video_detects_resource_type_from_media_type(local_client: TestClient):
    response = local_client.post(
        "/upload",
        files={"file": ("clip.bin", BytesIO(MP4_BYTES), "video/mp4")},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["fileType"] == "video"
    assert body["fileName"].endswith(".mp4")


def test_identical_names_do_not_collide(local_client: TestClient):
    names = set()
    for _ in range(3):
        response = local_client.post(
            "/upload", files={"file": ("photo.png", BytesIO(PNG_BYTES), "image/png")}
        )
        assert response.status_code == 200
        names.add(response.json()["fileName"])
    assert len(names) == 3
    assert len(stored_files(local_client)) == 3


def test_upload_rejects_pdf_before_storing(local_client: TestClient):
    response = local_client.post(
        "/upload",
        files={"file": ("invoice.pdf", BytesIO(b"%PDF-1.4"), "application/pdf")},
    )
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Only images and videos are allowed"}
    assert stored_files(local_client) == []


def test_upload_rejects_oversized_file(test_settings):
    app = create_app(replace(test_settings, max_upload_bytes=16))
    with TestClient(app) as client:
        response = client.post(
            "/upload", files={"file": ("big.png", BytesIO(PNG_BYTES), "image/png")}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "File too large. Maximum size is 16 bytes"
        assert stored_files(client) == []


def test_upload_rejects_empty_file(local_client: TestClient):
    response = local_client.post(
        "/upload", files={"file": ("empty.png", BytesIO(b""), "image/png")}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed: Uploaded file is empty"


def test_upload_requires_file_field(local_client: TestClient):
    response = local_client.post(
        "/upload", files={"attachment": ("photo.png", BytesIO(PNG_BYTES), "image/png")}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed: Unexpected file field"


def test_upload_accepts_only_one_file(local_client: TestClient):
    response = local_client.post(
        "/upload",
        files=[
            ("file", ("a.png", BytesIO(PNG_BYTES), "image/png")),
            ("file", ("b.png", BytesIO(PNG_BYTES), "image/png")),
        ],
    )
    assert response.status_code == 400
    assert response.json()["success"] is False
    assert stored_files(local_client) == []


def test_upload_to_remote_store(client: TestClient, media_store):
    response = client.post(
        "/upload", files={"file": ("photo.jpg", BytesIO(PNG_BYTES), "image/jpeg")}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["filePath"].startswith("https://res.example.com/demo/image/upload/")
    assert body["fileUrl"] == body["filePath"]
    assert body["publicId"].startswith("products/photo-")
    assert media_store.saved == [body["fileName"]]


def test_list_uploaded_files(local_client: TestClient):
    uploaded = local_client.post(
        "/upload", files={"file": ("photo.gif", BytesIO(b"GIF89a" + b"\x00" * 10), "image/gif")}
    ).json()

    response = local_client.get("/uploads")
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 1
    assert body["files"][0]["name"] == uploaded["fileName"]
    assert body["files"][0]["size"] == 16
    assert body["files"][0]["url"].endswith(uploaded["filePath"])


def test_delete_uploaded_file(local_client: TestClient):
    uploaded = local_client.post(
        "/upload", files={"file": ("photo.png", BytesIO(PNG_BYTES), "image/png")}
    ).json()

    response = local_client.delete(f"/upload/{uploaded['fileName']}")
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "File deleted successfully",
        "result": "ok",
    }
    assert stored_files(local_client) == []

    again = local_client.delete(f"/upload/{uploaded['fileName']}")
    assert again.status_code == 200
    assert again.json()["result"] == "not found"


def test_delete_uploaded_file_rejects_bad_resource_type(local_client: TestClient):
    response = local_client.delete("/upload/photo.png?resource_type=audio")
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_delete_uploaded_file_with_folder_path(client: TestClient, media_store):
    response = client.delete("/upload/products/oak-table?resource_type=video")
    assert response.status_code == 200
    assert media_store.deleted == [("products/oak-table", "video")]


def test_product_delete_reclaims_local_media(local_client: TestClient):
    uploaded = local_client.post(
        "/upload", files={"file": ("photo.png", BytesIO(PNG_BYTES), "image/png")}
    ).json()
    created = local_client.post(
        "/products",
        json={
            "product_name": "Framed Print",
            "price_new": 35,
            "brand": "Gallery",
            "category": "Decor",
            "image_url": uploaded["filePath"],
        },
    ).json()
    assert stored_files(local_client) == [uploaded["fileName"]]

    response = local_client.delete(f"/products/{created['productId']}")
    assert response.status_code == 200
    assert stored_files(local_client) == []


def test_product_delete_with_malformed_media_url(local_client: TestClient):
    created = local_client.post(
        "/products",
        json={
            "product_name": "Framed Print",
            "price_new": 35,
            "brand": "Gallery",
            "category": "Decor",
            "image_url": "http://[broken/uploads/x.png",
        },
    ).json()

    response = local_client.delete(f"/products/{created['productId']}")
    assert response.status_code == 200
    assert local_client.get(f"/products/{created['productId']}").status_code == 404


def test_product_delete_keeps_upload_named_by_foreign_url(local_client: TestClient):
    uploaded = local_client.post(
        "/upload", files={"file": ("photo.png", BytesIO(PNG_BYTES), "image/png")}
    ).json()
    created = local_client.post(
        "/products",
        json={
            "product_name": "Framed Print",
            "price_new": 35,
            "brand": "Gallery",
            "category": "Decor",
            "image_url": f"https://elsewhere.example.com{uploaded['filePath']}",
        },
    ).json()

    response = local_client.delete(f"/products/{created['productId']}")
    assert response.status_code == 200
    assert stored_files(local_client) == [uploaded["fileName"]]
