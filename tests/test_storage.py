# tests/test_storage.py
from __future__ import annotations

import re

import pytest
from botocore.exceptions import ClientError

from communiserver.config import settings
from communiserver.routers import uploads as uploads_router
from communiserver.services import storage_client
from communiserver.services.storage_client import StorageError, UploadItem, build_public_url, unique_key, upload_files

API = "/api/v1"


class FakeS3:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[dict] = []

    def put_object(self, **kwargs):
        if self.fail:
            raise ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")
        self.calls.append(kwargs)
        return {}


def test_unique_key_shape():
    key = unique_key("My Photo (1).JPG", folder="/reports/", now_ms=1700000000000)
    assert re.fullmatch(r"reports/1700000000000_[0-9a-f]{12}_My_Photo__1_\.jpg", key)
    assert unique_key("noext", folder="", now_ms=1).endswith("_noext")


def test_public_url_styles(monkeypatch):
    monkeypatch.setattr(settings, "s3_public_base_url", "https://cdn.example.com/")
    monkeypatch.setattr(settings, "s3_url_style", "path")
    assert build_public_url("bkt", "a/b.jpg") == "https://cdn.example.com/bkt/a/b.jpg"

    monkeypatch.setattr(settings, "s3_url_style", "virtual")
    assert build_public_url("bkt", "a/b.jpg") == "https://bkt.cdn.example.com/a/b.jpg"

    monkeypatch.setattr(settings, "s3_public_base_url", None)
    monkeypatch.setattr(settings, "s3_endpoint_url", None)
    assert build_public_url("bkt", "k") == "https://bkt.s3.amazonaws.com/k"


def test_upload_files_puts_each_object():
    s3 = FakeS3()
    items = [UploadItem("a.png", b"1", "image/png"), UploadItem("b.pdf", b"22", "application/pdf")]
    urls = upload_files(items, folder="reports", client=s3)
    assert len(urls) == 2
    assert [c["ContentType"] for c in s3.calls] == ["image/png", "application/pdf"]
    assert all(c["Bucket"] == settings.s3_bucket for c in s3.calls)
    assert s3.calls[0]["Key"].startswith("reports/")
    assert urls[0].endswith(s3.calls[0]["Key"])


def test_upload_failure_becomes_storage_error():
    with pytest.raises(StorageError):
        upload_files([UploadItem("a.png", b"1")], client=FakeS3(fail=True))


def test_s3_client_uses_settings(monkeypatch):
    monkeypatch.setattr(settings, "s3_endpoint_url", "http://minio:9000/")
    client = storage_client.get_s3_client()
    assert client.meta.endpoint_url == "http://minio:9000"


def test_upload_endpoint(client, system_headers, monkeypatch):
    seen = {}

    def fake_upload(items, *, folder):
        seen["names"] = [i.filename for i in items]
        seen["folder"] = folder
        return [f"https://cdn.example.com/{folder}/{i.filename}" for i in items]

    monkeypatch.setattr(uploads_router, "upload_files", fake_upload)
    r = client.post(
        f"{API}/uploads",
        files=[("files", ("a.jpg", b"abc", "image/jpeg")), ("files", ("b.jpg", b"def", "image/jpeg"))],
        data={"folder": "evidence"},
        headers=system_headers,
    )
    assert r.status_code == 201, r.text
    assert r.json()["urls"] == ["https://cdn.example.com/evidence/a.jpg", "https://cdn.example.com/evidence/b.jpg"]
    assert seen == {"names": ["a.jpg", "b.jpg"], "folder": "evidence"}


def test_upload_endpoint_limits_and_failures(client, system_headers, monkeypatch, sign_up):
    def broken(items, *, folder):
        raise StorageError("bucket missing")

    monkeypatch.setattr(uploads_router, "upload_files", broken)
    files = [("files", ("a.jpg", b"abc", "image/jpeg"))]
    r = client.post(f"{API}/uploads", files=files, headers=system_headers)
    assert r.status_code == 502

    monkeypatch.setattr(settings, "upload_max_bytes", 2)
    r = client.post(f"{API}/uploads", files=files, headers=system_headers)
    assert r.status_code == 413

    _, citizen = sign_up("up@example.com", "0788300001")
    r = client.post(f"{API}/uploads", files=files, headers=citizen)
    assert r.status_code == 403
