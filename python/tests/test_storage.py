"""Tests for storage clients and key utilities.

Tests cover:
- Key building with owner namespacing and test prefix isolation
- Filename sanitizing
- FakeStorageClient behavior and failure injection
- S3StorageClient against botocore's Stubber and offline presigning
"""

from urllib.parse import parse_qs, urlparse
from uuid import uuid4

import boto3
import pytest
from botocore.config import Config
from botocore.exceptions import EndpointConnectionError
from botocore.stub import Stubber

from marginalia.storage.client import (
    INLINE_PDF_DISPOSITION,
    FakeStorageClient,
    S3StorageClient,
    StorageError,
    get_storage_client,
)
from marginalia.storage.paths import build_storage_key, parse_storage_key, sanitize_filename

BUCKET = "marginalia-test"


def _boto_client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        config=Config(signature_version="s3v4"),
    )


class TestStorageKeys:
    def test_key_is_owner_namespaced(self, monkeypatch):
        monkeypatch.delenv("STORAGE_TEST_PREFIX", raising=False)
        owner_id = uuid4()

        key = build_storage_key(owner_id, "report.pdf")

        assert key.startswith(f"documents/{owner_id}/")
        assert key.endswith("-report.pdf")
        assert not key.startswith("/")

    def test_same_filename_gets_distinct_keys(self, monkeypatch):
        monkeypatch.delenv("STORAGE_TEST_PREFIX", raising=False)
        owner_id = uuid4()

        assert build_storage_key(owner_id, "a.pdf") != build_storage_key(owner_id, "a.pdf")

    def test_test_prefix_applied_once(self, monkeypatch):
        monkeypatch.setenv("STORAGE_TEST_PREFIX", "test_runs/run-1")
        owner_id = uuid4()

        key = build_storage_key(owner_id, "a.pdf")

        assert key.startswith(f"test_runs/run-1/documents/{owner_id}/")
        assert key.count("test_runs/") == 1

    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("report.pdf", "report.pdf"),
            ("../../etc/passwd", "passwd"),
            ("C:\\Users\\me\\My Paper (v2).pdf", "My_Paper_v2_.pdf"),
            ("", "document.pdf"),
            (None, "document.pdf"),
            ("...", "document.pdf"),
        ],
    )
    def test_sanitize_filename(self, filename, expected):
        assert sanitize_filename(filename) == expected

    def test_parse_recovers_owner(self):
        owner_id = str(uuid4())

        assert parse_storage_key(f"documents/{owner_id}/1-a.pdf") == (owner_id, "1-a.pdf")
        assert parse_storage_key(f"test_runs/r/documents/{owner_id}/1-a.pdf") == (
            owner_id,
            "1-a.pdf",
        )
        assert parse_storage_key("media/x/original.pdf") == (None, "")


class TestFakeStorageClient:
    def test_put_then_get(self):
        storage = FakeStorageClient()
        storage.put_object("k", b"%PDF-1.4", content_type="application/pdf")

        assert storage.get_object("k") == b"%PDF-1.4"
        meta = storage.head_object("k")
        assert meta.content_type == "application/pdf"
        assert meta.size_bytes == 8

    def test_delete_missing_object_succeeds(self):
        FakeStorageClient().delete_object("never-existed")

    def test_sign_download_pins_response_headers(self):
        url = FakeStorageClient().sign_download("documents/u/1-a.pdf", expires_in=60)

        query = parse_qs(urlparse(url).query)
        assert query["expires_in"] == ["60"]
        assert query["response-content-type"] == ["application/pdf"]
        assert query["response-content-disposition"] == [INLINE_PDF_DISPOSITION]

    def test_injected_failures(self):
        storage = FakeStorageClient()
        storage.fail_puts = True
        storage.fail_deletes = True
        storage.fail_signing_for.add("bad")

        with pytest.raises(StorageError):
            storage.put_object("k", b"x", content_type="application/pdf")
        with pytest.raises(StorageError):
            storage.delete_object("k")
        with pytest.raises(StorageError):
            storage.sign_download("bad", expires_in=60)

        storage.clear()
        storage.put_object("k", b"x", content_type="application/pdf")
        assert storage.keys() == ["k"]


class TestS3StorageClient:
    def test_put_object_sends_content_type(self):
        s3 = _boto_client()
        storage = S3StorageClient(BUCKET, client=s3)

        with Stubber(s3) as stubber:
            stubber.add_response(
                "put_object",
                {},
                {
                    "Bucket": BUCKET,
                    "Key": "documents/u/1-a.pdf",
                    "Body": b"%PDF-1.4",
                    "ContentType": "application/pdf",
                    "ContentDisposition": "inline",
                },
            )
            storage.put_object("documents/u/1-a.pdf", b"%PDF-1.4", content_type="application/pdf")
            stubber.assert_no_pending_responses()

    def test_put_object_client_error_becomes_storage_error(self):
        s3 = _boto_client()
        storage = S3StorageClient(BUCKET, client=s3)

        with Stubber(s3) as stubber:
            stubber.add_client_error("put_object", "InternalError", http_status_code=500)
            with pytest.raises(StorageError) as exc_info:
                storage.put_object("k", b"%PDF-", content_type="application/pdf")

        assert exc_info.value.code == "E_STORAGE_PUT_FAILED"

    def test_connection_failure_becomes_storage_error(self):
        class _Unreachable:
            def put_object(self, **kwargs):
                raise EndpointConnectionError(endpoint_url="https://s3.test")

        storage = S3StorageClient(BUCKET, client=_Unreachable())

        with pytest.raises(StorageError):
            storage.put_object("k", b"%PDF-", content_type="application/pdf")

    def test_delete_missing_object_succeeds(self):
        s3 = _boto_client()
        storage = S3StorageClient(BUCKET, client=s3)

        with Stubber(s3) as stubber:
            stubber.add_client_error("delete_object", "NoSuchKey", http_status_code=404)
            storage.delete_object("gone")

    def test_delete_failure_raises(self):
        s3 = _boto_client()
        storage = S3StorageClient(BUCKET, client=s3)

        with Stubber(s3) as stubber:
            stubber.add_client_error("delete_object", "AccessDenied", http_status_code=403)
            with pytest.raises(StorageError) as exc_info:
                storage.delete_object("k")

        assert exc_info.value.code == "E_STORAGE_DELETE_FAILED"

    def test_presigned_url_is_scoped_and_bounded(self):
        storage = S3StorageClient(BUCKET, client=_boto_client())

        url = storage.sign_download("documents/u/1-a.pdf", expires_in=3600)

        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        assert parsed.path.endswith("documents/u/1-a.pdf")
        assert query["X-Amz-Expires"] == ["3600"]
        assert query["response-content-type"] == ["application/pdf"]
        assert query["response-content-disposition"] == [INLINE_PDF_DISPOSITION]

    def test_client_is_built_with_bounded_timeouts(self, monkeypatch):
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")

        storage = S3StorageClient(BUCKET, connect_timeout=3, read_timeout=7, max_attempts=4)

        config = storage._client.meta.config
        assert config.connect_timeout == 3
        assert config.read_timeout == 7
        # total attempts, the first call included
        assert config.retries["total_max_attempts"] == 4
        assert "max_attempts" not in config.retries
        assert config.signature_version == "s3v4"


class TestGetStorageClient:
    def test_fake_when_no_bucket(self, monkeypatch):
        monkeypatch.delenv("S3_BUCKET", raising=False)

        assert isinstance(get_storage_client(), FakeStorageClient)

    def test_s3_when_bucket_configured(self, monkeypatch):
        monkeypatch.setenv("S3_BUCKET", BUCKET)
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")

        assert isinstance(get_storage_client(), S3StorageClient)
