"""Tests for the authentication boundary.

Every non-public route requires a verified bearer token. Failures are 401
E_UNAUTHENTICATED with no hint of whether the target resource exists.
"""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from marginalia.app import add_request_id_middleware, create_app
from marginalia.auth.middleware import Viewer, get_viewer
from marginalia.errors import ApiError, ApiErrorCode
from tests.helpers import auth_headers, mint_test_token, mint_token_with_bad_signature
from tests.support.test_verifier import MockJwtVerifier


def _assert_unauthenticated(response):
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "E_UNAUTHENTICATED"


class TestAuthBoundary:
    def test_no_authorization_header(self, client):
        _assert_unauthenticated(client.get("/documents"))

    @pytest.mark.parametrize("header", ["Basic dXNlcjpwYXNz", "Bearer", "Bearer   ", "token"])
    def test_malformed_authorization_header(self, client, header):
        _assert_unauthenticated(client.get("/documents", headers={"Authorization": header}))

    def test_bad_signature(self, client):
        token = mint_token_with_bad_signature(uuid4())

        _assert_unauthenticated(
            client.get("/documents", headers={"Authorization": f"Bearer {token}"})
        )

    def test_expired_token(self, client, user_id):
        _assert_unauthenticated(
            client.get("/documents", headers=auth_headers(user_id, expires_in=-3600))
        )

    def test_wrong_audience(self, client, user_id):
        _assert_unauthenticated(
            client.get("/documents", headers=auth_headers(user_id, audience="other-app"))
        )

    def test_non_uuid_subject(self, client):
        token = mint_test_token("service-account")

        _assert_unauthenticated(
            client.get("/documents", headers={"Authorization": f"Bearer {token}"})
        )

    def test_bearer_scheme_case_insensitive(self, client, user_id):
        token = mint_test_token(user_id)

        response = client.get("/documents", headers={"Authorization": f"bearer {token}"})

        assert response.status_code == 200

    def test_mutations_require_auth(self, client, fake_storage):
        document_id = uuid4()

        responses = [
            client.post("/documents", files={"file": ("a.pdf", b"%PDF-1.4", "application/pdf")}),
            client.delete(f"/documents/{document_id}"),
            client.post(f"/documents/{document_id}/highlights", json={}),
            client.put(f"/documents/{document_id}/highlights/{uuid4()}", json={}),
            client.delete(f"/documents/{document_id}/highlights/{uuid4()}"),
        ]

        for response in responses:
            _assert_unauthenticated(response)
        assert fake_storage.keys() == []

    def test_unauthenticated_response_has_request_id(self, client):
        response = client.get("/documents")

        assert "X-Request-ID" in response.headers

    def test_health_is_public(self, client):
        assert client.get("/health").status_code == 200


class TestViewerDependency:
    def test_viewer_missing_without_middleware(self):
        app = create_app(skip_auth_middleware=True)
        add_request_id_middleware(app, log_requests=False)

        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/documents")

        _assert_unauthenticated(response)

    def test_get_viewer_reads_request_state(self):
        viewer = Viewer(user_id=uuid4())

        class _State:
            pass

        class _Request:
            state = _State()

        request = _Request()
        request.state.viewer = viewer

        assert get_viewer(request) is viewer

    def test_get_viewer_raises_when_unset(self):
        class _Request:
            class state:
                pass

        with pytest.raises(ApiError) as exc_info:
            get_viewer(_Request())

        assert exc_info.value.code == ApiErrorCode.E_UNAUTHENTICATED


def test_custom_issuer_verifier_rejects_default_tokens(user_id):
    app = create_app(token_verifier=MockJwtVerifier(issuer="another-issuer"))

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/documents", headers=auth_headers(user_id))

    _assert_unauthenticated(response)
