"""Unit tests for dashnotify.engine.identity — identity-token auth for httpx."""

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest
from google.auth import exceptions as google_exceptions
from google.oauth2 import service_account

from dashnotify.engine.errors import AuthSetupError
from dashnotify.engine.identity import (
    DEFAULT_TOKEN_HEADER,
    HttpxAuthRequest,
    IdentityTokenAuth,
    build_identity_auth,
    read_key_file,
)

KEY_INFO = {"type": "service_account", "client_email": "notifier@example.iam.gserviceaccount.com"}


class TestHttpxAuthRequest:
    """google-auth transport adapter."""

    def test_forwards_request(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id_token": "abc"})

        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            response = HttpxAuthRequest(client)(
                "https://oauth2.example/token",
                method="POST",
                body=b"grant_type=x",
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )

        assert response.status == 200
        assert json.loads(response.data) == {"id_token": "abc"}
        assert response.headers["content-type"] == "application/json"
        assert seen[0].method == "POST"
        assert seen[0].content == b"grant_type=x"

    def test_transport_error_mapped(self):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        with httpx.Client(transport=httpx.MockTransport(refuse)) as client:
            with pytest.raises(google_exceptions.TransportError):
                HttpxAuthRequest(client)("https://oauth2.example/token")


class TestIdentityTokenAuth:
    def _creds(self):
        creds = MagicMock()
        creds.valid = False
        creds.token = None

        def refresh(request):
            assert isinstance(request, HttpxAuthRequest)
            creds.token = "tok"
            creds.valid = True

        creds.refresh.side_effect = refresh
        return creds

    def test_refreshes_once_and_attaches_header(self):
        creds = self._creds()
        seen = []
        auth = IdentityTokenAuth(creds)
        with httpx.Client(
            transport=httpx.MockTransport(lambda r: seen.append(r) or httpx.Response(200)),
            auth=auth,
        ) as client:
            client.get("http://grafana.local/")
            client.get("http://grafana.local/")
        auth.close()

        assert creds.refresh.call_count == 1
        assert [r.headers[DEFAULT_TOKEN_HEADER] for r in seen] == ["Bearer tok", "Bearer tok"]

    def test_custom_header(self):
        seen = []
        with httpx.Client(
            transport=httpx.MockTransport(lambda r: seen.append(r) or httpx.Response(200)),
            auth=IdentityTokenAuth(self._creds(), header="Authorization"),
        ) as client:
            client.get("http://grafana.local/")
        assert seen[0].headers["Authorization"] == "Bearer tok"

    def test_supplied_token_client_not_closed(self):
        token_client = MagicMock(spec=httpx.Client)
        with IdentityTokenAuth(self._creds(), token_client=token_client):
            pass
        token_client.close.assert_not_called()


class TestBuildIdentityAuth:
    def test_not_json(self):
        with pytest.raises(AuthSetupError) as exc_info:
            build_identity_auth("not-json", "http://grafana.local")
        assert exc_info.value.subsystem == "idtoken"

    def test_not_an_object(self):
        with pytest.raises(AuthSetupError, match="JSON object"):
            build_identity_auth("[1, 2]", "http://grafana.local")

    def test_incomplete_key(self):
        with pytest.raises(AuthSetupError):
            build_identity_auth('{"type": "service_account"}', "http://grafana.local")

    def test_inline_key(self):
        with patch.object(service_account.IDTokenCredentials, "from_service_account_info") as from_info:
            auth = build_identity_auth(json.dumps(KEY_INFO), "http://grafana.local")
        from_info.assert_called_once_with(KEY_INFO, target_audience="http://grafana.local")
        assert auth.credentials is from_info.return_value
        auth.close()

    def test_path_is_not_read_as_key(self, tmp_path):
        path = tmp_path / "sa.json"
        path.write_text(json.dumps(KEY_INFO), encoding="utf-8")
        with pytest.raises(AuthSetupError):
            build_identity_auth(str(path), "aud")


class TestReadKeyFile:
    def test_reads_content(self, tmp_path):
        path = tmp_path / "sa.json"
        path.write_text(json.dumps(KEY_INFO), encoding="utf-8")
        assert json.loads(read_key_file(str(path))) == KEY_INFO

    def test_missing_file(self, tmp_path):
        with pytest.raises(AuthSetupError, match="key file") as exc_info:
            read_key_file(str(tmp_path / "missing.json"))
        assert exc_info.value.subsystem == "idtoken"
