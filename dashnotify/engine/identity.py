"""
dashnotify Identity Tokens — Service-account identity-token auth for httpx.

Builds google-auth ``IDTokenCredentials`` from service-account key material
and attaches the resulting short-lived token to every outbound request.
Token refreshes go through httpx as well, via a small adapter implementing
google-auth's transport interface.

The token is sent in ``Proxy-Authorization`` by default so that an
identity-aware proxy in front of the dashboard can authenticate the caller
while ``Authorization`` still carries the dashboard's own API key.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Generator, Mapping, Optional

import httpx
from google.auth import exceptions as google_exceptions
from google.auth import transport as google_transport
from google.oauth2 import service_account

from dashnotify.engine.errors import AuthSetupError

logger = logging.getLogger("dashnotify.engine.identity")

DEFAULT_TOKEN_HEADER = "Proxy-Authorization"
TOKEN_REQUEST_TIMEOUT = 30.0


# ---------------------------------------------------------------------------
# google-auth transport adapter
# ---------------------------------------------------------------------------

class _HttpxAuthResponse(google_transport.Response):
    """google-auth view of an httpx response."""

    def __init__(self, response: httpx.Response):
        self._response = response

    @property
    def status(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> Mapping[str, str]:
        return self._response.headers

    @property
    def data(self) -> bytes:
        return self._response.content


class HttpxAuthRequest(google_transport.Request):
    """Lets google-auth fetch tokens with an httpx client."""

    def __init__(self, client: httpx.Client):
        self._client = client

    def __call__(
        self,
        url: str,
        method: str = "GET",
        body: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> _HttpxAuthResponse:
        try:
            response = self._client.request(
                method,
                url,
                content=body,
                headers=headers,
                timeout=timeout or TOKEN_REQUEST_TIMEOUT,
            )
        except httpx.HTTPError as e:
            raise google_exceptions.TransportError(e) from e
        return _HttpxAuthResponse(response)


# ---------------------------------------------------------------------------
# httpx auth
# ---------------------------------------------------------------------------

class IdentityTokenAuth(httpx.Auth):
    """
    httpx auth flow attaching a service-account identity token.

    The token is fetched on first use and refreshed whenever google-auth
    reports it as no longer valid. A token that cannot be obtained raises
    AuthSetupError before the request leaves the client.
    """

    def __init__(
        self,
        credentials: service_account.IDTokenCredentials,
        token_client: Optional[httpx.Client] = None,
        header: str = DEFAULT_TOKEN_HEADER,
    ):
        self._credentials = credentials
        self._owns_token_client = token_client is None
        self._token_client = token_client or httpx.Client(timeout=TOKEN_REQUEST_TIMEOUT)
        self._token_request = HttpxAuthRequest(self._token_client)
        self._header = header

    @property
    def credentials(self) -> service_account.IDTokenCredentials:
        return self._credentials

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        if not self._credentials.valid:
            try:
                self._credentials.refresh(self._token_request)
            except google_exceptions.GoogleAuthError as e:
                raise AuthSetupError(
                    f"unable to obtain identity token: {e}",
                    subsystem="idtoken",
                ) from e
        request.headers[self._header] = f"Bearer {self._credentials.token}"
        yield request

    def close(self) -> None:
        """Close the token client, unless it was supplied by the caller."""
        if self._owns_token_client:
            self._token_client.close()

    def __enter__(self) -> "IdentityTokenAuth":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _load_key_info(key: str) -> Dict[str, Any]:
    """Parse inline JSON key material."""
    info = json.loads(key)
    if not isinstance(info, dict):
        raise ValueError(f"service account key must be a JSON object, got {type(info).__name__}")
    return info


def read_key_file(path: str) -> str:
    """
    Read service-account key material from ``path``.

    Raises:
        AuthSetupError if the file cannot be read.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        raise AuthSetupError(
            f"unable to read service account key file {path!r}: {e}",
            subsystem="idtoken",
        ) from e


def build_identity_auth(
    key: str,
    audience: str,
    token_client: Optional[httpx.Client] = None,
    header: str = DEFAULT_TOKEN_HEADER,
) -> IdentityTokenAuth:
    """
    Build an IdentityTokenAuth from service-account key material.

    Args:
        key: JSON key content.
        audience: Target audience the identity token is minted for.

    Raises:
        AuthSetupError if the key cannot be parsed or is not a usable
        service-account key.
    """
    try:
        info = _load_key_info(key)
        credentials = service_account.IDTokenCredentials.from_service_account_info(
            info, target_audience=audience
        )
    except (ValueError, TypeError, KeyError, google_exceptions.GoogleAuthError) as e:
        raise AuthSetupError(
            f"unable to build identity-token client: {e}",
            subsystem="idtoken",
        ) from e

    logger.debug(
        f"Built identity-token auth for {info.get('client_email', '?')} (audience={audience})"
    )
    return IdentityTokenAuth(credentials, token_client=token_client, header=header)
