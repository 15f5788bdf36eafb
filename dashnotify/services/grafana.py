"""
Grafana annotation service — Posts notifications as dashboard annotations.

Pipeline (per send):
    1. Build annotation (time, isRegion=false, tags from recipient, text)
    2. Warn on empty message, deliver anyway
    3. Resolve auth mode: static bearer key, or service-account identity token
    4. Encode annotation as compact JSON
    5. Resolve {apiUrl}/annotations
    6. POST with Content-Type + Authorization: Bearer {apiKey}
    7. Read the body; anything but HTTP 200 is a DeliveryError

Every send owns its own httpx.Client and closes it before returning, so a
single service instance may be shared across threads.
"""

from __future__ import annotations

import enum
import json
import logging
import posixpath
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

import httpx

from dashnotify.engine.config import GrafanaOptions
from dashnotify.engine.errors import (
    AnnotationEncodingError,
    AuthSetupError,
    ConfigurationError,
    DeliveryError,
    ResponseReadError,
)
from dashnotify.engine.identity import IdentityTokenAuth, build_identity_auth, read_key_file
from dashnotify.engine.logging import LoggingTransport, new_transport, redact_url, service_logger
from dashnotify.services.base import Destination, Notification

SERVICE_NAME = "grafana"
TAG_SEPARATOR = "|"
ANNOTATIONS_PATH = "annotations"


class AuthMode(enum.Enum):
    """How a send authenticates. Resolved on every call."""

    STATIC_BEARER = "static_bearer"
    SERVICE_ACCOUNT_IDENTITY = "service_account_identity"


@dataclass(frozen=True, slots=True)
class GrafanaAnnotation:
    """Point-in-time annotation as posted to ``/annotations``."""

    time: int  # unix ts in ms
    tags: List[str] = field(default_factory=list)
    text: str = ""
    is_region: bool = False

    @classmethod
    def build(
        cls,
        notification: Notification,
        destination: Destination,
        now: Optional[float] = None,
    ) -> "GrafanaAnnotation":
        """Whole seconds only: sub-second precision is dropped before scaling to ms."""
        seconds = int(time.time() if now is None else now)
        return cls(
            time=seconds * 1000,
            tags=destination.recipient.split(TAG_SEPARATOR),
            text=notification.message,
            is_region=False,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": self.time,
            "isRegion": self.is_region,
            "tags": list(self.tags),
            "text": self.text,
        }

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False).encode("utf-8")


class GrafanaService:
    """
    Notification service writing annotations to a Grafana HTTP API.

    Args:
        options: Validated GrafanaOptions.
        logger: Leveled logger; defaults to a ServiceLogger tagged "grafana".
        transport: httpx transport used beneath the logging transport.
            Defaults to a fresh HTTPTransport per send honoring
            insecure_skip_verify.
        token_client: httpx client used for identity-token refreshes.
    """

    name = SERVICE_NAME

    def __init__(
        self,
        options: GrafanaOptions,
        *,
        logger: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None,
        transport: Optional[httpx.BaseTransport] = None,
        token_client: Optional[httpx.Client] = None,
    ):
        self._opts = options
        self._log = logger or service_logger(SERVICE_NAME)
        self._transport = transport
        self._token_client = token_client

    @property
    def options(self) -> GrafanaOptions:
        return self._opts

    def auth_mode(self) -> AuthMode:
        if self._opts.gcp_sa_key or self._opts.gcp_sa_key_file:
            return AuthMode.SERVICE_ACCOUNT_IDENTITY
        return AuthMode.STATIC_BEARER

    # -----------------------------------------------------------------------
    # NotificationService
    # -----------------------------------------------------------------------

    def send(self, notification: Notification, destination: Destination) -> None:
        """
        Post one annotation for ``notification``.

        Raises:
            AuthSetupError: identity-token client could not be built.
            ConfigurationError: apiUrl is malformed.
            httpx.TransportError: the request could not be carried out.
            ResponseReadError: the response body could not be read.
            DeliveryError: the endpoint answered with a status other than 200.
        """
        annotation = GrafanaAnnotation.build(notification, destination)

        if notification.message == "":
            self._log.warning("Message is an empty string or not provided in the notifications template")

        auth: Optional[IdentityTokenAuth] = None
        if self.auth_mode() is AuthMode.SERVICE_ACCOUNT_IDENTITY:
            try:
                key = self._opts.gcp_sa_key or read_key_file(self._opts.gcp_sa_key_file)
                auth = build_identity_auth(
                    key,
                    self._audience(),
                    token_client=self._token_client,
                )
            except AuthSetupError as e:
                self._log.error(f"Failed to setup identity-token client: {e}")
                raise

        try:
            self._deliver(annotation, auth)
        finally:
            if auth is not None:
                auth.close()

    # -----------------------------------------------------------------------
    # Request pipeline
    # -----------------------------------------------------------------------

    def annotations_url(self) -> httpx.URL:
        """
        ``{apiUrl}/annotations``, keeping scheme, host, port, path prefix and query.

        Raises:
            ConfigurationError if apiUrl is not an absolute http(s) URL.
        """
        api_url = self._opts.api_url
        try:
            base = httpx.URL(api_url)
        except httpx.InvalidURL as e:
            raise ConfigurationError(
                f"invalid apiUrl {api_url!r}: {e}",
                service=SERVICE_NAME,
                field="apiUrl",
            ) from e

        if base.scheme not in ("http", "https") or not base.host:
            raise ConfigurationError(
                f"invalid apiUrl {api_url!r}: expected an absolute http(s) URL",
                service=SERVICE_NAME,
                field="apiUrl",
            )

        path = posixpath.normpath(posixpath.join("/", base.path, ANNOTATIONS_PATH))
        return base.copy_with(path="/" + path.lstrip("/"))

    def _deliver(self, annotation: GrafanaAnnotation, auth: Optional[IdentityTokenAuth]) -> None:
        body = self._encode(annotation)
        # Authorization always carries the API key; userinfo would override it with basic auth
        url = redact_url(self.annotations_url())
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._opts.api_key}",
        }

        with self._new_client(auth, url) as client:
            request = client.build_request("POST", url, content=body, headers=headers)
            try:
                response = client.send(request, stream=True)
            except AuthSetupError as e:
                self._log.error(f"Failed to obtain identity token: {e}")
                raise

            try:
                try:
                    data = response.read()
                except httpx.HTTPError as e:
                    raise ResponseReadError(
                        f"unable to read response data: {e}",
                        service=SERVICE_NAME,
                        url=str(url),
                    ) from e

                if response.status_code != httpx.codes.OK:
                    text = data.decode("utf-8", errors="replace")
                    raise DeliveryError(
                        f"request to {url} has failed with error code {response.status_code} : {text}",
                        service=SERVICE_NAME,
                        url=str(url),
                        status_code=response.status_code,
                        response_body=text,
                    )
            finally:
                response.close()

        self._log.debug(f"Annotation posted to {url} (tags={annotation.tags})")

    def _new_client(self, auth: Optional[IdentityTokenAuth], url: httpx.URL) -> httpx.Client:
        inner = self._transport or new_transport(self._opts.insecure_skip_verify, url=url)
        kwargs: Dict[str, Any] = {
            "transport": LoggingTransport(inner, self._log, close_transport=self._transport is None),
            "follow_redirects": False,
        }
        if auth is not None:
            kwargs["auth"] = auth
        if self._opts.timeout is not None:
            kwargs["timeout"] = self._opts.timeout
        return httpx.Client(**kwargs)

    def _encode(self, annotation: GrafanaAnnotation) -> bytes:
        try:
            return annotation.to_json()
        except (TypeError, ValueError) as e:
            raise AnnotationEncodingError(
                f"unable to encode annotation: {e}",
                service=SERVICE_NAME,
            ) from e

    def _audience(self) -> str:
        if self._opts.audience:
            return self._opts.audience
        try:
            base = httpx.URL(self._opts.api_url)
        except httpx.InvalidURL:
            return self._opts.api_url
        if not base.scheme or not base.host:
            return self._opts.api_url
        return f"{base.scheme}://{base.netloc.decode('ascii')}"


def new_grafana_service(
    options: Union[GrafanaOptions, Mapping[str, Any]],
    **kwargs: Any,
) -> GrafanaService:
    """Build a GrafanaService from options or a wire-keyed mapping."""
    if not isinstance(options, GrafanaOptions):
        options = GrafanaOptions.from_mapping(options)
    return GrafanaService(options, **kwargs)


__all__ = [
    "AuthMode",
    "GrafanaAnnotation",
    "GrafanaService",
    "new_grafana_service",
]
