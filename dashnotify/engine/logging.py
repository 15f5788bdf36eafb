"""
dashnotify Logging — Service-tagged loggers and an instrumented HTTP transport.

Implements:
- ServiceLogger: LoggerAdapter stamping ``service=<name>`` on every record
- LoggingTransport: httpx transport wrapper logging each outbound call
- configure_logging: root handler setup for the CLI

Services take their logger as a constructor argument so tests (and the
dispatch layer) can capture what is emitted.
"""

from __future__ import annotations

import logging
import sys
import time
import urllib.request
from typing import Any, MutableMapping, Optional, Tuple

import httpx

logger = logging.getLogger("dashnotify.engine.logging")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class ServiceLogger(logging.LoggerAdapter):
    """
    Leveled logger tagged with a notification service name.

    Adds ``service`` to each record's ``extra`` and prefixes the message
    with ``[service]`` so plain-text handlers show it too.
    """

    def __init__(self, base: logging.Logger, service: str):
        super().__init__(base, {"service": service})

    @property
    def service(self) -> str:
        return self.extra["service"]

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra)
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return f"[{self.service}] {msg}", kwargs


def service_logger(service: str, name: Optional[str] = None) -> ServiceLogger:
    """Return a ServiceLogger over ``dashnotify.services.<service>`` (or ``name``)."""
    return ServiceLogger(logging.getLogger(name or f"dashnotify.services.{service}"), service)


class LoggingTransport(httpx.BaseTransport):
    """
    Wraps another httpx transport and logs every request it carries.

    Request line and response status are logged at DEBUG; transport
    failures are logged at WARNING and re-raised unchanged.
    """

    def __init__(
        self,
        transport: httpx.BaseTransport,
        log: logging.LoggerAdapter | logging.Logger,
        close_transport: bool = True,
    ):
        self._transport = transport
        self._log = log
        self._close_transport = close_transport

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        url = redact_url(request.url)
        self._log.debug(f"{request.method} {url}")
        start = time.monotonic()
        try:
            response = self._transport.handle_request(request)
        except httpx.TransportError as e:
            duration_ms = (time.monotonic() - start) * 1000
            self._log.warning(
                f"{request.method} {url} failed after {duration_ms:.1f}ms: {e!r}"
            )
            raise
        duration_ms = (time.monotonic() - start) * 1000
        self._log.debug(
            f"{request.method} {url} -> {response.status_code} ({duration_ms:.1f}ms)"
        )
        return response

    def close(self) -> None:
        if self._close_transport:
            self._transport.close()


def redact_url(url: httpx.URL) -> httpx.URL:
    """``url`` without username/password, for messages and logs."""
    if not url.userinfo:
        return url
    return url.copy_with(username=None, password=None)


def environment_proxy(url: httpx.URL) -> Optional[str]:
    """
    Proxy URL for ``url`` from HTTP_PROXY / HTTPS_PROXY / ALL_PROXY,
    or None when unset or the host matches NO_PROXY.
    """
    proxies = urllib.request.getproxies()
    proxy = proxies.get(url.scheme) or proxies.get("all")
    if not proxy:
        return None
    host = url.host if url.port is None else f"{url.host}:{url.port}"
    if urllib.request.proxy_bypass(host):
        return None
    if "://" not in proxy:
        proxy = f"http://{proxy}"
    return proxy


def new_transport(
    insecure_skip_verify: bool = False,
    url: Optional[httpx.URL] = None,
) -> httpx.HTTPTransport:
    """
    HTTP transport honoring the TLS verification flag.

    When ``url`` is given, the environment proxy for it (if any) is used,
    since httpx skips proxy variables once a transport is passed explicitly.
    """
    proxy = environment_proxy(url) if url is not None else None
    if proxy:
        logger.debug(f"Routing {redact_url(url)} through proxy {redact_url(httpx.URL(proxy))}")
    return httpx.HTTPTransport(verify=not insecure_skip_verify, proxy=proxy)


def configure_logging(level: str = "INFO") -> None:
    """Attach a stderr handler to the root logger at ``level``."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    if not any(getattr(h, "_dashnotify", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._dashnotify = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    logger.debug(f"Logging configured at {level.upper()}")
