"""
dashnotify Test Suite — Shared fixtures and configuration.

Run:  pytest tests/ -v
"""

from __future__ import annotations

import threading
from typing import Callable, List, Optional

import httpx
import pytest

from dashnotify.engine.config import GrafanaOptions
from dashnotify.services.grafana import GrafanaService


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it was handed."""

    def __init__(self, handler: Optional[Callable[[httpx.Request], httpx.Response]] = None):
        self.requests: List[httpx.Request] = []
        self._lock = threading.Lock()
        self._reply = handler or (lambda request: httpx.Response(200, json={"id": 1, "message": "Annotation added"}))
        super().__init__(self._record)

    def _record(self, request: httpx.Request) -> httpx.Response:
        request.read()
        with self._lock:
            self.requests.append(request)
        return self._reply(request)

    @property
    def call_count(self) -> int:
        return len(self.requests)


@pytest.fixture
def transport():
    """Transport answering 200 to every request."""
    return RecordingTransport()


@pytest.fixture
def options():
    return GrafanaOptions(api_url="http://grafana.local/api", api_key="test-api-key")


@pytest.fixture
def make_service(transport):
    """Factory building a GrafanaService over the recording transport."""

    def _make(**overrides) -> GrafanaService:
        opts = {"apiUrl": "http://grafana.local/api", "apiKey": "test-api-key"}
        opts.update(overrides)
        return GrafanaService(GrafanaOptions.from_mapping(opts), transport=transport)

    return _make


@pytest.fixture
def options_file(tmp_path):
    """YAML options file with a grafana section."""
    path = tmp_path / "notify.yaml"
    path.write_text(
        "grafana:\n"
        "  apiUrl: http://grafana.local/api\n"
        "  apiKey: file-api-key\n"
        "  insecureSkipVerify: true\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def recording_transport():
    """The RecordingTransport class, for tests that need a custom reply."""
    return RecordingTransport
