"""
Shared fixtures: an isolated config file and a mock LM Studio server.
"""
from __future__ import annotations

import httpx
import pytest

from lmstudio_probe import config as config_module


@pytest.fixture(autouse=True)
def config_file(tmp_path, monkeypatch):
    """Point the config at a temp dir and clear env overrides."""
    path = tmp_path / "lmstudio-probe" / "config.json"
    monkeypatch.setattr(config_module, "CONFIG_DIR", path.parent)
    monkeypatch.setattr(config_module, "CONFIG_FILE", path)
    for var in ("LMSTUDIO_BASE_URL", "LMSTUDIO_MODEL", "LMSTUDIO_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    return path


def envelope(*ids: str) -> dict:
    """Build a /v1/models body listing the given ids."""
    return {
        "object": "list",
        "data": [
            {"id": model_id, "object": "model", "owned_by": "organization_owner"}
            for model_id in ids
        ],
    }


class MockLMStudio:
    """Records what the client sent and answers with ``handler``."""

    def __init__(self, handler):
        self.handler = handler
        self.requests: list[httpx.Request] = []
        self.timeouts: list = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]


@pytest.fixture
def lm_studio_server(monkeypatch):
    """
    Install a mock LM Studio server.

    Every ``httpx.AsyncClient`` built during the test talks to ``handler``
    through an ``httpx.MockTransport``.
    """
    real_client = httpx.AsyncClient

    def install(handler) -> MockLMStudio:
        server = MockLMStudio(handler)
        transport = httpx.MockTransport(server)

        def make_client(*args, **kwargs):
            server.timeouts.append(kwargs.get("timeout"))
            return real_client(*args, transport=transport, **kwargs)

        monkeypatch.setattr(httpx, "AsyncClient", make_client)
        return server

    return install


@pytest.fixture
def serve_models(lm_studio_server):
    """Install a server that lists the given ids."""
    def install(*ids: str) -> MockLMStudio:
        return lm_studio_server(lambda request: httpx.Response(200, json=envelope(*ids)))
    return install


@pytest.fixture
def unreachable_server(lm_studio_server):
    def refuse(request):
        raise httpx.ConnectError("Connection refused", request=request)
    return lm_studio_server(refuse)
