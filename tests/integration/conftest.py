"""
Integration test fixtures for Masjid Irshad Push.

Provides fixtures specific to integration testing:
- FastAPI test client against an isolated database
- Push service stub shared by the send endpoint
"""

from collections.abc import AsyncGenerator, Generator

import httpx
import pytest
from fastapi.testclient import TestClient

from irshad.config import ApiSettingsConfig, PushConfig, VapidSettingsConfig


SEND_TOKEN = "test-send-token"


class RecordingPushService:
    """Answers every push request with a fixed status and keeps the requests."""

    def __init__(self, status_code: int = 201):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code)


@pytest.fixture
def push_service() -> RecordingPushService:
    return RecordingPushService()


@pytest.fixture
def api_config(vapid_keys) -> PushConfig:
    return PushConfig(
        vapid=VapidSettingsConfig(
            public_key=vapid_keys.public_key,
            private_key=vapid_keys.private_key,
        ),
        api=ApiSettingsConfig(send_token=SEND_TOKEN, subscribe_rate_limit=3),
    )


@pytest.fixture
def test_client(push_db, no_vapid_env, api_config, push_service) -> Generator[TestClient, None, None]:
    """TestClient with config and push transport overridden."""
    from irshad.api.main import app
    from irshad.api.routes.push import get_http_client, get_push_config

    async def _push_client() -> AsyncGenerator[httpx.AsyncClient, None]:
        async with httpx.AsyncClient(transport=httpx.MockTransport(push_service)) as client:
            yield client

    app.dependency_overrides[get_push_config] = lambda: api_config
    app.dependency_overrides[get_http_client] = _push_client

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
