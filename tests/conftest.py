from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from skiddly.api.app import create_app
from skiddly.config.settings import get_settings

INTERNAL_TOKEN = "test-internal-token"
SHOPIFY_SECRET = "test-shopify-secret"
VAPI_SECRET = "test-vapi-secret"


@pytest.fixture()
def app(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("INTERNAL_TASK_TOKEN", INTERNAL_TOKEN)
    monkeypatch.setenv("SHOPIFY_API_SECRET", SHOPIFY_SECRET)
    monkeypatch.setenv("VAPI_WEBHOOK_SECRET", VAPI_SECRET)
    monkeypatch.setenv("VAPI_DEFAULT_ASSISTANT_ID", "assistant-test")
    get_settings.cache_clear()
    application = create_app()
    yield application
    get_settings.cache_clear()


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client
