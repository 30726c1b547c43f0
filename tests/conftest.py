"""테스트 공용 픽스처"""
import pytest

from infinitepay_webhook.core.config import Settings
from infinitepay_webhook.services.webhook_service import WebhookService
from stubs import StubStore


@pytest.fixture
def settings() -> Settings:
    return Settings(
        SUPABASE_URL="https://example.supabase.co",
        SUPABASE_SERVICE_ROLE_KEY="service-role-test-key",
    )


@pytest.fixture
def store() -> StubStore:
    return StubStore()


@pytest.fixture
def service(store: StubStore, settings: Settings) -> WebhookService:
    return WebhookService(store, settings)
