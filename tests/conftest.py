import pytest

from fakes import FakeProvider, FakeSupabase
from telegenius.services.llm.base import LLMProviderError


@pytest.fixture
def store():
    return FakeSupabase(unique={"conversations": ("account_id", "telegram_user_id")})


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def failing_provider():
    return FakeProvider(error=LLMProviderError("Together API error: 500 - boom", status_code=500))


@pytest.fixture(autouse=True)
def no_alerts(monkeypatch):
    monkeypatch.setattr("telegenius.services.alert_service.ALERT_BOT_TOKEN", None)
    monkeypatch.setattr("telegenius.services.alert_service.ALERT_CHAT_ID", None)


@pytest.fixture
def mock_env(monkeypatch):
    """Set the required environment variables."""
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_KEY", "service-key")
    monkeypatch.setenv("TOGETHER_AI_API_KEY", "together-key")
