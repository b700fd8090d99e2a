from unittest.mock import AsyncMock, patch

import pytest

from fakes import FakeSession, image_message, make_profile, persona_row, text_message
from telegenius.config import DEFAULT_PAYMENT_CONFIRMATION
from telegenius.models import Conversation, Persona
from telegenius.schemas import IgnoredUpdate, TextMessage
from telegenius.services.account_registry import AccountRegistry
from telegenius.services.conversation_router import ConversationRouter, RouteOutcome


@pytest.fixture
def session():
    return FakeSession("acc-1")


@pytest.fixture
def registry(session):
    registry = AccountRegistry()
    registry.register("acc-1", session, Persona.model_validate(persona_row("acc-1")), owner_user_id="owner-1")
    return registry


@pytest.fixture
def router(store, registry, provider):
    return ConversationRouter(store, registry, provider, llm_model="test-model")


def _seed_conversation(store, **overrides):
    row = {
        "id": "conv-1",
        "account_id": "acc-1",
        "telegram_user_id": "555",
        "status": "active",
        "message_count": 1,
        "total_ai_responses": 0,
        "has_payment_screenshot": False,
    }
    row.update(overrides)
    store.seed("conversations", row)
    return store.tables["conversations"][-1]


class TestIgnoredMessages:
    @pytest.mark.asyncio
    async def test_non_private_message_touches_nothing(self, router, store, session):
        result = await router.handle_message("acc-1", IgnoredUpdate(reason="not_private"))

        assert result.ok is True
        assert result.value == RouteOutcome.IGNORED
        assert store.calls == []
        assert session.sent == []

    @pytest.mark.asyncio
    async def test_unknown_account(self, router, store):
        result = await router.handle_message("acc-unknown", text_message())

        assert result.ok is False
        assert result.error_code == "no_session"
        assert store.calls == []


class TestNewUser:
    @pytest.mark.asyncio
    async def test_creates_conversation_and_sends_welcome_once(self, router, store, session):
        result = await router.handle_message("acc-1", text_message("Ciao"))

        assert result.ok is True
        assert result.value == RouteOutcome.NEW_USER
        rows = store.tables["conversations"]
        assert len(rows) == 1
        assert rows[0]["status"] == "active"
        assert rows[0]["message_count"] == 1
        assert rows[0]["telegram_user_id"] == "555"
        assert session.sent == [("555", "Benvenuto! 👋")]

    @pytest.mark.asyncio
    async def test_first_message_does_not_call_generation(self, router, provider):
        await router.handle_message("acc-1", text_message("Ciao"))
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_first_message_with_image_is_still_new_user(self, router, store):
        result = await router.handle_message("acc-1", image_message())

        assert result.value == RouteOutcome.NEW_USER
        assert store.tables.get("payment_notifications", []) == []

    @pytest.mark.asyncio
    async def test_empty_welcome_sends_nothing(self, store, session, provider):
        registry = AccountRegistry()
        registry.register("acc-1", session, Persona.model_validate(persona_row(welcome_message="")))
        router = ConversationRouter(store, registry, provider)

        result = await router.handle_message("acc-1", text_message())

        assert result.value == RouteOutcome.NEW_USER
        assert len(store.tables["conversations"]) == 1
        assert session.sent == []

    @pytest.mark.asyncio
    async def test_welcome_send_failure_keeps_conversation(self, router, store, session):
        session.send_error = ConnectionError("peer flood")

        result = await router.handle_message("acc-1", text_message())

        assert result.ok is False
        assert result.error_code == "send_error"
        assert len(store.tables["conversations"]) == 1

    @pytest.mark.asyncio
    async def test_nameless_sender_is_resolved(self, router, store, session):
        session.profiles["555"] = make_profile("555", username="lucia", first_name="Lucia")
        message = TextMessage(sender=make_profile("555", username=None, first_name=None), text="Ciao")

        await router.handle_message("acc-1", message)

        row = store.tables["conversations"][0]
        assert row["telegram_username"] == "lucia"
        assert row["telegram_first_name"] == "Lucia"

    @pytest.mark.asyncio
    async def test_profile_lookup_failure_keeps_bare_id(self, router, store, session):
        session.profile_error = ValueError("Could not find the input entity")
        message = TextMessage(sender=make_profile("555", username=None, first_name=None), text="Ciao")

        result = await router.handle_message("acc-1", message)

        assert result.ok is True
        row = store.tables["conversations"][0]
        assert row["telegram_user_id"] == "555"
        assert row["telegram_username"] == ""

    @pytest.mark.asyncio
    async def test_concurrent_first_message_does_not_welcome_twice(self, router, store, session):
        # Lookup saw no row, but a concurrent first message inserted it before us.
        row = _seed_conversation(store)
        with patch(
            "telegenius.services.conversation_router.conversation_service.get_conversation",
            AsyncMock(side_effect=[None, Conversation.model_validate(row)]),
        ):
            result = await router.handle_message("acc-1", text_message())

        assert result.ok is True
        assert result.value == RouteOutcome.NEW_USER
        assert session.sent == []
        assert len(store.tables["conversations"]) == 1


class TestRegularMessage:
    @pytest.mark.asyncio
    async def test_increments_and_replies_to_same_user(self, router, store, session, provider):
        row = _seed_conversation(store, message_count=1, total_ai_responses=0)

        result = await router.handle_message("acc-1", text_message("Quanto costa?"))

        assert result.ok is True
        assert result.value == RouteOutcome.REGULAR_MESSAGE
        assert row["message_count"] == 2
        assert row["total_ai_responses"] == 1
        assert session.sent == [("555", "Ciao! Come posso aiutarti?")]
        assert provider.calls[0]["messages"][1] == {"role": "user", "content": "Quanto costa?"}
        assert provider.calls[0]["model"] == "test-model"

    @pytest.mark.asyncio
    async def test_generation_failure_sends_nothing_but_counts(self, store, registry, session, failing_provider):
        router = ConversationRouter(store, registry, failing_provider)
        row = _seed_conversation(store, message_count=4, total_ai_responses=2)

        result = await router.handle_message("acc-1", text_message("Ciao"))

        assert result.ok is True
        assert row["message_count"] == 5
        assert row["total_ai_responses"] == 2
        assert session.sent == []

    @pytest.mark.asyncio
    async def test_image_while_active_is_regular(self, router, store):
        row = _seed_conversation(store, status="active")

        result = await router.handle_message("acc-1", image_message(caption="guarda"))

        assert result.value == RouteOutcome.REGULAR_MESSAGE
        assert row["status"] == "active"
        assert store.tables.get("payment_notifications", []) == []

    @pytest.mark.asyncio
    async def test_text_while_pending_payment_is_regular(self, router, store):
        row = _seed_conversation(store, status="pending_payment")

        result = await router.handle_message("acc-1", text_message("ho pagato"))

        assert result.value == RouteOutcome.REGULAR_MESSAGE
        assert row["status"] == "pending_payment"

    @pytest.mark.asyncio
    async def test_without_persona_only_counts(self, store, session, provider):
        registry = AccountRegistry()
        registry.register("acc-1", session, None)
        router = ConversationRouter(store, registry, provider)
        row = _seed_conversation(store, message_count=1)

        result = await router.handle_message("acc-1", text_message())

        assert result.ok is True
        assert row["message_count"] == 2
        assert provider.calls == []
        assert session.sent == []

    @pytest.mark.asyncio
    async def test_store_error_is_reported_not_raised(self, router, store, session):
        _seed_conversation(store)
        store.failures[("conversations", "update")] = RuntimeError("connection reset")

        result = await router.handle_message("acc-1", text_message())

        assert result.ok is False
        assert result.error_code == "db_error"
        assert session.sent == []

    @pytest.mark.asyncio
    async def test_lookup_error_is_reported_not_raised(self, router, store):
        store.failures[("conversations", "select")] = RuntimeError("timeout")

        result = await router.handle_message("acc-1", text_message())

        assert result.ok is False
        assert result.error_code == "db_error"

    @pytest.mark.asyncio
    async def test_reply_send_failure_skips_response_counter(self, router, store, session):
        row = _seed_conversation(store, total_ai_responses=0)
        session.send_error = ConnectionError("disconnected")

        result = await router.handle_message("acc-1", text_message())

        assert result.error_code == "send_error"
        assert row["total_ai_responses"] == 0

    @pytest.mark.asyncio
    async def test_failure_does_not_block_next_message(self, router, store, session):
        row = _seed_conversation(store, message_count=1)
        store.failures[("conversations", "update")] = RuntimeError("boom")
        assert (await router.handle_message("acc-1", text_message())).ok is False

        del store.failures[("conversations", "update")]
        result = await router.handle_message("acc-1", text_message())

        assert result.ok is True
        assert row["message_count"] == 2


class TestPaymentScreenshot:
    @pytest.mark.asyncio
    async def test_transitions_notifies_and_confirms(self, router, store, session, provider):
        row = _seed_conversation(store, status="pending_payment")

        result = await router.handle_message("acc-1", image_message())

        assert result.ok is True
        assert result.value == RouteOutcome.PAYMENT_SCREENSHOT
        assert row["status"] == "payment_verification"
        assert row["has_payment_screenshot"] is True
        notifications = store.tables["payment_notifications"]
        assert len(notifications) == 1
        assert notifications[0]["conversation_id"] == "conv-1"
        assert notifications[0]["account_id"] == "acc-1"
        assert notifications[0]["user_id"] == "owner-1"
        assert notifications[0]["status"] == "pending"
        assert session.sent == [("555", DEFAULT_PAYMENT_CONFIRMATION)]
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_custom_confirmation_message(self, store, registry, session, provider):
        router = ConversationRouter(store, registry, provider, payment_confirmation_message="Thanks!")
        _seed_conversation(store, status="pending_payment")

        await router.handle_message("acc-1", image_message())

        assert session.sent == [("555", "Thanks!")]

    @pytest.mark.asyncio
    async def test_alerts_operators(self, router, store):
        _seed_conversation(store, status="pending_payment")

        with patch(
            "telegenius.services.conversation_router.alert_payment_screenshot", AsyncMock(return_value=True)
        ) as mock_alert:
            await router.handle_message("acc-1", image_message())

        mock_alert.assert_awaited_once_with("acc-1", "conv-1", "555")

    @pytest.mark.asyncio
    async def test_second_screenshot_after_verification_is_regular(self, router, store):
        _seed_conversation(store, status="pending_payment")
        await router.handle_message("acc-1", image_message())

        result = await router.handle_message("acc-1", image_message())

        assert result.value == RouteOutcome.REGULAR_MESSAGE
        assert len(store.tables["payment_notifications"]) == 1
