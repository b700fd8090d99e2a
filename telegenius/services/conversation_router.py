from enum import Enum
from typing import Optional

from telegenius.config import DEFAULT_PAYMENT_CONFIRMATION
from telegenius.logging_config import get_logger
from telegenius.models import Conversation
from telegenius.schemas import IgnoredUpdate, ImageMessage, InboundMessage, RemoteProfile
from telegenius.services import conversation_service
from telegenius.services.account_registry import AccountRegistry, RegisteredAccount
from telegenius.services.ai_service import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, generate_ai_response
from telegenius.services.alert_service import alert_payment_screenshot
from telegenius.services.llm import LLMProvider
from telegenius.services.result import Result
from telegenius.services.state_machine import awaits_payment_proof
from telegenius.services.telegram_service import describe_sender

logger = get_logger("conversation_router")


class RouteOutcome(str, Enum):
    IGNORED = "ignored"
    NEW_USER = "new_user"
    PAYMENT_SCREENSHOT = "payment_screenshot"
    REGULAR_MESSAGE = "regular_message"


class StepError(Exception):
    """A store or send step failed; code is reported in the Result."""

    def __init__(self, code: str, cause: Exception):
        self.code = code
        self.cause = cause
        super().__init__(f"{type(cause).__name__}: {cause}")


async def _store_step(awaitable):
    try:
        return await awaitable
    except Exception as e:
        raise StepError("db_error", e) from e


async def _send_step(awaitable):
    try:
        return await awaitable
    except Exception as e:
        raise StepError("send_error", e) from e


class ConversationRouter:
    """Per-message decision logic: new user, payment screenshot or regular reply.

    Every path returns a Result; nothing raises into the Telegram dispatcher,
    so one failed message never stops the next one.
    """

    def __init__(
        self,
        db,
        registry: AccountRegistry,
        llm_provider: LLMProvider,
        payment_confirmation_message: str = DEFAULT_PAYMENT_CONFIRMATION,
        llm_model: Optional[str] = None,
        llm_max_tokens: int = DEFAULT_MAX_TOKENS,
        llm_temperature: float = DEFAULT_TEMPERATURE,
    ):
        self.db = db
        self.registry = registry
        self.llm_provider = llm_provider
        self.payment_confirmation_message = payment_confirmation_message
        self.llm_model = llm_model
        self.llm_max_tokens = llm_max_tokens
        self.llm_temperature = llm_temperature

    async def handle_message(self, account_id: str, message: InboundMessage) -> Result[RouteOutcome]:
        if isinstance(message, IgnoredUpdate):
            logger.debug(f"Discarding update for account {account_id}: {message.reason}")
            return Result.success(RouteOutcome.IGNORED)

        entry = self.registry.get_entry(account_id)
        if entry is None:
            return Result.failure(f"No session registered for account {account_id}", "no_session")

        user_id = message.sender.user_id
        logger.info(
            f"New message from {describe_sender(message.sender)}: {message.text[:50]}",
            extra={"context": {"account_id": account_id, "telegram_user_id": user_id, "kind": message.kind}},
        )

        try:
            conversation = await _store_step(conversation_service.get_conversation(self.db, account_id, user_id))

            if conversation is None:
                outcome = await self.handle_new_user(entry, message)
            elif isinstance(message, ImageMessage) and awaits_payment_proof(conversation.status):
                outcome = await self.handle_payment_screenshot(entry, conversation)
            else:
                outcome = await self.handle_regular_message(entry, conversation, message)
        except StepError as e:
            logger.error(
                f"Message handling failed: {e}",
                extra={"context": {"account_id": account_id, "telegram_user_id": user_id, "error_code": e.code}},
            )
            return Result.failure(str(e), e.code)
        except Exception as e:
            logger.error(
                f"Unexpected error handling message: {e}",
                extra={"context": {"account_id": account_id, "telegram_user_id": user_id}},
                exc_info=True,
            )
            return Result.from_exception(e, "routing_error")

        return Result.success(outcome)

    async def handle_new_user(self, entry: RegisteredAccount, message: InboundMessage) -> RouteOutcome:
        """Create the conversation, then send the welcome template once."""
        profile = await self._resolve_profile(entry, message.sender)
        conversation, created = await _store_step(
            conversation_service.create_or_get_conversation(self.db, entry.account_id, profile)
        )
        if not created:
            return RouteOutcome.NEW_USER

        welcome = entry.persona.welcome_message if entry.persona else ""
        if welcome:
            await _send_step(entry.session.send_message(conversation.telegram_user_id, welcome))
            logger.info(
                f"Sent welcome message to {conversation.telegram_user_id}",
                extra={"context": {"account_id": entry.account_id, "conversation_id": conversation.id}},
            )
        return RouteOutcome.NEW_USER

    async def _resolve_profile(self, entry: RegisteredAccount, profile: RemoteProfile) -> RemoteProfile:
        # Senders without cached names are looked up once; the bare id is kept on failure.
        if profile.username or profile.first_name:
            return profile
        try:
            return await entry.session.get_profile(profile.user_id)
        except Exception as e:
            logger.warning(
                f"Could not resolve profile for {profile.user_id}: {e}",
                extra={"context": {"account_id": entry.account_id}},
            )
            return profile

    async def handle_payment_screenshot(self, entry: RegisteredAccount, conversation: Conversation) -> RouteOutcome:
        """pending_payment + image: hand the proof over to operator verification."""
        await _store_step(conversation_service.mark_payment_screenshot(self.db, conversation))
        await _store_step(
            conversation_service.create_payment_notification(
                self.db,
                conversation,
                account_id=entry.account_id,
                owner_user_id=entry.owner_user_id,
            )
        )
        await _send_step(entry.session.send_message(conversation.telegram_user_id, self.payment_confirmation_message))

        logger.info(
            f"Payment screenshot received from {conversation.telegram_user_id}",
            extra={"context": {"account_id": entry.account_id, "conversation_id": conversation.id}},
        )
        await alert_payment_screenshot(entry.account_id, conversation.id, conversation.telegram_user_id)
        return RouteOutcome.PAYMENT_SCREENSHOT

    async def handle_regular_message(
        self,
        entry: RegisteredAccount,
        conversation: Conversation,
        message: InboundMessage,
    ) -> RouteOutcome:
        """Count the message, then reply with a generated answer if one comes back."""
        await _store_step(conversation_service.record_inbound_message(self.db, conversation))

        if entry.persona is None:
            logger.warning(
                "No persona configured, skipping AI reply",
                extra={"context": {"account_id": entry.account_id}},
            )
            return RouteOutcome.REGULAR_MESSAGE

        ai_response = await generate_ai_response(
            self.llm_provider,
            entry.persona,
            message.text,
            model=self.llm_model,
            max_tokens=self.llm_max_tokens,
            temperature=self.llm_temperature,
        )
        if not ai_response:
            return RouteOutcome.REGULAR_MESSAGE

        await _send_step(entry.session.send_message(conversation.telegram_user_id, ai_response))
        await _store_step(conversation_service.record_ai_response(self.db, conversation))

        logger.info(
            f"Sent AI response to {conversation.telegram_user_id}",
            extra={"context": {"account_id": entry.account_id, "conversation_id": conversation.id}},
        )
        return RouteOutcome.REGULAR_MESSAGE
