from datetime import datetime, timezone
from typing import Optional, Tuple

from postgrest.exceptions import APIError

from telegenius.logging_config import get_logger
from telegenius.models import CONVERSATIONS_TABLE, PAYMENT_NOTIFICATIONS_TABLE, Conversation, PaymentNotification
from telegenius.schemas import RemoteProfile
from telegenius.services.state_machine import ConversationStatus, submit_payment_proof

logger = get_logger("conversation_service")

UNIQUE_VIOLATION = "23505"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def get_conversation(db, account_id: str, telegram_user_id: str) -> Optional[Conversation]:
    """Find the conversation for (account, remote user)."""
    response = await (
        db.table(CONVERSATIONS_TABLE)
        .select("*")
        .eq("account_id", account_id)
        .eq("telegram_user_id", telegram_user_id)
        .limit(1)
        .execute()
    )
    rows = response.data or []
    return Conversation.model_validate(rows[0]) if rows else None


async def create_or_get_conversation(db, account_id: str, profile: RemoteProfile) -> Tuple[Conversation, bool]:
    """Insert a new active conversation. Returns (conversation, created).

    If the insert hits the (account_id, telegram_user_id) unique constraint, a
    concurrent first message already created the row: that row is returned
    with created=False.
    """
    row = {
        "account_id": account_id,
        "telegram_user_id": profile.user_id,
        "telegram_username": profile.username or "",
        "telegram_first_name": profile.first_name or "",
        "status": ConversationStatus.ACTIVE.value,
        "message_count": 1,
        "last_message_at": _now(),
    }
    try:
        response = await db.table(CONVERSATIONS_TABLE).insert(row).execute()
    except APIError as e:
        if e.code != UNIQUE_VIOLATION:
            raise
        existing = await get_conversation(db, account_id, profile.user_id)
        if existing is None:
            raise
        logger.warning(
            "Conversation already created by a concurrent message",
            extra={"context": {"account_id": account_id, "telegram_user_id": profile.user_id}},
        )
        return existing, False

    rows = response.data or []
    if not rows:
        raise RuntimeError("Conversation insert returned no row")
    return Conversation.model_validate(rows[0]), True


async def record_inbound_message(db, conversation: Conversation) -> None:
    """Bump message_count and last_message_at. Last write wins."""
    await (
        db.table(CONVERSATIONS_TABLE)
        .update({"message_count": conversation.message_count + 1, "last_message_at": _now()})
        .eq("id", conversation.id)
        .execute()
    )


async def record_ai_response(db, conversation: Conversation) -> None:
    await (
        db.table(CONVERSATIONS_TABLE)
        .update({"total_ai_responses": conversation.total_ai_responses + 1})
        .eq("id", conversation.id)
        .execute()
    )


async def mark_payment_screenshot(db, conversation: Conversation) -> ConversationStatus:
    """pending_payment -> payment_verification, flagging the screenshot."""
    new_status = submit_payment_proof(ConversationStatus(conversation.status))
    await (
        db.table(CONVERSATIONS_TABLE)
        .update({"status": new_status.value, "has_payment_screenshot": True})
        .eq("id", conversation.id)
        .execute()
    )
    return new_status


async def create_payment_notification(
    db,
    conversation: Conversation,
    account_id: str,
    owner_user_id: Optional[str],
) -> PaymentNotification:
    notification = PaymentNotification(
        conversation_id=conversation.id,
        account_id=account_id,
        user_id=owner_user_id,
    )
    response = await (
        db.table(PAYMENT_NOTIFICATIONS_TABLE)
        .insert(notification.model_dump(exclude={"id"}))
        .execute()
    )
    rows = response.data or []
    return PaymentNotification.model_validate(rows[0]) if rows else notification
