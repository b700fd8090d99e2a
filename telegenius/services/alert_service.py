"""Operator alerts sent to a Telegram chat through the Bot API."""

import os
from typing import Optional

import httpx

from telegenius.logging_config import get_logger

logger = get_logger("alert_service")

ALERT_BOT_TOKEN = os.environ.get("ALERT_BOT_TOKEN")
ALERT_CHAT_ID = os.environ.get("ALERT_CHAT_ID")


async def send_alert(level: str, message: str, context: Optional[dict] = None) -> bool:
    """Send alert to the operator chat.

    Args:
        level: INFO, WARNING, ERROR, CRITICAL
        message: Alert message
        context: Optional context dict

    Returns:
        True if sent successfully. Alerts are best effort and never raise.
    """
    if not ALERT_BOT_TOKEN or not ALERT_CHAT_ID:
        logger.debug(f"Alert not configured: {level} - {message}")
        return False

    emoji = {"INFO": "ℹ️", "WARNING": "⚠️", "ERROR": "❌", "CRITICAL": "🔥"}

    text = f"{emoji.get(level, '📢')} *{level}*\n\n{message}"

    if context:
        context_str = "\n".join(f"  {k}: {v}" for k, v in context.items())
        text += f"\n\n```\n{context_str}\n```"

    try:
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.post(
                f"https://api.telegram.org/bot{ALERT_BOT_TOKEN}/sendMessage",
                json={"chat_id": ALERT_CHAT_ID, "text": text, "parse_mode": "Markdown"},
            )
            return response.status_code == 200
    except Exception as e:
        logger.error(f"Failed to send alert: {e}")
        return False


async def alert_info(message: str, context: Optional[dict] = None) -> bool:
    return await send_alert("INFO", message, context)


async def alert_error(message: str, context: Optional[dict] = None) -> bool:
    """Shortcut for ERROR level alert."""
    return await send_alert("ERROR", message, context)


async def alert_payment_screenshot(account_id: str, conversation_id: str, telegram_user_id: str) -> bool:
    """Tell the creator's operators a payment proof is waiting for review."""
    return await alert_info(
        "Nuova prova di pagamento da verificare",
        {
            "account_id": account_id,
            "conversation_id": conversation_id,
            "telegram_user_id": telegram_user_id,
        },
    )


async def alert_connection_failed(account_id: str, error: str) -> bool:
    return await alert_error(
        "Telegram account disconnected after failed login",
        {"account_id": account_id, "error": error},
    )
