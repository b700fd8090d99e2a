from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class Conversation(BaseModel):
    """Row of `conversations`, unique per (account_id, telegram_user_id)."""

    model_config = ConfigDict(extra="ignore")

    id: str
    account_id: str
    telegram_user_id: str
    telegram_username: Optional[str] = None
    telegram_first_name: Optional[str] = None
    status: str = "active"  # active, pending_payment, payment_verification
    message_count: int = 0
    total_ai_responses: int = 0
    has_payment_screenshot: bool = False
    last_message_at: Optional[str] = None

    @field_validator("id", "account_id", "telegram_user_id", mode="before")
    @classmethod
    def _coerce_str(cls, value):
        return str(value)

    @field_validator("message_count", "total_ai_responses", mode="before")
    @classmethod
    def _none_to_zero(cls, value):
        return value or 0

    @field_validator("has_payment_screenshot", mode="before")
    @classmethod
    def _none_to_false(cls, value):
        return bool(value)
