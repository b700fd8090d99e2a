from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class PaymentNotification(BaseModel):
    """Row of `payment_notifications`; resolved by operators outside the worker."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    conversation_id: str
    account_id: str
    user_id: Optional[str] = None
    status: str = "pending"  # pending, approved, rejected
    payment_method: str = "screenshot"

    @field_validator("id", "conversation_id", "account_id", "user_id", mode="before")
    @classmethod
    def _coerce_str(cls, value):
        return None if value is None else str(value)
