from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from telegenius.models import Account


class RemoteProfile(BaseModel):
    """Profile of the Telegram user on the other side of a private chat."""

    user_id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class TextMessage(BaseModel):
    kind: Literal["text"] = "text"
    sender: RemoteProfile
    text: str = ""


class ImageMessage(BaseModel):
    kind: Literal["image"] = "image"
    sender: RemoteProfile
    text: str = ""  # caption, if any


class IgnoredUpdate(BaseModel):
    kind: Literal["ignored"] = "ignored"
    reason: str  # not_private, outgoing, no_sender, ...


# Resolved once at the Telethon boundary; everything downstream sees only these.
InboundMessage = Annotated[Union[TextMessage, ImageMessage, IgnoredUpdate], Field(discriminator="kind")]


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class AccountChange(BaseModel):
    """Row-level change on `telegram_accounts` delivered by the realtime feed."""

    model_config = ConfigDict(extra="ignore")

    type: ChangeType
    record: dict[str, Any] = {}
    old_record: dict[str, Any] = {}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "AccountChange":
        """Accept both the `{data: {type, record, old_record}}` and the
        `{eventType, new, old}` payload shapes emitted by realtime clients."""
        data = payload.get("data", payload)
        change_type = data.get("type") or data.get("eventType")
        # realtime delivers its own str Enum here; str() of it is the member name
        change_type = getattr(change_type, "value", change_type)
        record = data.get("record") or data.get("new") or {}
        old_record = data.get("old_record") or data.get("old") or {}
        return cls(type=str(change_type).upper(), record=record, old_record=old_record)

    @property
    def account_id(self) -> Optional[str]:
        raw = self.record.get("id") or self.old_record.get("id")
        return None if raw is None else str(raw)

    @property
    def is_active(self) -> bool:
        return bool(self.record.get("is_active"))

    def account(self) -> Account:
        return Account.model_validate(self.record)
