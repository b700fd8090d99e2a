from typing import Awaitable, Callable, Optional

from telethon import TelegramClient, events
from telethon.sessions import StringSession

from telegenius.logging_config import get_logger
from telegenius.models import Account
from telegenius.schemas import IgnoredUpdate, ImageMessage, InboundMessage, RemoteProfile, TextMessage

logger = get_logger("telegram_service")

MessageHandler = Callable[[InboundMessage], Awaitable[None]]


class SessionNotAuthorizedError(Exception):
    """Stored session string no longer grants access to the account."""


def _is_image(event) -> bool:
    if getattr(event, "photo", None):
        return True
    document = getattr(event, "document", None)
    mime_type = getattr(document, "mime_type", None) or ""
    return mime_type.startswith("image/")


def profile_from_user(user_id, user) -> RemoteProfile:
    return RemoteProfile(
        user_id=str(user_id),
        username=getattr(user, "username", None),
        first_name=getattr(user, "first_name", None),
        last_name=getattr(user, "last_name", None),
    )


async def parse_new_message(event) -> InboundMessage:
    """Resolve a Telethon NewMessage event into TextMessage/ImageMessage/IgnoredUpdate."""
    if getattr(event, "out", False):
        return IgnoredUpdate(reason="outgoing")
    if not getattr(event, "is_private", False):
        return IgnoredUpdate(reason="not_private")
    if event.sender_id is None:
        return IgnoredUpdate(reason="no_sender")

    sender = await event.get_sender()
    if getattr(sender, "bot", False):
        return IgnoredUpdate(reason="bot_sender")

    profile = profile_from_user(event.sender_id, sender)
    text = event.raw_text or ""

    if _is_image(event):
        return ImageMessage(sender=profile, text=text)
    return TextMessage(sender=profile, text=text)


class TelegramSession:
    """One authenticated MTProto user session (Telethon client) per account."""

    def __init__(self, account_id: str, client: TelegramClient):
        self.account_id = account_id
        self.client = client

    @classmethod
    def from_account(cls, account: Account, connection_retries: int = 5) -> "TelegramSession":
        client = TelegramClient(
            StringSession(account.session_data),
            int(account.api_id),
            account.api_hash,
            connection_retries=connection_retries,
        )
        return cls(account.id, client)

    async def connect(self) -> None:
        await self.client.connect()
        if not await self.client.is_user_authorized():
            await self.client.disconnect()
            raise SessionNotAuthorizedError(f"Session for account {self.account_id} is not authorized")

    def on_message(self, handler: MessageHandler) -> None:
        """Register a handler for incoming messages. Parse errors drop the event."""

        async def _dispatch(event) -> None:
            try:
                message = await parse_new_message(event)
            except Exception as e:
                logger.warning(
                    "Dropping unparseable update",
                    extra={"context": {"account_id": self.account_id, "error": str(e)}},
                    exc_info=True,
                )
                return
            await handler(message)

        self.client.add_event_handler(_dispatch, events.NewMessage(incoming=True))

    async def send_message(self, user_id: str, text: str) -> None:
        await self.client.send_message(int(user_id), text)

    async def get_profile(self, user_id: str) -> RemoteProfile:
        user = await self.client.get_entity(int(user_id))
        return profile_from_user(user_id, user)

    async def disconnect(self) -> None:
        if self.is_connected:
            await self.client.disconnect()

    @property
    def is_connected(self) -> bool:
        return bool(self.client.is_connected())


SessionFactory = Callable[[Account, int], TelegramSession]


def default_session_factory(account: Account, connection_retries: int) -> TelegramSession:
    return TelegramSession.from_account(account, connection_retries=connection_retries)


def describe_sender(profile: Optional[RemoteProfile]) -> str:
    if profile is None:
        return "unknown"
    return profile.username or profile.first_name or profile.user_id
