"""TeleGenius worker: relays Telegram user-account chats to persona-driven replies."""

__version__ = "0.1.0"
