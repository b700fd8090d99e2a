from telegenius.schemas.telegram import (
    AccountChange,
    ChangeType,
    IgnoredUpdate,
    ImageMessage,
    InboundMessage,
    RemoteProfile,
    TextMessage,
)

__all__ = [
    "AccountChange",
    "ChangeType",
    "IgnoredUpdate",
    "ImageMessage",
    "InboundMessage",
    "RemoteProfile",
    "TextMessage",
]
