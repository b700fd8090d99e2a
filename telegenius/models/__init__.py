from telegenius.models.account import Account
from telegenius.models.conversation import Conversation
from telegenius.models.payment_notification import PaymentNotification
from telegenius.models.persona import Persona

ACCOUNTS_TABLE = "telegram_accounts"
PERSONAS_TABLE = "ai_personas"
CONVERSATIONS_TABLE = "conversations"
PAYMENT_NOTIFICATIONS_TABLE = "payment_notifications"

__all__ = [
    "Account",
    "Persona",
    "Conversation",
    "PaymentNotification",
    "ACCOUNTS_TABLE",
    "PERSONAS_TABLE",
    "CONVERSATIONS_TABLE",
    "PAYMENT_NOTIFICATIONS_TABLE",
]
