from datetime import datetime, timezone
from typing import Any, Optional

from telegenius.logging_config import get_logger
from telegenius.models import ACCOUNTS_TABLE, PERSONAS_TABLE, Account, Persona

logger = get_logger("account_service")

# connection_status values written by the worker
STATUS_CONNECTED = "connected"
STATUS_ERROR = "error"
STATUS_DISCONNECTED = "disconnected"


async def fetch_active_accounts(db) -> list[Account]:
    """All accounts with is_active set, with their personas embedded."""
    response = await db.table(ACCOUNTS_TABLE).select("*, ai_personas(*)").eq("is_active", True).execute()

    accounts = []
    for row in response.data or []:
        try:
            accounts.append(Account.model_validate(row))
        except ValueError as e:
            logger.error(
                "Skipping malformed account row",
                extra={"context": {"account_id": row.get("id"), "error": str(e)}},
            )
    return accounts


async def fetch_persona(db, account_id: str) -> Optional[Persona]:
    """First persona configured for the account, if any."""
    response = await db.table(PERSONAS_TABLE).select("*").eq("account_id", account_id).limit(1).execute()
    rows = response.data or []
    return Persona.model_validate(rows[0]) if rows else None


async def _update_account(db, account_id: str, values: dict[str, Any]) -> None:
    await db.table(ACCOUNTS_TABLE).update(values).eq("id", account_id).execute()


async def mark_account_connected(db, account_id: str) -> None:
    await _update_account(
        db,
        account_id,
        {
            "connection_status": STATUS_CONNECTED,
            "last_connected_at": datetime.now(timezone.utc).isoformat(),
        },
    )


async def mark_account_failed(db, account_id: str) -> None:
    """Terminal until someone re-activates the row."""
    await _update_account(db, account_id, {"connection_status": STATUS_ERROR, "is_active": False})


async def mark_account_disconnected(db, account_id: str) -> None:
    await _update_account(db, account_id, {"connection_status": STATUS_DISCONNECTED})
