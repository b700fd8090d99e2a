from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Optional

from telegenius.models import Persona

if TYPE_CHECKING:
    from telegenius.services.telegram_service import TelegramSession


@dataclass
class RegisteredAccount:
    account_id: str
    session: "TelegramSession"
    persona: Optional[Persona] = None
    owner_user_id: Optional[str] = None


class AccountRegistry:
    """Open sessions keyed by account id, for the lifetime of the process.

    Owned by the worker and handed to the supervisor and the router; only
    touched from the event loop, so no locking.
    """

    def __init__(self):
        self._entries: dict[str, RegisteredAccount] = {}

    def register(
        self,
        account_id: str,
        session: "TelegramSession",
        persona: Optional[Persona] = None,
        owner_user_id: Optional[str] = None,
    ) -> RegisteredAccount:
        entry = RegisteredAccount(
            account_id=account_id,
            session=session,
            persona=persona,
            owner_user_id=owner_user_id,
        )
        self._entries[account_id] = entry
        return entry

    def get(self, account_id: str) -> Optional["TelegramSession"]:
        entry = self._entries.get(account_id)
        return entry.session if entry else None

    def get_entry(self, account_id: str) -> Optional[RegisteredAccount]:
        return self._entries.get(account_id)

    def has(self, account_id: str) -> bool:
        return account_id in self._entries

    def remove(self, account_id: str) -> Optional[RegisteredAccount]:
        return self._entries.pop(account_id, None)

    def account_ids(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RegisteredAccount]:
        return iter(list(self._entries.values()))
