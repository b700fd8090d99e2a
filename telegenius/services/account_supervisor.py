import asyncio
from typing import Any, Optional

from telegenius.logging_config import get_logger
from telegenius.models import ACCOUNTS_TABLE, Account, Persona
from telegenius.schemas import AccountChange, ChangeType, InboundMessage
from telegenius.services import account_service
from telegenius.services.account_registry import AccountRegistry
from telegenius.services.alert_service import alert_connection_failed
from telegenius.services.conversation_router import ConversationRouter
from telegenius.services.result import Result
from telegenius.services.telegram_service import SessionFactory, default_session_factory

logger = get_logger("account_supervisor")

DEFAULT_CHANNEL = "telegram_accounts_changes"


class AccountSupervisor:
    """Opens a Telegram session per active account and keeps the set current.

    Startup loads every active account; afterwards the store's change feed on
    `telegram_accounts` connects newly activated accounts and disconnects
    deactivated or deleted ones.
    """

    def __init__(
        self,
        db,
        registry: AccountRegistry,
        router: ConversationRouter,
        session_factory: SessionFactory = default_session_factory,
        connection_retries: int = 5,
        channel_name: str = DEFAULT_CHANNEL,
    ):
        self.db = db
        self.registry = registry
        self.router = router
        self.session_factory = session_factory
        self.connection_retries = connection_retries
        self.channel_name = channel_name
        self._connecting: set[str] = set()
        # deactivated or deleted while their connect was still in flight
        self._cancelled: set[str] = set()
        self._tasks: set[asyncio.Task] = set()
        self._channel = None

    async def start(self) -> None:
        await self.load_active_accounts()
        await self.watch_for_account_changes()
        logger.info("Worker is running", extra={"context": {"connected_accounts": len(self.registry)}})

    async def stop(self) -> None:
        for entry in self.registry:
            await self._close_session(entry.account_id)

    async def load_active_accounts(self) -> None:
        try:
            accounts = await account_service.fetch_active_accounts(self.db)
        except Exception as e:
            logger.error(f"Error loading accounts: {e}", exc_info=True)
            return

        logger.info(f"Loaded {len(accounts)} active accounts")
        connected = 0
        for account in accounts:
            if not account.is_active:
                continue
            result = await self.connect_account(account, account.persona)
            if not result.ok:
                logger.warning(
                    "Account not connected at startup",
                    extra={"context": {"account_id": account.id, **result.as_context()}},
                )
            elif result.unwrap_or(False):
                connected += 1
        logger.info(f"Connected {connected} of {len(accounts)} accounts")

    async def connect_account(self, account: Account, persona: Optional[Persona]) -> Result[bool]:
        """Open, register and mark connected. Returns success(False) if already live."""
        if self.registry.has(account.id) or account.id in self._connecting:
            return Result.success(False)

        self._connecting.add(account.id)
        try:
            return await self._open_session(account, persona)
        finally:
            self._connecting.discard(account.id)
            self._cancelled.discard(account.id)

    async def _open_session(self, account: Account, persona: Optional[Persona]) -> Result[bool]:
        # caller holds account.id in _connecting
        logger.info(f"Connecting account {account.id}...")
        try:
            session = self.session_factory(account, self.connection_retries)
            await session.connect()
        except Exception as e:
            logger.error(
                f"Failed to connect account {account.id}: {e}",
                extra={"context": {"account_id": account.id}},
                exc_info=True,
            )
            await self._record_failure(account.id, e)
            return Result.from_exception(e, "connection_error")

        if account.id in self._cancelled:
            logger.info(f"Account {account.id} deactivated while connecting, closing session")
            await self._discard_session(account.id, session)
            return Result.success(False)

        self.registry.register(account.id, session, persona, owner_user_id=account.user_id)
        session.on_message(self._message_handler(account.id))
        logger.info(f"Connected to Telegram account {account.id}")

        try:
            await account_service.mark_account_connected(self.db, account.id)
        except Exception as e:
            logger.error(
                f"Could not record connected status: {e}",
                extra={"context": {"account_id": account.id}},
            )
        return Result.success(True)

    async def disconnect_account(self, account_id: str) -> bool:
        if not await self._close_session(account_id):
            return False
        try:
            await account_service.mark_account_disconnected(self.db, account_id)
        except Exception as e:
            logger.error(f"Could not record disconnected status: {e}", extra={"context": {"account_id": account_id}})
        logger.info(f"Disconnected account {account_id}")
        return True

    async def watch_for_account_changes(self) -> None:
        channel = self.db.channel(self.channel_name)
        channel.on_postgres_changes("*", schema="public", table=ACCOUNTS_TABLE, callback=self._on_change_payload)
        await channel.subscribe()
        self._channel = channel
        logger.info(f"Subscribed to {ACCOUNTS_TABLE} changes on channel {self.channel_name}")

    async def handle_account_change(self, change: AccountChange) -> None:
        account_id = change.account_id
        logger.info(
            "Account change detected",
            extra={"context": {"type": change.type.value, "account_id": account_id, "is_active": change.is_active}},
        )
        if account_id is None:
            return

        if change.type == ChangeType.DELETE or not change.is_active:
            if account_id in self._connecting:
                self._cancelled.add(account_id)
            elif self.registry.has(account_id):
                await self.disconnect_account(account_id)
            return

        if account_id in self._connecting:
            # re-activated before the pending connect finished
            self._cancelled.discard(account_id)
            return
        if self.registry.has(account_id):
            return

        account = change.account()
        self._connecting.add(account_id)
        try:
            persona = await account_service.fetch_persona(self.db, account_id)
            await self._open_session(account, persona)
        finally:
            self._connecting.discard(account_id)
            self._cancelled.discard(account_id)

    def _on_change_payload(self, payload: dict[str, Any]) -> None:
        try:
            change = AccountChange.from_payload(payload)
        except ValueError as e:
            logger.warning(f"Ignoring malformed change payload: {e}")
            return

        task = asyncio.create_task(self._handle_change_safely(change))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _handle_change_safely(self, change: AccountChange) -> None:
        try:
            await self.handle_account_change(change)
        except Exception as e:
            logger.error(
                f"Error handling account change: {e}",
                extra={"context": {"account_id": change.account_id}},
                exc_info=True,
            )

    def _message_handler(self, account_id: str):
        async def _handle(message: InboundMessage) -> None:
            result = await self.router.handle_message(account_id, message)
            if not result.ok:
                logger.error(
                    "Message dropped",
                    extra={"context": {"account_id": account_id, **result.as_context()}},
                )

        return _handle

    async def _close_session(self, account_id: str) -> bool:
        entry = self.registry.remove(account_id)
        if entry is None:
            return False
        try:
            await entry.session.disconnect()
        except Exception as e:
            logger.warning(f"Error closing session: {e}", extra={"context": {"account_id": account_id}})
        return True

    async def _discard_session(self, account_id: str, session) -> None:
        try:
            await session.disconnect()
        except Exception as e:
            logger.warning(f"Error closing session: {e}", extra={"context": {"account_id": account_id}})
        try:
            await account_service.mark_account_disconnected(self.db, account_id)
        except Exception as e:
            logger.error(f"Could not record disconnected status: {e}", extra={"context": {"account_id": account_id}})

    async def _record_failure(self, account_id: str, error: Exception) -> None:
        try:
            await account_service.mark_account_failed(self.db, account_id)
        except Exception as e:
            logger.error(f"Could not record connection error: {e}", extra={"context": {"account_id": account_id}})
        await alert_connection_failed(account_id, str(error))
