import asyncio
import logging
import os
import signal
import sys

from pydantic import ValidationError

from telegenius.config import REQUIRED_SETTINGS, Settings, get_settings
from telegenius.database import create_store_client
from telegenius.logging_config import get_logger, setup_logging
from telegenius.services.account_registry import AccountRegistry
from telegenius.services.account_supervisor import AccountSupervisor
from telegenius.services.conversation_router import ConversationRouter
from telegenius.services.llm import TogetherProvider

logger = get_logger("worker")


def missing_settings(error: ValidationError) -> list[str]:
    missing = []
    for item in error.errors():
        if item.get("type") != "missing":
            continue
        field = str(item["loc"][0]).upper() if item.get("loc") else ""
        if field:
            missing.append(field)
    return missing or list(REQUIRED_SETTINGS)


def load_settings() -> Settings:
    """Load settings or exit(1) naming the missing variables."""
    try:
        return get_settings()
    except ValidationError as e:
        logger.critical(
            "Missing required configuration",
            extra={"context": {"missing": missing_settings(e)}},
        )
        sys.exit(1)


def _exit_now(signame: str) -> None:
    # No drain: in-flight sends and writes are abandoned.
    logger.info(f"Received {signame}, shutting down")
    logging.shutdown()
    os._exit(0)


def install_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _exit_now, sig.name)


def build_supervisor(settings: Settings, db) -> AccountSupervisor:
    registry = AccountRegistry()
    provider = TogetherProvider(
        api_key=settings.together_ai_api_key,
        default_model=settings.llm_model,
        base_url=settings.llm_api_url,
        timeout_seconds=settings.llm_timeout_seconds,
    )
    router = ConversationRouter(
        db,
        registry,
        provider,
        payment_confirmation_message=settings.payment_confirmation_message,
        llm_model=settings.llm_model,
        llm_max_tokens=settings.llm_max_tokens,
        llm_temperature=settings.llm_temperature,
    )
    return AccountSupervisor(
        db,
        registry,
        router,
        connection_retries=settings.telegram_connection_retries,
        channel_name=settings.account_changes_channel,
    )


async def run(settings: Settings) -> None:
    install_signal_handlers(asyncio.get_running_loop())

    logger.info("TeleGenius worker starting...")
    db = await create_store_client(settings)
    supervisor = build_supervisor(settings, db)
    await supervisor.start()

    await asyncio.Event().wait()


def main() -> None:
    setup_logging(os.environ.get("LOG_LEVEL", "INFO"))
    settings = load_settings()
    setup_logging(settings.log_level)
    asyncio.run(run(settings))


if __name__ == "__main__":
    main()
