from supabase import AsyncClient, acreate_client

from telegenius.config import Settings
from telegenius.logging_config import get_logger

logger = get_logger("database")


async def create_store_client(settings: Settings) -> AsyncClient:
    """Create the async Supabase client used for table access and the change feed."""
    client = await acreate_client(settings.supabase_url, settings.supabase_service_key)
    logger.info("Supabase client created", extra={"context": {"url": settings.supabase_url}})
    return client
