from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PAYMENT_CONFIRMATION = (
    "Grazie! 🙏 Abbiamo ricevuto la tua prova di pagamento. "
    "Un operatore la verificherà al più presto e ti contatterà per i prossimi passi. 😊"
)


class Settings(BaseSettings):
    """Worker settings loaded from environment variables (and `.env`)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Required
    supabase_url: str
    supabase_service_key: str
    together_ai_api_key: str

    log_level: str = "INFO"

    # Telegram
    telegram_connection_retries: int = 5
    account_changes_channel: str = "telegram_accounts_changes"

    # Text generation
    llm_api_url: str = "https://api.together.xyz/v1/chat/completions"
    llm_model: str = "meta-llama/Llama-3-70b-chat-hf"
    llm_max_tokens: int = 500
    llm_temperature: float = 0.7
    llm_timeout_seconds: float = 60.0

    payment_confirmation_message: str = DEFAULT_PAYMENT_CONFIRMATION


REQUIRED_SETTINGS = ("SUPABASE_URL", "SUPABASE_SERVICE_KEY", "TOGETHER_AI_API_KEY")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
