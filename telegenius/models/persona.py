from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class Persona(BaseModel):
    """Row of `ai_personas`: prompt and canned templates for one account."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: Optional[str] = None
    account_id: Optional[str] = None
    base_prompt: str = ""
    welcome_message: str = ""
    payment_info_message: str = ""
    knowledge_base: list[Any] = []

    @field_validator("id", "account_id", mode="before")
    @classmethod
    def _coerce_str(cls, value):
        return None if value is None else str(value)

    @field_validator("base_prompt", "welcome_message", "payment_info_message", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or ""

    @field_validator("knowledge_base", mode="before")
    @classmethod
    def _normalize_knowledge(cls, value):
        if value is None:
            return []
        if isinstance(value, (str, dict)):
            return [value]
        return value
