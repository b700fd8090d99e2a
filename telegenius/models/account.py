from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from telegenius.models.persona import Persona


class Account(BaseModel):
    """Row of `telegram_accounts`, optionally with its joined personas."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    api_id: str
    api_hash: str
    session_data: str = ""
    is_active: bool = False
    user_id: Optional[str] = None
    connection_status: Optional[str] = None
    last_connected_at: Optional[str] = None
    personas: list[Persona] = Field(default_factory=list, alias="ai_personas")

    @field_validator("id", "api_id", "user_id", mode="before")
    @classmethod
    def _coerce_str(cls, value):
        return None if value is None else str(value)

    @field_validator("session_data", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or ""

    @field_validator("personas", mode="before")
    @classmethod
    def _normalize_personas(cls, value):
        # PostgREST embeds one-to-one relations as an object, one-to-many as a list
        if value is None:
            return []
        if isinstance(value, dict):
            return [value]
        return value

    @property
    def persona(self) -> Optional[Persona]:
        return self.personas[0] if self.personas else None
