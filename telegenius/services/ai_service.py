from typing import Any, List, Optional

import httpx

from telegenius.logging_config import get_logger
from telegenius.models import Persona
from telegenius.services.llm import LLMProvider, LLMProviderError

logger = get_logger("ai_service")

DEFAULT_MAX_TOKENS = 500
DEFAULT_TEMPERATURE = 0.7

PERSONA_RULES = """Regole importanti:
- Sei un assistente AI che impersona il creator
- Mantieni sempre il carattere della personalità
- Se l'utente chiede prezzi o vuole comprare, usa il messaggio di pagamento
- Non rivelare mai di essere un'AI
- Rispondi in modo naturale e coinvolgente"""

PAYMENT_MESSAGE_HEADER = "Messaggio di pagamento da usare quando richiesto:"
KNOWLEDGE_HEADER = "Informazioni utili sul creator:"


def _knowledge_entry_text(entry: Any) -> str:
    if isinstance(entry, str):
        return entry.strip()
    if isinstance(entry, dict):
        text = entry.get("text") or entry.get("content")
        if text:
            return str(text).strip()
        question, answer = entry.get("question"), entry.get("answer")
        if question and answer:
            return f"{question} {answer}".strip()
    return ""


def format_knowledge_context(entries: List[Any]) -> str:
    """Format persona knowledge entries for the system prompt."""
    lines = [text for text in (_knowledge_entry_text(e) for e in entries or []) if text]
    if not lines:
        return ""

    context_parts = [KNOWLEDGE_HEADER]
    for i, text in enumerate(lines, 1):
        context_parts.append(f"{i}. {text}")
    return "\n".join(context_parts)


def build_system_prompt(persona: Persona) -> str:
    """Persona prompt + fixed behaviour rules + payment template (+ knowledge)."""
    prompt = f"{persona.base_prompt}\n\n{PERSONA_RULES}\n\n{PAYMENT_MESSAGE_HEADER}\n{persona.payment_info_message}"

    knowledge = format_knowledge_context(persona.knowledge_base)
    if knowledge:
        prompt = f"{prompt}\n\n{knowledge}"
    return prompt


def build_messages(persona: Persona, message_text: str) -> List[dict]:
    return [
        {"role": "system", "content": build_system_prompt(persona)},
        {"role": "user", "content": message_text},
    ]


async def generate_ai_response(
    provider: LLMProvider,
    persona: Persona,
    message_text: str,
    model: Optional[str] = None,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    temperature: float = DEFAULT_TEMPERATURE,
) -> Optional[str]:
    """
    Ask the generation API for a reply in the persona's voice.

    Returns the first completion's text, or None when the call fails, the
    endpoint answers non-2xx, or the body is malformed/empty. The caller sends
    nothing in that case.
    """
    try:
        response = await provider.generate(
            messages=build_messages(persona, message_text),
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    except LLMProviderError as e:
        logger.error(
            "AI generation failed",
            extra={"context": {"error": str(e), "status_code": e.status_code}},
        )
        return None
    except httpx.HTTPError as e:
        logger.error(f"AI generation transport error: {e}")
        return None

    content = (response.content or "").strip()
    if not content:
        logger.warning("AI generation returned empty content", extra={"context": {"model": response.model}})
        return None
    return content
