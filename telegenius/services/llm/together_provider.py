from typing import List, Optional

import httpx

from telegenius.logging_config import get_logger
from telegenius.services.llm.base import LLMProvider, LLMProviderError, LLMResponse

logger = get_logger("llm.together")

TOGETHER_CHAT_URL = "https://api.together.xyz/v1/chat/completions"
DEFAULT_MODEL = "meta-llama/Llama-3-70b-chat-hf"


class TogetherProvider(LLMProvider):
    """Together AI (OpenAI-compatible) chat completions provider."""

    def __init__(
        self,
        api_key: str,
        default_model: str = DEFAULT_MODEL,
        base_url: str = TOGETHER_CHAT_URL,
        timeout_seconds: float = 60.0,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds

    async def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> LLMResponse:
        """Generate response from Together AI."""

        model = model or self.default_model

        payload = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        logger.debug(f"Together request: model={model}, messages_count={len(messages)}")

        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.post(
                self.base_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )

        logger.debug(f"Together response status: {response.status_code}")

        if not response.is_success:
            logger.error(f"Together error: {response.text}")
            raise LLMProviderError(
                f"Together API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMProviderError(f"Malformed Together response: {e}", status_code=response.status_code) from e

        if not isinstance(content, str):
            raise LLMProviderError("Together response content is not text", status_code=response.status_code)

        return LLMResponse(
            content=content,
            model=data.get("model", model),
            usage=data.get("usage"),
        )
