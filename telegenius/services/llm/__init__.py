from telegenius.services.llm.base import LLMProvider, LLMProviderError, LLMResponse
from telegenius.services.llm.together_provider import TogetherProvider

__all__ = ["LLMProvider", "LLMProviderError", "LLMResponse", "TogetherProvider"]
