from .base import LLMClient, LLMError
from .openai_client import OpenAIClient


def create_client(config) -> OpenAIClient:
    """Build the repair collaborator's client from a ``Config``."""
    return OpenAIClient(
        base_url=config.LLM_BASE_URL,
        model=config.LLM_MODEL,
        api_key=config.LLM_API_KEY,
        max_retries=config.LLM_MAX_RETRIES,
        retry_delay=config.LLM_RETRY_DELAY,
    )


__all__ = ["LLMClient", "LLMError", "OpenAIClient", "create_client"]
