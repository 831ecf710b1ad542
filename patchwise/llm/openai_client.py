"""
Chat/completions client for any OpenAI-compatible endpoint.
"""

import logging
from typing import Optional

import requests

from .base import LLMClient

logger = logging.getLogger(__name__)

_DEFAULT_SYSTEM = "You are a precise code-editing assistant."


class OpenAIClient(LLMClient):

    def __init__(self, base_url: str, model: str, api_key: str,
                 temperature: float = 0.2, **kwargs):
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.temperature = temperature

    def _complete(self, prompt: str, system: Optional[str]) -> str:
        response = requests.post(
            f"{self.base_url}/chat/completions",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "model": self.model,
                "messages": [
                    {"role": "system", "content": system or _DEFAULT_SYSTEM},
                    {"role": "user", "content": prompt},
                ],
                "temperature": self.temperature,
            },
            timeout=(10, 300),
        )
        response.raise_for_status()
        data = response.json()

        usage = data.get("usage") or {}
        self.prompt_tokens += int(usage.get("prompt_tokens") or 0)
        self.completion_tokens += int(usage.get("completion_tokens") or 0)
        logger.debug("[LLM] %s usage: prompt=%s completion=%s", self.model,
                     usage.get("prompt_tokens"), usage.get("completion_tokens"))

        return data["choices"][0]["message"]["content"]
