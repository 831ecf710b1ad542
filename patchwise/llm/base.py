"""
LLM client base — the completion call the repair collaborator makes, with
bounded retries.
"""

import logging
import random
import time
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when every attempt at a completion failed."""


class LLMClient(ABC):

    def __init__(self, max_retries: int = 3, retry_delay: float = 2.0):
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.prompt_tokens = 0
        self.completion_tokens = 0

    def generate_response(self, prompt: str, system: Optional[str] = None) -> str:
        """Return the completion for *prompt*, retrying transport errors and
        blank completions. Raises :class:`LLMError` once retries run out."""
        last_error: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                text = self._complete(prompt, system)
            except Exception as exc:
                last_error = exc
                logger.warning("[LLM] Attempt %d/%d failed: %s", attempt, self.max_retries, exc)
            else:
                if text and text.strip():
                    return text
                last_error = LLMError("empty response")
                logger.warning("[LLM] Attempt %d/%d returned an empty response",
                               attempt, self.max_retries)
            if attempt < self.max_retries:
                time.sleep(self._delay(attempt, last_error))

        raise LLMError(f"no usable completion after {self.max_retries} attempt(s): {last_error}")

    def _delay(self, attempt: int, error: Exception | None) -> float:
        wait = self.retry_delay * (2 ** (attempt - 1))
        if error is not None and "429" in str(error):
            wait *= 2
            logger.info("[LLM] Rate limited, waiting %.1fs", wait)
        return wait * (1 + 0.1 * random.random())

    @abstractmethod
    def _complete(self, prompt: str, system: Optional[str]) -> str:
        """One completion request; may raise on transport errors."""
