"""
Groq API wrapper. The only file that calls Groq.
"""

import json
import logging
import os
import re
from typing import Optional

from formulary_pa.config import settings

logger = logging.getLogger(__name__)


class LLMError(RuntimeError):
    """The completion request itself failed (network, auth, quota, empty reply)."""


class GroqClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> None:
        from groq import Groq

        api_key = api_key or os.environ.get("GROQ_API_KEY")
        if not api_key:
            raise ValueError("GROQ_API_KEY environment variable is required")

        self.model = model or settings.GROQ_MODEL
        self.temperature = settings.LLM_TEMPERATURE if temperature is None else temperature
        self._client = Groq(
            api_key=api_key,
            timeout=settings.LLM_TIMEOUT_SECONDS if timeout is None else timeout,
            max_retries=0,
        )

    def generate(self, system: str, prompt: str, max_tokens: Optional[int] = None) -> str:
        """Single completion call. Raises LLMError on any failure; never retries."""
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=max_tokens or settings.LLM_MAX_TOKENS,
                stream=False,
            )
        except Exception as exc:
            raise LLMError(f"Groq request failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise LLMError("Groq returned an empty completion")
        return content.strip()


def parse_json_object(raw: str) -> dict:
    """Strip markdown fences and parse the first {...} block. Raises ValueError."""
    cleaned = re.sub(r"```(?:json)?", "", raw).strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}") + 1

    if start < 0 or end <= start:
        raise ValueError("No JSON object found in LLM response")

    return json.loads(cleaned[start:end])
