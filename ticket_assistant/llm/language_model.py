"""
Language-model collaborator.

Two capabilities, both fallible:

- ``classify(prompt)`` returns a JSON object parsed from the model's reply
- ``generate(prompt)`` returns free text

Every failure (no API key, timeout, provider error, malformed output) is
raised as LanguageModelError so callers can fall back deterministically.
"""
import asyncio
import json
import logging
import re
from typing import Any, Dict, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from ticket_assistant.config import LLM_TIMEOUT_SECONDS, OPENAI_MODEL, USE_LLM
from ticket_assistant.core.errors import LanguageModelError, LanguageModelUnavailable

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_json_object(text: str) -> Dict[str, Any]:
    """Parse a JSON object from a model reply, tolerating code fences and surrounding prose."""
    if not text or not text.strip():
        raise LanguageModelError("Empty response from language model")

    cleaned = _CODE_FENCE.sub("", text.strip()).strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise LanguageModelError(f"Response is not JSON: {cleaned[:80]!r}")
        try:
            parsed = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as e:
            raise LanguageModelError(f"Response is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise LanguageModelError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


class LanguageModelClient:
    """Thin async wrapper over ChatOpenAI."""

    def __init__(
        self,
        model: str = OPENAI_MODEL,
        enabled: bool = USE_LLM,
        timeout: float = LLM_TIMEOUT_SECONDS,
        temperature: float = 0.1,
        llm: Optional[Any] = None,
    ):
        self.model = model
        self.enabled = enabled or llm is not None
        self.timeout = timeout
        self.temperature = temperature
        self._llm = llm

    def _get_llm(self):
        if not self.enabled:
            raise LanguageModelUnavailable("No language model configured (OPENAI_API_KEY is not set)")
        if self._llm is None:
            self._llm = ChatOpenAI(model=self.model, temperature=self.temperature, timeout=self.timeout)
            logger.info(f"🤖 Initialized ChatOpenAI client with model: {self.model}")
        return self._llm

    async def _invoke(self, system_prompt: str, user_prompt: str) -> str:
        llm = self._get_llm()
        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_prompt),
        ]
        try:
            response = await asyncio.wait_for(llm.ainvoke(messages), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise LanguageModelError(f"Language model timed out after {self.timeout}s") from e
        except Exception as e:
            raise LanguageModelError(f"Language model call failed: {e}") from e

        content = getattr(response, "content", response)
        if not isinstance(content, str):
            raise LanguageModelError(f"Unexpected response content type: {type(content).__name__}")
        return content

    async def classify(self, prompt: str, system_prompt: str) -> Dict[str, Any]:
        """Ask for a structured decision; returns the parsed JSON object."""
        content = await self._invoke(system_prompt, prompt)
        return parse_json_object(content)

    async def generate(self, prompt: str, system_prompt: str) -> str:
        """Ask for free text."""
        content = (await self._invoke(system_prompt, prompt)).strip()
        if not content:
            raise LanguageModelError("Empty response from language model")
        return content


_language_model: Optional[LanguageModelClient] = None


def get_language_model() -> LanguageModelClient:
    global _language_model
    if _language_model is None:
        _language_model = LanguageModelClient()
    return _language_model
