"""
Claude API service wrapper - the external intent classifier
"""
import json
import logging
from typing import Any, Dict, List, Optional

import anthropic
from anthropic import AsyncAnthropic

from taskbot.config import Settings
from taskbot.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


class ClaudeService:
    def __init__(self, settings: Settings, client: Optional[AsyncAnthropic] = None):
        api_key = settings.ANTHROPIC_API_KEY or None
        self.model = settings.CLAUDE_MODEL
        self.max_tokens = settings.CLAUDE_MAX_TOKENS
        self.timeout = settings.CLASSIFIER_TIMEOUT_SECONDS
        self._available = bool(api_key) or client is not None
        if client is not None:
            self.client = client
        elif self._available:
            # one attempt only; callers fall back on failure
            self.client = AsyncAnthropic(api_key=api_key, timeout=self.timeout, max_retries=0)
        else:
            self.client = None

    @property
    def is_available(self) -> bool:
        return self._available

    async def classify(
        self,
        system_prompt: str,
        messages: List[Dict[str, str]],
        temperature: float = 0.1,
    ) -> str:
        """
        Send the instruction block plus prior turns and the new message,
        return the raw text of the first content block.
        """
        if not self._available or self.client is None:
            raise UpstreamUnavailable("AI service not configured: ANTHROPIC_API_KEY is not set")

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=temperature,
                system=system_prompt,
                messages=messages,
                timeout=self.timeout,
            )
        except anthropic.APIError as e:
            raise UpstreamUnavailable(f"Classifier request failed: {e}") from e

        if not response.content:
            raise UpstreamUnavailable("Classifier returned no content")
        return response.content[0].text


def parse_json_response(response_text: str) -> Dict[str, Any]:
    """Strip markdown fences and decode a JSON object"""
    text = (response_text or "").strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    text = text.strip()

    parsed = json.loads(text)
    if not isinstance(parsed, dict):
        raise ValueError("Classifier response is not a JSON object")
    return parsed
