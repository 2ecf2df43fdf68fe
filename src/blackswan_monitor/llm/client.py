"""OpenAI-compatible client for the reasoning endpoint.

One outbound chat completion per analysis cycle, bounded by a timeout and
without internal retries. Every failure surfaces as UpstreamError.
"""

import logging
from typing import Optional

import httpx
import openai
from openai import OpenAI

from ..config import Settings, get_settings
from ..errors import UpstreamError
from .formatter import PromptPayload

logger = logging.getLogger("llm_client")


class AnalysisClient:
    def __init__(self, settings: Optional[Settings] = None, client: Optional[OpenAI] = None):
        self.settings = settings or get_settings()
        self._client = client

    @property
    def model(self) -> str:
        return self.settings.MODEL

    @property
    def configured(self) -> bool:
        return bool(self.settings.OPENROUTER_API_KEY)

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(
                api_key=self.settings.OPENROUTER_API_KEY,
                base_url=self.settings.OPENROUTER_BASE_URL,
                timeout=httpx.Timeout(self.settings.REQUEST_TIMEOUT_SECONDS, connect=10.0),
                max_retries=0,
            )
        return self._client

    def request(self, payload: PromptPayload) -> str:
        if not self.configured:
            raise UpstreamError("OpenRouter API key not configured")

        logger.info(f"Sending analysis request to {self.model}")
        try:
            completion = self._get_client().chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "user", "content": payload.text}
                ],
                temperature=self.settings.TEMPERATURE,
                max_tokens=self.settings.MAX_TOKENS,
            )
        except openai.APITimeoutError as e:
            logger.error(f"Analysis request timed out after {self.settings.REQUEST_TIMEOUT_SECONDS}s")
            raise UpstreamError(
                f"AI analysis failed: request timed out after {self.settings.REQUEST_TIMEOUT_SECONDS}s"
            ) from e
        except openai.OpenAIError as e:
            logger.error(f"Analysis request failed: {e}")
            raise UpstreamError(f"AI analysis failed: {e}") from e

        content = None
        if completion.choices:
            content = completion.choices[0].message.content

        if not content or not content.strip():
            raise UpstreamError("AI analysis failed: No response from AI")

        logger.info("Analysis received")
        return content
