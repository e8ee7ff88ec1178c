import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from openai import AsyncOpenAI, RateLimitError

from app.features.scan.schemas.scan import AutomatedFinding, Interpretation
from app.features.scan.services.interpretation.prompt import SYSTEM_PROMPT, build_prompt
from app.features.scan.services.interpretation.validator import parse_interpretation

logger = logging.getLogger(__name__)

RATE_LIMIT_BASE_DELAY_SECONDS = 1.0


class InterpretationProvider(ABC):
    """AI capability: turns a raw finding into a validated interpretation."""

    name: str = "provider"

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Send a prompt, return the raw reply text."""

    async def classify(self, finding: AutomatedFinding, page_url: str) -> Optional[Interpretation]:
        raw = await self.complete(build_prompt(finding, page_url))
        return parse_interpretation(raw)


class OpenRouterInterpretationProvider(InterpretationProvider):
    """OpenAI-compatible chat completions, routed through OpenRouter."""

    name = "openrouter"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        model: str = "openai/gpt-4.1-mini",
        max_tokens: int = 1024,
        timeout: float = 30.0,
        max_retries: int = 3,
        sleep=asyncio.sleep,
    ):
        # SDK retries are disabled; 429s are retried here with our own backoff
        self.client = AsyncOpenAI(
            base_url=base_url, api_key=api_key, timeout=timeout, max_retries=0
        )
        self.model = model
        self.max_tokens = max_tokens
        self.max_retries = max(1, max_retries)
        self._sleep = sleep

    async def complete(self, prompt: str) -> str:
        for attempt in range(1, self.max_retries + 1):
            try:
                completion = await self.client.chat.completions.create(
                    extra_headers={
                        "HTTP-Referer": "https://wcag-risk-scanner.local",
                        "X-Title": "WCAG Risk Scanner",
                    },
                    model=self.model,
                    messages=[
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    temperature=0.2,
                    max_tokens=self.max_tokens,
                )
                if not completion.choices:
                    return ""
                return completion.choices[0].message.content or ""
            except RateLimitError:
                if attempt == self.max_retries:
                    raise
                delay = RATE_LIMIT_BASE_DELAY_SECONDS * (2 ** (attempt - 1))
                logger.warning(
                    f"AI provider rate limited (attempt {attempt}/{self.max_retries}), "
                    f"retrying in {delay}s"
                )
                await self._sleep(delay)
        return ""


def build_interpretation_provider(settings) -> Optional[InterpretationProvider]:
    if not settings.OPENROUTER_API_KEY:
        return None
    return OpenRouterInterpretationProvider(
        api_key=settings.OPENROUTER_API_KEY,
        base_url=settings.AI_BASE_URL,
        model=settings.AI_MODEL,
        max_tokens=settings.AI_MAX_TOKENS,
        timeout=settings.AI_TIMEOUT_SECONDS,
        max_retries=settings.AI_MAX_RETRIES,
    )
