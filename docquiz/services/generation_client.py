"""Generation client for the LLM oracle (OpenAI-compatible chat API)."""
import asyncio
import time
from dataclasses import dataclass
from typing import Optional

import httpx
from openai import AsyncOpenAI

from docquiz.exceptions import GenerationFailedError, MissingCredentialError
from docquiz.utils.logger import logger
from docquiz.utils.metrics import GENERATION_FAILURES, GENERATION_LATENCY


GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


@dataclass(frozen=True)
class GenerationConfig:
    """Fixed sampling parameters sent with every request."""

    model: str = "gemini-2.0-flash"
    temperature: float = 0.7
    top_p: float = 0.95
    top_k: Optional[int] = 64
    max_output_tokens: int = 65536


class GenerationClient:
    """Sends single-turn prompts to the oracle and returns the raw reply text."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = GEMINI_OPENAI_BASE_URL,
        config: Optional[GenerationConfig] = None,
        timeout_seconds: float = 120.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Initialize generation client.

        Args:
            api_key: Oracle API key
            base_url: Base URL of the OpenAI-compatible endpoint
            config: Sampling parameters
            timeout_seconds: Upper bound for one oracle call
            client: Pre-built SDK client (tests)

        Raises:
            MissingCredentialError: If no API key is given
        """
        if not api_key:
            raise MissingCredentialError("GEMINI_API_KEY not set")

        self.config = config or GenerationConfig()
        self.timeout_seconds = timeout_seconds

        if client is None:
            # No SDK-level retries; a failed call surfaces immediately
            http_client = httpx.AsyncClient(timeout=timeout_seconds)
            client = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url,
                http_client=http_client,
                max_retries=0,
            )
        self.client = client

    def _request_kwargs(self, prompt: str) -> dict:
        kwargs = {
            "model": self.config.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.config.temperature,
            "top_p": self.config.top_p,
            "max_tokens": self.config.max_output_tokens,
        }
        if self.config.top_k is not None:
            kwargs["extra_body"] = {"top_k": self.config.top_k}
        return kwargs

    async def generate(self, prompt: str) -> str:
        """
        Send one prompt as a fresh conversation and return the reply text.

        Args:
            prompt: Complete prompt, including any context

        Returns:
            Raw reply text (may be empty)

        Raises:
            GenerationFailedError: On any oracle failure or timeout
        """
        start_time = time.time()

        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(**self._request_kwargs(prompt)),
                timeout=self.timeout_seconds,
            )
            reply = response.choices[0].message.content or ""
        except Exception as e:
            GENERATION_FAILURES.inc()
            logger.error(f"Error calling generation oracle: {str(e)}", exc_info=True)
            raise GenerationFailedError("Failed to generate a response.") from e
        finally:
            GENERATION_LATENCY.observe(time.time() - start_time)

        response_time_ms = (time.time() - start_time) * 1000
        logger.info(
            "Oracle response generated",
            extra={
                "response_time_ms": response_time_ms,
                "prompt_length": len(prompt),
                "reply_length": len(reply),
            },
        )
        return reply

    async def close(self):
        """Close HTTP client."""
        await self.client.close()
