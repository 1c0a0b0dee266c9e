"""Generation service for OpenAI-compatible chat completion APIs."""
import os
import time
from typing import Any, Dict, Optional

import httpx
from openai import AsyncOpenAI

from context_engine.exceptions import GenerationError, ServiceUnavailableError
from context_engine.services.prompts import AnswerPrompt
from context_engine.utils.logger import logger


class LLMService:
    """Sends context-augmented prompts to a text-generation provider."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: str = "https://api.deepseek.com/v1/chat/completions",
        model: str = "deepseek-chat",
        provider: str = "deepseek",
        timeout: float = 60.0,
    ):
        """
        Initialize LLM service.

        Args:
            api_key: Provider API key (from LLM_API_KEY if not provided)
            api_url: Provider chat completions URL
            model: Default model name
            provider: Provider identifier, used in cache keys
            timeout: Request timeout in seconds

        Raises:
            ServiceUnavailableError: If no API key is configured
        """
        self.api_key = api_key or os.getenv("LLM_API_KEY")
        if not self.api_key:
            raise ServiceUnavailableError("LLM_API_KEY environment variable is required")

        self.api_url = api_url
        self.model = model
        self.provider = provider

        # OpenAI SDK expects the base URL without /v1/chat/completions
        if "/v1" in api_url:
            base_url = api_url.split("/v1")[0]
        else:
            base_url = api_url.rstrip("/")

        self.client = AsyncOpenAI(
            api_key=self.api_key,
            base_url=base_url,
            http_client=httpx.AsyncClient(timeout=timeout, trust_env=False),
        )

    async def generate(
        self,
        question: str,
        context: str,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 800,
    ) -> Dict[str, Any]:
        """
        Generate an answer for a question and its assembled context.

        Args:
            question: User's question
            context: Assembled context block
            model: Model override
            temperature: Sampling temperature
            max_tokens: Maximum tokens in the response

        Returns:
            Dictionary with answer, token_usage and response_time_ms

        Raises:
            GenerationError: If the provider call fails
        """
        start_time = time.time()
        prompt = AnswerPrompt.build(question, context)

        try:
            response = await self.client.chat.completions.create(
                model=model or self.model,
                messages=[
                    {"role": "system", "content": AnswerPrompt.SYSTEM_MESSAGE},
                    {"role": "user", "content": prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as e:
            logger.error(f"Error calling {self.provider} API: {str(e)}", exc_info=True)
            raise GenerationError(f"Failed to generate answer: {str(e)}")

        answer = response.choices[0].message.content or ""
        token_usage = None
        if response.usage is not None:
            token_usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        response_time_ms = (time.time() - start_time) * 1000
        logger.info(
            "LLM response generated",
            extra={
                "token_usage": token_usage,
                "response_time_ms": response_time_ms,
                "answer_length": len(answer),
            },
        )

        return {
            "answer": answer,
            "token_usage": token_usage,
            "response_time_ms": response_time_ms,
        }

    async def close(self):
        """Close HTTP client."""
        await self.client.close()
