"""LLM client wrapper for Anthropic structured outputs.

Used only to phrase advisory text; scores and decisions never depend
on model output.
"""

import asyncio
from typing import TypeVar

from anthropic import Anthropic, APIError
from pydantic import BaseModel, Field

from meeting_intel.config import settings
from meeting_intel.errors import MeetingIntelError

T = TypeVar("T", bound=BaseModel)


class LLMClientError(MeetingIntelError):
    """Raised when LLM extraction fails."""

    pass


class AdvisoryText(BaseModel):
    """Rephrased advisory message."""

    text: str = Field(description="One or two plain sentences for the user")


class LLMClient:
    """Anthropic client wrapper with structured output support.

    Uses client.beta.messages.parse with Pydantic models for
    guaranteed schema-valid output.
    """

    def __init__(self, client: Anthropic | None = None, model: str | None = None):
        """Initialize LLM client.

        Args:
            client: Optional Anthropic client for dependency injection.
                   If not provided, creates one from settings.
            model: Model name; defaults to settings.anthropic_model
        """
        self._model = model or settings.anthropic_model
        if client is not None:
            self._client = client
        elif settings.anthropic_api_key:
            self._client = Anthropic(api_key=settings.anthropic_api_key)
        else:
            # Allow initialization without API key for testing
            self._client = None

    @property
    def available(self) -> bool:
        return self._client is not None

    async def extract(self, prompt: str, response_model: type[T]) -> T:
        """Produce structured output for a prompt.

        Args:
            prompt: The user prompt
            response_model: Pydantic model defining the output schema

        Returns:
            Parsed response matching the response_model type

        Raises:
            LLMClientError: If the call fails
        """
        if self._client is None:
            raise LLMClientError(
                "Anthropic client not initialized. "
                "Set ANTHROPIC_API_KEY environment variable."
            )

        try:
            response = await asyncio.to_thread(
                self._client.beta.messages.parse,
                model=self._model,
                max_tokens=1024,
                betas=["structured-outputs-2025-11-13"],
                messages=[{"role": "user", "content": prompt}],
                output_format=response_model,
            )
            return response.parsed_output
        except APIError as e:
            raise LLMClientError(f"Anthropic API error: {e}") from e
        except Exception as e:
            raise LLMClientError(f"Extraction failed: {e}") from e

    async def rephrase(self, text: str, context: str) -> str:
        """Rewrite an advisory message in plain, friendly language.

        Raises:
            LLMClientError: If the call fails or returns nothing
        """
        prompt = (
            "Rewrite the following calendar advisory for the user in at most two "
            "short sentences. Keep every number and time unchanged and do not "
            "add advice that is not in the original.\n\n"
            f"Context:\n{context}\n\nAdvisory:\n{text}"
        )
        result = await self.extract(prompt, AdvisoryText)
        if not result.text.strip():
            raise LLMClientError("Empty advisory text")
        return result.text.strip()
