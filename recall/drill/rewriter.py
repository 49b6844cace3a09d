"""
Text-rewriting client for card enhancement.

Talks to an OpenAI-compatible Responses API over httpx. Every failure
surfaces as CollaboratorError.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
from loguru import logger

from recall.errors import CollaboratorError


class TextRewriter(Protocol):
    async def rewrite(self, system_prompt: str, user_prompt: str) -> str: ...


def first_output_text(data: dict[str, Any]) -> str:
    """
    Pull the first non-empty text block out of a Responses API payload.

    Raises:
        CollaboratorError: If the payload holds no text
    """
    for item in data.get("output") or []:
        if item.get("type") != "message":
            continue
        for content in item.get("content") or []:
            if content.get("type") != "output_text":
                continue
            text = (content.get("text") or "").strip()
            if text:
                return text
    raise CollaboratorError("No text output returned from model")


class OpenAIRewriter:
    """HTTP client for the rewriting service."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-5-nano",
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 60.0,
        max_output_tokens: int = 5000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the rewriting client.

        Args:
            api_key: Bearer token for the API
            model: Model name sent with every request
            base_url: API root, without trailing slash
            timeout_seconds: Per-request timeout
            max_output_tokens: Response length bound
            transport: Optional transport override (tests)
        """
        if not api_key:
            raise CollaboratorError("No API key configured for the rewriting service")
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.max_output_tokens = max_output_tokens
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            headers={"Authorization": f"Bearer {api_key}"},
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def rewrite(self, system_prompt: str, user_prompt: str) -> str:
        """
        Send one system/user prompt pair and return the model's text.

        Raises:
            CollaboratorError: On transport, HTTP or empty-response failure
        """
        payload = {
            "model": self.model,
            "max_output_tokens": self.max_output_tokens,
            "input": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        try:
            response = await self.client.post(f"{self.base_url}/responses", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise CollaboratorError(
                f"Failed to get response from LLM: HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise CollaboratorError(f"Failed to get response from LLM: {e}") from e

        text = first_output_text(data)
        logger.debug(f"Rewriter returned {len(text)} characters")
        return text

    async def healthcheck(self) -> int:
        """
        Validate the API key by listing models.

        Returns:
            Number of models visible to the key
        """
        try:
            response = await self.client.get(f"{self.base_url}/models")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CollaboratorError(f"Failed to validate API key: {e}") from e
        return len(data.get("data") or [])
