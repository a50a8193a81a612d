# SPDX-FileCopyrightText: 2025 OmniNode.ai Inc.
# SPDX-License-Identifier: MIT

"""Gemini text-embedding client.

Embeds pattern text with Gemini ``text-embedding-004`` through the REST
``embedContent`` endpoint. Pattern metadata is folded into the embedded text
so that identical queries with different metadata land apart.

Every failure (timeout, rate limit, HTTP error, malformed vector) surfaces as
``EmbeddingUnavailableError`` so the orchestrator can switch to
metadata-only candidate generation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from omniroute.config import ConfigRouting
from omniroute.routing.errors import EmbeddingUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = (
    "https://generativelanguage.googleapis.com/v1beta/models/text-embedding-004:embedContent"
)
DEFAULT_MODEL = "models/text-embedding-004"
DEFAULT_DIMENSIONS = 1536
USER_AGENT = "omniroute-embedder/1.0"


def compose_text(text: str, metadata: Mapping[str, str] | None = None) -> str:
    """Query text followed by ``key: value`` metadata lines in key order."""
    if not metadata:
        return text
    lines = [f"{key}: {value}" for key, value in sorted(metadata.items()) if value]
    return "\n".join([text, *lines])


class GeminiEmbeddingClient:
    """Async Gemini embedding client.

    Example:
        client = GeminiEmbeddingClient(api_key="...")
        vector = await client.embed("rotate auth tokens", {"category": "security"})
        await client.aclose()
    """

    def __init__(
        self,
        api_key: str,
        endpoint: str = DEFAULT_ENDPOINT,
        model: str = DEFAULT_MODEL,
        dimensions: int = DEFAULT_DIMENSIONS,
        timeout: float = 10.0,
        max_retries: int = 2,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("Gemini API key is required")
        self.endpoint = endpoint
        self.model = model
        self.dimensions = dimensions
        self.max_retries = max(1, max_retries)
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self._headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": api_key,
            "User-Agent": USER_AGENT,
        }

    @classmethod
    def from_settings(cls, settings: ConfigRouting) -> GeminiEmbeddingClient:
        return cls(
            api_key=settings.gemini_api_key,
            endpoint=settings.embedding_endpoint,
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
            timeout=settings.embedding_timeout_seconds,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def embed(self, text: str, metadata: Mapping[str, str] | None = None) -> list[float]:
        body = {
            "model": self.model,
            "content": {"parts": [{"text": compose_text(text, metadata)}]},
            "outputDimensionality": self.dimensions,
        }

        last_error: Exception | None = None
        for attempt in range(self.max_retries):
            try:
                response = await self._client.post(self.endpoint, json=body, headers=self._headers)
            except httpx.TimeoutException as e:
                last_error = e
                logger.warning(f"Embedding request timeout (attempt {attempt + 1}/{self.max_retries})")
            except httpx.HTTPError as e:
                raise EmbeddingUnavailableError(
                    f"Embedding request failed: {type(e).__name__}",
                    details={"endpoint": self.endpoint},
                ) from e
            else:
                if response.status_code == 429:
                    raise EmbeddingUnavailableError(
                        "Rate limited (429) by embedding endpoint",
                        details={"status_code": 429},
                    )
                if response.status_code >= 500:
                    last_error = httpx.HTTPStatusError(
                        f"Gemini API error {response.status_code}",
                        request=response.request,
                        response=response,
                    )
                    logger.warning(
                        f"Embedding server error {response.status_code} "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                elif response.status_code != 200:
                    raise EmbeddingUnavailableError(
                        f"Gemini API error {response.status_code}",
                        details={"status_code": response.status_code},
                    )
                else:
                    return self._parse(response)

            if attempt < self.max_retries - 1:
                await asyncio.sleep(0.1 * (attempt + 1))

        raise EmbeddingUnavailableError(
            f"Embedding unavailable after {self.max_retries} attempts",
            details={"last_error": type(last_error).__name__ if last_error else None},
        )

    def _parse(self, response: httpx.Response) -> list[float]:
        try:
            payload: Any = response.json()
            values = [float(v) for v in payload["embedding"]["values"]]
        except (ValueError, KeyError, TypeError) as e:
            raise EmbeddingUnavailableError(
                f"Failed to parse embedding: {type(e).__name__}"
            ) from e
        if len(values) != self.dimensions:
            raise EmbeddingUnavailableError(
                f"Expected {self.dimensions}-dim embedding, got {len(values)}",
                details={"dimensions": len(values)},
            )
        return values


__all__ = ["GeminiEmbeddingClient", "compose_text"]
