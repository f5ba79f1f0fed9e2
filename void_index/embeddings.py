# Copyright (c) 2025 Dave Tofflemire, SigilDERG Project
# Licensed under the GNU Affero General Public License v3.0 (AGPLv3).
# Commercial licenses are available. Contact: davetmire85@gmail.com

"""Embedding client for Ollama-compatible providers."""

from __future__ import annotations

import logging
from typing import Optional

import httpx
import numpy as np

from .config import DEFAULT_EMBED_TIMEOUT
from .errors import ProviderError, TransportError

logger = logging.getLogger(__name__)


class EmbeddingClient:
    """Turns text into a dense vector by calling the provider over HTTP.

    Usage:
        client = EmbeddingClient("http://localhost:11434", "nomic-embed-text")
        vector = await client.embed("def add(a, b): return a + b")
        await client.aclose()
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        *,
        timeout: float = DEFAULT_EMBED_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            base_url: Provider root URL, e.g. "http://localhost:11434".
            model: Model identifier sent with every embedding request.
            timeout: Timeout for each HTTP request in seconds.
            transport: Optional httpx transport; tests pass a MockTransport.
        """
        if not base_url:
            raise ValueError("base_url is required")
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def embed(self, text: str) -> list[float]:
        """Return the embedding for ``text``.

        Raises:
            TransportError: If the provider cannot be reached or times out.
            ProviderError: If the provider returns a non-success status or a
                malformed body.
        """
        url = f"{self.base_url}/api/embeddings"
        try:
            response = await self._http_client.post(
                url, json={"prompt": text, "model": self.model}
            )
        except httpx.HTTPError as e:
            raise TransportError(
                f"Failed to send embedding request to {url}: {e}"
            ) from e

        if not response.is_success:
            raise ProviderError(
                f"Embedding provider returned error {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
            embedding = data["embedding"]
            vec = np.asarray(embedding, dtype="float32")
        except (ValueError, KeyError, TypeError) as e:
            raise ProviderError(
                f"Failed to parse embedding response: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        if vec.ndim != 1 or vec.size == 0 or not np.isfinite(vec).all():
            raise ProviderError(
                "Embedding response did not contain a finite, non-empty vector",
                status_code=response.status_code,
                body=response.text,
            )

        return vec.tolist()

    async def health_check(self) -> None:
        """Probe the provider's model listing endpoint."""
        url = f"{self.base_url}/api/tags"
        try:
            response = await self._http_client.get(url)
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to connect to {url}: {e}") from e

        if not response.is_success:
            raise ProviderError(
                f"Embedding provider health check returned {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

    async def aclose(self) -> None:
        await self._http_client.aclose()
