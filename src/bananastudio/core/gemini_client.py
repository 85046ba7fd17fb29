"""Thin HTTP client for the Gemini ``generateContent`` endpoint.

The client only moves bytes: it posts a JSON body and hands back the raw
:class:`httpx.Response`.  Status handling and response interpretation belong
to :mod:`bananastudio.core.orchestrator` and
:mod:`bananastudio.core.response_normalizer`.

Transport failures (connection refused, DNS, timeout) surface as
:class:`httpx.HTTPError`.  There is no retry.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class GeminiClient:
    """Post requests to ``<api_base>/models/<model>:generateContent``.

    Args:
        api_base: API base URL, e.g. ``https://generativelanguage.googleapis.com/v1beta``.
        model: Model name, e.g. ``gemini-2.5-flash-image-preview``.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        api_base: str,
        model: str,
        *,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.model = model
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    async def generate_content(self, payload: dict[str, Any], api_key: str) -> httpx.Response:
        """Send one ``generateContent`` request.

        Args:
            payload: Request body built by the prompt adapter.
            api_key: Gemini API key, sent as the ``key`` query parameter.

        Returns:
            The raw response, whatever its status.

        Raises:
            httpx.HTTPError: If no response was received.
        """
        logger.info(f"POST {self.endpoint}")
        response = await self._http.post(
            self.endpoint,
            params={"key": api_key},
            headers={"Content-Type": "application/json"},
            json=payload,
        )
        logger.info(f"Gemini responded with HTTP {response.status_code}")
        return response

    async def aclose(self) -> None:
        await self._http.aclose()
