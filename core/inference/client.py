"""HTTP client for provider chat-completion endpoints.

One call to ``post_chat_completion`` issues exactly one HTTP request; all
retrying happens in the orchestrator.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from core.inference.errors import MalformedResponse, TransportError
from core.inference.types import ProviderEndpoint

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0


def build_chat_payload(prompt: str, model: str) -> dict[str, Any]:
    """Request body: the prompt as a single system message."""
    return {
        "messages": [{"role": "system", "content": prompt}],
        "model": model,
    }


class ProviderClient:
    """Thin async wrapper around ``httpx.AsyncClient``.

    The client may be shared between concurrent requests; it holds no
    per-request state.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds))
        return self._client

    async def post_chat_completion(
        self,
        endpoint: ProviderEndpoint,
        headers: Mapping[str, str],
        prompt: str,
        model: str | None = None,
    ) -> Any:
        """POST the prompt and return the decoded JSON body.

        Non-2xx responses that still carry a JSON body are returned as-is,
        because the provider reports fee shortfalls that way.

        Raises:
            TransportError: Network failure, timeout, or non-JSON error status
            MalformedResponse: 2xx response whose body is not JSON
        """
        url = endpoint.completions_url
        request_headers = {"Content-Type": "application/json", **dict(headers)}
        body = build_chat_payload(prompt, model or endpoint.model_id)

        client = await self._get_client()
        try:
            resp = await client.post(url, headers=request_headers, json=body)
        except httpx.TimeoutException as e:
            raise TransportError(f"POST {url} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"POST {url} network error: {e}") from e

        if not resp.is_success:
            logger.debug("POST %s returned HTTP %d", url, resp.status_code)

        try:
            return resp.json()
        except ValueError as e:
            if resp.is_success:
                raise MalformedResponse(f"POST {url} returned non-JSON body: {resp.text[:200]}") from e
            raise TransportError(
                f"POST {url} failed with HTTP {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            ) from e

    async def close(self) -> None:
        """Close the underlying HTTP client if this wrapper created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
