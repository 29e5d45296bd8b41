"""
HTTP plumbing shared by the provider generators.

One ``httpx.AsyncClient`` is opened per call. Non-2xx responses become
``ProviderError``; transport exceptions from httpx propagate unchanged.
"""

import logging
from typing import Any, Callable, Dict, Optional

import httpx

from genbridge.errors import ProviderError
from genbridge.llm.stream_decoder import ResponseStream

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10.0


class ProviderHttpClient:
    """
    Issues JSON POST requests for one provider.

    Each provider exposes:
    - a unary JSON endpoint (generation, counting, embeddings)
    - a server-sent-event endpoint for streamed generation
    """

    def __init__(
        self,
        provider_name: str,
        timeout: float = 600.0,
        proxy: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            provider_name: Label used in error messages ("OpenAI", "Gemini")
            timeout: Read timeout in seconds; streams can run for minutes
            proxy: Optional proxy URL
            transport: Optional httpx transport, replaces the network (tests)
        """
        self.provider_name = provider_name
        self.timeout = timeout
        self.proxy = proxy
        self._transport = transport

    def _build_client(self) -> httpx.AsyncClient:
        kwargs: Dict[str, Any] = {"timeout": httpx.Timeout(self.timeout, connect=CONNECT_TIMEOUT)}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        elif self.proxy:
            kwargs["proxy"] = self.proxy
        return httpx.AsyncClient(**kwargs)

    async def _error_from(self, response: httpx.Response) -> ProviderError:
        """Build a ProviderError, reading the upstream message when the body is JSON."""
        await response.aread()
        message = ""
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            message = data["error"].get("message") or ""

        logger.error(
            f"{self.provider_name} request to {response.request.url.path} failed: "
            f"{response.status_code} {response.reason_phrase}"
        )
        return ProviderError(
            self.provider_name,
            response.status_code,
            response.reason_phrase,
            message,
        )

    async def post_json(
        self,
        url: str,
        headers: Dict[str, str],
        body: Dict[str, Any],
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """POST a JSON body and return the decoded JSON response."""
        logger.debug(f"POST {url} ({self.provider_name})")
        async with self._build_client() as client:
            response = await client.post(url, headers=headers, json=body, params=params)
            if not response.is_success:
                raise await self._error_from(response)
            return response.json()

    async def open_stream(
        self,
        url: str,
        headers: Dict[str, str],
        body: Dict[str, Any],
        convert: Callable[[Dict[str, Any]], Any],
        params: Optional[Dict[str, str]] = None,
    ) -> ResponseStream:
        """
        POST a JSON body and return the decoded event stream.

        The status is checked before returning, so HTTP failures raise here
        rather than from the first iteration. The returned stream owns the
        response and the client.
        """
        logger.debug(f"POST {url} ({self.provider_name}, stream)")
        client = self._build_client()
        try:
            request = client.build_request("POST", url, headers=headers, json=body, params=params)
            response = await client.send(request, stream=True)
        except BaseException:
            await client.aclose()
            raise

        if not response.is_success:
            try:
                error = await self._error_from(response)
            finally:
                await response.aclose()
                await client.aclose()
            raise error

        async def release() -> None:
            try:
                await response.aclose()
            finally:
                await client.aclose()

        return ResponseStream(response.aiter_bytes(), convert, release)
