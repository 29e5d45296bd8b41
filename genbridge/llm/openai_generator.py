"""
Content generator for OpenAI and OpenAI-compatible chat-completions APIs.

Native requests are translated with FormatMapper, sent to
``{base_url}/chat/completions`` or ``{base_url}/embeddings`` and translated
back. Token counting is approximate since the wire has no counting endpoint.
"""

import logging
from dataclasses import asdict, replace
from typing import Any, Dict, List, Optional, Union

import httpx

from genbridge.errors import ConfigurationError
from genbridge.llm.content_generator import (
    OPENAI_PROVIDERS,
    AuthType,
    ContentGenerator,
    GeneratorConfig,
    HttpOptions,
    ProviderType,
    UniversalContentGenerator,
    approximate_token_count,
    first_set,
    put_if_set,
)
from genbridge.llm.format_mapper import FormatMapper
from genbridge.llm.http_client import ProviderHttpClient
from genbridge.llm.stream_decoder import ResponseStream
from genbridge.llm.types import (
    Content,
    ContentEmbedding,
    CountTokensParameters,
    CountTokensResponse,
    EmbedContentParameters,
    EmbedContentResponse,
    GenerateContentConfig,
    GenerateContentParameters,
    GenerateContentResponse,
    UniversalContentRequest,
    UniversalEmbeddingRequest,
    UniversalEmbeddingResponse,
    UniversalResponse,
    UniversalTokenUsage,
)

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"


class OpenAIContentGenerator(ContentGenerator, UniversalContentGenerator):
    """
    OpenAI-wire implementation of the content generator contract.

    Works against api.openai.com and any server implementing the same
    chat-completions and embeddings endpoints (local inference servers,
    hosted gateways).
    """

    def __init__(
        self,
        config: GeneratorConfig,
        http_options: Optional[HttpOptions] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the generator. No network activity happens here.

        Args:
            config: Resolved generator config
            http_options: Extra headers sent with every request
            transport: Optional httpx transport replacing the network (tests)

        Raises:
            ConfigurationError: API key missing, or an OpenAI-compatible
                provider without both API key and base URL
        """
        if config.auth_type == AuthType.OPENAI_COMPATIBLE and not (config.api_key and config.base_url):
            raise ConfigurationError(
                "OpenAI-compatible provider requires both an API key (OPENAI_API_KEY) "
                "and a base URL (OPENAI_BASE_URL)"
            )
        if not config.api_key:
            raise ConfigurationError("OpenAI API key is required")

        if not config.base_url:
            if config.provider == ProviderType.OPENAI_COMPATIBLE:
                raise ConfigurationError("OpenAI-compatible provider requires an explicit base URL")
            config = replace(config, base_url=DEFAULT_OPENAI_BASE_URL)

        self.config = config
        self.provider_type = config.provider if config.provider in OPENAI_PROVIDERS else ProviderType.OPENAI
        self.http_options = http_options or HttpOptions()
        self.base_url = config.base_url.rstrip("/")
        self._http = ProviderHttpClient(
            "OpenAI",
            timeout=config.timeout,
            proxy=config.proxy,
            transport=transport,
        )
        logger.info(f"OpenAI content generator ready: provider={self.provider_type.value}, base_url={self.base_url}")

    def _headers(self, stream: bool = False) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if stream:
            headers["Accept"] = "text/event-stream"
        for key, value in self.http_options.headers.items():
            if key.lower() != "authorization":
                headers[key] = value
        headers["Authorization"] = f"Bearer {self.config.api_key}"
        if self.config.organization:
            headers["OpenAI-Organization"] = self.config.organization
        return headers

    def _chat_body(
        self,
        model: str,
        messages: List[Dict[str, Any]],
        max_tokens: Optional[int],
        temperature: Optional[float],
        top_p: Optional[float],
    ) -> Dict[str, Any]:
        tuning = self.config.tuning
        body: Dict[str, Any] = {
            "model": model or self.config.model,
            "messages": messages,
        }
        put_if_set(body, "max_tokens", first_set(max_tokens, tuning.max_tokens))
        put_if_set(body, "temperature", first_set(temperature, tuning.temperature))
        put_if_set(body, "top_p", first_set(top_p, tuning.top_p))
        return body

    def _native_chat_body(self, request: GenerateContentParameters) -> Dict[str, Any]:
        call = request.config or GenerateContentConfig()
        messages = FormatMapper.native_to_openai(FormatMapper.to_content_list(request.contents))
        return self._chat_body(request.model, messages, call.max_output_tokens, call.temperature, call.top_p)

    def _universal_chat_body(self, request: UniversalContentRequest) -> Dict[str, Any]:
        body = self._chat_body(
            request.model,
            FormatMapper.universal_to_openai(request.messages),
            request.max_tokens,
            request.temperature,
            request.top_p,
        )
        if request.functions:
            body["functions"] = [asdict(f) for f in request.functions]
        return body

    async def generate_content(self, request: GenerateContentParameters) -> GenerateContentResponse:
        response = await self._http.post_json(
            f"{self.base_url}/chat/completions",
            self._headers(),
            self._native_chat_body(request),
        )
        return FormatMapper.openai_response_to_native(response)

    async def generate_content_stream(
        self, request: GenerateContentParameters
    ) -> ResponseStream[GenerateContentResponse]:
        body = self._native_chat_body(request)
        body["stream"] = True
        return await self._http.open_stream(
            f"{self.base_url}/chat/completions",
            self._headers(stream=True),
            body,
            FormatMapper.openai_chunk_to_native,
        )

    async def count_tokens(self, request: CountTokensParameters) -> CountTokensResponse:
        # The OpenAI wire has no token counting endpoint
        return CountTokensResponse(total_tokens=approximate_token_count(request.contents))

    @staticmethod
    def _embedding_input(contents: Union[str, List[str], Content, List[Content]]) -> Union[str, List[str]]:
        if isinstance(contents, str):
            return contents
        items = [contents] if isinstance(contents, Content) else contents
        return [c if isinstance(c, str) else FormatMapper.flatten_text(c) for c in items]

    async def embed_content(self, request: EmbedContentParameters) -> EmbedContentResponse:
        response = await self._http.post_json(
            f"{self.base_url}/embeddings",
            self._headers(),
            {"model": request.model or self.config.model, "input": self._embedding_input(request.contents)},
        )
        return EmbedContentResponse(
            embeddings=[ContentEmbedding(values=item["embedding"]) for item in response.get("data") or []],
        )

    async def generate_universal_content(self, request: UniversalContentRequest) -> UniversalResponse:
        response = await self._http.post_json(
            f"{self.base_url}/chat/completions",
            self._headers(),
            self._universal_chat_body(request),
        )
        return FormatMapper.openai_to_universal(response)

    async def generate_universal_content_stream(
        self, request: UniversalContentRequest
    ) -> ResponseStream[UniversalResponse]:
        body = self._universal_chat_body(request)
        body["stream"] = True
        return await self._http.open_stream(
            f"{self.base_url}/chat/completions",
            self._headers(stream=True),
            body,
            FormatMapper.openai_chunk_to_universal,
        )

    async def generate_universal_embedding(
        self, request: UniversalEmbeddingRequest
    ) -> UniversalEmbeddingResponse:
        response = await self._http.post_json(
            f"{self.base_url}/embeddings",
            self._headers(),
            {"model": request.model, "input": request.input},
        )
        usage = response.get("usage")
        return UniversalEmbeddingResponse(
            embeddings=[item["embedding"] for item in response.get("data") or []],
            usage=UniversalTokenUsage(
                prompt_tokens=usage.get("prompt_tokens", 0),
                completion_tokens=0,  # embeddings have no completion
                total_tokens=usage.get("total_tokens", 0),
            ) if usage else None,
        )
