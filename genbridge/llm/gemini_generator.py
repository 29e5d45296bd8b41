"""
Content generator for the native provider (Gemini API and Vertex AI) over REST.

Requests and responses are already in the native shape, so no format
translation happens beyond lifting ``system`` turns into ``systemInstruction``.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from genbridge.errors import ConfigurationError
from genbridge.llm.content_generator import (
    ContentGenerator,
    GeneratorConfig,
    HttpOptions,
    ProviderType,
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
)

logger = logging.getLogger(__name__)

GEMINI_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
VERTEX_EXPRESS_BASE_URL = "https://aiplatform.googleapis.com/v1/publishers/google"
VERTEX_REGIONAL_BASE_URL = (
    "https://{location}-aiplatform.googleapis.com/v1/"
    "projects/{project}/locations/{location}/publishers/google"
)

# Returns a fresh OAuth access token; obtaining it is the caller's business
TokenProvider = Callable[[], Awaitable[str]]


class GeminiContentGenerator(ContentGenerator):
    """
    Native implementation of the content generator contract.

    Credentials, in order of preference:
    - API key (Gemini API, or Vertex AI express mode when ``vertexai`` is set)
    - OAuth access token from ``token_provider`` (Google login, Cloud Shell,
      Vertex AI with project + location)
    """

    provider_type = ProviderType.GEMINI

    def __init__(
        self,
        config: GeneratorConfig,
        http_options: Optional[HttpOptions] = None,
        token_provider: Optional[TokenProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            config: Resolved generator config
            http_options: Extra headers sent with every request
            token_provider: Async callable returning an OAuth access token
            transport: Optional httpx transport replacing the network (tests)

        Raises:
            ConfigurationError: No API key and no token provider, or Vertex AI
                without an API key or project + location
        """
        if not config.api_key and token_provider is None:
            raise ConfigurationError(
                f"Gemini API key or access token provider is required for auth type "
                f"{config.auth_type.value if config.auth_type else None}"
            )

        self.config = config
        self.http_options = http_options or HttpOptions()
        self._token_provider = token_provider
        self.base_url = (config.base_url or self._default_base_url(config)).rstrip("/")
        self._http = ProviderHttpClient(
            "Gemini",
            timeout=config.timeout,
            proxy=config.proxy,
            transport=transport,
        )
        logger.info(f"Gemini content generator ready: vertexai={bool(config.vertexai)}, base_url={self.base_url}")

    @staticmethod
    def _default_base_url(config: GeneratorConfig) -> str:
        if not config.vertexai:
            return GEMINI_API_BASE_URL
        if config.api_key:
            return VERTEX_EXPRESS_BASE_URL
        if config.project and config.location:
            return VERTEX_REGIONAL_BASE_URL.format(project=config.project, location=config.location)
        raise ConfigurationError(
            "Vertex AI requires GOOGLE_API_KEY or both GOOGLE_CLOUD_PROJECT and GOOGLE_CLOUD_LOCATION"
        )

    async def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        for key, value in self.http_options.headers.items():
            if key.lower() not in ("authorization", "x-goog-api-key"):
                headers[key] = value
        if self.config.api_key:
            headers["x-goog-api-key"] = self.config.api_key
        else:
            headers["Authorization"] = f"Bearer {await self._token_provider()}"
            if self.config.project and not self.config.vertexai:
                headers["x-goog-user-project"] = self.config.project
        return headers

    def _model_url(self, model: str, method: str) -> str:
        name = (model or self.config.model).removeprefix("models/")
        return f"{self.base_url}/models/{name}:{method}"

    @staticmethod
    def _contents_body(contents: List[Content]) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "contents": [c.to_dict() for c in contents if c.role != "system"],
        }
        system_parts = [p.to_dict() for c in contents if c.role == "system" for p in c.parts]
        if system_parts:
            body["systemInstruction"] = {"parts": system_parts}
        return body

    def _generate_body(self, request: GenerateContentParameters) -> Dict[str, Any]:
        body = self._contents_body(FormatMapper.to_content_list(request.contents))
        call = request.config or GenerateContentConfig()
        tuning = self.config.tuning
        generation_config: Dict[str, Any] = {}
        put_if_set(generation_config, "temperature", first_set(call.temperature, tuning.temperature))
        put_if_set(generation_config, "topP", first_set(call.top_p, tuning.top_p))
        put_if_set(generation_config, "maxOutputTokens", first_set(call.max_output_tokens, tuning.max_tokens))
        if generation_config:
            body["generationConfig"] = generation_config
        return body

    async def generate_content(self, request: GenerateContentParameters) -> GenerateContentResponse:
        data = await self._http.post_json(
            self._model_url(request.model, "generateContent"),
            await self._headers(),
            self._generate_body(request),
        )
        return GenerateContentResponse.from_dict(data)

    async def generate_content_stream(
        self, request: GenerateContentParameters
    ) -> ResponseStream[GenerateContentResponse]:
        return await self._http.open_stream(
            self._model_url(request.model, "streamGenerateContent"),
            await self._headers(),
            self._generate_body(request),
            GenerateContentResponse.from_dict,
            params={"alt": "sse"},
        )

    async def count_tokens(self, request: CountTokensParameters) -> CountTokensResponse:
        data = await self._http.post_json(
            self._model_url(request.model, "countTokens"),
            await self._headers(),
            {"contents": [c.to_dict() for c in FormatMapper.to_content_list(request.contents)]},
        )
        return CountTokensResponse(total_tokens=data.get("totalTokens", 0))

    async def embed_content(self, request: EmbedContentParameters) -> EmbedContentResponse:
        contents = request.contents
        if isinstance(contents, (str, Content)):
            contents = [contents]
        texts = [c if isinstance(c, str) else FormatMapper.flatten_text(c) for c in contents]
        model = (request.model or self.config.model).removeprefix("models/")

        if self.config.vertexai:
            data = await self._http.post_json(
                self._model_url(model, "predict"),
                await self._headers(),
                {"instances": [{"content": text} for text in texts]},
            )
            return EmbedContentResponse(embeddings=[
                ContentEmbedding(values=p["embeddings"]["values"]) for p in data.get("predictions") or []
            ])

        data = await self._http.post_json(
            self._model_url(model, "batchEmbedContents"),
            await self._headers(),
            {
                "requests": [
                    {"model": f"models/{model}", "content": {"parts": [{"text": text}]}}
                    for text in texts
                ]
            },
        )
        return EmbedContentResponse(embeddings=[
            ContentEmbedding(values=e.get("values") or []) for e in data.get("embeddings") or []
        ])
