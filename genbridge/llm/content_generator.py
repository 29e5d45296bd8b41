"""
The capability contract every content-generation backend implements.

``ContentGenerator`` holds the required operations. Provider-neutral
operations live on the separate ``UniversalContentGenerator`` capability and
are checked with ``supports_universal()``.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from genbridge.llm.format_mapper import FormatMapper
from genbridge.llm.stream_decoder import ResponseStream
from genbridge.llm.types import (
    ContentListUnion,
    CountTokensParameters,
    CountTokensResponse,
    EmbedContentParameters,
    EmbedContentResponse,
    GenerateContentParameters,
    GenerateContentResponse,
    UniversalContentRequest,
    UniversalEmbeddingRequest,
    UniversalEmbeddingResponse,
    UniversalResponse,
)


class AuthType(str, Enum):
    LOGIN_WITH_GOOGLE = "oauth-personal"
    USE_GEMINI = "gemini-api-key"
    USE_VERTEX_AI = "vertex-ai"
    CLOUD_SHELL = "cloud-shell"
    OPENAI_API_KEY = "openai-api-key"
    OPENAI_COMPATIBLE = "openai-compatible"


class ProviderType(str, Enum):
    GEMINI = "gemini"
    OPENAI = "openai"
    OPENAI_COMPATIBLE = "openai-compatible"


OPENAI_PROVIDERS = (ProviderType.OPENAI, ProviderType.OPENAI_COMPATIBLE)


@dataclass(frozen=True)
class GenerationTuning:
    """Generator-level defaults. Per-call values take priority."""
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None


@dataclass(frozen=True)
class GeneratorConfig:
    """Everything needed to construct one generator. Immutable for its lifetime."""
    model: str
    provider: ProviderType = ProviderType.GEMINI
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    vertexai: Optional[bool] = None
    auth_type: Optional[AuthType] = None
    proxy: Optional[str] = None
    project: Optional[str] = None
    location: Optional[str] = None
    organization: Optional[str] = None
    tuning: GenerationTuning = field(default_factory=GenerationTuning)
    timeout: float = 600.0


@dataclass
class HttpOptions:
    """Caller-supplied HTTP headers merged into every request."""
    headers: dict = field(default_factory=dict)


def first_set(*values):
    """First value that is not None; 0 and 0.0 count as set."""
    for value in values:
        if value is not None:
            return value
    return None


def put_if_set(body: dict, key: str, value) -> None:
    # Unset tuning is left out of the body so the server applies its own default
    if value is not None:
        body[key] = value


def approximate_token_count(contents: ContentListUnion) -> int:
    """Approximate tokens as ceil(chars / 4) over all contents joined by a space."""
    text = " ".join(
        FormatMapper.flatten_text(content)
        for content in FormatMapper.to_content_list(contents)
    )
    # Rough approximation: 1 token ~= 4 characters for English text
    return math.ceil(len(text) / 4)


class ContentGenerator(ABC):
    """Required operations of every backend."""

    provider_type: ProviderType

    @abstractmethod
    async def generate_content(self, request: GenerateContentParameters) -> GenerateContentResponse:
        """Generate one complete response. Raises ProviderError on a non-2xx status."""

    @abstractmethod
    async def generate_content_stream(
        self, request: GenerateContentParameters
    ) -> ResponseStream[GenerateContentResponse]:
        """
        Open a streamed generation.

        HTTP failures raise ProviderError from this call, before any element
        is produced. Transport failures mid-stream end the sequence with that
        error.
        """

    @abstractmethod
    async def count_tokens(self, request: CountTokensParameters) -> CountTokensResponse:
        ...

    @abstractmethod
    async def embed_content(self, request: EmbedContentParameters) -> EmbedContentResponse:
        ...


class UniversalContentGenerator(ABC):
    """Provider-neutral operations working on Universal shapes directly."""

    @abstractmethod
    async def generate_universal_content(self, request: UniversalContentRequest) -> UniversalResponse:
        ...

    @abstractmethod
    async def generate_universal_content_stream(
        self, request: UniversalContentRequest
    ) -> ResponseStream[UniversalResponse]:
        ...

    @abstractmethod
    async def generate_universal_embedding(
        self, request: UniversalEmbeddingRequest
    ) -> UniversalEmbeddingResponse:
        ...


def supports_universal(generator: ContentGenerator) -> bool:
    """Whether a generator offers the provider-neutral operations."""
    return isinstance(generator, UniversalContentGenerator)
