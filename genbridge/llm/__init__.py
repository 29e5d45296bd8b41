"""Provider abstraction and format translation for Gemini and OpenAI-wire backends."""

from genbridge.llm.content_generator import (
    AuthType,
    ContentGenerator,
    GenerationTuning,
    GeneratorConfig,
    HttpOptions,
    ProviderType,
    UniversalContentGenerator,
    supports_universal,
)
from genbridge.llm.format_mapper import FormatMapper
from genbridge.llm.gemini_generator import GeminiContentGenerator
from genbridge.llm.models import (
    DEFAULT_TOKEN_LIMIT,
    DEFAULT_TOKEN_LIMITS,
    ModelConfig,
    TokenLimitResolver,
    token_limit,
)
from genbridge.llm.openai_generator import OpenAIContentGenerator
from genbridge.llm.provider import create_content_generator, create_generator_config
from genbridge.llm.stream_decoder import ResponseStream, iter_sse_data

__all__ = [
    "AuthType",
    "ContentGenerator",
    "GenerationTuning",
    "GeneratorConfig",
    "HttpOptions",
    "ProviderType",
    "UniversalContentGenerator",
    "supports_universal",
    "FormatMapper",
    "GeminiContentGenerator",
    "OpenAIContentGenerator",
    "DEFAULT_TOKEN_LIMIT",
    "DEFAULT_TOKEN_LIMITS",
    "ModelConfig",
    "TokenLimitResolver",
    "token_limit",
    "create_content_generator",
    "create_generator_config",
    "ResponseStream",
    "iter_sse_data",
]
