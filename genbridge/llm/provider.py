"""
Provider selection: build a GeneratorConfig for an auth type, then construct
the matching content generator.

Supports:
- Gemini API (API key)
- Vertex AI (API key, or project + location with an access token)
- Google login / Cloud Shell (access token supplied by the caller)
- OpenAI (API key, default endpoint)
- OpenAI-compatible servers (API key + explicit base URL)
"""

import logging
import platform
from dataclasses import replace
from typing import Optional, Union

import httpx
from pydantic import ValidationError

from genbridge import __version__
from genbridge.config import Settings, get_settings
from genbridge.errors import ConfigurationError
from genbridge.llm.content_generator import (
    OPENAI_PROVIDERS,
    AuthType,
    ContentGenerator,
    GenerationTuning,
    GeneratorConfig,
    HttpOptions,
    ProviderType,
)
from genbridge.llm.gemini_generator import GeminiContentGenerator, TokenProvider
from genbridge.llm.models import ModelConfig
from genbridge.llm.openai_generator import DEFAULT_OPENAI_BASE_URL, OpenAIContentGenerator

logger = logging.getLogger(__name__)

OPENAI_AUTH_TYPES = (AuthType.OPENAI_API_KEY, AuthType.OPENAI_COMPATIBLE)
TOKEN_AUTH_TYPES = (AuthType.LOGIN_WITH_GOOGLE, AuthType.CLOUD_SHELL)
GEMINI_AUTH_TYPES = (AuthType.USE_GEMINI, AuthType.USE_VERTEX_AI)


def create_generator_config(
    auth_type: Optional[Union[AuthType, str]],
    settings: Optional[Settings] = None,
    model: Optional[str] = None,
    model_config: Optional[ModelConfig] = None,
) -> GeneratorConfig:
    """
    Resolve provider, model and credentials for an auth type.

    Args:
        auth_type: Requested auth mode
        settings: Environment-derived settings (default: get_settings())
        model: Model for the session (default: settings.model, then the
            configured DEFAULT_GEMINI_MODEL)
        model_config: Source of the default model name

    Returns:
        GeneratorConfig. When the auth type's credentials are missing the
        native default config (no credential) is returned and the generator
        constructor reports the problem.

    Raises:
        ConfigurationError: Unknown auth type, or settings that fail validation
    """
    if settings is None:
        try:
            settings = get_settings()
        except ValidationError as e:
            raise ConfigurationError(f"Invalid provider settings: {e}") from e
    try:
        auth_type = AuthType(auth_type) if auth_type else None
    except ValueError as e:
        raise ConfigurationError(f"Unknown auth type: {auth_type}") from e
    effective_model = model or settings.model or (model_config or ModelConfig()).get_model("DEFAULT_GEMINI_MODEL")

    base = GeneratorConfig(
        provider=ProviderType.GEMINI,
        model=effective_model,
        auth_type=auth_type,
        proxy=settings.proxy or None,
        timeout=settings.request_timeout,
    )

    # Google login and Cloud Shell carry their own credentials
    if auth_type in TOKEN_AUTH_TYPES:
        return base

    if auth_type == AuthType.USE_GEMINI and settings.gemini_api_key:
        return replace(base, api_key=settings.gemini_api_key, vertexai=False)

    if auth_type == AuthType.USE_VERTEX_AI and (
        settings.google_api_key or (settings.google_cloud_project and settings.google_cloud_location)
    ):
        return replace(
            base,
            api_key=settings.google_api_key or None,
            vertexai=True,
            project=settings.google_cloud_project or None,
            location=settings.google_cloud_location or None,
        )

    tuning = GenerationTuning(
        max_tokens=settings.openai_max_tokens,
        temperature=settings.openai_temperature,
        top_p=settings.openai_top_p,
    )

    if auth_type == AuthType.OPENAI_API_KEY and settings.openai_api_key:
        return replace(
            base,
            provider=ProviderType.OPENAI,
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url or DEFAULT_OPENAI_BASE_URL,
            organization=settings.openai_organization or None,
            tuning=tuning,
        )

    # A compatible server is only selected when both key and endpoint are known
    if auth_type == AuthType.OPENAI_COMPATIBLE and settings.openai_api_key and settings.openai_base_url:
        return replace(
            base,
            provider=ProviderType.OPENAI_COMPATIBLE,
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            organization=settings.openai_organization or None,
            tuning=tuning,
        )

    if auth_type == AuthType.OPENAI_COMPATIBLE:
        missing = [
            name for name, value in (
                ("OPENAI_API_KEY", settings.openai_api_key),
                ("OPENAI_BASE_URL", settings.openai_base_url),
            ) if not value
        ]
        logger.warning(f"OpenAI-compatible auth is missing {', '.join(missing)}; falling back to the native default")

    return base


def _base_headers() -> dict:
    return {"User-Agent": f"genbridge/{__version__} ({platform.system().lower()}; {platform.machine()})"}


def create_content_generator(
    config: GeneratorConfig,
    http_options: Optional[HttpOptions] = None,
    token_provider: Optional[TokenProvider] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ContentGenerator:
    """
    Construct the content generator matching a config.

    Args:
        config: Output of create_generator_config (or built by hand)
        http_options: Extra headers, merged over the base User-Agent
        token_provider: Async callable returning an OAuth access token, for
            Google login, Cloud Shell and keyless Vertex AI
        transport: Optional httpx transport replacing the network (tests)

    Raises:
        ConfigurationError: Unsupported auth type/provider combination, or
            missing credentials for the selected generator
    """
    headers = {**_base_headers(), **(http_options.headers if http_options else {})}
    options = HttpOptions(headers=headers)

    if config.provider in OPENAI_PROVIDERS or config.auth_type in OPENAI_AUTH_TYPES:
        logger.info(f"Selected OpenAI generator for {config.model}")
        return OpenAIContentGenerator(config, options, transport=transport)

    if config.auth_type in TOKEN_AUTH_TYPES or config.auth_type in GEMINI_AUTH_TYPES:
        logger.info(f"Selected Gemini generator for {config.model} ({config.auth_type.value})")
        return GeminiContentGenerator(config, options, token_provider=token_provider, transport=transport)

    auth = config.auth_type.value if config.auth_type else None
    raise ConfigurationError(
        f"Error creating content generator: unsupported auth type/provider: {auth}/{config.provider.value}"
    )
