"""
Model registry: default model names and context-window limits.

Token limits resolve in this order, first match wins:
1. Exact model name in the layered table
   (built-in defaults < models.json < environment overrides)
2. Ordered name patterns (case-insensitive)
3. DEFAULT_TOKEN_LIMIT

Environment overrides use ``MODEL_TOKEN_LIMIT_<NAME>=<int>``; ``<NAME>`` is
lowercased and underscores become hyphens, so ``MODEL_TOKEN_LIMIT_MY_MODEL``
targets ``my-model``.
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Pattern, Tuple, Union

from dotenv import dotenv_values

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_LIMIT = 1_048_576

TOKEN_LIMIT_ENV_PREFIX = "MODEL_TOKEN_LIMIT_"
MODELS_JSON_FILE = "models.json"
DOTENV_FILE = ".env"

# Default model names, overridable per key from models.json or the environment
DEFAULT_MODELS: Dict[str, str] = {
    "DEFAULT_GEMINI_MODEL": "gemini-2.5-pro",
    "DEFAULT_GEMINI_FLASH_MODEL": "gemini-2.5-flash",
    "DEFAULT_GEMINI_FLASH_LITE_MODEL": "gemini-2.5-flash-lite",
    "DEFAULT_GEMINI_EMBEDDING_MODEL": "gemini-embedding-001",
}

DEFAULT_TOKEN_LIMITS: Dict[str, int] = {
    # Gemini models
    "gemini-1.5-pro": 2_097_152,
    "gemini-1.5-flash": 1_048_576,
    "gemini-2.5-pro-preview-05-06": 1_048_576,
    "gemini-2.5-pro-preview-06-05": 1_048_576,
    "gemini-2.5-pro": 1_048_576,
    "gemini-2.5-flash-preview-05-20": 1_048_576,
    "gemini-2.5-flash": 1_048_576,
    "gemini-2.5-flash-lite": 1_048_576,
    "gemini-2.0-flash": 1_048_576,
    "gemini-2.0-flash-preview-image-generation": 32_000,

    # OpenAI models
    "gpt-4": 128_000,
    "gpt-4-turbo": 128_000,
    "gpt-4-turbo-preview": 128_000,
    "gpt-4.1": 128_000,
    "gpt-4.1-mini": 16_384,
    "gpt-4-32k": 32_768,
    "gpt-4o": 128_000,
    "gpt-3.5-turbo": 16_384,
    "gpt-3.5-turbo-16k": 16_384,

    # Claude models
    "claude-3-opus": 200_000,
    "claude-3-sonnet": 200_000,
    "claude-3-haiku": 200_000,
    "claude-3.5-sonnet": 200_000,
    "claude-4-sonnet": 200_000,

    # Llama models
    "llama-3.1-8b": 128_000,
    "llama-3.1-70b": 128_000,
    "llama-3.1-405b": 128_000,
    "llama-3.2-1b": 128_000,
    "llama-3.2-3b": 128_000,
    "llama-3.3-8b": 128_000,
    "llama-3.3-70b": 128_000,
}

# Fallback rules for names missing from the table, tried in order
TOKEN_LIMIT_PATTERNS: List[Tuple[Pattern, int]] = [
    (re.compile(r"gpt-4(\.1|-turbo|-o)?", re.IGNORECASE), 128_000),
    (re.compile(r"claude-(3|4)", re.IGNORECASE), 200_000),
    (re.compile(r"llama-3", re.IGNORECASE), 128_000),
    (re.compile(r"mini|lite", re.IGNORECASE), 16_384),
]


def _is_token_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class ModelConfig:
    """
    Layered model-name and token-limit configuration.

    Loaded lazily on first lookup. The instance is owned by the caller and
    passed to whoever needs it; ``refresh()`` rebuilds it in place and must
    not run concurrently with itself.
    """

    def __init__(
        self,
        working_directory: Optional[Union[str, Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Args:
            working_directory: Where ``.env`` and ``models.json`` are looked up
                (default: the current directory at load time)
            environ: Environment mapping (default: ``os.environ`` at load time)
        """
        self.working_directory = Path(working_directory) if working_directory else None
        self._environ = environ
        self._models: Dict[str, str] = dict(DEFAULT_MODELS)
        self._token_limits: Dict[str, int] = dict(DEFAULT_TOKEN_LIMITS)
        self._initialized = False

    def initialize(self) -> None:
        """Load every layer once. Later calls do nothing until refresh()."""
        if self._initialized:
            return

        cwd = self.working_directory or Path.cwd()
        env = self._merged_environment(cwd)
        self._load_json(cwd / MODELS_JSON_FILE)
        self._load_environment(env)
        self._initialized = True
        logger.debug(f"Model config loaded from {cwd}: {len(self._token_limits)} token limits")

    def refresh(self, working_directory: Optional[Union[str, Path]] = None) -> None:
        """Drop every loaded layer and rebuild from the defaults."""
        if working_directory is not None:
            self.working_directory = Path(working_directory)
        self._models = dict(DEFAULT_MODELS)
        self._token_limits = dict(DEFAULT_TOKEN_LIMITS)
        self._initialized = False
        self.initialize()

    def _merged_environment(self, cwd: Path) -> Dict[str, str]:
        """Process environment over ``.env`` values; ``os.environ`` is never modified."""
        merged: Dict[str, str] = {}
        dotenv_path = cwd / DOTENV_FILE
        if dotenv_path.exists():
            merged.update({k: v for k, v in dotenv_values(dotenv_path).items() if v is not None})
        merged.update(os.environ if self._environ is None else self._environ)
        return merged

    def _load_json(self, path: Path) -> None:
        if not path.exists():
            return
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to parse {path}: {e}")
            return
        if not isinstance(data, dict):
            logger.warning(f"Ignoring {path}: top level is not an object")
            return

        models = data.get("models")
        if isinstance(models, dict):
            self._models.update({k: v for k, v in models.items() if isinstance(v, str) and v})

        token_limits = data.get("tokenLimits")
        if isinstance(token_limits, dict):
            for name, limit in token_limits.items():
                if _is_token_count(limit):
                    self._token_limits[name] = limit
                else:
                    logger.warning(f"Ignoring token limit for {name} in {path}: {limit!r}")

    def _load_environment(self, env: Mapping[str, str]) -> None:
        for key in DEFAULT_MODELS:
            if env.get(key):
                self._models[key] = env[key]

        for key, value in env.items():
            if not key.startswith(TOKEN_LIMIT_ENV_PREFIX) or not value:
                continue
            model_name = key[len(TOKEN_LIMIT_ENV_PREFIX):].lower().replace("_", "-")
            try:
                limit = int(value, 10)
            except ValueError:
                logger.debug(f"Ignoring non-numeric {key}={value!r}")
                continue
            if limit <= 0:
                logger.debug(f"Ignoring non-positive {key}={value!r}")
                continue
            self._token_limits[model_name] = limit

    def get_model(self, key: str) -> str:
        """Get a default model name, e.g. ``get_model("DEFAULT_GEMINI_MODEL")``."""
        self.initialize()
        return self._models[key]

    def get_token_limit(self, model_name: str) -> Optional[int]:
        """Exact-name lookup in the layered table; None when unlisted."""
        self.initialize()
        return self._token_limits.get(model_name)

    def all_models(self) -> Dict[str, str]:
        self.initialize()
        return dict(self._models)

    def all_token_limits(self) -> Dict[str, int]:
        self.initialize()
        return dict(self._token_limits)


class TokenLimitResolver:
    """Resolves the context-window size for any model name."""

    def __init__(self, model_config: Optional[ModelConfig] = None):
        self.model_config = model_config or ModelConfig()

    def resolve(self, model: str) -> int:
        limit = self.model_config.get_token_limit(model)
        if limit is not None:
            return limit

        for pattern, pattern_limit in TOKEN_LIMIT_PATTERNS:
            if pattern.search(model):
                return pattern_limit

        return DEFAULT_TOKEN_LIMIT

    def refresh(self, working_directory: Optional[Union[str, Path]] = None) -> None:
        self.model_config.refresh(working_directory)


def token_limit(model: str, resolver: Optional[TokenLimitResolver] = None) -> int:
    """Get the token limit for a model, building a default resolver if none is given."""
    return (resolver or TokenLimitResolver()).resolve(model)
