"""
Root test configuration.

Sets up:
- A clean provider environment for every test, so keys on the developer's
  machine never leak into unit tests
- A working directory without .env / models.json
"""
import os

import pytest

from genbridge.config import get_settings

PROVIDER_ENV_VARS = [
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "GOOGLE_CLOUD_PROJECT",
    "GOOGLE_CLOUD_LOCATION",
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "OPENAI_ORGANIZATION",
    "OPENAI_MAX_TOKENS",
    "OPENAI_TEMPERATURE",
    "OPENAI_TOP_P",
    "GENBRIDGE_MODEL",
    "GENBRIDGE_REQUEST_TIMEOUT",
    "HTTPS_PROXY",
    "HTTP_PROXY",
    "https_proxy",
    "http_proxy",
]


@pytest.fixture(autouse=True)
def _clean_provider_env(monkeypatch, tmp_path):
    """Remove provider credentials and model overrides from the environment."""
    for var in PROVIDER_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    for key in list(os.environ):
        if key.startswith("MODEL_TOKEN_LIMIT_") or key.startswith("DEFAULT_GEMINI_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
