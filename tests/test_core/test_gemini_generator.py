"""
Unit tests for GeminiContentGenerator.

Tests:
- Credentials and endpoint selection (Gemini API, Vertex AI)
- Request bodies: system instruction, generation config
- Streaming over alt=sse
- Token counting and embeddings
"""
import json

import pytest

from genbridge.errors import ConfigurationError, ProviderError
from genbridge.llm.content_generator import (
    AuthType,
    GenerationTuning,
    GeneratorConfig,
    HttpOptions,
    ProviderType,
    supports_universal,
)
from genbridge.llm.gemini_generator import (
    GEMINI_API_BASE_URL,
    VERTEX_EXPRESS_BASE_URL,
    GeminiContentGenerator,
)
from genbridge.llm.types import (
    Content,
    CountTokensParameters,
    EmbedContentParameters,
    GenerateContentConfig,
    GenerateContentParameters,
    Part,
)
from tests.mocks.mock_provider import FakeProvider, sse


def gemini_response(text: str = "Hello from Gemini", finish_reason: str = "STOP") -> dict:
    return {
        "candidates": [{
            "content": {"role": "model", "parts": [{"text": text}]},
            "finishReason": finish_reason,
            "index": 0,
        }],
        "usageMetadata": {"promptTokenCount": 4, "candidatesTokenCount": 3, "totalTokenCount": 7},
    }


def _config(**overrides) -> GeneratorConfig:
    values = {
        "model": "gemini-2.5-pro",
        "provider": ProviderType.GEMINI,
        "api_key": "gm-test-key",
        "auth_type": AuthType.USE_GEMINI,
    }
    values.update(overrides)
    return GeneratorConfig(**values)


def _request(*contents: Content, **config) -> GenerateContentParameters:
    return GenerateContentParameters(
        model="gemini-2.5-pro",
        contents=list(contents) or [Content(role="user", parts=[Part(text="Hello")])],
        config=GenerateContentConfig(**config) if config else None,
    )


async def fixed_token() -> str:
    return "ya29.test-token"


class TestConstruction:
    """Test credential checks and endpoint selection."""

    def test_requires_credentials(self):
        with pytest.raises(ConfigurationError, match="access token provider"):
            GeminiContentGenerator(_config(api_key=None))

    def test_gemini_api_endpoint(self):
        assert GeminiContentGenerator(_config()).base_url == GEMINI_API_BASE_URL

    def test_vertex_express_endpoint(self):
        gen = GeminiContentGenerator(_config(vertexai=True, auth_type=AuthType.USE_VERTEX_AI))
        assert gen.base_url == VERTEX_EXPRESS_BASE_URL

    def test_vertex_regional_endpoint(self):
        gen = GeminiContentGenerator(
            _config(api_key=None, vertexai=True, project="my-proj", location="us-central1"),
            token_provider=fixed_token,
        )
        assert gen.base_url == (
            "https://us-central1-aiplatform.googleapis.com/v1/"
            "projects/my-proj/locations/us-central1/publishers/google"
        )

    def test_vertex_without_project(self):
        with pytest.raises(ConfigurationError, match="GOOGLE_CLOUD_PROJECT"):
            GeminiContentGenerator(_config(api_key=None, vertexai=True), token_provider=fixed_token)

    def test_explicit_base_url(self):
        gen = GeminiContentGenerator(_config(base_url="http://localhost:9000/v1beta/"))
        assert gen.base_url == "http://localhost:9000/v1beta"

    def test_not_universal(self):
        gen = GeminiContentGenerator(_config())
        assert gen.provider_type == ProviderType.GEMINI
        assert not supports_universal(gen)


class TestHeaders:
    """Test credential headers."""

    @pytest.mark.asyncio
    async def test_api_key_header(self):
        fake = FakeProvider().add_json(gemini_response())
        options = HttpOptions(headers={"User-Agent": "tests/1.0", "x-goog-api-key": "other"})

        await GeminiContentGenerator(_config(), options, transport=fake.transport).generate_content(_request())

        headers = fake.requests[0].headers
        assert headers.get_list("x-goog-api-key") == ["gm-test-key"]
        assert headers["user-agent"] == "tests/1.0"
        assert "authorization" not in headers

    @pytest.mark.asyncio
    async def test_access_token_header(self):
        """Without a key the token provider supplies a bearer token."""
        fake = FakeProvider().add_json(gemini_response())
        config = _config(api_key=None, auth_type=AuthType.LOGIN_WITH_GOOGLE, project="billing-proj")

        gen = GeminiContentGenerator(config, token_provider=fixed_token, transport=fake.transport)
        await gen.generate_content(_request())

        headers = fake.requests[0].headers
        assert headers["authorization"] == "Bearer ya29.test-token"
        assert headers["x-goog-user-project"] == "billing-proj"
        assert "x-goog-api-key" not in headers


class TestGenerateContent:
    """Test non-streaming generation."""

    @pytest.mark.asyncio
    async def test_request_and_response(self):
        fake = FakeProvider().add_json(gemini_response("Hi!"))
        gen = GeminiContentGenerator(_config(), transport=fake.transport)

        result = await gen.generate_content(_request())

        assert str(fake.requests[0].url) == f"{GEMINI_API_BASE_URL}/models/gemini-2.5-pro:generateContent"
        assert fake.last_body() == {"contents": [{"role": "user", "parts": [{"text": "Hello"}]}]}
        assert result.text == "Hi!"
        assert result.candidates[0].finish_reason == "STOP"
        assert result.usage_metadata.total_token_count == 7

    @pytest.mark.asyncio
    async def test_models_prefix_stripped(self):
        fake = FakeProvider().add_json(gemini_response())
        gen = GeminiContentGenerator(_config(), transport=fake.transport)
        request = GenerateContentParameters(model="models/gemini-2.5-flash", contents="Hi")

        await gen.generate_content(request)

        assert fake.requests[0].url.path.endswith("/models/gemini-2.5-flash:generateContent")

    @pytest.mark.asyncio
    async def test_system_instruction(self):
        """System turns move to systemInstruction."""
        fake = FakeProvider().add_json(gemini_response())
        gen = GeminiContentGenerator(_config(), transport=fake.transport)

        await gen.generate_content(_request(
            Content(role="system", parts=[Part(text="Be brief.")]),
            Content(role="user", parts=[Part(text="Hello")]),
        ))

        body = fake.last_body()
        assert body["systemInstruction"] == {"parts": [{"text": "Be brief."}]}
        assert [c["role"] for c in body["contents"]] == ["user"]

    @pytest.mark.asyncio
    async def test_generation_config(self):
        fake = FakeProvider().add_json(gemini_response())
        tuning = GenerationTuning(max_tokens=1024, temperature=0.7)
        gen = GeminiContentGenerator(_config(tuning=tuning), transport=fake.transport)

        await gen.generate_content(_request(temperature=0.0, top_p=0.95))

        assert fake.last_body()["generationConfig"] == {
            "temperature": 0.0,
            "topP": 0.95,
            "maxOutputTokens": 1024,
        }

    @pytest.mark.asyncio
    async def test_api_error(self):
        fake = FakeProvider().add_json(
            {"error": {"code": 400, "message": "API key not valid", "status": "INVALID_ARGUMENT"}},
            status_code=400,
        )
        gen = GeminiContentGenerator(_config(), transport=fake.transport)

        with pytest.raises(ProviderError) as exc_info:
            await gen.generate_content(_request())

        assert str(exc_info.value) == "Gemini API error: 400 Bad Request. API key not valid"


class TestGenerateContentStream:
    """Test streamed generation."""

    @pytest.mark.asyncio
    async def test_stream(self):
        fake = FakeProvider()
        body = fake.add_stream([
            sse(json.dumps(gemini_response("Hel", finish_reason=None))),
            sse(json.dumps(gemini_response("lo"))),
        ])
        gen = GeminiContentGenerator(_config(), transport=fake.transport)

        stream = await gen.generate_content_stream(_request())
        partials = [p async for p in stream]

        request = fake.requests[0]
        assert request.url.path.endswith("/models/gemini-2.5-pro:streamGenerateContent")
        assert request.url.params["alt"] == "sse"
        assert [p.text for p in partials] == ["Hel", "lo"]
        assert partials[-1].candidates[0].finish_reason == "STOP"
        assert body.closed

    @pytest.mark.asyncio
    async def test_stream_error_before_first_element(self):
        fake = FakeProvider().add_json({"error": {"message": "Quota exceeded"}}, status_code=429)
        gen = GeminiContentGenerator(_config(), transport=fake.transport)

        with pytest.raises(ProviderError, match="Quota exceeded"):
            await gen.generate_content_stream(_request())


class TestCountTokens:
    """Test the countTokens endpoint."""

    @pytest.mark.asyncio
    async def test_count_tokens(self):
        fake = FakeProvider().add_json({"totalTokens": 42})
        gen = GeminiContentGenerator(_config(), transport=fake.transport)

        result = await gen.count_tokens(CountTokensParameters(model="gemini-2.5-pro", contents="Hello there"))

        assert fake.requests[0].url.path.endswith(":countTokens")
        assert fake.last_body() == {"contents": [{"role": "user", "parts": [{"text": "Hello there"}]}]}
        assert result.total_tokens == 42


class TestEmbeddings:
    """Test embedding endpoints."""

    @pytest.mark.asyncio
    async def test_batch_embed_contents(self):
        fake = FakeProvider().add_json({"embeddings": [{"values": [0.1, 0.2]}, {"values": [0.3]}]})
        gen = GeminiContentGenerator(_config(), transport=fake.transport)

        result = await gen.embed_content(EmbedContentParameters(model="gemini-embedding-001", contents=["a", "b"]))

        assert fake.requests[0].url.path.endswith("/models/gemini-embedding-001:batchEmbedContents")
        assert fake.last_body()["requests"][0] == {
            "model": "models/gemini-embedding-001",
            "content": {"parts": [{"text": "a"}]},
        }
        assert [e.values for e in result.embeddings] == [[0.1, 0.2], [0.3]]

    @pytest.mark.asyncio
    async def test_vertex_predict(self):
        fake = FakeProvider().add_json({"predictions": [{"embeddings": {"values": [0.5, 0.6]}}]})
        gen = GeminiContentGenerator(
            _config(vertexai=True, auth_type=AuthType.USE_VERTEX_AI),
            transport=fake.transport,
        )

        result = await gen.embed_content(EmbedContentParameters(model="text-embedding-005", contents="hello"))

        assert str(fake.requests[0].url) == f"{VERTEX_EXPRESS_BASE_URL}/models/text-embedding-005:predict"
        assert fake.last_body() == {"instances": [{"content": "hello"}]}
        assert result.embeddings[0].values == [0.5, 0.6]
