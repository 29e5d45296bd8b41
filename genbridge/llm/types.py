"""
Request and response types for the three message shapes.

- Native: role + ordered parts (``Content``, ``GenerateContentResponse``)
- Universal: provider-neutral messages and responses
- OpenAI-wire: plain dicts shaped like the chat-completions JSON
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


# =============================================================================
# Native format
# =============================================================================

@dataclass
class Part:
    """One part of a Content. Only text parts take part in translation."""
    text: Optional[str] = None
    inline_data: Optional[Dict[str, Any]] = None
    function_call: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.text is not None:
            data["text"] = self.text
        if self.inline_data is not None:
            data["inlineData"] = self.inline_data
        if self.function_call is not None:
            data["functionCall"] = self.function_call
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Part":
        return cls(
            text=data.get("text"),
            inline_data=data.get("inlineData"),
            function_call=data.get("functionCall"),
        )


@dataclass
class Content:
    """A native conversation turn."""
    role: str = "user"
    parts: List[Part] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "parts": [p.to_dict() for p in self.parts]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Content":
        return cls(
            role=data.get("role", "model"),
            parts=[Part.from_dict(p) for p in data.get("parts") or []],
        )


ContentListUnion = Union[Content, List[Content], str]


@dataclass
class Candidate:
    content: Content
    finish_reason: Optional[str] = None
    index: int = 0


@dataclass
class UsageMetadata:
    prompt_token_count: int = 0
    candidates_token_count: int = 0
    total_token_count: int = 0


@dataclass
class GenerateContentResponse:
    """Native response. Streamed responses carry delta text in their parts."""
    candidates: List[Candidate] = field(default_factory=list)
    usage_metadata: Optional[UsageMetadata] = None

    @property
    def text(self) -> str:
        """Concatenated text of the first candidate."""
        if not self.candidates:
            return ""
        return "".join(p.text for p in self.candidates[0].content.parts if p.text)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GenerateContentResponse":
        """Build from a Gemini REST response body."""
        candidates = [
            Candidate(
                content=Content.from_dict(c.get("content") or {}),
                finish_reason=c.get("finishReason"),
                index=c.get("index", 0),
            )
            for c in data.get("candidates") or []
        ]
        usage = data.get("usageMetadata")
        usage_metadata = None
        if usage:
            usage_metadata = UsageMetadata(
                prompt_token_count=usage.get("promptTokenCount", 0),
                candidates_token_count=usage.get("candidatesTokenCount", 0),
                total_token_count=usage.get("totalTokenCount", 0),
            )
        return cls(candidates=candidates, usage_metadata=usage_metadata)


@dataclass
class GenerateContentConfig:
    """Per-call tuning. ``None`` means unset."""
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_output_tokens: Optional[int] = None


@dataclass
class GenerateContentParameters:
    model: str
    contents: ContentListUnion
    config: Optional[GenerateContentConfig] = None


@dataclass
class CountTokensParameters:
    model: str
    contents: ContentListUnion


@dataclass
class CountTokensResponse:
    total_tokens: int


@dataclass
class EmbedContentParameters:
    model: str
    contents: Union[str, List[str], Content, List[Content]]


@dataclass
class ContentEmbedding:
    values: List[float] = field(default_factory=list)


@dataclass
class EmbedContentResponse:
    embeddings: List[ContentEmbedding] = field(default_factory=list)


# =============================================================================
# Universal format
# =============================================================================

@dataclass
class UniversalFunctionCall:
    """A function call; ``arguments`` is a JSON string."""
    name: str
    arguments: str


@dataclass
class UniversalMessage:
    role: str  # "user" | "assistant" | "system" | "function"
    content: str = ""
    name: Optional[str] = None
    function_call: Optional[UniversalFunctionCall] = None


@dataclass
class UniversalFunction:
    name: str
    description: str
    parameters: Dict[str, Any] = field(default_factory=dict)  # JSON schema


@dataclass
class UniversalTokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class UniversalResponse:
    """Provider-neutral response.

    ``function_calls`` is ``None`` when the model made no call; an empty list
    is never produced.
    """
    content: str = ""
    finish_reason: Optional[str] = None
    usage: Optional[UniversalTokenUsage] = None
    function_calls: Optional[List[UniversalFunctionCall]] = None


@dataclass
class UniversalContentRequest:
    model: str
    messages: List[UniversalMessage]
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    stream: bool = False
    functions: Optional[List[UniversalFunction]] = None


@dataclass
class UniversalEmbeddingRequest:
    model: str
    input: Union[str, List[str]]


@dataclass
class UniversalEmbeddingResponse:
    embeddings: List[List[float]] = field(default_factory=list)
    usage: Optional[UniversalTokenUsage] = None
