"""
Format mapper for converting between the Native, OpenAI-wire and Universal shapes.

Everything here is pure and stateless. OpenAI-wire messages and responses are
plain dicts shaped like the chat-completions JSON.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

from genbridge.llm.types import (
    Candidate,
    Content,
    ContentListUnion,
    GenerateContentResponse,
    Part,
    UniversalFunctionCall,
    UniversalMessage,
    UniversalResponse,
    UniversalTokenUsage,
    UsageMetadata,
)


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _first_choice(response: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """The first choice when it is an object; None for missing or odd entries."""
    choices = response.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return None


def _has_choices(response: Dict[str, Any]) -> bool:
    return _first_choice(response) is not None


def _has_message_list(response: Dict[str, Any]) -> bool:
    message = response.get("message")
    return isinstance(message, list) and len(message) > 0 and isinstance(message[0], dict)


def _has_message_object(response: Dict[str, Any]) -> bool:
    return isinstance(response.get("message"), dict)


# Response envelopes tolerated by openai_response_to_native, in priority order.
# Each entry is (predicate, extractor); the extractor returns a choice-shaped dict.
# The two "message" shapes come from OpenAI-compatible local servers that do not
# follow the standard envelope. Do not grow this list without a concrete server.
ENVELOPE_SHAPES: Tuple[Tuple[Callable[[Dict[str, Any]], bool], Callable[[Dict[str, Any]], Dict[str, Any]]], ...] = (
    (_has_choices, lambda r: r["choices"][0]),
    (_has_message_list, lambda r: {"message": r["message"][0]}),
    (_has_message_object, lambda r: {"message": r["message"]}),
)


class FormatMapper:
    """Converts messages and responses between Native, OpenAI and Universal formats."""

    @staticmethod
    def flatten_text(content: Content) -> str:
        """Concatenate the text-bearing parts of a Content, no separator."""
        return "".join(part.text for part in content.parts if part.text)

    @staticmethod
    def to_content_list(contents: ContentListUnion) -> List[Content]:
        """Normalize a single Content, a list, or a plain string into a list of Content."""
        if isinstance(contents, str):
            return [Content(role="user", parts=[Part(text=contents)])]
        if isinstance(contents, Content):
            return [contents]
        return [
            Content(role="user", parts=[Part(text=c)]) if isinstance(c, str) else c
            for c in contents
        ]

    @staticmethod
    def native_to_openai(contents: List[Content]) -> List[Dict[str, Any]]:
        """Convert native Content[] to OpenAI messages."""
        return [
            {
                "role": "assistant" if content.role == "model" else content.role,
                "content": FormatMapper.flatten_text(content),
            }
            for content in contents
        ]

    @staticmethod
    def openai_to_native(messages: List[Dict[str, Any]]) -> List[Content]:
        """Convert OpenAI messages to native Content[]."""
        return [
            Content(
                role="model" if msg.get("role") == "assistant" else msg.get("role", "user"),
                parts=[Part(text=msg.get("content") or "")],
            )
            for msg in messages
        ]

    @staticmethod
    def universal_to_openai(messages: List[UniversalMessage]) -> List[Dict[str, Any]]:
        """Convert Universal messages to OpenAI messages."""
        result = []
        for msg in messages:
            converted: Dict[str, Any] = {"role": msg.role, "content": msg.content}
            if msg.name is not None:
                converted["name"] = msg.name
            if msg.function_call is not None:
                converted["function_call"] = {
                    "name": msg.function_call.name,
                    "arguments": msg.function_call.arguments,
                }
            result.append(converted)
        return result

    @staticmethod
    def usage_to_universal(usage: Optional[Dict[str, Any]]) -> Optional[UniversalTokenUsage]:
        if not usage or not isinstance(usage, dict):
            return None
        return UniversalTokenUsage(
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
            total_tokens=usage.get("total_tokens", 0),
        )

    @staticmethod
    def usage_to_native(usage: Optional[Dict[str, Any]]) -> Optional[UsageMetadata]:
        if not usage or not isinstance(usage, dict):
            return None
        return UsageMetadata(
            prompt_token_count=usage.get("prompt_tokens", 0),
            candidates_token_count=usage.get("completion_tokens", 0),
            total_token_count=usage.get("total_tokens", 0),
        )

    @staticmethod
    def _function_calls(function_call: Any) -> Optional[List[UniversalFunctionCall]]:
        if not function_call or not isinstance(function_call, dict):
            return None
        return [
            UniversalFunctionCall(
                name=function_call.get("name") or "",
                arguments=function_call.get("arguments") or "",
            )
        ]

    @staticmethod
    def openai_to_universal(response: Dict[str, Any]) -> UniversalResponse:
        """Convert an OpenAI chat-completions response to the Universal format."""
        choice = _first_choice(response) or {}
        message = _as_dict(choice.get("message"))

        return UniversalResponse(
            content=_text(message.get("content")),
            finish_reason=choice.get("finish_reason"),
            usage=FormatMapper.usage_to_universal(response.get("usage")),
            function_calls=FormatMapper._function_calls(message.get("function_call")),
        )

    @staticmethod
    def openai_response_to_native(response: Dict[str, Any]) -> GenerateContentResponse:
        """
        Convert an OpenAI response to the native format.

        Accepts the standard ``{choices: [{message}]}`` envelope and the two
        non-standard ``{message: [{...}]}`` / ``{message: {...}}`` envelopes.
        The result always has exactly one candidate; ``finish_reason`` defaults
        to ``"STOP"`` and ``index`` to ``0``.
        """
        choice: Dict[str, Any] = {}
        for matches, extract in ENVELOPE_SHAPES:
            if matches(response):
                choice = extract(response)
                break

        message = _as_dict(choice.get("message"))
        return GenerateContentResponse(
            candidates=[
                Candidate(
                    content=Content(role="model", parts=[Part(text=_text(message.get("content")))]),
                    finish_reason=choice.get("finish_reason") or "STOP",
                    index=choice.get("index") or 0,
                )
            ],
            usage_metadata=FormatMapper.usage_to_native(response.get("usage")),
        )

    @staticmethod
    def openai_chunk_to_native(chunk: Dict[str, Any]) -> Optional[GenerateContentResponse]:
        """Map one decoded stream chunk to a partial native response.

        Returns None for chunks with neither a usable choice nor usage.
        """
        choice = _first_choice(chunk)
        usage_metadata = FormatMapper.usage_to_native(chunk.get("usage"))
        if choice is None:
            if usage_metadata is None:
                return None
            return GenerateContentResponse(candidates=[], usage_metadata=usage_metadata)

        delta = _as_dict(choice.get("delta"))
        return GenerateContentResponse(
            candidates=[
                Candidate(
                    content=Content(role="model", parts=[Part(text=_text(delta.get("content")))]),
                    finish_reason=choice.get("finish_reason"),
                    index=choice.get("index") or 0,
                )
            ],
            usage_metadata=usage_metadata,
        )

    @staticmethod
    def openai_chunk_to_universal(chunk: Dict[str, Any]) -> Optional[UniversalResponse]:
        """Map one decoded stream chunk to a partial Universal response."""
        choice = _first_choice(chunk)
        usage = FormatMapper.usage_to_universal(chunk.get("usage"))
        if choice is None:
            if usage is None:
                return None
            return UniversalResponse(content="", usage=usage)

        delta = _as_dict(choice.get("delta"))
        return UniversalResponse(
            content=_text(delta.get("content")),
            finish_reason=choice.get("finish_reason"),
            usage=usage,
            function_calls=FormatMapper._function_calls(delta.get("function_call")),
        )
