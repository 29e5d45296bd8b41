"""
Incremental decoder for server-sent-event response streams.

Frames are newline-delimited. Only lines starting with ``data: `` carry a
payload, ``data: [DONE]`` ends the stream, and payloads that are not JSON
objects are dropped without interrupting the stream.
"""

import codecs
import json
import logging
from typing import (
    Any,
    AsyncGenerator,
    AsyncIterable,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Optional,
    TypeVar,
)

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

T = TypeVar("T")


def _data_payload(line: str) -> Optional[str]:
    line = line.strip()
    if not line.startswith(DATA_PREFIX):
        return None
    return line[len(DATA_PREFIX):]


def _parse_payload(payload: str) -> Optional[Dict[str, Any]]:
    try:
        frame = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug(f"Dropping malformed stream frame: {payload[:200]!r}")
        return None
    if not isinstance(frame, dict):
        logger.debug(f"Dropping non-object stream frame: {payload[:200]!r}")
        return None
    return frame


async def iter_sse_data(chunks: AsyncIterable[bytes]) -> AsyncIterator[Dict[str, Any]]:
    """
    Yield the JSON payload of every complete ``data:`` frame in a byte stream.

    Only newline-terminated lines are parsed per chunk; the remainder is kept
    and prefixed to the next chunk. Multi-byte characters split across chunks
    are decoded incrementally.

    Args:
        chunks: Raw bytes as they arrive from the network

    Yields:
        One dict per well-formed frame, in arrival order
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""

    async for chunk in chunks:
        buffer += decoder.decode(chunk)
        lines = buffer.split("\n")
        buffer = lines.pop()

        for line in lines:
            payload = _data_payload(line)
            if payload is None:
                continue
            if payload == DONE_SENTINEL:
                return
            frame = _parse_payload(payload)
            if frame is not None:
                yield frame

    # Servers that close without a trailing newline still get their last frame read
    buffer += decoder.decode(b"", final=True)
    payload = _data_payload(buffer)
    if payload is not None and payload != DONE_SENTINEL:
        frame = _parse_payload(payload)
        if frame is not None:
            yield frame


class _ReleaseOnce:
    """Runs a release coroutine function at most once."""

    def __init__(self, release: Optional[Callable[[], Awaitable[None]]]):
        self._release = release
        self.done = False

    async def __call__(self) -> None:
        if self.done:
            return
        self.done = True
        if self._release is not None:
            await self._release()


async def _decode_items(
    frames: AsyncGenerator[Dict[str, Any], None],
    convert: Callable[[Dict[str, Any]], Optional[T]],
    release: _ReleaseOnce,
) -> AsyncIterator[T]:
    # Being an async generator, this is closed by the event loop's finalizer
    # when the consumer drops the stream mid-iteration
    try:
        async for frame in frames:
            item = convert(frame)
            if item is not None:
                yield item
    finally:
        try:
            await frames.aclose()
        finally:
            await release()


class ResponseStream(Generic[T]):
    """
    Lazy, cancellable sequence of partial responses decoded from a byte stream.

    Owns the underlying network reader through ``release``, which runs exactly
    once: when the stream is exhausted, when reading or decoding raises, when
    the consumer calls ``aclose()`` / leaves an ``async with`` block (including
    before iteration has started), or when a partly consumed stream is dropped
    and garbage collected.

    Usage:
        async with await generator.generate_content_stream(request) as stream:
            async for partial in stream:
                ...
    """

    def __init__(
        self,
        chunks: AsyncIterable[bytes],
        convert: Callable[[Dict[str, Any]], Optional[T]],
        release: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        """
        Args:
            chunks: Raw response bytes
            convert: Maps one decoded frame to an item, or None to skip the frame
            release: Coroutine function that frees the network reader
        """
        self._release = _ReleaseOnce(release)
        self._items = _decode_items(iter_sse_data(chunks), convert, self._release)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "ResponseStream[T]":
        return self

    async def __anext__(self) -> T:
        if self._closed:
            raise StopAsyncIteration
        try:
            return await self._items.__anext__()
        except BaseException:
            # The generator has finished and released the reader
            self._closed = True
            raise

    async def aclose(self) -> None:
        """Stop decoding and release the network reader. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._items.aclose()
        finally:
            # Needed when iteration never started
            await self._release()

    async def __aenter__(self) -> "ResponseStream[T]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
