"""
Tests for the server-sent-event stream decoder.

Tests cover:
1. Frame parsing: data prefix, [DONE], malformed frames
2. Buffering of frames split across chunk boundaries
3. ResponseStream release on completion, early stop and errors
"""
import asyncio
import gc

import pytest

from genbridge.llm.format_mapper import FormatMapper
from genbridge.llm.stream_decoder import ResponseStream, iter_sse_data

HEL = b'data: {"choices":[{"delta":{"content":"Hel"},"index":0}]}\n'
LO = b'data: {"choices":[{"delta":{"content":"lo"},"index":0}]}\n'
DONE = b"data: [DONE]\n"


async def _chunks(*chunks: bytes):
    for chunk in chunks:
        yield chunk


async def _collect(aiter):
    return [item async for item in aiter]


class Releaser:
    """Counts release calls."""

    def __init__(self):
        self.calls = 0

    async def __call__(self):
        self.calls += 1


def _stream(*chunks: bytes, release=None) -> ResponseStream:
    return ResponseStream(_chunks(*chunks), FormatMapper.openai_chunk_to_universal, release)


# ===================================================================
# iter_sse_data
# ===================================================================

class TestIterSseData:
    """Test frame extraction from raw bytes."""

    @pytest.mark.asyncio
    async def test_two_frames_then_done(self):
        frames = await _collect(iter_sse_data(_chunks(HEL, LO, DONE)))
        assert [f["choices"][0]["delta"]["content"] for f in frames] == ["Hel", "lo"]

    @pytest.mark.asyncio
    async def test_done_stops_reading(self):
        """Frames after [DONE] are never emitted."""
        frames = await _collect(iter_sse_data(_chunks(HEL, DONE, LO)))
        assert len(frames) == 1

    @pytest.mark.asyncio
    async def test_malformed_frame_dropped(self):
        """A frame that is not JSON is skipped; neighbours still arrive in order."""
        frames = await _collect(iter_sse_data(_chunks(HEL, b"data: {not json\n", LO, DONE)))
        assert [f["choices"][0]["delta"]["content"] for f in frames] == ["Hel", "lo"]

    @pytest.mark.asyncio
    async def test_non_object_payload_dropped(self):
        frames = await _collect(iter_sse_data(_chunks(b"data: 42\n", HEL, DONE)))
        assert len(frames) == 1

    @pytest.mark.asyncio
    async def test_non_data_lines_ignored(self):
        """Comments, event names and blank lines carry no payload."""
        frames = await _collect(iter_sse_data(_chunks(b": keep-alive\n", b"event: message\n", b"\n", HEL, DONE)))
        assert len(frames) == 1

    @pytest.mark.asyncio
    async def test_frame_split_across_chunks(self):
        """Partial lines are buffered until their newline arrives."""
        frame = HEL + LO + DONE
        pieces = [frame[i:i + 7] for i in range(0, len(frame), 7)]

        frames = await _collect(iter_sse_data(_chunks(*pieces)))

        assert [f["choices"][0]["delta"]["content"] for f in frames] == ["Hel", "lo"]

    @pytest.mark.asyncio
    async def test_multibyte_character_split(self):
        """A UTF-8 character split between chunks decodes intact."""
        frame = 'data: {"choices":[{"delta":{"content":"héllo"}}]}\n'.encode("utf-8")
        split = frame.index("é".encode("utf-8")) + 1

        frames = await _collect(iter_sse_data(_chunks(frame[:split], frame[split:])))

        assert frames[0]["choices"][0]["delta"]["content"] == "héllo"

    @pytest.mark.asyncio
    async def test_crlf_line_endings(self):
        frames = await _collect(iter_sse_data(_chunks(HEL.replace(b"\n", b"\r\n"), DONE)))
        assert len(frames) == 1

    @pytest.mark.asyncio
    async def test_unterminated_last_line(self):
        """A final frame without trailing newline is still read."""
        frames = await _collect(iter_sse_data(_chunks(HEL, LO.rstrip(b"\n"))))
        assert len(frames) == 2

    @pytest.mark.asyncio
    async def test_end_without_done(self):
        frames = await _collect(iter_sse_data(_chunks(HEL, LO)))
        assert len(frames) == 2


# ===================================================================
# ResponseStream
# ===================================================================

class TestResponseStream:
    """Test the lazy partial-response sequence and reader release."""

    @pytest.mark.asyncio
    async def test_yields_deltas_not_totals(self):
        partials = await _collect(_stream(HEL, LO, DONE))
        assert [p.content for p in partials] == ["Hel", "lo"]

    @pytest.mark.asyncio
    async def test_release_on_completion(self):
        release = Releaser()
        stream = _stream(HEL, LO, DONE, release=release)

        await _collect(stream)

        assert release.calls == 1
        assert stream.closed

    @pytest.mark.asyncio
    async def test_release_on_early_stop(self):
        """Leaving an async with block after the first item releases the reader."""
        release = Releaser()

        async with _stream(HEL, LO, DONE, release=release) as stream:
            async for partial in stream:
                assert partial.content == "Hel"
                break

        assert release.calls == 1

    @pytest.mark.asyncio
    async def test_release_when_abandoned(self):
        """Dropping a partly read stream without closing it still releases the reader."""
        release = Releaser()
        stream = _stream(HEL, LO, DONE, release=release)

        async for partial in stream:
            assert partial.content == "Hel"
            break
        del stream
        gc.collect()
        for _ in range(5):
            await asyncio.sleep(0)

        assert release.calls == 1

    @pytest.mark.asyncio
    async def test_release_before_iteration(self):
        """Closing a stream that was never iterated still releases."""
        release = Releaser()
        stream = _stream(HEL, release=release)

        await stream.aclose()
        await stream.aclose()

        assert release.calls == 1

    @pytest.mark.asyncio
    async def test_release_on_read_error(self):
        """A transport failure ends the sequence with that error and releases."""
        release = Releaser()

        async def failing():
            yield HEL
            raise ConnectionResetError("Connection reset by peer")

        stream = ResponseStream(failing(), FormatMapper.openai_chunk_to_universal, release)
        received = []
        with pytest.raises(ConnectionResetError):
            async for partial in stream:
                received.append(partial.content)

        assert received == ["Hel"]
        assert release.calls == 1

    @pytest.mark.asyncio
    async def test_closed_stream_is_exhausted(self):
        stream = _stream(HEL, LO, DONE)
        await stream.aclose()
        assert await _collect(stream) == []

    @pytest.mark.asyncio
    async def test_skipped_frames(self):
        """Frames the converter maps to None are not emitted."""
        empty = b'data: {"id": "x", "choices": []}\n'
        partials = await _collect(_stream(empty, HEL, empty, DONE))
        assert [p.content for p in partials] == ["Hel"]

    @pytest.mark.asyncio
    async def test_null_choice_frame_skipped(self):
        """A well-formed frame with an unusable choice does not end the stream."""
        odd = b'data: {"choices":[null]}\n'
        release = Releaser()

        partials = await _collect(_stream(HEL, odd, LO, DONE, release=release))

        assert [p.content for p in partials] == ["Hel", "lo"]
        assert release.calls == 1

    @pytest.mark.asyncio
    async def test_converter_error_releases(self):
        release = Releaser()

        def convert(frame):
            raise KeyError("content")

        stream = ResponseStream(_chunks(HEL, DONE), convert, release)
        with pytest.raises(KeyError):
            await _collect(stream)

        assert release.calls == 1
        assert stream.closed
