"""Server-Sent Events codec for generation events.

Producer side:
    encode_event / encode_done / KEEPALIVE_FRAME build wire frames, and
    sse_stream() turns an event source into a framed text stream with
    periodic keepalives and a guaranteed ``[DONE]`` trailer.

Consumer side:
    SSEDecoder buffers arbitrary byte chunks and emits complete frames only;
    decode_stream() drives it over an async byte iterator.

Wire format:
    data: <json event>\\n\\n     one event
    : keepalive\\n\\n            comment, ignored by decoders
    data: [DONE]\\n\\n           clean end of stream
"""

import asyncio
import codecs
from collections.abc import AsyncIterable, AsyncIterator

import structlog
from pydantic import ValidationError

from sitegen.core.exceptions import SiteGenError
from sitegen.domain.stages import Stage
from sitegen.schemas.events import ErrorEvent, GenerationEvent, event_to_json, is_terminal, parse_event

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DONE_SENTINEL = "[DONE]"
KEEPALIVE_FRAME = ": keepalive\n\n"
KEEPALIVE_INTERVAL_SECONDS = 10.0  # proxies drop idle connections after 30-60s

SSE_MEDIA_TYPE = "text/event-stream"
SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class _Done:
    """Marker yielded by SSEDecoder.feed() when the ``[DONE]`` frame arrives."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DONE"


DONE = _Done()


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def encode_event(event: GenerationEvent) -> str:
    return f"data: {event_to_json(event)}\n\n"


def encode_done() -> str:
    return f"data: {DONE_SENTINEL}\n\n"


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def parse_frame(frame: str) -> GenerationEvent | _Done | None:
    """Parse one frame (text between blank-line separators).

    Returns the event, DONE for the sentinel, or None for comment-only,
    empty, or malformed frames.
    """
    data_lines = []
    for line in frame.split("\n"):
        if not line or line.startswith(":"):
            continue
        if line.startswith("data:"):
            value = line[5:]
            if value.startswith(" "):
                value = value[1:]
            data_lines.append(value)
        # Other SSE fields (event:, id:, retry:) are not used by this protocol

    if not data_lines:
        return None

    data = "\n".join(data_lines)
    if data.strip() == DONE_SENTINEL:
        return DONE

    try:
        return parse_event(data)
    except (ValidationError, ValueError):
        logger.debug("sse_frame_dropped", frame_length=len(frame))
        return None


class SSEDecoder:
    """Incremental SSE decoder.

    Feed it chunks as they arrive from the network. A frame split across two
    reads is held until its terminating blank line arrives; a read holding
    several frames yields all of them. Multi-byte UTF-8 characters split
    across reads are reassembled.
    """

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes | str) -> list[GenerationEvent | _Done]:
        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)
        self._buffer = (self._buffer + chunk).replace("\r\n", "\n")

        frames = self._buffer.split("\n\n")
        self._buffer = frames.pop()

        results = []
        for frame in frames:
            parsed = parse_frame(frame)
            if parsed is not None:
                results.append(parsed)
        return results

    def finish(self) -> list[GenerationEvent | _Done]:
        """Make one best-effort parse of whatever is left in the buffer."""
        tail = self._buffer + self._utf8.decode(b"", final=True)
        self._buffer = ""
        if not tail.strip():
            return []
        parsed = parse_frame(tail.replace("\r\n", "\n").strip("\n"))
        return [parsed] if parsed is not None else []


async def decode_stream(chunks: AsyncIterable[bytes | str]) -> AsyncIterator[GenerationEvent]:
    """Yield typed events from a raw SSE byte stream, stopping at ``[DONE]``."""
    decoder = SSEDecoder()
    async for chunk in chunks:
        for item in decoder.feed(chunk):
            if item is DONE:
                return
            yield item
    for item in decoder.finish():
        if item is DONE:
            return
        yield item


# ---------------------------------------------------------------------------
# Producer
# ---------------------------------------------------------------------------


async def _next_event(iterator: AsyncIterator[GenerationEvent]) -> GenerationEvent:
    return await anext(iterator)


async def sse_stream(
    events: AsyncIterator[GenerationEvent],
    keepalive_interval: float = KEEPALIVE_INTERVAL_SECONDS,
) -> AsyncIterator[str]:
    """Frame an event source for a StreamingResponse.

    - Emits a keepalive comment whenever the source is silent for one interval.
    - Stops after the first terminal event.
    - An exception from the source becomes one ``error`` event.
    - Always finishes with ``data: [DONE]``, unless the consumer goes away.
    - On exit (including cancellation on client disconnect) the pending read
      is cancelled and the source is closed.
    """
    iterator = aiter(events)
    pending: asyncio.Task | None = None
    current_stage = Stage.CONFIG_ASSEMBLY

    try:
        while True:
            if pending is None:
                pending = asyncio.ensure_future(_next_event(iterator))

            done, _ = await asyncio.wait({pending}, timeout=keepalive_interval)
            if not done:
                yield KEEPALIVE_FRAME
                continue

            task, pending = pending, None
            try:
                event = task.result()
            except StopAsyncIteration:
                break
            except Exception as exc:
                logger.error(
                    "sse_source_failed",
                    stage=current_stage,
                    error=str(exc),
                    error_type=type(exc).__name__,
                    exc_info=not isinstance(exc, SiteGenError),
                )
                message = str(exc) if isinstance(exc, SiteGenError) else "Generation failed unexpectedly"
                yield encode_event(ErrorEvent(stage=current_stage, error=message))
                break

            if event.type == "stage-start":
                current_stage = event.stage
            yield encode_event(event)
            if is_terminal(event):
                break

        yield encode_done()
    finally:
        if pending is not None and not pending.done():
            pending.cancel()
            try:
                await pending
            except (asyncio.CancelledError, StopAsyncIteration):
                pass
            except Exception as exc:
                logger.warning("sse_source_cancel_failed", error=str(exc), error_type=type(exc).__name__)
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()
