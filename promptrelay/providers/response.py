import codecs
import json
import logging
from enum import Enum
from typing import AsyncIterator, Callable, Dict, Optional

import httpx

from promptrelay.providers.base import HttpStatusError, ResponseParseError, StreamReadError
from promptrelay.providers.variables import resolve_stream_delta, resolve_text
from promptrelay.services.cancellation import CancellationSignal, OperationAborted, is_cancelled, race

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_TOKEN = "[DONE]"


class ResponseMode(str, Enum):
    WHOLE_BODY = "whole_body"
    EVENT_STREAM = "event_stream"

    @classmethod
    def for_streaming(cls, streaming: bool) -> "ResponseMode":
        return cls.EVENT_STREAM if streaming else cls.WHOLE_BODY


def _reason(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


async def _next_chunk(chunks: AsyncIterator[bytes]) -> Optional[bytes]:
    try:
        return await chunks.__anext__()
    except StopAsyncIteration:
        return None


async def raise_for_status(response: httpx.Response, signal: Optional[CancellationSignal]) -> None:
    if response.is_success:
        return
    body = ""
    try:
        await race(response.aread(), signal)
        body = response.text.strip()
    except httpx.HTTPError as e:
        logger.debug("could not read error body: %s", e)
    raise HttpStatusError(response.status_code, response.reason_phrase, body)


async def consume_whole_body(
    response: httpx.Response, content_path: str, signal: Optional[CancellationSignal] = None
) -> AsyncIterator[str]:
    """One chunk: the text found at ``content_path`` (empty when the path misses)."""
    await raise_for_status(response, signal)
    try:
        raw = await race(response.aread(), signal)
    except httpx.HTTPError as e:
        raise StreamReadError(_reason(e)) from e
    try:
        payload = json.loads(raw)
    except ValueError as e:
        raise ResponseParseError(_reason(e)) from e
    yield resolve_text(payload, content_path)


def parse_event_line(line: str, content_path: str) -> str:
    """Delta carried by one ``data:`` line, or "" for anything to skip."""
    if not line.startswith(DATA_PREFIX):
        return ""
    data = line[len(DATA_PREFIX):].strip()
    if not data or data == DONE_TOKEN:
        return ""
    try:
        event = json.loads(data)
    except ValueError:
        # a line cut at a read boundary is completed on the next read
        logger.debug("skipping malformed stream line: %.80s", data)
        return ""
    return resolve_stream_delta(event, content_path)


async def consume_event_stream(
    response: httpx.Response, content_path: str, signal: Optional[CancellationSignal] = None
) -> AsyncIterator[str]:
    await raise_for_status(response, signal)
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    chunks = response.aiter_bytes()
    buffer = ""

    while True:
        try:
            raw = await race(_next_chunk(chunks), signal)
        except httpx.HTTPError as e:
            raise StreamReadError(_reason(e)) from e
        if raw is None:
            break

        buffer += decoder.decode(raw)
        lines = buffer.split("\n")
        buffer = lines.pop()
        for line in lines:
            if is_cancelled(signal):
                raise OperationAborted()
            delta = parse_event_line(line.rstrip("\r"), content_path)
            if delta:
                yield delta

    buffer += decoder.decode(b"", final=True)
    delta = parse_event_line(buffer.rstrip("\r"), content_path)
    if delta:
        yield delta


Consumer = Callable[[httpx.Response, str, Optional[CancellationSignal]], AsyncIterator[str]]

CONSUMERS: Dict[ResponseMode, Consumer] = {
    ResponseMode.WHOLE_BODY: consume_whole_body,
    ResponseMode.EVENT_STREAM: consume_event_stream,
}
