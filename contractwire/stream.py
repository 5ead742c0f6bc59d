# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Streaming chunk framing and consumption.

Every stream yields chunks tagged by ``type``: ``event`` (SSE), ``json``
(NDJSON), ``message`` (WebSocket) or ``error``. A malformed frame or a
payload that fails validation becomes an :class:`ErrorChunk` and the stream
carries on; only a dropped connection ends it early.
"""

from __future__ import annotations

import codecs
import logging
from collections.abc import AsyncIterable, AsyncIterator, Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

import orjson

from ._errors import StreamParseError
from .schema import Schema, SchemaKind
from .utils import json_loads, maybe_await

if TYPE_CHECKING:
    from .transport import TransportResponse

logger = logging.getLogger(__name__)

__all__ = (
    "EventChunk",
    "JsonChunk",
    "MessageChunk",
    "ErrorChunk",
    "StreamChunk",
    "StreamResult",
    "iter_lines",
    "parse_sse",
    "parse_ndjson",
    "subscribe",
)


@dataclass(frozen=True, slots=True)
class EventChunk:
    type: ClassVar[str] = "event"
    name: str
    data: Any
    id: str | None = None
    raw: str = ""


@dataclass(frozen=True, slots=True)
class JsonChunk:
    type: ClassVar[str] = "json"
    data: Any
    raw: str = ""


@dataclass(frozen=True, slots=True)
class MessageChunk:
    type: ClassVar[str] = "message"
    data: Any
    raw: str | bytes = ""


@dataclass(frozen=True, slots=True)
class ErrorChunk:
    type: ClassVar[str] = "error"
    error: BaseException
    raw: str | bytes | None = None


StreamChunk = EventChunk | JsonChunk | MessageChunk | ErrorChunk


async def iter_lines(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """Split a byte stream into lines; ``\\r\\n`` endings are tolerated.

    A trailing line without a newline is still yielded.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    async for chunk in chunks:
        buffer += decoder.decode(chunk)
        *lines, buffer = buffer.split("\n")
        for line in lines:
            yield line.removesuffix("\r")
    buffer += decoder.decode(b"", final=True)
    if buffer:
        yield buffer.removesuffix("\r")


def _event_chunk(
    name: str, raw: str, event_id: str | None, events: Mapping[str, Schema]
) -> EventChunk | ErrorChunk:
    schema = events.get(name)
    if schema is None:
        logger.warning(f"Received unknown SSE event '{name}'")
        return ErrorChunk(
            StreamParseError(
                f"Unknown SSE event name: '{name}'",
                details={"event": name, "expected": sorted(events)},
            ),
            raw,
        )

    try:
        payload = json_loads(raw)
    except orjson.JSONDecodeError as e:
        if schema.kind is not SchemaKind.STRING:
            return ErrorChunk(
                StreamParseError(
                    "Failed to parse SSE data as JSON",
                    details={"event": name},
                    cause=e,
                ),
                raw,
            )
        payload = raw

    result = schema.safe_parse(payload)
    if result.success:
        return EventChunk(name, result.data, event_id, raw)
    return ErrorChunk(result.error, raw)


async def parse_sse(
    chunks: AsyncIterable[bytes], events: Mapping[str, Schema]
) -> AsyncIterator[EventChunk | ErrorChunk]:
    """Decode server-sent events, validating each by its event name.

    ``event:``, ``data:`` and ``id:`` fields accumulate until a blank line
    dispatches them; the name defaults to ``message``. An event still open
    when the stream ends is dropped.
    """
    name, data, event_id = "message", [], None
    async for line in iter_lines(chunks):
        if not line:
            if data:
                yield _event_chunk(name, "\n".join(data), event_id, events)
            name, data, event_id = "message", [], None
            continue
        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        value = value.removeprefix(" ")
        match field:
            case "event":
                name = value or "message"
            case "data":
                data.append(value)
            case "id":
                event_id = value
            case _:
                # retry: and unknown fields
                continue


async def parse_ndjson(
    chunks: AsyncIterable[bytes], item: Schema
) -> AsyncIterator[JsonChunk | ErrorChunk]:
    async for line in iter_lines(chunks):
        if not line.strip():
            continue
        try:
            payload = json_loads(line)
        except orjson.JSONDecodeError as e:
            yield ErrorChunk(
                StreamParseError("Failed to parse JSON line", cause=e), line
            )
            continue

        result = item.safe_parse(payload)
        if result.success:
            yield JsonChunk(result.data, line)
        else:
            yield ErrorChunk(result.error, line)


class StreamResult:
    """Outcome of opening an SSE or NDJSON stream.

    Either ``error`` is set (the stream could not be opened) or ``data``
    yields chunks. Iterating the result iterates ``data``; iterating a failed
    result raises its ``error``.

    Example::

        async with await client.stream("@get/events") as result:
            if result.error:
                ...
            async for chunk in result:
                ...
    """

    def __init__(
        self,
        data: AsyncIterator[StreamChunk] | None = None,
        *,
        error: BaseException | None = None,
        response: TransportResponse | None = None,
    ):
        self.data = data
        self.error = error
        self.response = response
        self._closed = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[StreamChunk]:
        if self.error is not None:
            raise self.error
        return self.data.__aiter__()

    async def aclose(self) -> None:
        """Stop the stream and release the connection. Safe to repeat."""
        if self._closed:
            return
        self._closed = True
        try:
            if self.data is not None and hasattr(self.data, "aclose"):
                await self.data.aclose()
        finally:
            if self.response is not None:
                await self.response.release()

    async def __aenter__(self) -> StreamResult:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        state = "error" if self.error is not None else "open"
        if self._closed:
            state = "closed"
        return f"StreamResult({state})"


async def subscribe(
    source: Any,
    on_message: Callable[[Any], Any],
    on_error: Callable[[ErrorChunk], Any] | None = None,
    on_close: Callable[[], Any] | None = None,
) -> None:
    """Drive a chunk stream through callbacks until it ends.

    ``on_message`` gets successful chunks and ``on_error`` gets error chunks.
    ``on_close`` runs once when the stream ends on its own. If iteration
    itself raises, the exception is wrapped in an :class:`ErrorChunk`, handed
    to ``on_error`` once, and ``on_close`` is skipped. Callbacks may be sync
    or async.

    Args:
        source: A ``StreamResult``, ``WebSocketResult`` or any async
            iterable of chunks.
        on_message: Called with each non-error chunk.
        on_error: Called with each error chunk.
        on_close: Called when the stream is exhausted.
    """
    if (error := getattr(source, "error", None)) is not None:
        if on_error is not None:
            await maybe_await(on_error(ErrorChunk(error)))
        return

    try:
        async for chunk in source:
            if chunk.type == "error":
                if on_error is not None:
                    await maybe_await(on_error(chunk))
            else:
                await maybe_await(on_message(chunk))
    except Exception as e:
        logger.debug(f"Subscription ended with {type(e).__name__}: {e}")
        if on_error is None:
            raise
        await maybe_await(on_error(ErrorChunk(e)))
        return
    finally:
        if hasattr(source, "aclose"):
            await source.aclose()

    if on_close is not None:
        await maybe_await(on_close())
