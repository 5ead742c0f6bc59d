# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import orjson

from ._errors import StreamParseError, UsageError, ValidationError
from .schema import Schema
from .stream import ErrorChunk, MessageChunk
from .transport import WebSocketConnection
from .utils import json_dumps, json_loads

logger = logging.getLogger(__name__)

__all__ = ("WebSocketController", "WebSocketResult", "iter_messages")


class WebSocketController:
    """Outbound side of an open WebSocket.

    ``send`` validates against the client-to-server schema before touching
    the socket, so an invalid message raises and nothing is transmitted.
    """

    def __init__(
        self,
        socket: WebSocketConnection | None,
        schema: Schema,
        url: str | None = None,
    ):
        self._socket = socket
        self.schema = schema
        self.url = url
        self._closed = socket is None

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, message: Any) -> None:
        """Validate ``message`` and send it as JSON text.

        Raises:
            ValidationError: If ``message`` violates the outgoing schema.
            UsageError: If the socket is already closed.
        """
        try:
            data = self.schema.parse(message)
        except ValidationError as e:
            raise ValidationError(
                "WebSocket message validation failed",
                issues=e.issues,
                validation_type="request",
                input_kind="message",
                url=self.url,
                cause=e,
            ) from e
        await self.send_raw(json_dumps(data).decode("utf-8"))

    async def send_raw(self, data: str | bytes) -> None:
        """Send ``data`` unvalidated."""
        if self._closed:
            raise UsageError(
                "WebSocket is closed", details={"url": self.url}
            )
        await self._socket.send(data)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the socket. Repeated calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        logger.debug(f"Closing WebSocket {self.url} ({code})")
        await self._socket.close(code, reason)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"WebSocketController({self.url!r}, {state})"


def _decode_frame(frame: Any, schema: Schema) -> MessageChunk | ErrorChunk:
    if isinstance(frame, (bytes, bytearray)):
        try:
            text = bytes(frame).decode("utf-8")
        except UnicodeDecodeError as e:
            return ErrorChunk(
                StreamParseError("Binary frame is not UTF-8 text", cause=e),
                bytes(frame),
            )
    elif isinstance(frame, str):
        text = frame
    else:
        return ErrorChunk(
            StreamParseError(
                f"Unsupported WebSocket frame: {type(frame).__name__}"
            )
        )

    try:
        payload = json_loads(text)
    except orjson.JSONDecodeError as e:
        logger.warning("Received WebSocket frame that is not valid JSON")
        return ErrorChunk(
            StreamParseError(
                "Failed to parse WebSocket message as JSON", cause=e
            ),
            frame,
        )

    result = schema.safe_parse(payload)
    if result.success:
        return MessageChunk(result.data, frame)
    logger.warning("Received WebSocket message that failed validation")
    return ErrorChunk(result.error, frame)


async def iter_messages(
    socket: WebSocketConnection,
    schema: Schema,
    controller: WebSocketController,
) -> AsyncIterator[MessageChunk | ErrorChunk]:
    """Validate inbound frames until the socket closes.

    Invalid frames become error chunks and the socket stays open. The
    controller is closed when iteration stops for any reason.
    """
    try:
        while (frame := await socket.receive()) is not None:
            yield _decode_frame(frame, schema)
    finally:
        await controller.close()


class WebSocketResult:
    """Outcome of ``client.connect``.

    On success ``data`` yields inbound chunks and ``controller`` sends and
    closes; on failure only ``error`` is set.
    """

    def __init__(
        self,
        data: AsyncIterator[MessageChunk | ErrorChunk] | None = None,
        controller: WebSocketController | None = None,
        *,
        error: BaseException | None = None,
    ):
        self.data = data
        self.controller = controller
        self.error = error
        self._closed = False

    @property
    def ok(self) -> bool:
        return self.error is None

    def __aiter__(self) -> AsyncIterator[MessageChunk | ErrorChunk]:
        if self.error is not None:
            raise self.error
        return self.data.__aiter__()

    async def send(self, message: Any) -> None:
        if self.controller is None:
            raise UsageError("WebSocket is not connected")
        await self.controller.send(message)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            if self.data is not None:
                await self.data.aclose()
        finally:
            if self.controller is not None:
                await self.controller.close()

    async def __aenter__(self) -> WebSocketResult:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
