# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""
Fakes for the transport boundary.

Usage Examples:
    # Serve canned responses and inspect what was sent
    transport = FakeTransport(TransportResponse.from_json({"id": "1"}))
    client.overrides.transport = transport
    ...
    assert transport.last_url == "https://api.example.com/users/1"

    # Feed inbound WebSocket frames
    socket = FakeSocket(['{"type": "chat", "text": "hi"}'])
    client.overrides.socket_opener = FakeOpener(socket)
"""

from collections import deque
from typing import Any

from contractwire import RequestOptions, TransportResponse, WebSocketConnection


class FakeTransport:
    """Returns queued responses and records every call.

    A queued exception is raised instead of returned. A callable is invoked
    with ``(url, options)`` and its result used as the response. With the
    queue empty, an empty JSON object is returned.
    """

    def __init__(self, *responses: Any):
        self.responses: deque = deque(responses)
        self.calls: list[tuple[str, RequestOptions]] = []

    def queue(self, *responses: Any) -> "FakeTransport":
        self.responses.extend(responses)
        return self

    @property
    def last_url(self) -> str:
        return self.calls[-1][0]

    @property
    def last_options(self) -> RequestOptions:
        return self.calls[-1][1]

    async def __call__(
        self, url: str, options: RequestOptions
    ) -> TransportResponse:
        self.calls.append((url, options))
        if not self.responses:
            return TransportResponse.from_json({})
        response = self.responses.popleft()
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            response = await response(url, options)
        return response


class FakeSocket(WebSocketConnection):
    """Socket fed from a list of inbound frames; records what was sent.

    A queued exception is raised from ``receive``. Once the frames run out
    the socket reports itself closed.
    """

    def __init__(self, frames: list[Any] | None = None):
        self.frames: deque = deque(frames or [])
        self.sent: list[str | bytes] = []
        self.close_calls: list[tuple[int, str]] = []

    async def send(self, data: str | bytes) -> None:
        self.sent.append(data)

    async def receive(self) -> Any:
        if not self.frames:
            return None
        frame = self.frames.popleft()
        if isinstance(frame, BaseException):
            raise frame
        return frame

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_calls.append((code, reason))


class FakeOpener:
    """Socket opener returning a fixed socket, or raising a fixed error."""

    def __init__(self, socket: FakeSocket | BaseException):
        self.socket = socket
        self.calls: list[tuple[str, dict[str, str]]] = []

    async def __call__(self, url: str, headers: dict[str, str]):
        self.calls.append((url, headers))
        if isinstance(self.socket, BaseException):
            raise self.socket
        return self.socket
