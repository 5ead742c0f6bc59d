# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Transport boundary.

The client only talks to two injectable callables:

* ``transport(url, RequestOptions) -> TransportResponse``
* ``socket_opener(url, headers) -> WebSocketConnection``

:class:`AiohttpTransport` and :func:`open_aiohttp_websocket` are the
defaults; tests and mocks swap in their own through ``client.overrides``.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterable, AsyncIterator, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

import aiohttp

from .config import settings
from .schema import FormFile
from .schema.form import encode_form
from .utils import json_dumps, json_loads, maybe_await

logger = logging.getLogger(__name__)

__all__ = (
    "RequestOptions",
    "MultipartForm",
    "TransportResponse",
    "Transport",
    "AiohttpTransport",
    "WebSocketConnection",
    "SocketOpener",
    "AiohttpWebSocket",
    "open_aiohttp_websocket",
)


@dataclass(frozen=True, slots=True)
class MultipartForm:
    """Multipart body as ordered ``(name, value)`` parts.

    The transport builds the wire payload, including the boundary, so no
    ``Content-Type`` is set on the request.
    """

    fields: tuple[tuple[str, Any], ...] = ()

    @classmethod
    def from_value(cls, value: Any) -> "MultipartForm":
        return cls(tuple(encode_form(value)))

    def get_all(self, name: str) -> list[Any]:
        return [v for k, v in self.fields if k == name]

    def to_writer(self) -> aiohttp.MultipartWriter:
        writer = aiohttp.MultipartWriter("form-data")
        for name, value in self.fields:
            if isinstance(value, FormFile):
                part = writer.append(
                    value.content, {"Content-Type": value.content_type}
                )
                part.set_content_disposition(
                    "form-data", name=name, filename=value.filename
                )
            else:
                part = writer.append(str(value))
                part.set_content_disposition("form-data", name=name)
        return writer


@dataclass(slots=True)
class RequestOptions:
    """Outgoing request, mutable by request interceptors.

    Attributes:
        method: Upper-case HTTP method.
        headers: Request headers.
        body: Encoded JSON bytes, a :class:`MultipartForm`, or ``None``.
        timeout: Seconds allowed for the transport call, ``None`` for no limit.
        extra: Additional keyword options handed to the transport.
    """

    method: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | MultipartForm | None = None
    timeout: float | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def json(self) -> Any:
        """Decode a JSON body back into Python data."""
        if isinstance(self.body, (bytes, bytearray)):
            return json_loads(self.body)
        return None


class TransportResponse:
    """A response whose body is read once, either whole or as a byte stream.

    ``release()`` frees the underlying connection. It is idempotent.
    """

    def __init__(
        self,
        status: int,
        headers: Any = None,
        body: bytes | AsyncIterable[bytes] = b"",
        *,
        reason: str = "",
        on_release: Callable[[], Any] | None = None,
    ):
        self.status = status
        self.headers: dict[str, str] = {
            str(k).lower(): v for k, v in dict(headers or {}).items()
        }
        self.reason = reason
        self._content: bytes | None = None
        self._stream: AsyncIterable[bytes] | None = None
        if isinstance(body, (bytes, bytearray)):
            self._content = bytes(body)
        else:
            self._stream = body
        self._on_release = on_release
        self._consumed = False
        self._released = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def released(self) -> bool:
        return self._released

    async def read(self) -> bytes:
        if self._content is None:
            self._content = b"".join([chunk async for chunk in self.iter_bytes()])
        return self._content

    async def text(self) -> str:
        return (await self.read()).decode("utf-8", errors="replace")

    async def json(self) -> Any:
        return json_loads(await self.read())

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        if self._content is not None:
            if self._content:
                yield self._content
            return
        if self._consumed:
            raise RuntimeError("Response body was already consumed")
        self._consumed = True
        async for chunk in self._stream:
            if chunk:
                yield chunk

    async def release(self) -> None:
        if self._released:
            return
        self._released = True
        if self._stream is not None and hasattr(self._stream, "aclose"):
            await self._stream.aclose()
        if self._on_release is not None:
            await maybe_await(self._on_release())

    @classmethod
    def from_bytes(
        cls, content: bytes, status: int = 200, headers: Any = None
    ) -> "TransportResponse":
        return cls(status, headers, content)

    @classmethod
    def from_text(
        cls, text: str, status: int = 200, headers: Any = None
    ) -> "TransportResponse":
        headers = {"content-type": "text/plain; charset=utf-8", **(headers or {})}
        return cls(status, headers, text.encode("utf-8"))

    @classmethod
    def from_json(
        cls, data: Any, status: int = 200, headers: Any = None
    ) -> "TransportResponse":
        headers = {"content-type": "application/json", **(headers or {})}
        return cls(status, headers, json_dumps(data))

    @classmethod
    def from_chunks(
        cls,
        chunks: Iterable[bytes | str] | AsyncIterable[bytes | str],
        status: int = 200,
        headers: Any = None,
    ) -> "TransportResponse":
        """Streaming response from pre-baked or generated chunks."""

        async def body():
            if isinstance(chunks, AsyncIterable):
                async for chunk in chunks:
                    yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk
            else:
                for chunk in chunks:
                    yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk

        return cls(status, headers, body())

    def __repr__(self) -> str:
        return f"TransportResponse(status={self.status})"


class Transport(Protocol):
    async def __call__(
        self, url: str, options: RequestOptions
    ) -> TransportResponse: ...


class AiohttpTransport:
    """Default transport: a fresh aiohttp session per request.

    The session lives as long as the response and is closed on ``release()``,
    so streamed bodies stay readable after the call returns.
    """

    def __init__(self, **client_kwargs: Any):
        self.client_kwargs = client_kwargs

    def _create_http_session(self) -> aiohttp.ClientSession:
        """Create a new HTTP session (not thread-safe, create new for each request)."""
        kwargs = dict(self.client_kwargs)
        headers = {"User-Agent": settings.USER_AGENT}
        headers.update(kwargs.pop("headers", None) or {})
        return aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=None),
            headers=headers,
            **kwargs,
        )

    async def __call__(
        self, url: str, options: RequestOptions
    ) -> TransportResponse:
        body = options.body
        if isinstance(body, MultipartForm):
            body = body.to_writer()

        session = self._create_http_session()
        try:
            response = await session.request(
                method=options.method,
                url=url,
                headers=options.headers,
                data=body,
                **options.extra,
            )
        except BaseException:
            await session.close()
            raise

        async def release():
            response.close()
            await session.close()

        return TransportResponse(
            response.status,
            response.headers,
            response.content.iter_any(),
            reason=response.reason or "",
            on_release=release,
        )


class WebSocketConnection(ABC):
    """An open duplex socket."""

    @abstractmethod
    async def send(self, data: str | bytes) -> None: ...

    @abstractmethod
    async def receive(self) -> Any:
        """Next frame: ``str`` or ``bytes``, ``None`` once the socket closed.

        Raises:
            ConnectionError: If the connection failed.
        """

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...


class SocketOpener(Protocol):
    async def __call__(
        self, url: str, headers: dict[str, str]
    ) -> WebSocketConnection: ...


class AiohttpWebSocket(WebSocketConnection):
    def __init__(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        session: aiohttp.ClientSession,
    ):
        self._ws = ws
        self._session = session

    async def send(self, data: str | bytes) -> None:
        if isinstance(data, str):
            await self._ws.send_str(data)
        else:
            await self._ws.send_bytes(data)

    async def receive(self) -> Any:
        msg = await self._ws.receive()
        match msg.type:
            case aiohttp.WSMsgType.TEXT | aiohttp.WSMsgType.BINARY:
                return msg.data
            case (
                aiohttp.WSMsgType.CLOSE
                | aiohttp.WSMsgType.CLOSING
                | aiohttp.WSMsgType.CLOSED
            ):
                return None
            case aiohttp.WSMsgType.ERROR:
                raise ConnectionError(
                    f"WebSocket error: {self._ws.exception()}"
                ) from self._ws.exception()
            case _:
                return msg

    async def close(self, code: int = 1000, reason: str = "") -> None:
        try:
            if not self._ws.closed:
                await self._ws.close(code=code, message=reason.encode("utf-8"))
        finally:
            await self._session.close()


async def open_aiohttp_websocket(
    url: str, headers: dict[str, str]
) -> AiohttpWebSocket:
    session = aiohttp.ClientSession(headers={"User-Agent": settings.USER_AGENT})
    try:
        ws = await session.ws_connect(url, headers=headers)
    except BaseException:
        await session.close()
        raise
    logger.debug(f"WebSocket connected to {url}")
    return AiohttpWebSocket(ws, session)
