# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Schema-driven API client.

Example:
    >>> from contractwire import ApiClient, define_get, schema as s
    >>> client = ApiClient(
    ...     {"get_user": define_get("/users/:id", response=s.obj(
    ...         {"id": s.string(), "name": s.string()}
    ...     ))},
    ...     base_url="https://api.example.com",
    ... )
    >>> user = await client.request("@get/users/:id", param={"id": "1"})
"""

import asyncio
import logging
import re
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

import aiohttp
import anyio
import orjson

from ._errors import (
    ApiError,
    ContractError,
    NetworkError,
    UsageError,
    ValidationError,
)
from .config import settings
from .endpoint import HTTP_METHODS, INPUT_KINDS, Endpoint, OutputKind
from .interceptor import Interceptor, InterceptorChain, InterceptorContext
from .registry import EndpointRegistry
from .schema import ParseResult, SchemaKind, decode_form
from .stream import StreamResult, parse_ndjson, parse_sse
from .transport import (
    AiohttpTransport,
    MultipartForm,
    RequestOptions,
    SocketOpener,
    Transport,
    TransportResponse,
    open_aiohttp_websocket,
)
from .utils import (
    build_endpoint_path,
    json_dumps,
    maybe_await,
    serialize_query,
    substitute_path_params,
)
from .websocket import WebSocketController, WebSocketResult, iter_messages

logger = logging.getLogger(__name__)

__all__ = ("ApiClient", "CallResult", "Interceptors", "Overrides")

_KEY_SHAPE = re.compile(r"^@([^/]+)(/.*)$")

_STREAM_ACCEPT = {
    OutputKind.SSE: "text/event-stream",
    OutputKind.JSON_STREAM: "application/x-ndjson",
}


@dataclass(slots=True)
class CallResult:
    """Outcome of :meth:`ApiClient.safe_request`."""

    data: Any = None
    error: ContractError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Interceptors:
    def __init__(self) -> None:
        self.request: InterceptorChain[RequestOptions] = InterceptorChain()
        self.response: InterceptorChain[TransportResponse] = InterceptorChain()


class Overrides:
    """Replacement transport and socket opener, for tests and mocks."""

    def __init__(
        self,
        transport: Transport | None = None,
        socket_opener: SocketOpener | None = None,
    ):
        self.transport = transport
        self.socket_opener = socket_opener

    def clear(self) -> None:
        self.transport = None
        self.socket_opener = None


class _Aborted(Exception):
    pass


@dataclass(slots=True)
class _Prepared:
    endpoint: Endpoint
    url: str
    options: RequestOptions
    context: InterceptorContext
    request_chain: tuple[Interceptor, ...]
    response_chain: tuple[Interceptor, ...]

    @property
    def method(self) -> str:
        return self.options.method


def _drop_header(headers: dict[str, str], name: str) -> None:
    for key in [k for k in headers if k.lower() == name.lower()]:
        del headers[key]


def _set_header(headers: dict[str, str], name: str, value: str) -> None:
    _drop_header(headers, name)
    headers[name] = value


async def _until_signal(
    call: Callable[[], Awaitable[Any]], signal: anyio.Event | None
) -> Any:
    """Await ``call()`` unless ``signal`` is set first.

    Raises:
        _Aborted: If the signal won the race.
    """
    if signal is None:
        return await call()
    if signal.is_set():
        raise _Aborted()

    outcome: list[tuple[bool, Any]] = []

    async def _runner() -> None:
        try:
            outcome.append((True, await call()))
        except Exception as exc:
            outcome.append((False, exc))
        tg.cancel_scope.cancel()

    async def _watch() -> None:
        await signal.wait()
        tg.cancel_scope.cancel()

    async with anyio.create_task_group() as tg:
        tg.start_soon(_runner)
        tg.start_soon(_watch)

    # Raise outside the TaskGroup context to avoid ExceptionGroup wrapping
    if not outcome:
        raise _Aborted()
    ok, payload = outcome[0]
    if ok:
        return payload
    raise payload


class ApiClient:
    """Client for a declared set of endpoints.

    Calls are addressed by canonical key (``"@get/users/:id"``). Every call
    resolves the endpoint, validates its inputs, runs the interceptor chains
    and the transport, then validates the response.

    Args:
        schema: Endpoint declarations (endpoint, group, mapping or iterable)
            or a prebuilt :class:`EndpointRegistry`.
        base_url: Origin plus optional path, or a bare path prefix.
        headers: Headers sent with every call.
        alias: Values for ``{name}`` placeholders in path templates.
        transport: Default transport, aiohttp when omitted.
        socket_opener: Default WebSocket opener, aiohttp when omitted.
        transform_request: Hook run before the request interceptors.
        transform_response: Hook run before the response interceptors.
        timeout: Default per-call timeout in seconds.
        strict: Reject duplicate endpoint keys while registering.
        **transport_options: Extra options passed to the transport.
    """

    def __init__(
        self,
        schema: Any = (),
        *,
        base_url: str = "",
        headers: Mapping[str, str] | None = None,
        alias: Mapping[str, str] | None = None,
        transport: Transport | None = None,
        socket_opener: SocketOpener | None = None,
        transform_request: Interceptor | None = None,
        transform_response: Interceptor | None = None,
        timeout: float | None = None,
        strict: bool | None = None,
        **transport_options: Any,
    ):
        if isinstance(schema, EndpointRegistry):
            self.registry = schema
        else:
            self.registry = EndpointRegistry(schema, strict=strict)
        self.base_url = base_url
        self.headers = dict(headers or {})
        self.alias = dict(alias or {})
        self.transport = transport or AiohttpTransport()
        self.socket_opener = socket_opener or open_aiohttp_websocket
        self.transform_request = transform_request
        self.transform_response = transform_response
        self.timeout = timeout
        self.transport_options = transport_options
        self.interceptors = Interceptors()
        self.overrides = Overrides()
        logger.debug(
            f"Initialized ApiClient with {len(self.registry)} endpoints, "
            f"base_url={base_url!r}"
        )

    # resolution

    def resolve(self, key: str) -> Endpoint:
        """Find the endpoint for ``key``.

        Raises:
            UsageError: Malformed key or unknown method.
            EndpointNotFoundError: No endpoint registered under ``key``.
        """
        if not isinstance(key, str) or not (match := _KEY_SHAPE.match(key)):
            raise UsageError(
                f"Invalid endpoint key {key!r}, expected '@<method>/<path>'",
                details={"key": key},
            )
        endpoint = self.registry.lookup(key)
        method = match.group(1).lower()
        if method not in HTTP_METHODS:
            raise UsageError(
                f"Unknown HTTP method '{match.group(1)}' in key '{key}'",
                details={"key": key},
            )
        return endpoint

    def endpoint_uri(
        self, path: str, params: Mapping[str, Any] | None = None
    ) -> str:
        """Resolve a path template against ``base_url`` and ``alias``."""
        url = build_endpoint_path(path, self.alias, self.base_url)
        return substitute_path_params(url, params or {})

    def _require(self, endpoint: Endpoint, key: str, *kinds: OutputKind):
        if endpoint.output_kind not in kinds:
            use = {
                OutputKind.PLAIN: "request()",
                OutputKind.SSE: "stream()",
                OutputKind.JSON_STREAM: "stream()",
                OutputKind.WEBSOCKET: "connect()",
            }[endpoint.output_kind]
            raise UsageError(
                f"Endpoint '{key}' returns {endpoint.output_kind.value}, "
                f"use {use}",
                details={"key": key},
            )

    # request preparation

    def _validate_input(
        self, endpoint: Endpoint, kind: str, value: Any, url: str, method: str
    ) -> Any:
        schema = endpoint.input.schema_for(kind)
        if schema is None:
            return value
        try:
            return schema.parse(value)
        except ValidationError as e:
            raise ValidationError(
                f"Request validation failed for {kind}",
                issues=e.issues,
                validation_type="request",
                input_kind=kind,
                url=url,
                method=method,
                cause=e,
            ) from e

    def _prepare(
        self,
        key: str,
        endpoint: Endpoint,
        *,
        query: Mapping[str, Any] | None = None,
        param: Mapping[str, Any] | None = None,
        json: Any = None,
        form: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
        transport_options: Mapping[str, Any] | None = None,
    ) -> _Prepared:
        method = endpoint.method.upper()
        url = build_endpoint_path(
            endpoint.path, {**self.alias, **endpoint.alias}, self.base_url
        )

        param = param or {}
        missing = [
            name
            for name in endpoint.placeholders
            if param.get(name) is None or param.get(name) == ""
        ]
        if missing:
            raise UsageError(
                f"Missing path parameter '{missing[0]}' for '{endpoint.key}'",
                details={"missing": missing, "url": url, "method": method},
            )

        raw = {"query": query, "param": param or None, "json": json, "form": form}
        inputs = {
            kind: self._validate_input(endpoint, kind, raw[kind], url, method)
            for kind in INPUT_KINDS
            if raw[kind] is not None
        }

        url = substitute_path_params(url, param)
        if query and (query_string := serialize_query(query)):
            url = f"{url}?{query_string}"

        merged = {"Content-Type": "application/json", "Accept": "*/*"}
        for name, value in [*self.headers.items(), *(headers or {}).items()]:
            _set_header(merged, name, value)
        if accept := _STREAM_ACCEPT.get(endpoint.output_kind):
            _set_header(merged, "Accept", accept)

        body: bytes | MultipartForm | None = None
        if endpoint.method != "get":
            if endpoint.input.json is not None and json is not None:
                body = json_dumps(json)
            elif endpoint.input.form is not None and form is not None:
                _drop_header(merged, "Content-Type")
                body = MultipartForm.from_value(inputs["form"])

        if timeout is None:
            timeout = self.timeout
        if timeout is None:
            timeout = settings.DEFAULT_TIMEOUT

        options = RequestOptions(
            method=method,
            headers=merged,
            body=body,
            timeout=timeout,
            extra={**self.transport_options, **(transport_options or {})},
        )
        context = InterceptorContext(
            key=key,
            method=endpoint.method,
            path=url,
            inputs=MappingProxyType(inputs),
        )
        return _Prepared(
            endpoint=endpoint,
            url=url,
            options=options,
            context=context,
            request_chain=self.interceptors.request.snapshot(),
            response_chain=self.interceptors.response.snapshot(),
        )

    # execution

    async def _send(
        self,
        prepared: _Prepared,
        *,
        signal: anyio.Event | None = None,
        transport: Transport | None = None,
        transform_request: Interceptor | None = None,
        transform_response: Interceptor | None = None,
    ) -> TransportResponse:
        context = prepared.context
        options = prepared.options

        if hook := transform_request or self.transform_request:
            options = await maybe_await(hook(context, options)) or options
        options = await self.interceptors.request.run(
            context, options, prepared.request_chain
        )
        prepared.options = options

        send = transport or self.overrides.transport or self.transport
        url, method = prepared.url, options.method
        logger.debug(f"{method} {url}")
        try:
            with anyio.fail_after(options.timeout):
                response = await _until_signal(
                    lambda: send(url, options), signal
                )
        except ContractError:
            raise
        except (TimeoutError, asyncio.TimeoutError) as e:
            raise NetworkError(
                "Request timeout", url=url, method=method, timeout=True, cause=e
            ) from e
        except _Aborted as e:
            raise NetworkError(
                "Request aborted", url=url, method=method, timeout=True, cause=e
            ) from None
        except (aiohttp.ClientConnectionError, OSError) as e:
            raise NetworkError(
                f"Network request failed: {e}", url=url, method=method, cause=e
            ) from e
        except Exception as e:
            raise NetworkError(
                f"Request failed: {e}", url=url, method=method, cause=e
            ) from e

        try:
            if hook := transform_response or self.transform_response:
                response = await maybe_await(hook(context, response)) or response
            response = await self.interceptors.response.run(
                context, response, prepared.response_chain
            )
        except BaseException:
            await response.release()
            raise
        logger.debug(f"{method} {url} -> {response.status}")
        return response

    async def _raise_for_status(
        self, prepared: _Prepared, response: TransportResponse
    ) -> None:
        if response.ok:
            return
        try:
            body = await response.json()
        except orjson.JSONDecodeError:
            text = await response.text()
            body = {"message": text} if text else {"message": "Unknown error"}
        except (aiohttp.ClientError, OSError) as e:
            logger.debug(f"Could not read error body: {e}")
            body = {"message": "Unknown error"}
        raise ApiError(
            f"API call failed with status {response.status}",
            response.status,
            body=body,
            url=prepared.url,
            method=prepared.method,
        )

    async def _read_body(
        self, prepared: _Prepared, response: TransportResponse
    ) -> Any:
        schema = prepared.endpoint.response
        try:
            match schema.kind:
                case SchemaKind.STRING:
                    return await response.text()
                case _ if response.status == 204:
                    return None
                case _:
                    return await response.json()
        except orjson.JSONDecodeError as e:
            raise ApiError(
                "Failed to parse response as JSON",
                response.status,
                url=prepared.url,
                method=prepared.method,
                cause=e,
            ) from e
        except (aiohttp.ClientError, OSError) as e:
            raise NetworkError(
                f"Network request failed: {e}",
                url=prepared.url,
                method=prepared.method,
                cause=e,
            ) from e

    async def request(
        self,
        key: str,
        *,
        query: Mapping[str, Any] | None = None,
        param: Mapping[str, Any] | None = None,
        json: Any = None,
        form: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
        signal: anyio.Event | None = None,
        transport: Transport | None = None,
        transform_request: Interceptor | None = None,
        transform_response: Interceptor | None = None,
        **transport_options: Any,
    ) -> Any:
        """Call a plain endpoint and return the validated response.

        Raises:
            UsageError: Bad key, unknown endpoint or missing path parameter.
            ValidationError: Input (``"request"``) or response
                (``"response"``) failed validation.
            NetworkError: No response was received.
            ApiError: Non-2xx status or unreadable body.
        """
        endpoint = self.resolve(key)
        self._require(endpoint, key, OutputKind.PLAIN)
        prepared = self._prepare(
            key,
            endpoint,
            query=query,
            param=param,
            json=json,
            form=form,
            headers=headers,
            timeout=timeout,
            transport_options=transport_options,
        )
        response = await self._send(
            prepared,
            signal=signal,
            transport=transport,
            transform_request=transform_request,
            transform_response=transform_response,
        )
        try:
            await self._raise_for_status(prepared, response)
            if endpoint.response.kind is SchemaKind.VOID:
                return None
            body = await self._read_body(prepared, response)
            try:
                return endpoint.response.parse(body)
            except ValidationError as e:
                raise ValidationError(
                    "Response validation failed",
                    issues=e.issues,
                    validation_type="response",
                    status=response.status,
                    body=body,
                    url=prepared.url,
                    method=prepared.method,
                    cause=e,
                ) from e
        finally:
            await response.release()

    async def __call__(self, key: str, **kwargs: Any) -> Any:
        return await self.request(key, **kwargs)

    async def safe_request(self, key: str, **kwargs: Any) -> CallResult:
        """Like :meth:`request` but returns failures in ``CallResult.error``.

        Usage errors still raise.
        """
        try:
            return CallResult(data=await self.request(key, **kwargs))
        except (ApiError, NetworkError, ValidationError) as e:
            return CallResult(error=e)

    # streaming

    async def _guard_stream(
        self,
        chunks: AsyncIterator[Any],
        response: TransportResponse,
        prepared: _Prepared,
        signal: anyio.Event | None = None,
    ) -> AsyncIterator[Any]:
        try:
            while True:
                try:
                    chunk = await _until_signal(chunks.__anext__, signal)
                except StopAsyncIteration:
                    break
                yield chunk
        except _Aborted:
            raise NetworkError(
                "Request aborted",
                url=prepared.url,
                method=prepared.method,
                timeout=True,
            ) from None
        except (aiohttp.ClientError, OSError) as e:
            raise NetworkError(
                f"Stream interrupted: {e}",
                url=prepared.url,
                method=prepared.method,
                cause=e,
            ) from e
        finally:
            await chunks.aclose()
            await response.release()
            logger.debug(f"Stream closed: {prepared.method} {prepared.url}")

    async def stream(
        self,
        key: str,
        *,
        query: Mapping[str, Any] | None = None,
        param: Mapping[str, Any] | None = None,
        json: Any = None,
        form: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
        signal: anyio.Event | None = None,
        transport: Transport | None = None,
        transform_request: Interceptor | None = None,
        transform_response: Interceptor | None = None,
        **transport_options: Any,
    ) -> StreamResult:
        """Open an SSE or NDJSON endpoint.

        Usage and request validation errors raise. Failing to get a 2xx
        response is reported through ``StreamResult.error``; per-frame
        problems arrive as error chunks in ``StreamResult.data``.
        """
        endpoint = self.resolve(key)
        self._require(endpoint, key, OutputKind.SSE, OutputKind.JSON_STREAM)
        prepared = self._prepare(
            key,
            endpoint,
            query=query,
            param=param,
            json=json,
            form=form,
            headers=headers,
            timeout=timeout,
            transport_options=transport_options,
        )
        try:
            response = await self._send(
                prepared,
                signal=signal,
                transport=transport,
                transform_request=transform_request,
                transform_response=transform_response,
            )
        except NetworkError as e:
            return StreamResult(error=e)

        try:
            await self._raise_for_status(prepared, response)
        except ApiError as e:
            await response.release()
            return StreamResult(error=e, response=response)

        if endpoint.output_kind is OutputKind.SSE:
            chunks = parse_sse(response.iter_bytes(), endpoint.response.events)
        else:
            chunks = parse_ndjson(response.iter_bytes(), endpoint.response.item)
        logger.debug(f"Stream opened: {prepared.method} {prepared.url}")
        return StreamResult(
            self._guard_stream(chunks, response, prepared, signal),
            response=response,
        )

    async def connect(
        self,
        key: str,
        *,
        query: Mapping[str, Any] | None = None,
        param: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
        socket_opener: SocketOpener | None = None,
    ) -> WebSocketResult:
        """Open a WebSocket endpoint.

        Interceptors do not run for sockets. A failed upgrade is reported
        through ``WebSocketResult.error``.
        """
        endpoint = self.resolve(key)
        self._require(endpoint, key, OutputKind.WEBSOCKET)
        prepared = self._prepare(
            key,
            endpoint,
            query=query,
            param=param,
            headers=headers,
            timeout=timeout,
        )
        url = re.sub(r"^http", "ws", prepared.url)
        socket_headers = dict(prepared.options.headers)
        _drop_header(socket_headers, "Content-Type")

        opener = socket_opener or self.overrides.socket_opener or self.socket_opener
        try:
            with anyio.fail_after(prepared.options.timeout):
                socket = await opener(url, socket_headers)
        except (TimeoutError, asyncio.TimeoutError) as e:
            return WebSocketResult(
                error=NetworkError(
                    "WebSocket connection timeout",
                    url=url,
                    method="GET",
                    timeout=True,
                    cause=e,
                )
            )
        except Exception as e:
            return WebSocketResult(
                error=NetworkError(
                    f"WebSocket connection failed: {e}",
                    url=url,
                    method="GET",
                    cause=e,
                )
            )

        logger.debug(f"WebSocket opened: {url}")
        response = endpoint.response
        controller = WebSocketController(socket, response.client, url)
        return WebSocketResult(
            iter_messages(socket, response.server, controller), controller
        )

    # forms

    def parse_form(
        self, key: str, fields: Any, *, coerce: bool = True
    ) -> ParseResult:
        """Decode submitted form fields against an endpoint's body schema.

        Uses the ``form`` schema, or the ``json`` schema for JSON-only
        endpoints.

        Raises:
            UsageError: If the endpoint declares neither.
        """
        endpoint = self.resolve(key)
        schema = endpoint.input.form or endpoint.input.json
        if schema is None:
            raise UsageError(
                f"Endpoint '{key}' declares no form or json input",
                details={"key": key},
            )
        return decode_form(fields, schema, coerce=coerce)

    def __repr__(self) -> str:
        return (
            f"ApiClient(base_url={self.base_url!r}, "
            f"endpoints={len(self.registry)})"
        )
