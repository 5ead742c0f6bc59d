# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Endpoint declarations.

An :class:`Endpoint` pins an HTTP method and a path template to input and
output schemas. It is identified by its canonical key ``@<method>/<path>``,
e.g. ``@get/users/:id``.

Example:
    >>> from contractwire import define_get, schema as s
    >>> get_user = define_get(
    ...     "/users/:id",
    ...     response=s.obj({"id": s.string(), "name": s.string()}),
    ... )
    >>> get_user.key
    '@get/users/:id'
"""

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal

from .schema import ObjectSchema, Schema, SchemaKind, UnionSchema, obj
from .schema.coerce import to_coercing
from .utils import normalize_path, normalize_prefix, path_placeholders

__all__ = (
    "HTTP_METHODS",
    "HttpMethod",
    "InputKind",
    "OutputKind",
    "SSEResponse",
    "JSONStreamResponse",
    "WebSocketResponse",
    "sse",
    "json_stream",
    "websocket",
    "EndpointInput",
    "Endpoint",
    "EndpointGroup",
    "define_endpoint",
    "define_get",
    "define_post",
    "define_put",
    "define_patch",
    "define_delete",
    "make_key",
)

HttpMethod = Literal["get", "post", "put", "patch", "delete"]
InputKind = Literal["query", "param", "json", "form"]

HTTP_METHODS: tuple[str, ...] = ("get", "post", "put", "patch", "delete")
INPUT_KINDS: tuple[str, ...] = ("query", "param", "json", "form")
_BODYLESS = frozenset({"get", "delete"})


class OutputKind(str, Enum):
    PLAIN = "plain"
    SSE = "sse"
    JSON_STREAM = "json-stream"
    WEBSOCKET = "websocket"

    @property
    def is_stream(self) -> bool:
        return self in (OutputKind.SSE, OutputKind.JSON_STREAM)


def _as_schema(value: Schema | Sequence[Schema], what: str) -> Schema:
    if isinstance(value, Schema):
        return value
    if isinstance(value, Sequence) and not isinstance(value, str):
        options = tuple(value)
        if options and all(isinstance(o, Schema) for o in options):
            return options[0] if len(options) == 1 else UnionSchema(options)
    raise TypeError(f"{what} must be a schema node or a list of schema nodes")


@dataclass(frozen=True, eq=False)
class SSEResponse:
    """Server-sent events, one schema per event name."""

    events: Mapping[str, Schema]

    def __post_init__(self):
        events = dict(self.events)
        if not events:
            raise ValueError("SSE response needs at least one event schema")
        for name, node in events.items():
            if not isinstance(node, Schema):
                raise TypeError(f"Event '{name}' must map to a schema node")
        object.__setattr__(self, "events", MappingProxyType(events))


@dataclass(frozen=True, eq=False)
class JSONStreamResponse:
    """Newline-delimited JSON, every line validated against ``item``."""

    item: Schema

    def __post_init__(self):
        if not isinstance(self.item, Schema):
            raise TypeError("JSON stream item must be a schema node")


@dataclass(frozen=True, eq=False)
class WebSocketResponse:
    """Duplex socket: ``server`` validates inbound, ``client`` outbound."""

    server: Schema
    client: Schema

    def __post_init__(self):
        object.__setattr__(
            self, "server", _as_schema(self.server, "WebSocket server schema")
        )
        object.__setattr__(
            self, "client", _as_schema(self.client, "WebSocket client schema")
        )


def sse(events: Mapping[str, Schema] | None = None, /, **named: Schema):
    return SSEResponse({**(events or {}), **named})


def json_stream(item: Schema) -> JSONStreamResponse:
    return JSONStreamResponse(item)


def websocket(
    *,
    server: Schema | Sequence[Schema],
    client: Schema | Sequence[Schema],
) -> WebSocketResponse:
    return WebSocketResponse(server, client)


def _as_object(value: Any, kind: str) -> ObjectSchema | None:
    if value is None:
        return None
    if isinstance(value, Mapping):
        return obj(value)
    if isinstance(value, Schema) and value.kind is SchemaKind.OBJECT:
        return value
    raise TypeError(
        f"'{kind}' input must be an object schema or a mapping of fields"
    )


@dataclass(frozen=True, eq=False)
class EndpointInput:
    """Declared input schemas, keyed by input kind.

    ``query`` and ``param`` are validated through their coercing variants,
    computed once here.
    """

    query: ObjectSchema | None = None
    param: ObjectSchema | None = None
    json: Schema | None = None
    form: ObjectSchema | None = None
    _coercing: Mapping[str, Schema] = field(
        init=False, repr=False, default_factory=dict
    )

    def __post_init__(self):
        for kind in ("query", "param", "form"):
            object.__setattr__(
                self, kind, _as_object(getattr(self, kind), kind)
            )
        if self.json is not None and not isinstance(self.json, Schema):
            if not isinstance(self.json, Mapping):
                raise TypeError("'json' input must be a schema node")
            object.__setattr__(self, "json", obj(self.json))
        coercing = {
            kind: to_coercing(node)
            for kind in ("query", "param")
            if (node := getattr(self, kind)) is not None
        }
        object.__setattr__(self, "_coercing", MappingProxyType(coercing))

    def declared(self) -> tuple[str, ...]:
        return tuple(k for k in INPUT_KINDS if getattr(self, k) is not None)

    def schema_for(self, kind: str) -> Schema | None:
        """Schema used to validate ``kind`` at call time."""
        if kind in self._coercing:
            return self._coercing[kind]
        return getattr(self, kind, None)


def make_key(method: str, path: str) -> str:
    return f"@{method.lower()}{normalize_path(path)}"


@dataclass(frozen=True, eq=False)
class Endpoint:
    method: str
    path: str
    response: Any
    input: EndpointInput = field(default_factory=EndpointInput)
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        method = str(self.method).lower()
        if method not in HTTP_METHODS:
            raise ValueError(
                f"Unknown HTTP method '{self.method}', "
                f"expected one of {HTTP_METHODS}"
            )
        object.__setattr__(self, "method", method)
        if self.input is None:
            object.__setattr__(self, "input", EndpointInput())
        elif isinstance(self.input, Mapping):
            object.__setattr__(self, "input", EndpointInput(**self.input))
        object.__setattr__(self, "path", normalize_path(self.path))
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))

        if not isinstance(
            self.response,
            (Schema, SSEResponse, JSONStreamResponse, WebSocketResponse),
        ):
            raise TypeError(
                "response must be a schema node, sse(), json_stream() "
                f"or websocket(), got {type(self.response).__name__}"
            )
        if isinstance(self.response, WebSocketResponse) and method != "get":
            raise ValueError("WebSocket endpoints must use GET")
        if method in _BODYLESS and (self.input.json or self.input.form):
            raise ValueError(
                f"{method.upper()} endpoints cannot declare a json or form body"
            )

    @property
    def key(self) -> str:
        return make_key(self.method, self.path)

    @property
    def output_kind(self) -> OutputKind:
        match self.response:
            case SSEResponse():
                return OutputKind.SSE
            case JSONStreamResponse():
                return OutputKind.JSON_STREAM
            case WebSocketResponse():
                return OutputKind.WEBSOCKET
            case _:
                return OutputKind.PLAIN

    @property
    def placeholders(self) -> tuple[str, ...]:
        return path_placeholders(self.path)

    @property
    def alias(self) -> Mapping[str, str]:
        return self.options.get("alias") or {}

    def with_prefix(self, prefix: str) -> "Endpoint":
        if not (prefix := normalize_prefix(prefix)):
            return self
        path = "" if self.path == "/" else self.path
        return replace(self, path=prefix + path)

    def entries(self) -> Iterator[tuple[str, "Endpoint"]]:
        yield self.key, self

    def __repr__(self) -> str:
        return f"Endpoint({self.key!r}, output={self.output_kind.value})"


class EndpointGroup:
    """A collection of endpoints sharing a path prefix. Groups may nest."""

    def __init__(self, prefix: str = "", *members: "Endpoint | EndpointGroup"):
        self.prefix = normalize_prefix(prefix)
        self.members: tuple[Endpoint | EndpointGroup, ...] = tuple(members)
        for member in self.members:
            if not isinstance(member, (Endpoint, EndpointGroup)):
                raise TypeError(
                    "EndpointGroup members must be endpoints or groups, "
                    f"got {type(member).__name__}"
                )

    def entries(self) -> Iterator[tuple[str, Endpoint]]:
        """Flattened ``(key, endpoint)`` pairs, keys computed after prefixing."""
        for member in self.members:
            for _, endpoint in member.entries():
                prefixed = endpoint.with_prefix(self.prefix)
                yield prefixed.key, prefixed

    def __iter__(self) -> Iterator[Endpoint]:
        return (endpoint for _, endpoint in self.entries())

    def __len__(self) -> int:
        return sum(1 for _ in self.entries())


def define_endpoint(
    method: str,
    path: str,
    *,
    response: Any,
    query: Any = None,
    param: Any = None,
    json: Any = None,
    form: Any = None,
    options: Mapping[str, Any] | None = None,
) -> Endpoint:
    return Endpoint(
        method,
        path,
        response,
        EndpointInput(query=query, param=param, json=json, form=form),
        options or {},
    )


def define_get(
    path: str,
    *,
    response: Any,
    query: Any = None,
    param: Any = None,
    options: Mapping[str, Any] | None = None,
) -> Endpoint:
    return define_endpoint(
        "get", path, response=response, query=query, param=param,
        options=options,
    )


def define_delete(
    path: str,
    *,
    response: Any,
    query: Any = None,
    param: Any = None,
    options: Mapping[str, Any] | None = None,
) -> Endpoint:
    return define_endpoint(
        "delete", path, response=response, query=query, param=param,
        options=options,
    )


def define_post(path: str, *, response: Any, **inputs: Any) -> Endpoint:
    return define_endpoint("post", path, response=response, **inputs)


def define_put(path: str, *, response: Any, **inputs: Any) -> Endpoint:
    return define_endpoint("put", path, response=response, **inputs)


def define_patch(path: str, *, response: Any, **inputs: Any) -> Endpoint:
    return define_endpoint("patch", path, response=response, **inputs)
