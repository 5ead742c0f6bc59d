# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

import logging

from . import schema as schema
from ._errors import (
    ApiError,
    ContractError,
    DuplicateEndpointError,
    EndpointNotFoundError,
    NetworkError,
    StreamParseError,
    UsageError,
    ValidationError,
)
from ._sentinel import Undefined, UndefinedType, is_undefined
from .client import ApiClient, CallResult, Interceptors, Overrides
from .config import AppSettings, settings
from .endpoint import (
    Endpoint,
    EndpointGroup,
    EndpointInput,
    OutputKind,
    define_delete,
    define_endpoint,
    define_get,
    define_patch,
    define_post,
    define_put,
    json_stream,
    sse,
    websocket,
)
from .interceptor import InterceptorChain, InterceptorContext
from .registry import EndpointRegistry
from .schema import FormFile, ParseResult, decode_form, encode_form, to_coercing
from .stream import (
    ErrorChunk,
    EventChunk,
    JsonChunk,
    MessageChunk,
    StreamChunk,
    StreamResult,
    subscribe,
)
from .transport import (
    AiohttpTransport,
    MultipartForm,
    RequestOptions,
    TransportResponse,
    WebSocketConnection,
)
from .version import __version__
from .websocket import WebSocketController, WebSocketResult

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = (
    "__version__",
    # client
    "ApiClient",
    "CallResult",
    "Interceptors",
    "Overrides",
    "InterceptorChain",
    "InterceptorContext",
    # declarations
    "schema",
    "Endpoint",
    "EndpointGroup",
    "EndpointInput",
    "EndpointRegistry",
    "OutputKind",
    "define_endpoint",
    "define_get",
    "define_post",
    "define_put",
    "define_patch",
    "define_delete",
    "sse",
    "json_stream",
    "websocket",
    # forms
    "FormFile",
    "ParseResult",
    "decode_form",
    "encode_form",
    "to_coercing",
    # streaming
    "EventChunk",
    "JsonChunk",
    "MessageChunk",
    "ErrorChunk",
    "StreamChunk",
    "StreamResult",
    "WebSocketController",
    "WebSocketResult",
    "subscribe",
    # transport
    "AiohttpTransport",
    "MultipartForm",
    "RequestOptions",
    "TransportResponse",
    "WebSocketConnection",
    # errors
    "ContractError",
    "UsageError",
    "EndpointNotFoundError",
    "DuplicateEndpointError",
    "ValidationError",
    "NetworkError",
    "ApiError",
    "StreamParseError",
    # misc
    "AppSettings",
    "settings",
    "Undefined",
    "UndefinedType",
    "is_undefined",
)
