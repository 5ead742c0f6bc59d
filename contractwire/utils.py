# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

import inspect
import re
from collections.abc import Mapping
from decimal import Decimal
from typing import Any
from urllib.parse import urlencode

import orjson

__all__ = (
    "json_dumps",
    "json_loads",
    "normalize_prefix",
    "normalize_path",
    "build_endpoint_path",
    "path_placeholders",
    "substitute_path_params",
    "serialize_query",
    "maybe_await",
)

_PLACEHOLDER = re.compile(r":(\w+)")
_SLASHES = re.compile(r"/+")
_ORIGIN = re.compile(r"^((?:https?|wss?)://[^/]+)(.*)$", re.IGNORECASE)


def _default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def json_dumps(value: Any) -> bytes:
    return orjson.dumps(value, default=_default)


def json_loads(data: str | bytes) -> Any:
    return orjson.loads(data)


def normalize_prefix(prefix: str) -> str:
    """Single leading slash, no trailing slash, no repeated slashes.

    ``""`` stays ``""``; ``"api//v1/"`` becomes ``"/api/v1"``.
    """
    if not prefix:
        return ""
    p = _SLASHES.sub("/", prefix.strip())
    if not p.startswith("/"):
        p = "/" + p
    while len(p) > 1 and p.endswith("/"):
        p = p[:-1]
    return p


def normalize_path(path: str) -> str:
    """Path template with exactly one leading slash."""
    return _SLASHES.sub("/", "/" + path.strip().lstrip("/"))


def build_endpoint_path(
    path: str,
    alias: Mapping[str, str] | None = None,
    base_url: str | None = None,
) -> str:
    """Resolve ``{alias}`` placeholders and join the path onto ``base_url``.

    Args:
        path: Endpoint path template, e.g. ``/{api}/users/:id``.
        alias: Replacement values for ``{name}`` placeholders.
        base_url: Full origin plus optional path, or a bare path segment.

    Returns:
        str: The joined URL; path parameters are left untouched.
    """
    raw = normalize_path(path)
    for key, value in (alias or {}).items():
        placeholder = "{" + key + "}"
        if placeholder in raw:
            raw = raw.replace(placeholder, normalize_prefix(value))
    raw = _SLASHES.sub("/", raw)

    if not base_url:
        return raw

    base = base_url.strip()
    origin = ""
    if match := _ORIGIN.match(base):
        origin, base = match.groups()
    base = _SLASHES.sub("/", base).rstrip("/")
    if base and not base.startswith("/"):
        base = "/" + base

    joined = _SLASHES.sub("/", f"{base}/{raw.lstrip('/')}")
    if joined != "/":
        joined = joined.rstrip("/")
    return origin + joined


def path_placeholders(path: str) -> tuple[str, ...]:
    """Names of ``:name`` placeholders, in template order."""
    return tuple(dict.fromkeys(_PLACEHOLDER.findall(path)))


def substitute_path_params(path: str, params: Mapping[str, Any]) -> str:
    """Insert parameter values verbatim; unknown placeholders stay as-is."""

    def _sub(match: re.Match) -> str:
        name = match.group(1)
        if name in params and params[name] is not None:
            return str(params[name])
        return match.group(0)

    return _PLACEHOLDER.sub(_sub, path)


def _query_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _query_pairs(key: str, value: Any, out: list[tuple[str, str]]) -> None:
    if value is None:
        return
    if isinstance(value, (list, tuple)):
        out.extend((key, _query_scalar(v)) for v in value if v is not None)
    elif isinstance(value, Mapping):
        for sub, item in value.items():
            _query_pairs(f"{key}[{sub}]", item, out)
    else:
        out.append((key, _query_scalar(value)))


def serialize_query(params: Mapping[str, Any] | None) -> str:
    """Encode query parameters.

    ``None`` is skipped, lists repeat the key (empty lists vanish), nested
    mappings flatten to ``key[sub]`` and booleans render as ``true``/``false``.
    """
    pairs: list[tuple[str, str]] = []
    for key, value in (params or {}).items():
        _query_pairs(str(key), value, pairs)
    return urlencode(pairs)


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value
