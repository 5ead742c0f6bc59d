# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Structured form fields.

Field names use dot segments with optional ``[n]`` indices, e.g.
``users[0].contact.email``. :func:`decode_form` rebuilds the nested value
and validates it; :func:`encode_form` flattens a nested value back into
field pairs.
"""

import re
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from functools import lru_cache
from typing import Any

from .._sentinel import Undefined
from .coerce import to_coercing
from .nodes import FormFile, ParseResult, Schema, SchemaKind

__all__ = ("decode_form", "encode_form", "split_field_name")

_SEGMENT = re.compile(r"^([^\[\]]*)((?:\[\d+\])*)$")
_INDEX = re.compile(r"\[(\d+)\]")


class _Indexed(dict):
    """Sparse array keyed by the submitted indices."""


class _Repeated(list):
    """All values submitted under one non-indexed name, in order."""


def split_field_name(name: str) -> list[str | int]:
    """``"a.b[2].c"`` -> ``["a", "b", 2, "c"]``."""
    path: list[str | int] = []
    for segment in name.split("."):
        match = _SEGMENT.match(segment)
        if match is None:
            path.append(segment)
            continue
        key, indices = match.groups()
        if key:
            path.append(key)
        path.extend(int(i) for i in _INDEX.findall(indices))
    return path


def _pairs(fields: Any) -> Iterable[tuple[str, Any]]:
    if not isinstance(fields, Mapping):
        yield from fields
        return
    # multidicts already yield one pair per value; plain dicts may hold lists
    for name, value in fields.items():
        if isinstance(value, (list, tuple)):
            for item in value:
                yield name, item
        else:
            yield name, value


def _assemble(fields: Any) -> dict:
    root: dict = {}
    for name, value in _pairs(fields):
        path = split_field_name(name)
        if not path:
            continue
        node = root
        for key, nxt in zip(path, path[1:]):
            want = _Indexed if isinstance(nxt, int) else dict
            child = node.get(key)
            if type(child) is not want:
                child = node[key] = want()
            node = child

        last = path[-1]
        existing = node.get(last, Undefined)
        if existing is Undefined or isinstance(existing, dict):
            node[last] = value
        elif isinstance(existing, _Repeated):
            existing.append(value)
        else:
            node[last] = _Repeated([existing, value])
    return root


def _plain(raw: Any) -> Any:
    """Strip assembly markers from a subtree the schema does not describe."""
    if isinstance(raw, _Indexed):
        return [_plain(raw[k]) for k in sorted(raw)]
    if isinstance(raw, _Repeated):
        return [_plain(v) for v in raw]
    if isinstance(raw, dict):
        return {k: _plain(v) for k, v in raw.items()}
    return raw


def _unwrap(node: Schema) -> tuple[Any, bool, bool]:
    nullable = optional = False
    while isinstance(node, Schema) and node.kind.is_wrapper:
        if node.kind is SchemaKind.NULLABLE:
            nullable = True
        else:
            optional = True
        node = node.inner
    return node, nullable, optional


def _as_items(raw: Any) -> list:
    if isinstance(raw, _Indexed):
        return [raw[k] for k in sorted(raw)]
    if isinstance(raw, _Repeated):
        return list(raw)
    return [raw]


def _normalize(raw: Any, node: Any, *, item: bool = False) -> Any:
    base, nullable, optional = _unwrap(node)
    if not isinstance(base, Schema):
        return _plain(raw)

    match base.kind:
        case SchemaKind.OBJECT:
            if isinstance(raw, _Repeated):
                raw = raw[0]
            if raw == "" and nullable:
                return None
            if raw is Undefined:
                raw = {}
            elif type(raw) is not dict:
                return _plain(raw)
            out = {}
            for key, child in base.shape.items():
                value = _normalize(raw.get(key, Undefined), child)
                if value is not Undefined:
                    out[key] = value
            return out if out or item or not optional else Undefined
        case SchemaKind.ARRAY:
            if raw == "" and nullable:
                return None
            if raw is Undefined:
                return Undefined if optional else []
            return [
                _normalize(v, base.item, item=True) for v in _as_items(raw)
            ]
        case _:
            if raw is Undefined:
                return Undefined
            if isinstance(raw, _Repeated):
                raw = raw[0]
            if item or raw != "":
                return _plain(raw)
            if nullable or base.kind is SchemaKind.NULL:
                return None
            return Undefined


@lru_cache(maxsize=256)
def _coercing(schema: Schema) -> Schema:
    return to_coercing(schema)


def decode_form(
    fields: Mapping[str, Any] | Iterable[tuple[str, Any]],
    schema: Schema,
    *,
    coerce: bool = True,
) -> ParseResult:
    """Decode submitted form fields against an object schema.

    Sparse indices are compacted in ascending order, so ``items[0]``,
    ``items[2]`` and ``items[4]`` become a three-element list. A name
    repeated without an index collects into a list for array fields; for a
    scalar field the first value wins. Empty strings become ``None`` for
    nullable fields and are dropped otherwise.

    Args:
        fields: ``(name, value)`` pairs, a mapping, or a multidict.
        schema: Target schema, normally an object node.
        coerce: Validate with string coercion on primitive leaves.

    Returns:
        ParseResult: ``data`` holds the decoded value on success, ``error``
            the ``ValidationError`` otherwise.
    """
    # the submission itself is always an object, even with nothing filled in
    raw = _normalize(_assemble(fields), schema, item=True)
    target = _coercing(schema) if coerce else schema
    return target.safe_parse(raw)


def _flatten(prefix: str, value: Any, out: list[tuple[str, Any]]) -> None:
    if value is Undefined:
        return
    if value is None:
        # decodes back to None for nullable fields, absent otherwise
        if prefix:
            out.append((prefix, ""))
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            _flatten(f"{prefix}.{key}" if prefix else str(key), item, out)
    elif isinstance(value, (list, tuple)):
        nested = any(isinstance(v, (Mapping, list, tuple)) for v in value)
        for i, item in enumerate(value):
            if item is not None:
                _flatten(f"{prefix}[{i}]" if nested else prefix, item, out)
    elif isinstance(value, FormFile):
        out.append((prefix, value))
    elif isinstance(value, bool):
        out.append((prefix, "true" if value else "false"))
    elif isinstance(value, (datetime, date)):
        out.append((prefix, value.isoformat()))
    else:
        out.append((prefix, str(value)))


def encode_form(value: Mapping[str, Any]) -> list[tuple[str, Any]]:
    """Flatten a nested value into ``(name, value)`` form pairs.

    Values are rendered as strings except ``FormFile`` parts, which pass
    through for the multipart writer. ``None`` fields become empty strings.
    An empty list emits nothing, so an optional array holding ``[]`` decodes
    as absent.
    """
    out: list[tuple[str, Any]] = []
    _flatten("", value, out)
    return out
