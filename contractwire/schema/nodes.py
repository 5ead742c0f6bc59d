# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Schema node tree.

A schema is an immutable tree over a closed set of node kinds
(:class:`SchemaKind`). Nodes only describe shape and constraints; they are
compiled into pydantic validators on first use (see ``_compile``).

Example:
    >>> from contractwire import schema as s
    >>> user = s.obj({"id": s.string(), "age": s.integer().optional()})
    >>> user.parse({"id": "1", "extra": True})
    {'id': '1'}
"""

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Literal

from .._sentinel import Undefined

__all__ = (
    "SchemaKind",
    "Schema",
    "ParseResult",
    "FormFile",
    "ObjectSchema",
    "ArraySchema",
    "OptionalSchema",
    "NullableSchema",
    "DefaultSchema",
    "NumberSchema",
    "IntegerSchema",
    "BooleanSchema",
    "DateSchema",
    "StringSchema",
    "EnumSchema",
    "LiteralSchema",
    "UnionSchema",
    "RecordSchema",
    "NullSchema",
    "VoidSchema",
    "AnySchema",
    "FileSchema",
    "STRING_FORMATS",
    "string",
    "number",
    "integer",
    "boolean",
    "date",
    "obj",
    "array",
    "enum",
    "literal",
    "union",
    "record",
    "null",
    "void",
    "any_",
    "file",
)

StringFormat = Literal["email", "uuid", "url", "datetime"]

STRING_FORMATS: Mapping[str, re.Pattern] = MappingProxyType(
    {
        "email": re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$"),
        "uuid": re.compile(
            r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}"
            r"-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
        ),
        "url": re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://[^\s/?#]+\S*$"),
        "datetime": re.compile(
            r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(:\d{2}(\.\d+)?)?"
            r"(Z|[+-]\d{2}:?\d{2})?$"
        ),
    }
)


class SchemaKind(str, Enum):
    OBJECT = "object"
    ARRAY = "array"
    OPTIONAL = "optional"
    NULLABLE = "nullable"
    DEFAULT = "default"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    DATE = "date"
    STRING = "string"
    ENUM = "enum"
    LITERAL = "literal"
    UNION = "union"
    RECORD = "record"
    NULL = "null"
    VOID = "void"
    ANY = "any"
    FILE = "file"

    @property
    def is_wrapper(self) -> bool:
        return self in _WRAPPERS

    @property
    def is_primitive(self) -> bool:
        return self in _PRIMITIVES


_WRAPPERS = frozenset(
    {SchemaKind.OPTIONAL, SchemaKind.NULLABLE, SchemaKind.DEFAULT}
)
_PRIMITIVES = frozenset(
    {
        SchemaKind.NUMBER,
        SchemaKind.INTEGER,
        SchemaKind.BOOLEAN,
        SchemaKind.DATE,
        SchemaKind.STRING,
    }
)


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Outcome of ``safe_parse``: either ``data`` or ``error`` is meaningful."""

    success: bool
    data: Any = None
    error: Any = None


@dataclass(frozen=True, slots=True)
class FormFile:
    """An uploaded file part of a multipart form."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True, eq=False)
class Schema:
    """Base node. Nodes compare and hash by identity."""

    kind: ClassVar[SchemaKind]

    def optional(self) -> "OptionalSchema":
        return OptionalSchema(self)

    def nullable(self) -> "NullableSchema":
        return NullableSchema(self)

    def default(self, value: Any) -> "DefaultSchema":
        return DefaultSchema(self, value)

    def parse(self, value: Any = Undefined) -> Any:
        """Validate ``value`` and return the plain validated data.

        Omitting ``value`` validates an absent input.

        Raises:
            ValidationError: if the value does not satisfy the schema.
        """
        from ._compile import validate

        return validate(self, value)

    def safe_parse(self, value: Any = Undefined) -> ParseResult:
        from .._errors import ValidationError

        try:
            return ParseResult(True, data=self.parse(value))
        except ValidationError as e:
            return ParseResult(False, error=e)


@dataclass(frozen=True, eq=False)
class ObjectSchema(Schema):
    kind = SchemaKind.OBJECT
    shape: Mapping[str, Schema] = field(default_factory=dict)

    def __post_init__(self):
        for key, node in self.shape.items():
            if not isinstance(node, Schema):
                raise TypeError(
                    f"Field '{key}' must be a schema node, "
                    f"got {type(node).__name__}"
                )
        object.__setattr__(self, "shape", MappingProxyType(dict(self.shape)))

    def extend(self, shape: Mapping[str, Schema]) -> "ObjectSchema":
        return ObjectSchema({**self.shape, **shape})


@dataclass(frozen=True, eq=False)
class ArraySchema(Schema):
    """Homogeneous list. ``item`` may also be a plain type annotation."""

    kind = SchemaKind.ARRAY
    item: Any
    min_length: int | None = None
    max_length: int | None = None


@dataclass(frozen=True, eq=False)
class OptionalSchema(Schema):
    kind = SchemaKind.OPTIONAL
    inner: Schema


@dataclass(frozen=True, eq=False)
class NullableSchema(Schema):
    kind = SchemaKind.NULLABLE
    inner: Schema


@dataclass(frozen=True, eq=False)
class DefaultSchema(Schema):
    kind = SchemaKind.DEFAULT
    inner: Schema
    value: Any = None


@dataclass(frozen=True, eq=False)
class NumberSchema(Schema):
    kind = SchemaKind.NUMBER
    coerce: bool = False
    ge: float | None = None
    gt: float | None = None
    le: float | None = None
    lt: float | None = None
    multiple_of: float | None = None


@dataclass(frozen=True, eq=False)
class IntegerSchema(Schema):
    kind = SchemaKind.INTEGER
    coerce: bool = False
    ge: int | None = None
    gt: int | None = None
    le: int | None = None
    lt: int | None = None
    multiple_of: int | None = None


@dataclass(frozen=True, eq=False)
class BooleanSchema(Schema):
    kind = SchemaKind.BOOLEAN
    coerce: bool = False


@dataclass(frozen=True, eq=False)
class DateSchema(Schema):
    kind = SchemaKind.DATE
    coerce: bool = False


@dataclass(frozen=True, eq=False)
class StringSchema(Schema):
    kind = SchemaKind.STRING
    coerce: bool = False
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    format: StringFormat | None = None

    def __post_init__(self):
        if self.format is not None and self.format not in STRING_FORMATS:
            raise ValueError(
                f"Unknown string format '{self.format}', "
                f"expected one of {sorted(STRING_FORMATS)}"
            )


@dataclass(frozen=True, eq=False)
class EnumSchema(Schema):
    kind = SchemaKind.ENUM
    values: tuple[Any, ...] = ()

    def __post_init__(self):
        if not self.values:
            raise ValueError("Enum schema needs at least one value")
        object.__setattr__(self, "values", tuple(self.values))


@dataclass(frozen=True, eq=False)
class LiteralSchema(Schema):
    kind = SchemaKind.LITERAL
    value: Any = None


@dataclass(frozen=True, eq=False)
class UnionSchema(Schema):
    """First matching option wins."""

    kind = SchemaKind.UNION
    options: tuple[Schema, ...] = ()

    def __post_init__(self):
        if not self.options:
            raise ValueError("Union schema needs at least one option")
        object.__setattr__(self, "options", tuple(self.options))


@dataclass(frozen=True, eq=False)
class RecordSchema(Schema):
    kind = SchemaKind.RECORD
    value: Schema


@dataclass(frozen=True, eq=False)
class NullSchema(Schema):
    kind = SchemaKind.NULL


@dataclass(frozen=True, eq=False)
class VoidSchema(Schema):
    """No payload; the response body is never read."""

    kind = SchemaKind.VOID


@dataclass(frozen=True, eq=False)
class AnySchema(Schema):
    kind = SchemaKind.ANY


@dataclass(frozen=True, eq=False)
class FileSchema(Schema):
    kind = SchemaKind.FILE


# builders


def string(
    *,
    min_length: int | None = None,
    max_length: int | None = None,
    pattern: str | None = None,
    format: StringFormat | None = None,
    coerce: bool = False,
) -> StringSchema:
    return StringSchema(coerce, min_length, max_length, pattern, format)


def number(
    *,
    ge: float | None = None,
    gt: float | None = None,
    le: float | None = None,
    lt: float | None = None,
    multiple_of: float | None = None,
    coerce: bool = False,
) -> NumberSchema:
    return NumberSchema(coerce, ge, gt, le, lt, multiple_of)


def integer(
    *,
    ge: int | None = None,
    gt: int | None = None,
    le: int | None = None,
    lt: int | None = None,
    multiple_of: int | None = None,
    coerce: bool = False,
) -> IntegerSchema:
    return IntegerSchema(coerce, ge, gt, le, lt, multiple_of)


def boolean(*, coerce: bool = False) -> BooleanSchema:
    return BooleanSchema(coerce)


def date(*, coerce: bool = False) -> DateSchema:
    return DateSchema(coerce)


def obj(shape: Mapping[str, Schema] | None = None, /, **fields: Schema):
    """Object node from a mapping and/or keyword fields."""
    return ObjectSchema({**(shape or {}), **fields})


def array(
    item: Any,
    *,
    min_length: int | None = None,
    max_length: int | None = None,
) -> ArraySchema:
    return ArraySchema(item, min_length, max_length)


def enum(values: Sequence[Any] | type[Enum], /) -> EnumSchema:
    if isinstance(values, type) and issubclass(values, Enum):
        values = [member.value for member in values]
    return EnumSchema(tuple(values))


def literal(value: Any, /) -> LiteralSchema:
    return LiteralSchema(value)


def union(*options: Schema) -> UnionSchema:
    return UnionSchema(options)


def record(value: Schema, /) -> RecordSchema:
    return RecordSchema(value)


def null() -> NullSchema:
    return NullSchema()


def void() -> VoidSchema:
    return VoidSchema()


def any_() -> AnySchema:
    return AnySchema()


def file() -> FileSchema:
    return FileSchema()
