# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from .coerce import to_coercing
from .form import decode_form, encode_form, split_field_name
from .nodes import (
    STRING_FORMATS,
    AnySchema,
    ArraySchema,
    BooleanSchema,
    DateSchema,
    DefaultSchema,
    EnumSchema,
    FileSchema,
    FormFile,
    IntegerSchema,
    LiteralSchema,
    NullableSchema,
    NullSchema,
    NumberSchema,
    ObjectSchema,
    OptionalSchema,
    ParseResult,
    RecordSchema,
    Schema,
    SchemaKind,
    StringSchema,
    UnionSchema,
    VoidSchema,
    any_,
    array,
    boolean,
    date,
    enum,
    file,
    integer,
    literal,
    null,
    number,
    obj,
    record,
    string,
    union,
    void,
)

__all__ = (
    # Node types
    "Schema",
    "SchemaKind",
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
    "ParseResult",
    "FormFile",
    # Builders
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
    # Transforms
    "to_coercing",
    "decode_form",
    "encode_form",
    "split_field_name",
)
