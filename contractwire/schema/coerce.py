# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from dataclasses import replace

from .nodes import ObjectSchema, Schema, SchemaKind

__all__ = ("to_coercing",)


def to_coercing(schema: Schema) -> Schema:
    """Rewrite a schema so primitive leaves accept string input.

    Query strings and form fields only carry strings, so ``"25"`` must
    validate against ``number()`` as ``25.0``. Structure is preserved: object
    fields, array items and the optional/nullable/default wrappers are
    rebuilt around their transformed children, default values untouched.
    Leaf constraints (bounds, lengths, patterns, formats) carry over.

    Enum, literal, union, record and the remaining kinds come back as-is.

    Args:
        schema: The schema node to transform.

    Returns:
        A new schema tree; the input is never mutated.

    Raises:
        TypeError: If ``schema`` is not a schema node.
    """
    if not isinstance(schema, Schema):
        raise TypeError(
            f"Expected a schema node, got {type(schema).__name__}"
        )

    match schema.kind:
        case SchemaKind.OBJECT:
            return ObjectSchema(
                {k: to_coercing(v) for k, v in schema.shape.items()}
            )
        case SchemaKind.ARRAY:
            if not isinstance(schema.item, Schema):
                return schema
            return replace(schema, item=to_coercing(schema.item))
        case SchemaKind.OPTIONAL | SchemaKind.NULLABLE | SchemaKind.DEFAULT:
            return replace(schema, inner=to_coercing(schema.inner))
        case (
            SchemaKind.NUMBER
            | SchemaKind.INTEGER
            | SchemaKind.BOOLEAN
            | SchemaKind.DATE
            | SchemaKind.STRING
        ):
            return replace(schema, coerce=True)
        case _:
            return schema
