# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Compile schema nodes into pydantic ``TypeAdapter``s.

Plain leaves compile to strict pydantic types and coercing leaves to lax
ones, so ``number()`` rejects ``"25"`` while ``number(coerce=True)`` accepts
it. Objects become generated models whose fields are keyed by alias, which
keeps arbitrary wire names (``"class"``, ``"model_id"``) usable.
"""

import copy
import re
from datetime import date, datetime
from decimal import Decimal
from functools import partial
from typing import Annotated, Any, Literal, Optional, Union, get_origin

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    InstanceOf,
    Strict,
    TypeAdapter,
    create_model,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from .._errors import ValidationError
from .._sentinel import Undefined
from .nodes import STRING_FORMATS, FormFile, Schema, SchemaKind

__all__ = ("annotation_for", "adapter_for", "validate", "issues_from")


class _ObjectModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


def _constraints(node: Schema, *names: str) -> dict[str, Any]:
    return {
        name: value
        for name in names
        if (value := getattr(node, name)) is not None
    }


def _stringify(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _pattern_check(pattern: str):
    compiled = re.compile(pattern)

    def check(value: str) -> str:
        if compiled.search(value) is None:
            raise PydanticCustomError(
                "string_pattern_mismatch",
                "String should match pattern '{pattern}'",
                {"pattern": pattern},
            )
        return value

    return check


def _format_check(fmt: str):
    compiled = STRING_FORMATS[fmt]

    def check(value: str) -> str:
        if compiled.match(value) is None:
            raise PydanticCustomError(
                "string_format", "Invalid {format}", {"format": fmt}
            )
        return value

    return check


def _string_annotation(node) -> Any:
    metadata: list[Any] = []
    if node.coerce:
        metadata.append(BeforeValidator(_stringify))
    else:
        metadata.append(Strict())
    if kw := _constraints(node, "min_length", "max_length"):
        metadata.append(Field(**kw))
    if node.pattern is not None:
        metadata.append(AfterValidator(_pattern_check(node.pattern)))
    if node.format is not None:
        metadata.append(AfterValidator(_format_check(node.format)))
    return Annotated[(str, *metadata)]


_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")


def _iso_date(value: Any) -> Any:
    # numeric strings are not accepted as Unix timestamps
    if isinstance(value, str) and _ISO_DATE.match(value) is None:
        raise PydanticCustomError(
            "date_format", "Date should be an ISO-8601 string"
        )
    return value


def _number_annotation(node, base: type) -> Any:
    metadata: list[Any] = [Strict(not node.coerce)]
    if kw := _constraints(node, "ge", "gt", "le", "lt", "multiple_of"):
        metadata.append(Field(**kw))
    return Annotated[(base, *metadata)]


def _field_definition(key: str, node: Schema) -> tuple[Any, Any]:
    match node.kind:
        case SchemaKind.OPTIONAL:
            # absence is expressed by the Undefined default, so explicit
            # None only passes when the inner node allows it
            return annotation_for(node.inner), Field(
                default=Undefined, alias=key
            )
        case SchemaKind.DEFAULT:
            return annotation_for(node.inner), Field(
                default_factory=partial(copy.deepcopy, node.value),
                alias=key,
                validate_default=True,
            )
        case _:
            return annotation_for(node), Field(alias=key)


def _object_model(node) -> type[BaseModel]:
    fields = {
        f"field_{i}": _field_definition(key, child)
        for i, (key, child) in enumerate(node.shape.items())
    }
    return create_model("ObjectModel", __base__=_ObjectModel, **fields)


def annotation_for(node: Any) -> Any:
    """Return the pydantic annotation that validates ``node``.

    Anything that is not a schema node is taken to already be an annotation.
    """
    if not isinstance(node, Schema):
        return node

    match node.kind:
        case SchemaKind.OBJECT:
            return _object_model(node)
        case SchemaKind.ARRAY:
            item = list[annotation_for(node.item)]
            if kw := _constraints(node, "min_length", "max_length"):
                return Annotated[item, Field(**kw)]
            return item
        case SchemaKind.OPTIONAL | SchemaKind.NULLABLE:
            return Optional[annotation_for(node.inner)]
        case SchemaKind.DEFAULT:
            return annotation_for(node.inner)
        case SchemaKind.NUMBER:
            return _number_annotation(node, float)
        case SchemaKind.INTEGER:
            return _number_annotation(node, int)
        case SchemaKind.BOOLEAN:
            return Annotated[bool, Strict(not node.coerce)]
        case SchemaKind.DATE:
            if node.coerce:
                return Annotated[datetime, BeforeValidator(_iso_date)]
            return Annotated[datetime, Strict()]
        case SchemaKind.STRING:
            return _string_annotation(node)
        case SchemaKind.ENUM:
            return Literal[node.values]
        case SchemaKind.LITERAL:
            return Literal[node.value]
        case SchemaKind.UNION:
            joined = Union[tuple(annotation_for(o) for o in node.options)]
            if get_origin(joined) is Union:
                return Annotated[joined, Field(union_mode="left_to_right")]
            return joined
        case SchemaKind.RECORD:
            return dict[str, annotation_for(node.value)]
        case SchemaKind.NULL | SchemaKind.VOID:
            return None
        case SchemaKind.ANY:
            return Any
        case SchemaKind.FILE:
            return InstanceOf[FormFile]
        case _:
            raise TypeError(f"Unsupported schema kind: {node.kind!r}")


def adapter_for(node: Schema) -> TypeAdapter:
    """Compile ``node`` once and cache the adapter on the node itself."""
    adapter = node.__dict__.get("_adapter")
    if adapter is None:
        adapter = TypeAdapter(annotation_for(node))
        object.__setattr__(node, "_adapter", adapter)
    return adapter


def _to_plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return {
            info.alias: _to_plain(item)
            for name, info in type(value).model_fields.items()
            if (item := getattr(value, name)) is not Undefined
        }
    if isinstance(value, list):
        return [_to_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_plain(v) for k, v in value.items()}
    return value


def issues_from(exc: PydanticValidationError) -> tuple[dict[str, Any], ...]:
    return tuple(
        {
            "path": tuple(err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors(include_url=False)
    )


def _missing() -> ValidationError:
    return ValidationError(
        issues=(
            {"path": (), "message": "Field required", "type": "missing"},
        )
    )


def validate(node: Schema, value: Any = Undefined) -> Any:
    if value is Undefined:
        match node.kind:
            case SchemaKind.OPTIONAL | SchemaKind.VOID:
                return None
            case SchemaKind.DEFAULT:
                return validate(node.inner, copy.deepcopy(node.value))
            case _:
                raise _missing()

    try:
        data = adapter_for(node).validate_python(value)
    except PydanticValidationError as e:
        raise ValidationError(issues=issues_from(e), cause=e) from e
    return _to_plain(data)
