# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Tests for structured form decoding and encoding."""

from datetime import datetime

import pytest

from contractwire import schema as s
from contractwire.schema import FormFile, decode_form, encode_form
from contractwire.schema.form import split_field_name


@pytest.mark.parametrize(
    "name, expected",
    [
        ("name", ["name"]),
        ("a.b.c", ["a", "b", "c"]),
        ("a.b[2].c", ["a", "b", 2, "c"]),
        ("matrix[1][0]", ["matrix", 1, 0]),
        ("users[0].contact.email", ["users", 0, "contact", "email"]),
    ],
)
def test_split_field_name(name, expected):
    assert split_field_name(name) == expected


class TestDecodeForm:
    def test_flat_fields_are_coerced(self):
        schema = s.obj(
            {"name": s.string(), "age": s.integer(), "admin": s.boolean()}
        )
        result = decode_form(
            [("name", "John"), ("age", "30"), ("admin", "false")], schema
        )
        assert result.success
        assert result.data == {"name": "John", "age": 30, "admin": False}

    def test_nested_objects(self):
        schema = s.obj(
            {
                "user": s.obj(
                    {
                        "name": s.string(),
                        "contact": s.obj({"email": s.string()}),
                    }
                )
            }
        )
        result = decode_form(
            [
                ("user.name", "Ann"),
                ("user.contact.email", "ann@example.com"),
            ],
            schema,
        )
        assert result.data == {
            "user": {"name": "Ann", "contact": {"email": "ann@example.com"}}
        }

    def test_sparse_indices_are_compacted_in_index_order(self):
        schema = s.obj(
            {"items": s.array(s.obj({"sku": s.string(), "qty": s.integer()}))}
        )
        result = decode_form(
            [
                ("items[4].sku", "c"),
                ("items[0].sku", "a"),
                ("items[2].sku", "b"),
                ("items[4].qty", "3"),
                ("items[0].qty", "1"),
                ("items[2].qty", "2"),
            ],
            schema,
        )
        assert result.success, result.error
        assert result.data == {
            "items": [
                {"sku": "a", "qty": 1},
                {"sku": "b", "qty": 2},
                {"sku": "c", "qty": 3},
            ]
        }

    def test_indexed_scalar_array(self):
        schema = s.obj({"scores": s.array(s.number())})
        result = decode_form(
            [("scores[1]", "2.5"), ("scores[0]", "1")], schema
        )
        assert result.data == {"scores": [1.0, 2.5]}

    def test_repeated_names_collect_in_order(self):
        schema = s.obj({"tags": s.array(s.string())})
        result = decode_form(
            [("tags", "b"), ("tags", "a"), ("tags", "c")], schema
        )
        assert result.data == {"tags": ["b", "a", "c"]}

    def test_single_value_for_array_field(self):
        schema = s.obj({"tags": s.array(s.string())})
        assert decode_form([("tags", "x")], schema).data == {"tags": ["x"]}

    def test_missing_arrays(self):
        schema = s.obj(
            {
                "required": s.array(s.string()),
                "extra": s.array(s.string()).optional(),
            }
        )
        assert decode_form([], schema).data == {"required": []}

    def test_repeated_scalar_keeps_first(self):
        schema = s.obj({"name": s.string()})
        result = decode_form([("name", "first"), ("name", "second")], schema)
        assert result.data == {"name": "first"}

    def test_empty_string_normalization(self):
        schema = s.obj(
            {
                "nick": s.string().optional(),
                "bio": s.string().nullable(),
                "age": s.integer().optional(),
            }
        )
        result = decode_form(
            [("nick", ""), ("bio", ""), ("age", "")], schema
        )
        assert result.success
        assert result.data == {"bio": None}

    def test_empty_required_field_fails(self):
        schema = s.obj({"name": s.string()})
        result = decode_form([("name", "")], schema)
        assert not result.success
        assert "name" in result.error.field_errors()

    def test_missing_nested_object_reports_path(self):
        schema = s.obj({"address": s.obj({"city": s.string()})})
        result = decode_form([("other", "x")], schema)
        assert not result.success
        assert "address.city" in result.error.field_errors()

    def test_required_object_with_optional_fields(self):
        schema = s.obj({"meta": s.obj({"tag": s.string().optional()})})
        assert decode_form([], schema).data == {"meta": {}}

    def test_optional_object_absent(self):
        schema = s.obj({"meta": s.obj({"tag": s.string()}).optional()})
        assert decode_form([], schema).data == {}

    def test_empty_string_for_nullable_containers(self):
        schema = s.obj(
            {
                "meta": s.obj({"tag": s.string()}).nullable(),
                "tags": s.array(s.string()).nullable(),
            }
        )
        result = decode_form([("meta", ""), ("tags", "")], schema)
        assert result.data == {"meta": None, "tags": None}

    def test_validation_error_has_field_path(self):
        schema = s.obj({"items": s.array(s.obj({"qty": s.integer()}))})
        result = decode_form([("items[0].qty", "many")], schema)
        assert not result.success
        assert "items.0.qty" in result.error.field_errors()

    def test_without_coercion(self):
        schema = s.obj({"age": s.integer()})
        assert not decode_form([("age", "30")], schema, coerce=False).success

    def test_mapping_input(self):
        schema = s.obj({"name": s.string(), "tags": s.array(s.string())})
        result = decode_form({"name": "n", "tags": ["a", "b"]}, schema)
        assert result.data == {"name": "n", "tags": ["a", "b"]}

    def test_file_fields(self):
        upload = FormFile("avatar.png", b"\x89PNG", "image/png")
        schema = s.obj({"avatar": s.file(), "title": s.string()})
        result = decode_form([("avatar", upload), ("title", "me")], schema)
        assert result.data == {"avatar": upload, "title": "me"}

    def test_unknown_fields_dropped(self):
        schema = s.obj({"name": s.string()})
        result = decode_form([("name", "n"), ("csrf", "t")], schema)
        assert result.data == {"name": "n"}


class TestEncodeForm:
    def test_flattening(self):
        pairs = encode_form(
            {
                "name": "Ann",
                "admin": True,
                "nick": None,
                "tags": ["a", "b"],
                "items": [{"sku": "x"}, {"sku": "y"}],
                "address": {"city": "Oslo"},
                "born": datetime(2000, 1, 2),
            }
        )
        assert pairs == [
            ("name", "Ann"),
            ("admin", "true"),
            ("nick", ""),
            ("tags", "a"),
            ("tags", "b"),
            ("items[0].sku", "x"),
            ("items[1].sku", "y"),
            ("address.city", "Oslo"),
            ("born", "2000-01-02T00:00:00"),
        ]

    def test_files_pass_through(self):
        upload = FormFile("a.txt", b"a")
        assert encode_form({"doc": upload}) == [("doc", upload)]

    def test_decode_inverts_encode(self):
        schema = s.obj(
            {
                "name": s.string(),
                "age": s.integer(),
                "active": s.boolean(),
                "tags": s.array(s.string()),
                "items": s.array(s.obj({"id": s.integer()})),
                "address": s.obj({"city": s.string()}),
                "note": s.string().optional(),
                "remark": s.string().nullable(),
                "parent": s.integer().nullable(),
                "meta": s.obj({"tag": s.string().optional()}),
            }
        )
        value = {
            "name": "Ann",
            "age": 41,
            "active": False,
            "tags": ["x"],
            "items": [{"id": 1}, {"id": 2}],
            "address": {"city": "Oslo"},
            "remark": None,
            "parent": None,
            "meta": {},
        }
        result = decode_form(encode_form(value), schema)
        assert result.success, result.error
        assert result.data == value

    def test_optional_empty_array_decodes_as_absent(self):
        schema = s.obj({"tags": s.array(s.string()).optional()})
        assert encode_form({"tags": []}) == []
        assert decode_form(encode_form({"tags": []}), schema).data == {}

    def test_none_items_skipped(self):
        assert encode_form({"tags": ["a", None, "b"]}) == [
            ("tags", "a"),
            ("tags", "b"),
        ]
