# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from decimal import Decimal

import pytest

from contractwire.utils import (
    build_endpoint_path,
    json_dumps,
    json_loads,
    maybe_await,
    normalize_path,
    normalize_prefix,
    path_placeholders,
    serialize_query,
    substitute_path_params,
)


@pytest.mark.parametrize(
    "prefix, expected",
    [
        ("", ""),
        ("api", "/api"),
        ("/api/", "/api"),
        ("api//v1/", "/api/v1"),
        ("/", "/"),
    ],
)
def test_normalize_prefix(prefix, expected):
    assert normalize_prefix(prefix) == expected


def test_normalize_path():
    assert normalize_path("users/:id") == "/users/:id"
    assert normalize_path("//users//:id") == "/users/:id"


class TestBuildEndpointPath:
    def test_without_base_url(self):
        assert build_endpoint_path("/users/:id") == "/users/:id"

    def test_origin_base_url(self):
        assert (
            build_endpoint_path("/users", base_url="https://api.example.com/")
            == "https://api.example.com/users"
        )

    def test_origin_with_path(self):
        assert (
            build_endpoint_path(
                "/users", base_url="https://api.example.com/v1//"
            )
            == "https://api.example.com/v1/users"
        )

    def test_bare_path_base(self):
        assert build_endpoint_path("/users", base_url="api/v1") == "/api/v1/users"

    def test_alias(self):
        assert (
            build_endpoint_path(
                "/{api}/products/:id",
                {"api": "/api/v1"},
                "https://api.example.com",
            )
            == "https://api.example.com/api/v1/products/:id"
        )

    def test_multiple_aliases(self):
        assert (
            build_endpoint_path(
                "/{api}/{version}/resource",
                {"api": "api/", "version": "/v2"},
            )
            == "/api/v2/resource"
        )

    def test_unknown_alias_left_alone(self):
        assert build_endpoint_path("/{api}/x", {}) == "/{api}/x"


def test_placeholders():
    assert path_placeholders("/users/:userId/posts/:postId") == (
        "userId",
        "postId",
    )
    assert path_placeholders("/a/:id/b/:id") == ("id",)
    assert path_placeholders("/users") == ()


def test_substitute_path_params():
    assert (
        substitute_path_params("/users/:id/posts/:post", {"id": 1, "post": "a b"})
        == "/users/1/posts/a b"
    )
    assert substitute_path_params("/users/:id", {}) == "/users/:id"


class TestSerializeQuery:
    def test_scalars(self):
        assert serialize_query({"q": "hi", "page": 2}) == "q=hi&page=2"

    def test_none_skipped(self):
        assert serialize_query({"q": None, "page": 1}) == "page=1"

    def test_booleans(self):
        assert serialize_query({"active": True, "x": False}) == (
            "active=true&x=false"
        )

    def test_lists_repeat_key(self):
        assert serialize_query({"tag": ["a", "b"], "empty": []}) == (
            "tag=a&tag=b"
        )

    def test_nested_mapping(self):
        assert serialize_query({"filter": {"name": "x"}}) == (
            "filter%5Bname%5D=x"
        )

    def test_encoding(self):
        assert serialize_query({"q": "a b&c"}) == "q=a+b%26c"

    def test_empty(self):
        assert serialize_query({}) == ""
        assert serialize_query(None) == ""


def test_json_roundtrip_with_decimal_and_set():
    assert json_loads(json_dumps({"d": Decimal("1.5"), "s": {1}})) == {
        "d": "1.5",
        "s": [1],
    }


def test_json_dumps_rejects_unknown():
    with pytest.raises(TypeError):
        json_dumps({"o": object()})


@pytest.mark.asyncio
async def test_maybe_await():
    async def coro():
        return 2

    assert await maybe_await(1) == 1
    assert await maybe_await(coro()) == 2
