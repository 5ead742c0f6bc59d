# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from typing import Any

import pytest

from contractwire import ApiClient
from tests.utils import FakeTransport


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def make_client(transport):
    """Build a client wired to the fake transport."""

    def _make(schema: Any = (), **kwargs: Any) -> ApiClient:
        kwargs.setdefault("base_url", "https://api.example.com")
        client = ApiClient(schema, **kwargs)
        client.overrides.transport = transport
        return client

    return _make
