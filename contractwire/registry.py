# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

import logging
import re
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from ._errors import DuplicateEndpointError, EndpointNotFoundError
from .config import settings
from .endpoint import Endpoint, EndpointGroup

logger = logging.getLogger(__name__)

__all__ = ("EndpointRegistry", "normalize_key")

_KEY = re.compile(r"^@([A-Za-z]+)(/.*)$")


def normalize_key(key: str) -> str:
    """Lower-case the method token of a canonical key."""
    if match := _KEY.match(key):
        return f"@{match.group(1).lower()}{match.group(2)}"
    return key


class EndpointRegistry:
    """Flat mapping from canonical key to :class:`Endpoint`.

    Declarations may be endpoints, :class:`EndpointGroup`s, mappings whose
    values are declarations, or iterables of any of these. Groups are
    flattened with their prefixes applied.

    A duplicate key replaces the earlier endpoint and logs a warning, unless
    the registry is strict (``strict=True`` or ``settings.STRICT_REGISTRY``),
    in which case :class:`DuplicateEndpointError` is raised.

    Example:
        >>> registry = EndpointRegistry(
        ...     EndpointGroup("/api", get_user, create_user),
        ...     {"health": health},
        ... )
        >>> registry.lookup("@GET/api/users/:id")
        Endpoint('@get/api/users/:id', output=plain)
    """

    def __init__(self, *declarations: Any, strict: bool | None = None):
        self.strict = settings.STRICT_REGISTRY if strict is None else strict
        self._endpoints: dict[str, Endpoint] = {}
        self.register(*declarations)

    def register(self, *declarations: Any) -> "EndpointRegistry":
        for decl in declarations:
            for key, endpoint in self._entries(decl):
                self._insert(key, endpoint)
        return self

    def _entries(self, decl: Any) -> Iterator[tuple[str, Endpoint]]:
        match decl:
            case Endpoint() | EndpointGroup():
                yield from decl.entries()
            case Mapping():
                for value in decl.values():
                    yield from self._entries(value)
            case str() | bytes():
                raise TypeError(f"Not an endpoint declaration: {decl!r}")
            case Iterable():
                for value in decl:
                    yield from self._entries(value)
            case _:
                raise TypeError(
                    "Expected an Endpoint, EndpointGroup, mapping or "
                    f"iterable, got {type(decl).__name__}"
                )

    def _insert(self, key: str, endpoint: Endpoint) -> None:
        if (previous := self._endpoints.get(key)) is not None:
            if self.strict:
                raise DuplicateEndpointError(
                    f"Endpoint '{key}' is already registered",
                    details={"key": key},
                )
            if previous is not endpoint:
                logger.warning(
                    f"Endpoint '{key}' registered twice; "
                    "the later declaration replaces the earlier one"
                )
        self._endpoints[key] = endpoint

    def lookup(self, key: str) -> Endpoint:
        """Return the endpoint for ``key``.

        Raises:
            EndpointNotFoundError: If no endpoint is registered under ``key``.
        """
        normalized = normalize_key(key)
        try:
            return self._endpoints[normalized]
        except KeyError:
            raise EndpointNotFoundError(
                f"Endpoint '{key}' not found",
                details={"key": normalized},
            ) from None

    def get(self, key: str, default: Endpoint | None = None) -> Endpoint | None:
        return self._endpoints.get(normalize_key(key), default)

    def keys(self) -> list[str]:
        return list(self._endpoints)

    def values(self) -> list[Endpoint]:
        return list(self._endpoints.values())

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and normalize_key(key) in self._endpoints

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._endpoints))

    def __len__(self) -> int:
        return len(self._endpoints)

    def __repr__(self) -> str:
        return f"EndpointRegistry({len(self)} endpoints)"
