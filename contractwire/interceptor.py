# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Generic, TypeVar

from .utils import maybe_await

logger = logging.getLogger(__name__)

__all__ = ("InterceptorContext", "InterceptorChain", "Interceptor")

D = TypeVar("D")


@dataclass(frozen=True, slots=True)
class InterceptorContext:
    """Read-only view of the call, shared by every interceptor invocation."""

    key: str
    method: str
    path: str
    inputs: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({})
    )


Interceptor = Callable[[InterceptorContext, Any], Any]


class InterceptorChain(Generic[D]):
    """Ordered interceptor callbacks.

    Callbacks run in registration order, each receiving the previous one's
    output. Returning ``None`` leaves the value unchanged. Callbacks may be
    sync or async.

    Calls take a :meth:`snapshot` before running, so adding or removing an
    interceptor only affects calls that start afterwards.

    Example::

        detach = client.interceptors.request.use(
            lambda ctx, opts: opts.headers.update(Authorization=token)
        )
        ...
        detach()
    """

    def __init__(self) -> None:
        self._callbacks: list[Interceptor] = []
        self._lock = threading.Lock()

    def use(self, callback: Interceptor) -> Callable[[], None]:
        """Append ``callback``; returns a detach handle (safe to call twice)."""
        if not callable(callback):
            raise TypeError("Interceptor must be callable")
        with self._lock:
            self._callbacks.append(callback)

        detached = False

        def detach() -> None:
            nonlocal detached
            if not detached:
                detached = True
                self.remove(callback)

        return detach

    add = use

    def remove(self, callback: Interceptor) -> bool:
        with self._lock:
            for i, cb in enumerate(self._callbacks):
                if cb is callback:
                    del self._callbacks[i]
                    return True
        return False

    def clear(self) -> None:
        with self._lock:
            self._callbacks.clear()

    def snapshot(self) -> tuple[Interceptor, ...]:
        with self._lock:
            return tuple(self._callbacks)

    async def run(
        self,
        context: InterceptorContext,
        data: D,
        chain: tuple[Interceptor, ...] | None = None,
    ) -> D:
        """Thread ``data`` through ``chain`` (a fresh snapshot by default)."""
        chain = self.snapshot() if chain is None else chain
        if chain:
            logger.debug(f"Running {len(chain)} interceptor(s) for {context.key}")
        for callback in chain:
            result = await maybe_await(callback(context, data))
            if result is not None:
                data = result
        return data

    def __len__(self) -> int:
        return len(self._callbacks)

    def __bool__(self) -> bool:
        return True
