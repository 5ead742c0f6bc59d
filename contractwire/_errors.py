# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from typing import Any, ClassVar, Literal

from ._sentinel import Undefined

__all__ = (
    "ContractError",
    "UsageError",
    "EndpointNotFoundError",
    "DuplicateEndpointError",
    "ValidationError",
    "NetworkError",
    "ApiError",
    "StreamParseError",
)

ValidationType = Literal["request", "response"]


class ContractError(Exception):
    default_message: ClassVar[str] = "contractwire error"
    status_code: ClassVar[int] = 500

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message or self.default_message)
        if cause:
            self.__cause__ = cause  # preserves traceback
        self.message = message or self.default_message
        self.details = details or {}
        self.status_code = status_code or self.status_code

    def to_dict(self, *, include_cause: bool = False) -> dict[str, Any]:
        data = {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            **({"details": self.details} if self.details else {}),
        }
        if include_cause and (cause := self.get_cause()):
            data["cause"] = repr(cause)
        return data

    def get_cause(self) -> BaseException | None:
        """Get the cause of this error, if any."""
        return self.__cause__


class UsageError(ContractError):
    """Caller mistake detected before any transport activity."""

    default_message = "Invalid client usage"
    status_code = 400


class EndpointNotFoundError(UsageError):
    default_message = "Endpoint not found"
    status_code = 404


class DuplicateEndpointError(UsageError):
    default_message = "Endpoint registered twice"
    status_code = 409


class ApiError(ContractError):
    """A completed HTTP exchange that did not yield a usable body.

    Raised for non-2xx statuses (``body`` holds the best-effort parsed error
    payload) and for 2xx bodies that cannot be read as the declared shape.
    """

    default_message = "API call failed"

    def __init__(
        self,
        message: str | None = None,
        status: int = 500,
        *,
        body: Any = Undefined,
        url: str | None = None,
        method: str | None = None,
        cause: BaseException | None = None,
    ):
        details = {
            k: v
            for k, v in (("url", url), ("method", method))
            if v is not None
        }
        super().__init__(
            message, details=details, status_code=status, cause=cause
        )
        self.status = status
        self.body = None if body is Undefined else body
        self.url = url
        self.method = method


class ValidationError(ContractError):
    """Schema validation failure.

    ``issues`` is a tuple of ``{"path": tuple, "message": str, "type": str}``
    entries. ``validation_type`` tells whether the caller's input
    (``"request"``) or the server's payload (``"response"``) was rejected;
    it stays ``None`` for standalone ``Schema.parse`` calls.
    """

    default_message = "Validation failed"
    status_code = 422

    def __init__(
        self,
        message: str | None = None,
        *,
        issues: tuple[dict[str, Any], ...] | list[dict[str, Any]] = (),
        validation_type: ValidationType | None = None,
        input_kind: str | None = None,
        status: int | None = None,
        body: Any = Undefined,
        url: str | None = None,
        method: str | None = None,
        cause: BaseException | None = None,
    ):
        details = {
            k: v
            for k, v in (
                ("validation_type", validation_type),
                ("input_kind", input_kind),
                ("url", url),
                ("method", method),
            )
            if v is not None
        }
        super().__init__(
            message, details=details, status_code=status, cause=cause
        )
        self.issues = tuple(issues)
        self.validation_type = validation_type
        self.input_kind = input_kind
        self.status = status
        self.body = None if body is Undefined else body
        self.url = url
        self.method = method

    def field_errors(self) -> dict[str, list[str]]:
        """Map dotted field path to messages; root issues use ``_root``."""
        out: dict[str, list[str]] = {}
        for issue in self.issues:
            key = ".".join(str(p) for p in issue["path"]) or "_root"
            out.setdefault(key, []).append(issue["message"])
        return out

    def all_error_messages(self) -> list[str]:
        messages = []
        for issue in self.issues:
            path = ".".join(str(p) for p in issue["path"])
            messages.append(
                f"{path}: {issue['message']}" if path else issue["message"]
            )
        return messages

    def to_dict(self, *, include_cause: bool = False) -> dict[str, Any]:
        data = super().to_dict(include_cause=include_cause)
        data["issues"] = [
            {**issue, "path": list(issue["path"])} for issue in self.issues
        ]
        return data


class NetworkError(ContractError):
    """The request never produced a response (connectivity, timeout, abort)."""

    default_message = "Network request failed"
    status_code = 503

    def __init__(
        self,
        message: str | None = None,
        *,
        url: str | None = None,
        method: str | None = None,
        timeout: bool = False,
        cause: BaseException | None = None,
    ):
        details = {
            k: v
            for k, v in (("url", url), ("method", method))
            if v is not None
        }
        if timeout:
            details["timeout"] = True
        super().__init__(message, details=details, cause=cause)
        self.url = url
        self.method = method
        self.timeout = timeout


class StreamParseError(ContractError):
    """A single streamed frame could not be decoded or matched to a schema."""

    default_message = "Failed to parse stream frame"
    status_code = 502
