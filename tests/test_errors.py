import pytest

from contractwire import (
    ApiError,
    ContractError,
    DuplicateEndpointError,
    EndpointNotFoundError,
    NetworkError,
    StreamParseError,
    UsageError,
    ValidationError,
)


class TestHierarchy:
    def test_all_errors_share_base(self):
        for cls in (
            UsageError,
            EndpointNotFoundError,
            DuplicateEndpointError,
            ValidationError,
            NetworkError,
            ApiError,
            StreamParseError,
        ):
            assert issubclass(cls, ContractError)

    def test_not_found_is_usage_error(self):
        assert issubclass(EndpointNotFoundError, UsageError)
        assert issubclass(DuplicateEndpointError, UsageError)

    def test_default_status_codes(self):
        assert UsageError().status_code == 400
        assert EndpointNotFoundError().status_code == 404
        assert ValidationError().status_code == 422
        assert NetworkError().status_code == 503


class TestContractError:
    def test_default_message(self):
        err = UsageError()
        assert str(err) == UsageError.default_message

    def test_cause_is_chained(self):
        cause = RuntimeError("boom")
        err = ContractError("wrapped", cause=cause)
        assert err.get_cause() is cause
        assert err.__cause__ is cause

    def test_to_dict(self):
        err = UsageError("bad key", details={"key": "@x"})
        data = err.to_dict()
        assert data["error"] == "UsageError"
        assert data["message"] == "bad key"
        assert data["status_code"] == 400
        assert data["details"] == {"key": "@x"}
        assert "cause" not in data

    def test_to_dict_with_cause(self):
        err = ContractError("outer", cause=ValueError("inner"))
        assert "inner" in err.to_dict(include_cause=True)["cause"]


class TestApiError:
    def test_carries_status_and_body(self):
        err = ApiError(
            "API call failed with status 404",
            404,
            body={"message": "not found"},
            url="https://api.example.com/users/1",
            method="GET",
        )
        assert err.status == 404
        assert err.status_code == 404
        assert err.body == {"message": "not found"}
        assert err.details == {
            "url": "https://api.example.com/users/1",
            "method": "GET",
        }

    def test_body_defaults_to_none(self):
        assert ApiError().body is None


class TestValidationError:
    @pytest.fixture
    def error(self):
        return ValidationError(
            "Request validation failed for json",
            issues=(
                {"path": ("user", "email"), "message": "Invalid email"},
                {"path": ("user", "email"), "message": "Too short"},
                {"path": (), "message": "Bad object"},
            ),
            validation_type="request",
            input_kind="json",
        )

    def test_field_errors(self, error):
        assert error.field_errors() == {
            "user.email": ["Invalid email", "Too short"],
            "_root": ["Bad object"],
        }

    def test_all_error_messages(self, error):
        assert error.all_error_messages() == [
            "user.email: Invalid email",
            "user.email: Too short",
            "Bad object",
        ]

    def test_details(self, error):
        assert error.details == {
            "validation_type": "request",
            "input_kind": "json",
        }

    def test_response_status_overrides_code(self):
        err = ValidationError(validation_type="response", status=200)
        assert err.status_code == 200
        assert err.status == 200

    def test_to_dict_lists_issues(self, error):
        issues = error.to_dict()["issues"]
        assert issues[0]["path"] == ["user", "email"]


def test_network_error_timeout_flag():
    err = NetworkError("Request timeout", url="/x", method="GET", timeout=True)
    assert err.timeout is True
    assert err.details["timeout"] is True
    assert NetworkError().timeout is False
