"""Unit tests for the application exception hierarchy."""

from __future__ import annotations

import pytest

from spott_service.core.exceptions import (
    AppException,
    GatewayError,
    InternalServerException,
    PaymentRequiredException,
    RateLimitException,
    ServiceUnavailableException,
)


@pytest.mark.unit
class TestAppException:
    """Test suite for the base exception."""

    def test_default_title_from_status(self):
        exc = AppException(status_code=404, detail="Location not found")

        assert exc.title == "Not Found"
        assert exc.type == "about:blank"
        assert exc.extra == {}
        assert str(exc) == "Location not found"

    def test_unknown_status_title(self):
        assert AppException(status_code=418, detail="teapot").title == "Error"

    @pytest.mark.parametrize(
        ("exc", "status", "type_"),
        [
            (PaymentRequiredException("pay"), 402, "payment-required"),
            (RateLimitException("slow"), 429, "rate-limit-exceeded"),
            (InternalServerException("boom"), 500, "internal-error"),
            (ServiceUnavailableException("down"), 503, "service-unavailable"),
        ],
    )
    def test_subclass_status_codes(self, exc, status, type_):
        """Every subclass carries its RFC 7807 status and type."""
        assert isinstance(exc, AppException)
        assert exc.status_code == status
        assert exc.type == type_


@pytest.mark.unit
class TestGatewayError:
    """Test suite for GatewayError."""

    def test_is_bad_gateway(self):
        exc = GatewayError("select profiles failed", gateway_status=503)

        assert exc.status_code == 502
        assert exc.extra["gateway_status"] == 503

    @pytest.mark.parametrize(
        "body",
        [
            {"message": "duplicate key value"},
            {"error_description": "duplicate key value"},
            {"error": "duplicate key value"},
            {"msg": "duplicate key value"},
        ],
    )
    def test_message_prefers_gateway_text(self, body):
        """The gateway's own message wins over the generic detail."""
        exc = GatewayError("insert failed", gateway_status=409, body=body)

        assert exc.message == "duplicate key value"

    def test_message_falls_back_to_detail(self):
        assert GatewayError("insert failed", body="<html>").message == "insert failed"
        assert GatewayError("insert failed", body={"message": ""}).message == "insert failed"
