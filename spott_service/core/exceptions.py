"""Custom exception classes for the application."""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base application exception.

    All custom exceptions should inherit from this class.
    Follows RFC 7807 Problem Details for HTTP APIs.

    Attributes:
        status_code: HTTP status code for the error.
        detail: Human-readable error message.
        type: Error type identifier (used in RFC 7807 problem details).
        title: Short, human-readable summary of the problem type.
        instance: URI reference that identifies the specific occurrence of the problem.
        extra: Additional context-specific information about the error.

    Example:
        raise AppException(
            status_code=404,
            detail="Location not found",
            type="location-not-found",
            instance="/locations/abc123",
            extra={"location_id": "abc123"},
        )
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application exception.

        Args:
            status_code: HTTP status code.
            detail: Human-readable error message.
            type: Error type identifier.
            title: Short summary of the problem type.
            instance: URI reference identifying this specific occurrence.
            extra: Additional context about the error.
        """
        self.status_code = status_code
        self.detail = detail
        self.type = type
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.extra = extra or {}
        super().__init__(detail)

    @staticmethod
    def _default_title(status_code: int) -> str:
        """Get default title for HTTP status code."""
        titles = {
            400: "Bad Request",
            401: "Unauthorized",
            402: "Payment Required",
            403: "Forbidden",
            404: "Not Found",
            422: "Unprocessable Entity",
            429: "Too Many Requests",
            500: "Internal Server Error",
            502: "Bad Gateway",
            503: "Service Unavailable",
            504: "Gateway Timeout",
        }
        return titles.get(status_code, "Error")


class PaymentRequiredException(AppException):
    """Exception raised when the upstream AI workspace is out of credit.

    Example:
        raise PaymentRequiredException(
            detail="Payment required, please add funds to your Lovable AI workspace.",
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "payment-required",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=402,
            detail=detail,
            type=type,
            title="Payment Required",
            instance=instance,
            extra=extra,
        )


class RateLimitException(AppException):
    """Exception raised when rate limit is exceeded.

    Example:
        raise RateLimitException(
            detail="Rate limits exceeded, please try again later.",
            extra={"upstream": "ai-gateway"},
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "rate-limit-exceeded",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
        *,
        status_code: int = 429,
    ) -> None:
        """Initialize rate limit exception.

        Args:
            detail: Human-readable error message.
            type: Error type identifier.
            instance: URI reference identifying this specific occurrence.
            extra: Additional context about the error.
            status_code: Override for HTTP status (defaults to 429).
        """
        super().__init__(
            status_code=status_code,
            detail=detail,
            type=type,
            title="Too Many Requests",
            instance=instance,
            extra=extra,
        )


class ServiceUnavailableException(AppException):
    """Exception raised when a dependency is not configured or not reachable.

    Example:
        raise ServiceUnavailableException(
            detail="AI gateway key is not configured",
            extra={"service": "ai-gateway"},
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "service-unavailable",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=503,
            detail=detail,
            type=type,
            title="Service Unavailable",
            instance=instance,
            extra=extra,
        )


class InternalServerException(AppException):
    """Exception raised for internal server errors.

    Example:
        raise InternalServerException(
            detail="AI gateway error",
            extra={"upstream_status": 500},
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "internal-error",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=500,
            detail=detail,
            type=type,
            title="Internal Server Error",
            instance=instance,
            extra=extra,
        )


class GatewayError(AppException):
    """Exception raised when the backend gateway rejects or fails a call.

    Carries the upstream HTTP status (None for transport failures) and the
    decoded response body so callers can surface the gateway's message.

    Example:
        raise GatewayError(
            detail="insert into direct_messages failed",
            gateway_status=409,
            body={"message": "duplicate key value"},
        )
    """

    def __init__(
        self,
        detail: str,
        *,
        gateway_status: int | None = None,
        body: Any = None,
        type: str = "gateway-error",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.gateway_status = gateway_status
        self.body = body
        final_extra: dict[str, Any] = {"gateway_status": gateway_status}
        if extra:
            final_extra.update(extra)
        super().__init__(
            status_code=502,
            detail=detail,
            type=type,
            title="Bad Gateway",
            instance=instance,
            extra=final_extra,
        )

    @property
    def message(self) -> str:
        """Best human-readable message, preferring the gateway's own text."""
        if isinstance(self.body, dict):
            for key in ("message", "error_description", "error", "msg"):
                value = self.body.get(key)
                if isinstance(value, str) and value:
                    return value
        return self.detail


__all__ = [
    "AppException",
    "GatewayError",
    "InternalServerException",
    "PaymentRequiredException",
    "RateLimitException",
    "ServiceUnavailableException",
]
