"""
P24 Client Exceptions - Classified error hierarchy.

Every failure surfaced by the client is a single classified exception that
carries enough context (request URL, method, request/response bodies) to be
diagnosed without re-running the call with verbose tracing.

P24Error (base)
├── FormatError
├── ValidationError
├── TransportError
│   └── TransportTimeoutError
├── RemoteError
├── SignatureMismatchError
├── MalformedResponseError
└── RequestCancelledError
"""

from datetime import datetime
from typing import Any, Optional


def _text(body: Optional[bytes], limit: int = 1000) -> Optional[str]:
    if body is None:
        return None
    return body[:limit].decode("utf-8", errors="replace")


class P24Error(Exception):
    """Base exception for all P24 client errors."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        request_url: Optional[str] = None,
        method: Optional[str] = None,
        request_body: Optional[bytes] = None,
        response_body: Optional[bytes] = None,
        status_code: Optional[int] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.request_url = request_url
        self.method = method
        self.request_body = request_body
        self.response_body = response_body
        self.status_code = status_code
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.utcnow()

    def annotate(
        self,
        request_url: Optional[str] = None,
        method: Optional[str] = None,
        request_body: Optional[bytes] = None,
        response_body: Optional[bytes] = None,
    ) -> "P24Error":
        """Fill in request/response details that are not already set."""
        self.request_url = self.request_url or request_url
        self.method = self.method or method
        if self.request_body is None:
            self.request_body = request_body
        if self.response_body is None:
            self.response_body = response_body
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "request_url": self.request_url,
            "method": self.method,
            "status_code": self.status_code,
            "request_body": _text(self.request_body),
            "response_body": _text(self.response_body),
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.method and self.request_url:
            parts.append(f"[{self.method} {self.request_url}]")
        if self.status_code is not None:
            parts.append(f"[status={self.status_code}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error!r})")
        return " ".join(parts)


class FormatError(P24Error, ValueError):
    """Text could not be parsed as an amount or funds value."""

    def __init__(self, message: str, text: Optional[str] = None) -> None:
        super().__init__(message, context={"text": text} if text is not None else None)
        self.text = text


class ValidationError(P24Error, ValueError):
    """Query rejected before any network call."""

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, original_error=original_error)
        self.field_name = field_name

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data["field_name"] = self.field_name
        return data


class TransportError(P24Error):
    """HTTP exchange failed: connection error, bad status or exhausted retries."""

    def __init__(
        self,
        message: str,
        request_url: Optional[str] = None,
        method: Optional[str] = None,
        request_body: Optional[bytes] = None,
        response_body: Optional[bytes] = None,
        status_code: Optional[int] = None,
        attempts: int = 1,
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message,
            request_url=request_url,
            method=method,
            request_body=request_body,
            response_body=response_body,
            status_code=status_code,
            original_error=original_error,
        )
        self.attempts = attempts

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data["attempts"] = self.attempts
        return data


class TransportTimeoutError(TransportError):
    """Every attempt timed out."""


class RemoteError(P24Error):
    """Bank-side error message embedded in a successful HTTP response."""

    def __init__(self, message: str, shape: Optional[str] = None) -> None:
        super().__init__(message, context={"shape": shape} if shape else None)
        self.shape = shape


class SignatureMismatchError(P24Error):
    """Response signature does not verify against the merchant password."""


class MalformedResponseError(P24Error):
    """HTTP response is well-formed but the envelope is invalid or incomplete."""

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, original_error=original_error)
        self.field_name = field_name


class RequestCancelledError(P24Error):
    """Request context was cancelled or its deadline passed."""

    def __init__(self, message: str = "request cancelled", deadline_exceeded: bool = False) -> None:
        super().__init__(message)
        self.deadline_exceeded = deadline_exceeded
