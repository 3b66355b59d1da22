"""Exceptions raised by helpdesk connectors."""

from __future__ import annotations

from typing import Optional

BODY_EXCERPT_LENGTH = 200


class ConnectorException(Exception):
    """Base class for connector failures."""


class APIException(ConnectorException):
    """Non-success response or transport failure talking to the remote API."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = (body or "")[:BODY_EXCERPT_LENGTH]


class AuthenticationException(APIException):
    """Credentials were rejected (401/403)."""


class RateLimitException(APIException):
    def __init__(
        self,
        message: str,
        retry_after_seconds: Optional[float] = None,
        status_code: Optional[int] = 429,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message, status_code=status_code, body=body)
        self.retry_after_seconds = retry_after_seconds
