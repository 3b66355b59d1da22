from .exceptions import (
    APIException,
    AuthenticationException,
    ConnectorException,
    RateLimitException,
)
from .zendesk import IncrementalPage, ZendeskClient, ZendeskCredentials, sanitize_domain

__all__ = [
    "APIException",
    "AuthenticationException",
    "ConnectorException",
    "IncrementalPage",
    "RateLimitException",
    "ZendeskClient",
    "ZendeskCredentials",
    "sanitize_domain",
]
