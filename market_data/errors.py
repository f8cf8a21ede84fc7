"""
Error taxonomy shared by every data source adapter.

Only ConfigurationError and TransportError (including its ProviderError
subclass) ever cross the adapter boundary. Rate limits, empty results and
malformed payloads resolve to a cached None instead.
"""

from utils.net import ClientError, RateLimitError, ServerError, TransportError


class ConfigurationError(Exception):
    """A required credential is missing; raised before any cache or network access."""
    pass


class ProviderError(TransportError):
    """The provider answered with an explicit error document."""
    pass


__all__ = [
    "ClientError",
    "ConfigurationError",
    "ProviderError",
    "RateLimitError",
    "ServerError",
    "TransportError",
]
