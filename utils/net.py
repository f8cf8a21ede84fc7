"""
Centralized network utilities shared by all data source adapters.

Provides a retrying requests session, status-code classification and a thin
client that turns every transport-level failure into a TransportError carrying
enough context (provider, status, redacted URL) to diagnose it without leaking
credentials.
"""

from typing import Any, Optional
from urllib.parse import urlsplit, urlunsplit

import requests
from loguru import logger
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

USER_AGENT = "market-data/0.1.0"


class TransportError(Exception):
    """Network failure or non-success HTTP status from an upstream provider."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.url = url
        self.body = body


class RateLimitError(TransportError):
    """Raised when the provider answers 429."""

    def __init__(self, message: str, retry_after: Optional[int] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class ServerError(TransportError):
    """Raised when the provider answers 5xx."""
    pass


class ClientError(TransportError):
    """Raised when the provider answers 4xx (other than 429)."""
    pass


def create_retry_session(
    max_retries: int = 3,
    backoff_factor: float = 1.0,
    status_forcelist: tuple[int, ...] = (500, 502, 503, 504),
    allowed_methods: tuple[str, ...] = ("GET", "POST"),
) -> requests.Session:
    """
    Create a requests session with retry logic configured.

    429 is not retried; rate limits are cached as an outcome instead.

    Args:
        max_retries: Maximum number of retry attempts
        backoff_factor: Backoff factor for exponential backoff
        status_forcelist: HTTP status codes to retry on
        allowed_methods: HTTP methods to retry

    Returns:
        Configured requests session
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=status_forcelist,
        allowed_methods=allowed_methods,
        raise_on_status=False,  # We'll handle status codes ourselves
    )

    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    return session


def redact_url(url: str) -> str:
    """Strip the query string (where most providers carry the credential)."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def _response_body(response: requests.Response) -> Any:
    """Best-effort decode of an error body: JSON if possible, else truncated text."""
    try:
        return response.json()
    except ValueError:
        return (response.text or "")[:200]


def check_response_ok(
    response: requests.Response,
    provider: Optional[str] = None,
    url: Optional[str] = None,
) -> None:
    """
    Check if response is OK and raise appropriate exceptions.

    Args:
        response: HTTP response object
        provider: Provider name for error context
        url: Redacted request URL for error context

    Raises:
        RateLimitError: If rate limit exceeded (429)
        ServerError: If server error (5xx)
        ClientError: For other 4xx errors
    """
    status = response.status_code
    if status < 400:
        return

    context = {"provider": provider, "status_code": status, "url": url, "body": _response_body(response)}

    if status == 429:
        retry_after = response.headers.get("Retry-After")
        retry_after_int = int(retry_after) if retry_after and retry_after.isdigit() else None
        raise RateLimitError(
            f"Rate limit exceeded for {provider or url}",
            retry_after=retry_after_int,
            **context,
        )

    if 500 <= status < 600:
        raise ServerError(f"Server error ({status}) for {provider or url}", **context)

    raise ClientError(f"Client error ({status}) for {provider or url}", **context)


def get_default_headers() -> dict[str, str]:
    """
    Get default headers for HTTP requests.

    Credentials are never put here; each provider injects its own as a query
    parameter or body field.
    """
    return {
        "User-Agent": USER_AGENT,
        "Accept": "application/json",
    }


class NetworkClient:
    """
    Base HTTP client for a single provider with built-in retry.

    Example:
        >>> client = NetworkClient("https://api.stlouisfed.org/fred", provider="fred")
        >>> payload = client.get("series/observations", params={"series_id": "GDP"})
    """

    def __init__(
        self,
        base_url: str,
        provider: str,
        session: Optional[requests.Session] = None,
        max_retries: int = 3,
        backoff_factor: float = 1.0,
        timeout: float = 30,
    ):
        """
        Initialize network client.

        Args:
            base_url: Base URL for API
            provider: Provider name used in logs and errors
            session: Pre-built session (tests inject a mock here)
            max_retries: Maximum number of retries
            backoff_factor: Backoff factor for exponential backoff
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.provider = provider
        self.timeout = timeout
        self.session = session or create_retry_session(
            max_retries=max_retries,
            backoff_factor=backoff_factor,
        )

    def _make_request(self, method: str, endpoint: str, **kwargs: Any) -> requests.Response:
        """
        Make HTTP request and classify transport failures.

        Args:
            method: HTTP method
            endpoint: API endpoint (relative to base_url)
            **kwargs: Additional arguments for requests

        Returns:
            HTTP response with a non-error status
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}" if endpoint else self.base_url
        safe_url = redact_url(url)

        headers = get_default_headers()
        if "headers" in kwargs:
            headers.update(kwargs["headers"])
        kwargs["headers"] = headers
        kwargs.setdefault("timeout", self.timeout)

        logger.debug(f"{self.provider}: {method} {safe_url}")

        try:
            response = self.session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            # str(e) may embed the full URL, so only the class name is surfaced
            raise TransportError(
                f"{self.provider} request failed: {type(e).__name__}",
                provider=self.provider,
                url=safe_url,
            ) from e

        check_response_ok(response, provider=self.provider, url=safe_url)
        return response

    def request_json(self, method: str, endpoint: str, **kwargs: Any) -> tuple[int, Any]:
        """
        Perform a request and decode the JSON body.

        Returns:
            Tuple of (status_code, decoded body). The body is None when empty
            and the raw text when it is not JSON, leaving the shape verdict to
            the provider's classifier.

        Raises:
            TransportError: On network failure or error status
        """
        response = self._make_request(method, endpoint, **kwargs)
        if not response.content:
            return response.status_code, None
        try:
            return response.status_code, response.json()
        except ValueError:
            logger.warning(f"{self.provider}: non-JSON body from {redact_url(response.url or self.base_url)}")
            return response.status_code, response.text

    def get(self, endpoint: str, **kwargs: Any) -> tuple[int, Any]:
        """GET request."""
        return self.request_json("GET", endpoint, **kwargs)

    def post(self, endpoint: str, **kwargs: Any) -> tuple[int, Any]:
        """POST request."""
        return self.request_json("POST", endpoint, **kwargs)
