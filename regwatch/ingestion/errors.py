"""Error taxonomy for the fetch and parse layers.

Retryable errors (network, 429, 5xx) are exhausted inside the HTTP
client before they surface. ``ParseError`` and ``NoResultsError`` are
never retried: they point at a structural change upstream or a source
that genuinely has nothing new, and are always reported.
"""


class IngestionError(Exception):
    """Base class for every fetch/parse failure.

    Attributes:
        endpoint: URL that was being fetched or parsed.
        status_code: HTTP status, if the failure came from a response.
        attempts: Number of attempts made before giving up.
        response_body: Truncated response body for diagnostics.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        endpoint: str | None = None,
        status_code: int | None = None,
        attempts: int = 1,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code
        self.attempts = attempts
        self.response_body = response_body[:500] if response_body else None

    @property
    def error_type(self) -> str:
        """Class name, used as the ``error_type`` log/notification field."""
        return type(self).__name__


class NetworkError(IngestionError):
    """Connection failure, DNS failure, or timeout."""

    retryable = True


class HTTPStatusError(IngestionError):
    """Non-success HTTP status."""


class RateLimitError(HTTPStatusError):
    """HTTP 429; retried with Retry-After or exponential backoff."""

    retryable = True


class ServerError(HTTPStatusError):
    """HTTP 5xx; retried, then eligible for RSS fallback."""

    retryable = True


class BadRequestError(HTTPStatusError):
    """HTTP 400; one retry with a simplified query, then fatal for the call."""


class ClientError(HTTPStatusError):
    """Any other 4xx (401, 403, 404...). Never retried, never falls back."""


class ParseError(IngestionError):
    """Payload could not be parsed into items (structure changed upstream)."""

    def __init__(
        self,
        message: str,
        *,
        feed_url: str | None = None,
        cause: BaseException | None = None,
        parser: str = "unknown",
    ) -> None:
        super().__init__(message, endpoint=feed_url)
        self.feed_url = feed_url
        self.cause = cause
        self.parser = parser


class NoResultsError(IngestionError):
    """A successful call returned zero items."""


def error_for_status(
    status_code: int,
    endpoint: str,
    *,
    attempts: int = 1,
    response_body: str | None = None,
) -> HTTPStatusError:
    """Map an HTTP status code onto the taxonomy."""
    kwargs = {
        "endpoint": endpoint,
        "status_code": status_code,
        "attempts": attempts,
        "response_body": response_body,
    }
    if status_code == 429:
        return RateLimitError(
            f"Rate limit exceeded for {endpoint} after {attempts} attempts",
            **kwargs,
        )
    if status_code >= 500:
        return ServerError(
            f"Request failed with status {status_code} after {attempts} attempts",
            **kwargs,
        )
    if status_code == 400:
        return BadRequestError(
            f"Bad request for {endpoint} (status 400)",
            **kwargs,
        )
    return ClientError(
        f"Request failed with status {status_code}",
        **kwargs,
    )
