"""Typed errors raised by the outbound clients and the services built on them.

Every error carries a ``retryable`` flag so callers can decide on a retry
policy without inspecting status codes themselves.
"""


class ClientError(Exception):
    """Base class for all client-side failures."""

    retryable: bool = False


class ConfigurationError(ClientError):
    """Missing or inconsistent configuration. Fatal, never retried."""


class DimensionMismatchError(ConfigurationError):
    """A vector does not match the dimension declared by its collection."""

    def __init__(self, expected: int, actual: int, context: str = "") -> None:
        self.expected = expected
        self.actual = actual
        where = f" ({context})" if context else ""
        super().__init__(f"Vector dimension mismatch{where}: expected {expected}, got {actual}.")


class ClientResponseError(ClientError):
    """A remote backend answered with a non-2xx status.

    Attributes:
        status_code (int): HTTP status returned by the backend.
        url (str): The requested URL.
        body (str): The raw response body, kept for diagnostics.
    """

    def __init__(self, status_code: int, url: str, body: str) -> None:
        self.status_code = status_code
        self.url = url
        self.body = body
        super().__init__(f"Request to {url} failed with status {status_code}: {body[:500]}")

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code >= 500


class RateLimitError(ClientResponseError):
    """The backend rejected the request with HTTP 429."""

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return True


class ClientTransportError(ClientError):
    """Network level failure (connect error, timeout, reset)."""

    retryable = True


class EmbeddingError(ClientError):
    """The embedding backend returned an unusable vector or response body."""


class PollTimeoutError(ClientError):
    """A polled job did not reach a final state within its attempt budget."""

    retryable = True
