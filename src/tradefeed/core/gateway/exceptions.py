"""
Error taxonomy for the feed synchronization engine.

Every failure a remote data gateway can report maps onto one of three
classes, and the engine decides retry and rollback behavior purely from
the class.

Exception Hierarchy:
    FeedError (base)
    ├── GatewayError (anything reported by a RemoteDataGateway)
    │   ├── NetworkError (transient: transport failures, 5xx, timeouts)
    │   ├── AuthenticationError (session invalid or forbidden)
    │   └── ValidationError (input rejected by the client or the server)
    └── ReconciliationMiss (profile absent for an author id, non-fatal)

Example:
    >>> from tradefeed.core.gateway.exceptions import NetworkError
    >>> try:
    ...     raise NetworkError("connection reset", operation="list_entries")
    ... except NetworkError as e:
    ...     print(f"{e.context['operation']} failed: {e}")
    list_entries failed: connection reset
"""


class FeedError(Exception):
    """
    Base exception for all feed engine errors.

    Attributes:
        message: Human-readable error message
        context: Optional dictionary of additional context
    """

    def __init__(self, message: str, **context: object) -> None:
        """
        Initialize a feed error with message and context.

        Args:
            message: Human-readable error message
            **context: Additional context as keyword arguments
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Return string representation of the error."""
        return self.message


class GatewayError(FeedError):
    """
    Base class for errors reported by a remote data gateway.

    Subclasses declare whether they are worth retrying via ``retryable``.
    """

    retryable: bool = False


class NetworkError(GatewayError):
    """
    Transient failure talking to the remote store.

    Covers connection errors, 5xx responses and per-call timeouts.
    Mutations retry these with bounded backoff; reads surface them.

    Attributes:
        timed_out: True when the call exceeded its timeout budget
        status_code: HTTP status code when one was received
    """

    retryable = True

    def __init__(
        self,
        message: str,
        *,
        timed_out: bool = False,
        status_code: int | None = None,
        **context: object,
    ) -> None:
        super().__init__(message, timed_out=timed_out, status_code=status_code, **context)
        self.timed_out = timed_out
        self.status_code = status_code


class AuthenticationError(GatewayError):
    """
    The session is missing, expired or not allowed to perform the call.

    Fatal for the operation that hit it. Propagated so an external
    re-authentication flow can take over; never retried.
    """


class ValidationError(GatewayError):
    """
    The input was rejected, either locally before any state change or by
    the remote store.

    Attributes:
        field: Name of the offending field, when known
    """

    def __init__(self, message: str, *, field: str | None = None, **context: object) -> None:
        super().__init__(message, field=field, **context)
        self.field = field

    def __str__(self) -> str:
        """Return string representation including the field name."""
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


class ReconciliationMiss(FeedError):
    """
    No profile was found for an author id during reconciliation.

    Recorded and logged, never raised out of the reconciler. The
    placeholder name stays and the entry is retried on the next refresh.
    """

    def __init__(self, author_id: str, space_key: str, entry_id: str) -> None:
        super().__init__(
            f"No profile for author '{author_id}'",
            author_id=author_id,
            space_key=space_key,
            entry_id=entry_id,
        )
        self.author_id = author_id
        self.space_key = space_key
        self.entry_id = entry_id


__all__ = [
    "AuthenticationError",
    "FeedError",
    "GatewayError",
    "NetworkError",
    "ReconciliationMiss",
    "ValidationError",
]
