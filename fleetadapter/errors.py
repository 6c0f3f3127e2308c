"""
Exceptions for fleetadapter.

Every failure raised by the reconciliation core derives from AdapterError so
callers can catch the whole family, while the subclasses let them pick a
backoff policy per kind:

- InvalidGenerationError: a managed resource carries a bad version marker
- StructuralParseError: a payload (or an entry inside one) is not object-shaped
- NotFoundError: nothing exists at the requested location
- TransportError: the backend call itself failed
- CancellationError: a deadline expired mid-operation

asyncio.CancelledError is never wrapped; it propagates untouched.
"""

from __future__ import annotations


class AdapterError(Exception):
    """Base exception for fleetadapter errors."""


class ConfigurationError(AdapterError, ValueError):
    """Raised when a client or resource configuration is unusable."""


class InvalidGenerationError(AdapterError):
    """
    Raised when the generation annotation is missing, empty, non-numeric,
    or not positive.

    Always fatal to the resource being reconciled; never repaired.
    """


class StructuralParseError(AdapterError):
    """
    Raised when a rendered payload cannot be parsed into an object.

    Attributes:
        index: Position of the offending entry inside an embedded list,
            or None when the whole payload is malformed.
    """

    def __init__(self, message: str, *, index: int | None = None):
        super().__init__(message)
        self.index = index


class NotFoundError(AdapterError):
    """
    Raised when a resource does not exist on the backend.

    Adapters absorb this during discovery and treat it as "exists=False".
    """

    def __init__(
        self,
        message: str,
        *,
        backend: str = "",
        kind: str = "",
        name: str = "",
    ):
        super().__init__(message)
        self.backend = backend
        self.kind = kind
        self.name = name

    def __str__(self) -> str:
        if self.backend:
            return f"[{self.backend}] {self.args[0]}"
        return str(self.args[0])


class TransportError(AdapterError):
    """
    Raised when a backend call fails (connectivity, authorization, rejection).

    Propagated to the caller unmodified; the core never interprets it.
    """

    def __init__(
        self,
        message: str,
        backend: str,
        *,
        status_code: int | None = None,
        response_body: str | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.backend = backend
        self.status_code = status_code
        self.response_body = response_body
        self.retryable = retryable

    def __str__(self) -> str:
        parts = [f"[{self.backend}] {self.args[0]}"]
        if self.status_code:
            parts.append(f"(status={self.status_code})")
        return " ".join(parts)


class AuthenticationError(TransportError):
    """Raised when authentication or authorization fails (401/403)."""

    def __init__(self, message: str, backend: str, **kwargs):
        super().__init__(message, backend, retryable=False, **kwargs)


class ConflictError(TransportError):
    """Raised on 409: already exists, or a stale resourceVersion."""

    def __init__(self, message: str, backend: str, **kwargs):
        super().__init__(message, backend, retryable=False, **kwargs)


class RequestValidationError(TransportError):
    """Raised when the backend rejects the request body (400/422)."""

    def __init__(self, message: str, backend: str, **kwargs):
        super().__init__(message, backend, retryable=False, **kwargs)


class RateLimitError(TransportError):
    """Raised when the backend throttles the client (429)."""

    def __init__(
        self,
        message: str,
        backend: str,
        *,
        retry_after: float | None = None,
        **kwargs,
    ):
        super().__init__(message, backend, retryable=True, **kwargs)
        self.retry_after = retry_after


class CancellationError(AdapterError):
    """
    Raised when an operation deadline expires before the backend finished.

    Kept apart from TransportError so callers can apply a different backoff.
    """


class ExecutorError(AdapterError):
    """
    Raised by the resource executor when a managed resource fails to apply.

    The underlying failure is available as __cause__.
    """

    def __init__(self, resource_name: str, message: str, *, results: list | None = None):
        super().__init__(f"resource {resource_name!r}: {message}")
        self.resource_name = resource_name
        self.results = results or []
