"""
Base class for fleetadapter backend clients.

Both backends speak JSON over HTTP to a Kubernetes-style REST surface,
so connection handling, authentication headers and error mapping live
here once.

Error mapping:
    401/403        -> AuthenticationError
    404            -> NotFoundError
    409            -> ConflictError
    400/422        -> RequestValidationError
    429            -> RateLimitError (retryable)
    other non-2xx  -> TransportError (retryable when >= 500)
    timeout/network-> TransportError (retryable)

Retries:
    Disabled by default (max_retries=0). Retry/backoff belongs to the
    caller around the whole discover-decide-apply sequence; operators may
    opt in per client. asyncio.CancelledError always propagates.
"""

from __future__ import annotations

import asyncio
import logging
import random
import ssl
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from fleetadapter.errors import (
    AuthenticationError,
    CancellationError,
    ConflictError,
    NotFoundError,
    RateLimitError,
    RequestValidationError,
    TransportError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Connection settings shared by every backend client."""

    # Connection
    base_url: str = ""
    timeout: float = 30.0

    # TLS
    ca_file: str | None = None
    insecure: bool = False

    # Retries (off unless an operator opts in)
    max_retries: int = 0
    retry_delay: float = 1.0

    # Recreate: how long to wait for a deleted object to disappear
    deletion_timeout: float = 60.0
    deletion_poll_interval: float = 1.0

    # Observability
    log_requests: bool = False
    log_responses: bool = False


# =============================================================================
# Base Client
# =============================================================================


class APIClient(ABC):
    """
    Abstract base class for backend clients.

    Provides:
    - Lazy httpx.AsyncClient management
    - Authentication header injection
    - Error mapping to TransportError subtypes
    - Optional retry with exponential backoff
    - Polling until a deleted object is gone

    Subclasses must implement:
    - name: Backend identifier used in logs and errors
    - _get_auth_headers(): Return authentication headers
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            config: Client configuration
            transport: Custom httpx transport (tests pass httpx.MockTransport)
        """
        self.config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for this backend."""
        ...

    @abstractmethod
    def _get_auth_headers(self) -> dict[str, str]:
        """Return authentication headers for requests."""
        ...

    def _get_verify(self) -> ssl.SSLContext | bool:
        if self.config.insecure:
            return False
        if self.config.ca_file:
            return ssl.create_default_context(cafile=self.config.ca_file)
        return True

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                verify=self._get_verify(),
                transport=self._transport,
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                    **self._get_auth_headers(),
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # Requests
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        Make an HTTP request, retrying retryable failures if configured.

        Raises:
            NotFoundError: On 404
            TransportError: On any other failure
        """
        for attempt in range(self.config.max_retries + 1):
            try:
                return await self._do_request(
                    method, path, params=params, json=json, headers=headers
                )
            except TransportError as e:
                if not e.retryable or attempt >= self.config.max_retries:
                    raise

                backoff = self._calculate_backoff(attempt, e)
                logger.info(
                    f"[{self.name}] Retry {attempt + 1}/{self.config.max_retries} "
                    f"for {method} {path} after {backoff:.2f}s"
                )
                await asyncio.sleep(backoff)

        raise TransportError("Unknown error", self.name)

    def _calculate_backoff(self, attempt: int, error: TransportError) -> float:
        """Exponential backoff with +/-25% jitter, capped at 60s."""
        if isinstance(error, RateLimitError) and error.retry_after:
            return error.retry_after

        base_delay = self.config.retry_delay * (2 ** attempt)
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return min(base_delay + jitter, 60.0)

    async def _do_request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute a single HTTP request."""
        client = await self._get_client()

        if self.config.log_requests:
            logger.debug(f"[{self.name}] {method} {path} params={params} body={json}")

        try:
            response = await client.request(
                method=method,
                url=path,
                params=params,
                json=json,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timeout: {e}", self.name, retryable=True) from e
        except httpx.NetworkError as e:
            raise TransportError(f"Network error: {e}", self.name, retryable=True) from e

        if self.config.log_responses:
            logger.debug(
                f"[{self.name}] Response: status={response.status_code} "
                f"body={response.text[:500] if response.text else 'empty'}"
            )

        self._check_response(response)
        return response

    def _check_response(self, response: httpx.Response) -> None:
        """Raise the mapped exception for a non-2xx response."""
        if response.is_success:
            return

        status = response.status_code
        body = response.text

        if status == 401 or status == 403:
            raise AuthenticationError(
                f"Authentication failed: {body}",
                self.name,
                status_code=status,
                response_body=body,
            )

        if status == 404:
            raise NotFoundError(f"Resource not found: {body}", backend=self.name)

        if status == 409:
            raise ConflictError(
                f"Conflict: {body}",
                self.name,
                status_code=status,
                response_body=body,
            )

        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                "Rate limit exceeded",
                self.name,
                status_code=status,
                response_body=body,
                retry_after=float(retry_after) if retry_after else None,
            )

        if status == 400 or status == 422:
            raise RequestValidationError(
                f"Validation error: {body}",
                self.name,
                status_code=status,
                response_body=body,
            )

        raise TransportError(
            f"Request failed: {body}",
            self.name,
            status_code=status,
            response_body=body,
            retryable=status >= 500,
        )

    # =========================================================================
    # Deletion wait
    # =========================================================================

    async def _wait_for_deletion(
        self,
        fetch: Callable[[], Awaitable[Any]],
        what: str,
    ) -> None:
        """
        Poll `fetch` until it raises NotFoundError.

        Objects with finalizers linger after DELETE returns; creating the
        replacement before they are gone would conflict.

        Raises:
            CancellationError: If the object is still present after
                config.deletion_timeout seconds
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.deletion_timeout

        while True:
            try:
                await fetch()
            except NotFoundError:
                logger.debug(f"[{self.name}] {what} deleted")
                return

            if loop.time() >= deadline:
                raise CancellationError(
                    f"[{self.name}] timed out after {self.config.deletion_timeout}s "
                    f"waiting for {what} to be deleted"
                )
            await asyncio.sleep(self.config.deletion_poll_interval)

    async def __aenter__(self) -> "APIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
