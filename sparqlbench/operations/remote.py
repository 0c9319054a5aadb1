"""
Remote SPARQL operations.

Minimal SPARQL protocol operations over httpx. They exist so that mixes
can target a real endpoint; HTTP failures are reported as OperationError
with a category derived from the response status.
"""

import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from sparqlbench.core.errors import ErrorCategory, categorize_http_status
from sparqlbench.core.exceptions import OperationError
from sparqlbench.core.timing import now_nanos
from sparqlbench.operations.base import Operation, OperationResult

if TYPE_CHECKING:
    from sparqlbench.config.options import Options

logger = structlog.get_logger(__name__)

RESULTS_ACCEPT = "application/sparql-results+json, application/json;q=0.9, */*;q=0.1"


class Authenticator(ABC):
    """Supplies credentials for remote operations."""

    @abstractmethod
    def auth(self) -> httpx.Auth | None:
        """Credentials for the next request."""

    @abstractmethod
    def invalidate(self) -> None:
        """
        Discard cached credentials so the next request re-authenticates.

        Must be idempotent and safe to call from concurrent workers.
        """


class BasicAuthenticator(Authenticator):
    """HTTP basic authentication."""

    def __init__(self, username: str, password: str):
        self.username = username
        self._password = password
        self._lock = threading.Lock()
        self._auth: httpx.BasicAuth | None = None
        self.invalidations = 0

    def auth(self) -> httpx.Auth:
        with self._lock:
            if self._auth is None:
                self._auth = httpx.BasicAuth(self.username, self._password)
            return self._auth

    def invalidate(self) -> None:
        with self._lock:
            if self._auth is not None:
                self._auth = None
                self.invalidations += 1
                logger.info("Credentials invalidated", username=self.username)


class RemoteOperation(Operation):
    """Base for operations that POST a SPARQL request to an endpoint."""

    parameter: str = "query"
    accept: str = RESULTS_ACCEPT

    def __init__(
        self,
        name: str,
        text: str,
        endpoint: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(name)
        self.text = text
        self.endpoint = endpoint
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @abstractmethod
    def _default_endpoint(self, options: "Options") -> str | None:
        """Endpoint to use when none was given explicitly."""

    def _resolve_endpoint(self, options: "Options") -> str | None:
        return self.endpoint or self._default_endpoint(options)

    def can_run(self, options: "Options") -> bool:
        return self._resolve_endpoint(options) is not None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(transport=self._transport, timeout=None)
        return self._client

    async def close(self) -> None:
        """Close the client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def execute(self, options: "Options") -> OperationResult:
        endpoint = self._resolve_endpoint(options)
        if endpoint is None:
            raise OperationError(f"No endpoint configured for {self.name}")

        auth = options.authenticator.auth() if options.authenticator else None
        client = await self._get_client()
        started = now_nanos()
        try:
            async with client.stream(
                "POST",
                endpoint,
                data={self.parameter: self.text},
                headers={"Accept": self.accept},
                auth=auth or httpx.USE_CLIENT_DEFAULT,
            ) as response:
                response_time = now_nanos() - started
                await response.aread()
        except httpx.TimeoutException as e:
            raise OperationError(f"Request timed out: {e}", ErrorCategory.TIMEOUT) from e
        except httpx.HTTPError as e:
            raise OperationError(f"Request failed: {e}", ErrorCategory.EXECUTION) from e

        if response.is_error:
            raise OperationError(
                f"HTTP {response.status_code} {response.reason_phrase}",
                categorize_http_status(response.status_code),
                status_code=response.status_code,
            )

        return OperationResult(
            result_count=self._count_results(response),
            response_time=response_time,
        )

    def _count_results(self, response: httpx.Response) -> int:
        return 0

    def content_string(self) -> str:
        return self.text


class RemoteQueryOperation(RemoteOperation):
    """Runs a SPARQL query and counts the results."""

    type = "SPARQL Query"
    parameter = "query"

    def _default_endpoint(self, options: "Options") -> str | None:
        return options.query_endpoint

    def _count_results(self, response: httpx.Response) -> int:
        try:
            data: Any = response.json()
        except ValueError:
            # Non JSON results (e.g. RDF for CONSTRUCT) count one result per line
            return sum(1 for line in response.text.splitlines() if line.strip())
        if "boolean" in data:
            return 1
        return len(data.get("results", {}).get("bindings", []))


class RemoteUpdateOperation(RemoteOperation):
    """Runs a SPARQL update."""

    type = "SPARQL Update"
    parameter = "update"
    accept = "*/*"

    def _default_endpoint(self, options: "Options") -> str | None:
        return options.update_endpoint
