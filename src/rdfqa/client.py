"""Cache-aware, deadline-aware query submission over both transports.

Usage:
    from rdfqa import GraphConnection, GraphStoreClient

    client = GraphStoreClient(
        connection=GraphConnection.from_endpoint("http://localhost:8890/sparql"),
        http_url="http://localhost:8890/sparql",
        timeout_ms=10_000,
    )
    rows = client.run_solutions("SELECT ?s WHERE { ?s ?p ?o } LIMIT 5")
    answers = client.run("SELECT ?x WHERE { ... }", transport=Transport.HTTP)
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from rdfqa.cache import DEFAULT_CACHE_SIZE, ResultCache
from rdfqa.connection import GraphConnection
from rdfqa.dispatcher import DEFAULT_MAX_WORKERS, BoundedDispatcher, TimedExecution
from rdfqa.errors import ConfigurationError
from rdfqa.models import AggregatedResult, ExecutionOutcome, ExecutionResult, Row
from rdfqa.results import aggregate_rows
from rdfqa.runners import DirectQueryRunner, HttpQueryRunner, QueryRunner

logger = logging.getLogger(__name__)

__all__ = [
    "GraphStoreClient",
    "Transport",
]


class Transport(str, Enum):
    """Backend used to run a query."""

    DIRECT = "direct"
    HTTP = "http"


class GraphStoreClient:
    """Submit queries to a graph store with bounded concurrency and caching.

    Both transports share one cache keyed by the query text, so a query
    answered over HTTP is a cache hit for the direct transport and vice
    versa.  Failed and timed-out queries return no rows; inspect
    :meth:`execute` results to tell them apart from genuine empty answers.
    """

    def __init__(
        self,
        connection: GraphConnection | None = None,
        http_url: str | None = None,
        *,
        timeout_ms: int = 0,
        max_workers: int = DEFAULT_MAX_WORKERS,
        queue_size: int | None = None,
        cache: ResultCache | None = None,
        dispatcher: BoundedDispatcher | None = None,
        cache_incomplete: bool = True,
        connect_timeout: float = 10.0,
    ) -> None:
        if connection is None and not http_url:
            raise ConfigurationError("Need a graph connection, an HTTP endpoint, or both")

        self.connection = connection
        self.http_url = http_url
        self.timeout_ms = timeout_ms
        self.cache_incomplete = cache_incomplete
        self.connect_timeout = connect_timeout
        self.cache = cache if cache is not None else ResultCache(DEFAULT_CACHE_SIZE)
        self._owns_dispatcher = dispatcher is None
        self.dispatcher = (
            dispatcher if dispatcher is not None else BoundedDispatcher(max_workers, queue_size)
        )
        self._timed = TimedExecution(self.dispatcher)

    @classmethod
    def from_config(cls, config: Any) -> GraphStoreClient:
        """Build a client from a :class:`~rdfqa.config.Config` class."""
        connection = None
        if config.QUERY_ENDPOINT:
            auth = (config.USERNAME, config.PASSWORD) if config.USERNAME else None
            connection = GraphConnection.from_endpoint(
                config.QUERY_ENDPOINT, config.UPDATE_ENDPOINT or None, auth=auth
            )
        return cls(
            connection=connection,
            http_url=config.HTTP_URL or None,
            timeout_ms=config.TIMEOUT_MS,
            max_workers=config.MAX_WORKERS,
            queue_size=config.QUEUE_SIZE,
            cache=ResultCache(config.CACHE_SIZE),
            cache_incomplete=config.CACHE_INCOMPLETE,
            connect_timeout=config.CONNECT_TIMEOUT,
        )

    @property
    def transports(self) -> list[Transport]:
        available = []
        if self.connection is not None:
            available.append(Transport.DIRECT)
        if self.http_url:
            available.append(Transport.HTTP)
        return available

    def _resolve(self, transport: Transport | str | None) -> Transport:
        if transport is None:
            return self.transports[0]
        transport = Transport(transport)
        if transport not in self.transports:
            raise ConfigurationError(f"Transport {transport.value!r} is not configured")
        return transport

    def _runner(self, query: str, transport: Transport) -> QueryRunner:
        if transport is Transport.DIRECT:
            return DirectQueryRunner(self.connection, query)
        return HttpQueryRunner(self.http_url, query, connect_timeout=self.connect_timeout)

    def execute(
        self, query: str, transport: Transport | str | None = None
    ) -> ExecutionResult:
        """Run *query* (or serve it from the row cache) and report the outcome."""
        resolved = self._resolve(transport)
        cached = self.cache.get_rows(query)
        if cached is not None:
            return ExecutionResult(
                query=query, outcome=ExecutionOutcome.COMPLETED, rows=cached, cached=True
            )

        result = self._timed.run(self._runner(query, resolved), self.timeout_ms)
        if result.ok or self.cache_incomplete:
            self.cache.put_rows(query, result.rows)
        logger.debug(
            f"{resolved.value} query {result.outcome.value} in {result.duration_ms} ms "
            f"with {len(result.rows)} rows"
        )
        return result

    def run_solutions(
        self, query: str, transport: Transport | str | None = None
    ) -> list[Row]:
        """Ordered rows for *query*; empty on failure or timeout."""
        return self.execute(query, transport).rows

    def run(
        self, query: str | None, transport: Transport | str | None = None
    ) -> AggregatedResult | None:
        """Per-variable value sets for *query*; ``None`` for a ``None`` query."""
        if query is None:
            return None

        cached = self.cache.get_aggregated(query)
        if cached is not None:
            return cached

        result = self.execute(query, transport)
        aggregated = aggregate_rows(result.rows)
        if result.ok or self.cache_incomplete:
            self.cache.put_aggregated(query, aggregated)
        return aggregated

    def _require_connection(self) -> GraphConnection:
        if self.connection is None:
            raise ConfigurationError("Mutations need a direct graph connection")
        return self.connection

    def insert_triple(self, graph_uri: str, s: str, p: str, o: str) -> None:
        """Add a triple to *graph_uri* unless it already exists."""
        self._require_connection().insert_triple(graph_uri, s, p, o)

    def delete_triple(self, graph_uri: str, s: str, p: str, o: str) -> None:
        """Remove a triple from *graph_uri* if it exists."""
        self._require_connection().delete_triple(graph_uri, s, p, o)

    def close(self) -> None:
        """Shut down the owned dispatcher and close the connection."""
        if self._owns_dispatcher:
            self.dispatcher.shutdown(wait=False)
        if self.connection is not None:
            self.connection.close()

    def __enter__(self) -> GraphStoreClient:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        transports = ", ".join(t.value for t in self.transports)
        return f"GraphStoreClient(transports=[{transports}], timeout_ms={self.timeout_ms})"
