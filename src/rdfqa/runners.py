"""
Query runners: one unit of work per query.

A runner owns exactly one execution resource for its lifetime (a
:class:`~rdfqa.connection.ResultCursor` or an HTTP response stream),
converts backend rows into plain :data:`~rdfqa.models.Row` dicts and
releases the resource on every exit path.  :meth:`QueryRunner.close` is
idempotent and thread-safe so :class:`~rdfqa.dispatcher.TimedExecution` can
call it from the waiting thread while the worker is still reading.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterator

import requests
from rdflib.plugins.sparql import prepareQuery

from rdfqa.connection import GraphConnection
from rdfqa.errors import MalformedQueryError, TransportError
from rdfqa.models import Row
from rdfqa.results import encode_term, rows_from_json

logger = logging.getLogger(__name__)

__all__ = [
    "DirectQueryRunner",
    "HttpQueryRunner",
    "QueryRunner",
]

XSD_PREFIX = "PREFIX xsd: <http://www.w3.org/2001/XMLSchema#>"
SPARQL_JSON = "application/sparql-results+json"


class QueryRunner:
    """Base class for runners; subclasses implement :meth:`_iter_rows`."""

    # Prepended to every query before it is sent.
    preamble = ""

    def __init__(self, query: str) -> None:
        self.query = query
        self._lock = threading.Lock()
        self._resource: Any = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def supports_cancellation(self) -> bool:
        return True

    def decorate(self, query: str) -> str:
        """Return the text actually sent to the backend."""
        if not self.preamble:
            return query
        return f"{self.preamble} {query}"

    def execute(self) -> list[Row]:
        """Run the query and return its rows in backend order."""
        rows: list[Row] = []
        try:
            for row in self._iter_rows(self.decorate(self.query)):
                if self._closed:
                    break
                if row:
                    rows.append(row)
        finally:
            self._release()
        return rows

    def close(self) -> None:
        """Release the execution resource; safe to call repeatedly, from any thread."""
        with self._lock:
            self._closed = True
        self._release()

    def _iter_rows(self, text: str) -> Iterator[Row]:
        raise NotImplementedError

    def _acquire(self, resource: Any) -> bool:
        """Take ownership of *resource*; False if the runner was already closed."""
        with self._lock:
            if not self._closed:
                self._resource = resource
                return True
        _close_quietly(resource)
        return False

    def _release(self) -> None:
        with self._lock:
            resource, self._resource = self._resource, None
        if resource is not None:
            _close_quietly(resource)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.query!r})"


class DirectQueryRunner(QueryRunner):
    """Runs a query through a :class:`~rdfqa.connection.GraphConnection`."""

    preamble = XSD_PREFIX

    def __init__(self, connection: GraphConnection, query: str) -> None:
        super().__init__(query)
        self.connection = connection

    @property
    def supports_cancellation(self) -> bool:
        return self.connection.supports_cancellation

    def _iter_rows(self, text: str) -> Iterator[Row]:
        try:
            prepareQuery(text, initNs=self.connection.namespaces())
        except Exception as e:
            raise MalformedQueryError(f"Bad query: {e}") from e

        try:
            cursor = self.connection.execute(text)
        except Exception as e:
            raise TransportError(f"Query execution failed: {e}") from e
        if not self._acquire(cursor):
            return

        for bindings in cursor:
            yield {var: encode_term(term) for var, term in bindings.items()}


class _HttpStream:
    """Session plus (once headers arrive) the streamed response."""

    def __init__(self, session: requests.Session) -> None:
        self.session = session
        self.response: requests.Response | None = None

    def close(self) -> None:
        try:
            if self.response is not None:
                self.response.close()
        finally:
            self.session.close()


class HttpQueryRunner(QueryRunner):
    """Runs a query with one GET request against a SPARQL HTTP endpoint.

    The endpoint is asked for SPARQL JSON with no server-side timeout; the
    client-side deadline is enforced by the dispatcher.
    """

    def __init__(
        self,
        endpoint_url: str,
        query: str,
        *,
        connect_timeout: float = 10.0,
    ) -> None:
        super().__init__(query)
        self.endpoint_url = endpoint_url
        self.connect_timeout = connect_timeout

    def _iter_rows(self, text: str) -> Iterator[Row]:
        stream = _HttpStream(requests.Session())
        if not self._acquire(stream):
            return

        params = {"query": text, "format": SPARQL_JSON, "timeout": "0"}
        headers = {"Accept": SPARQL_JSON, "User-Agent": "rdfqa/1.0 (SPARQL client)"}
        try:
            response = stream.session.get(
                self.endpoint_url,
                params=params,
                headers=headers,
                stream=True,
                timeout=(self.connect_timeout, None),
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Request to {self.endpoint_url} failed: {e}") from e

        stream.response = response
        if self._closed:
            response.close()
            return

        if response.status_code == 400:
            raise MalformedQueryError(f"Endpoint rejected query: {response.reason}")
        try:
            response.raise_for_status()
            content = response.text
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Reading response from {self.endpoint_url} failed: {e}") from e

        yield from rows_from_json(content)


def _close_quietly(resource: Any) -> None:
    try:
        resource.close()
    except Exception as e:
        # Already closed, or closed mid-read by another thread.
        logger.debug(f"Ignoring error on close: {e}")
