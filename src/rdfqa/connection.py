"""
Direct graph connection built on rdflib.

:class:`GraphConnection` wraps an rdflib graph or dataset, either in memory
(loaded from a file or built by hand) or backed by a remote SPARQL store.
Each :meth:`GraphConnection.execute` call opens one :class:`ResultCursor`,
a forward-only row stream that can be closed from another thread.

The connection also carries the mutation interface used to add or remove
single triples in a named graph.  Mutations run synchronously and never go
through the result cache.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Iterator

from rdflib import Dataset, Graph
from rdflib.plugins.stores.sparqlstore import SPARQLStore, SPARQLUpdateStore
from rdflib.query import Result
from rdflib.term import Node

logger = logging.getLogger(__name__)

__all__ = [
    "GraphConnection",
    "ResultCursor",
]

INSERT_TEMPLATE = (
    "INSERT {{ GRAPH <{graph}> {{ {s} {p} {o} . }} }} "
    "WHERE {{ FILTER NOT EXISTS {{ GRAPH <{graph}> {{ {s} {p} {o} . }} }} }}"
)
DELETE_TEMPLATE = (
    "DELETE {{ GRAPH <{graph}> {{ {s} {p} {o} . }} }} "
    "WHERE {{ FILTER EXISTS {{ GRAPH <{graph}> {{ {s} {p} {o} . }} }} }}"
)


class ResultCursor:
    """Forward-only stream over the rows of one SELECT result.

    Iteration yields ``{variable: term}`` for the bound variables of each
    row.  :meth:`close` may be called from any thread; iteration stops at
    the next row boundary.
    """

    def __init__(self, result: Result) -> None:
        self.vars = [str(v) for v in (result.vars or [])]
        if result.type == "SELECT":
            self._rows: Iterator[Any] = iter(result)
        else:
            logger.debug(f"Ignoring non-SELECT result of type {result.type}")
            self._rows = iter(())
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def __iter__(self) -> ResultCursor:
        return self

    def __next__(self) -> dict[str, Node]:
        if self._closed.is_set():
            raise StopIteration
        return next(self._rows).asdict()

    def close(self) -> None:
        self._closed.set()


class GraphConnection:
    """Connection to a graph store through an rdflib graph.

    Attributes:
        graph: The rdflib graph or dataset queried and updated
    """

    def __init__(self, graph: Graph) -> None:
        self.graph = graph

    @classmethod
    def from_endpoint(
        cls,
        query_endpoint: str,
        update_endpoint: str | None = None,
        auth: tuple[str, str] | None = None,
    ) -> GraphConnection:
        """Connect to a remote store over the SPARQL protocol."""
        if update_endpoint:
            store: SPARQLStore = SPARQLUpdateStore(
                query_endpoint=query_endpoint,
                update_endpoint=update_endpoint,
                auth=auth,
            )
        else:
            store = SPARQLStore(query_endpoint=query_endpoint, auth=auth)
        logger.debug(f"GraphConnection opened for {query_endpoint}")
        # Union default graph: no default-graph-uri is sent and updates are not rewritten.
        return cls(Dataset(store=store, default_union=True))

    @classmethod
    def from_file(cls, path: str | Path, format: str | None = None) -> GraphConnection:
        """Load an RDF file into an in-memory dataset."""
        dataset = Dataset()
        dataset.parse(str(path), format=format)
        logger.debug(f"Loaded {len(dataset)} triples from {path}")
        return cls(dataset)

    @property
    def supports_cancellation(self) -> bool:
        """Whether closing a cursor stops backend-side work.

        Remote stores evaluate the whole query in one request that cannot be
        interrupted once sent.
        """
        return not isinstance(self.graph.store, SPARQLStore)

    def namespaces(self) -> dict[str, str]:
        """Prefix bindings known to the graph."""
        return {prefix: str(ns) for prefix, ns in self.graph.namespaces()}

    def execute(self, query: str) -> ResultCursor:
        """Run *query* and return a cursor over its rows."""
        return ResultCursor(self.graph.query(query))

    def update(self, statement: str) -> None:
        """Run a SPARQL Update statement."""
        logger.debug(f"Executing update: {statement}")
        self.graph.update(statement)

    def insert_triple(self, graph_uri: str, s: str, p: str, o: str) -> None:
        """Add ``s p o`` to *graph_uri* unless it is already there.

        Terms are given in SPARQL syntax (``<iri>``, ``"literal"``, ...).
        """
        self.update(_render(INSERT_TEMPLATE, graph_uri, s, p, o))

    def delete_triple(self, graph_uri: str, s: str, p: str, o: str) -> None:
        """Remove ``s p o`` from *graph_uri* if present."""
        self.update(_render(DELETE_TEMPLATE, graph_uri, s, p, o))

    def close(self) -> None:
        self.graph.close()

    def __repr__(self) -> str:
        return f"GraphConnection({type(self.graph.store).__name__})"


def _render(template: str, graph_uri: str, s: str, p: str, o: str) -> str:
    return template.format(graph=graph_uri.strip(), s=s.strip(), p=p.strip(), o=o.strip())
