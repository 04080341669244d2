"""Tests for GraphStoreClient: caching, transports, timeouts and mutations."""

from __future__ import annotations

import json
import threading
from unittest.mock import MagicMock, patch

import pytest
from rdflib import URIRef

from conftest import EX
from rdfqa.cache import ResultCache
from rdfqa.client import GraphStoreClient, Transport
from rdfqa.config import TestConfig
from rdfqa.connection import GraphConnection
from rdfqa.errors import ConfigurationError
from rdfqa.models import ExecutionOutcome

ENDPOINT = "http://example.org/sparql"
GRAPH = "http://example.org/graph"
OBJECTS_QUERY = f"SELECT ?o WHERE {{ <{EX.a}> <{EX.p}> ?o }} ORDER BY ?o"


class CountingConnection(GraphConnection):
    """GraphConnection that counts backend executions."""

    def __init__(self, graph):
        super().__init__(graph)
        self.calls = 0

    def execute(self, query):
        self.calls += 1
        return super().execute(query)


class StalledConnection(GraphConnection):
    """GraphConnection whose backend never answers until released."""

    def __init__(self, graph):
        super().__init__(graph)
        self.release = threading.Event()

    def execute(self, query):
        self.release.wait(5)
        return super().execute(query)


@pytest.fixture
def counting(dataset):
    return CountingConnection(dataset)


@pytest.fixture
def client(counting):
    c = GraphStoreClient(connection=counting, max_workers=2)
    yield c
    c.close()


class TestCaching:
    def test_run_solutions_hits_cache_on_second_call(self, client, counting):
        first = client.run_solutions(OBJECTS_QUERY)
        second = client.run_solutions(OBJECTS_QUERY)

        assert first == [{"o": str(EX.b)}, {"o": str(EX.c)}]
        assert second == first
        assert counting.calls == 1

    def test_execute_reports_cache_hits(self, client):
        assert client.execute(OBJECTS_QUERY).cached is False
        hit = client.execute(OBJECTS_QUERY)
        assert hit.cached is True
        assert hit.outcome is ExecutionOutcome.COMPLETED

    def test_run_aggregates_and_caches(self, client, counting):
        assert client.run(OBJECTS_QUERY) == {"o": [str(EX.b), str(EX.c)]}
        assert client.run(OBJECTS_QUERY) == {"o": [str(EX.b), str(EX.c)]}
        assert counting.calls == 1

    def test_aggregated_miss_uses_cached_rows(self, client, counting):
        client.run_solutions(OBJECTS_QUERY)
        client.run(OBJECTS_QUERY)
        assert counting.calls == 1

    def test_aggregated_hit_skips_rows_path(self, client, counting):
        client.run(OBJECTS_QUERY)
        client.cache.invalidate_rows()
        client.run(OBJECTS_QUERY)
        assert counting.calls == 1

    def test_trailing_whitespace_is_a_separate_query(self, client, counting):
        client.run_solutions(OBJECTS_QUERY)
        client.run_solutions(OBJECTS_QUERY + " ")
        assert counting.calls == 2

    def test_none_query(self, client):
        assert client.run(None) is None

    def test_injected_cache_is_used(self, counting):
        cache = ResultCache(maxsize=10)
        cache.put_rows(OBJECTS_QUERY, [{"o": "from-cache"}])
        with GraphStoreClient(connection=counting, cache=cache) as c:
            assert c.run_solutions(OBJECTS_QUERY) == [{"o": "from-cache"}]
        assert counting.calls == 0


class TestFailures:
    def test_malformed_query_looks_like_no_rows(self, client):
        result = client.execute("SELEC nonsense")
        assert result.outcome is ExecutionOutcome.FAILED
        assert client.run_solutions("SELEC nonsense") == []
        assert client.run("SELEC nonsense") == {}

    def test_failed_results_are_cached_by_default(self, client):
        client.execute("SELEC nonsense")
        assert client.cache.get_rows("SELEC nonsense") == []

    def test_failed_results_not_cached_when_disabled(self, counting):
        with GraphStoreClient(connection=counting, cache_incomplete=False) as c:
            c.execute("SELEC nonsense")
            c.run("SELEC nonsense")
            assert c.cache.get_rows("SELEC nonsense") is None
            assert c.cache.get_aggregated("SELEC nonsense") is None

    def test_timeout_returns_empty_rows(self, dataset):
        stalled = StalledConnection(dataset)
        c = GraphStoreClient(connection=stalled, timeout_ms=100, max_workers=1)
        try:
            result = c.execute(OBJECTS_QUERY)
            assert result.outcome is ExecutionOutcome.TIMED_OUT
            assert result.rows == []
        finally:
            stalled.release.set()
            c.dispatcher.shutdown(wait=True)


class TestTransports:
    def test_requires_a_transport(self):
        with pytest.raises(ConfigurationError):
            GraphStoreClient()

    def test_default_transport_prefers_direct(self, counting):
        with GraphStoreClient(connection=counting, http_url=ENDPOINT) as c:
            assert c.transports == [Transport.DIRECT, Transport.HTTP]

    def test_unconfigured_transport(self, client):
        with pytest.raises(ConfigurationError):
            client.run_solutions(OBJECTS_QUERY, transport=Transport.HTTP)

    def test_unknown_transport_name(self, client):
        with pytest.raises(ValueError):
            client.run_solutions(OBJECTS_QUERY, transport="carrier-pigeon")

    @patch("rdfqa.runners.requests.Session")
    def test_http_transport_shares_cache(self, mock_session_cls, counting):
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        mock_resp = MagicMock()
        mock_resp.status_code = 200
        mock_resp.text = json.dumps({
            "head": {"vars": ["o"]},
            "results": {"bindings": [{"o": {"type": "uri", "value": "http://example.org/b"}}]},
        })
        mock_resp.raise_for_status = MagicMock()
        mock_session.get.return_value = mock_resp

        with GraphStoreClient(connection=counting, http_url=ENDPOINT) as c:
            rows = c.run_solutions("SELECT ?o WHERE { ?s ?p ?o }", transport="http")
            again = c.run_solutions("SELECT ?o WHERE { ?s ?p ?o }", transport=Transport.DIRECT)

        assert rows == [{"o": "http://example.org/b"}]
        assert again == rows
        assert mock_session.get.call_count == 1
        assert counting.calls == 0

    @patch("rdflib.plugins.stores.sparqlconnector.urlopen")
    def test_direct_transport_against_remote_store(self, mock_urlopen):
        mock_resp = MagicMock()
        mock_resp.read.return_value = json.dumps({
            "head": {"vars": ["o"]},
            "results": {"bindings": [{"o": {"type": "uri", "value": "http://example.org/b"}}]},
        }).encode("utf-8")
        mock_resp.headers = {"Content-Type": "application/sparql-results+json"}
        mock_urlopen.return_value = mock_resp

        connection = GraphConnection.from_endpoint(ENDPOINT)
        with GraphStoreClient(connection=connection, timeout_ms=5000) as c:
            result = c.execute("SELECT ?o WHERE { ?s ?p ?o }")

        assert result.outcome is ExecutionOutcome.COMPLETED
        assert result.rows == [{"o": "http://example.org/b"}]
        assert "default-graph-uri" not in mock_urlopen.call_args[0][0].full_url

    def test_from_config(self):
        c = GraphStoreClient.from_config(TestConfig)
        try:
            assert c.transports == [Transport.HTTP]
            assert c.http_url == TestConfig.HTTP_URL
            assert c.timeout_ms == 2000
            assert c.dispatcher.max_workers == 4
            assert c.cache.rows.maxsize == 100
        finally:
            c.close()


class TestMutations:
    def test_insert_then_query(self, client):
        client.insert_triple(GRAPH, f"<{EX.x}>", f"<{EX.y}>", f"<{EX.z}>")
        query = f"SELECT ?o WHERE {{ GRAPH <{GRAPH}> {{ <{EX.x}> <{EX.y}> ?o }} }}"
        assert client.run_solutions(query) == [{"o": str(EX.z)}]

    def test_delete(self, client, dataset):
        client.insert_triple(GRAPH, f"<{EX.x}>", f"<{EX.y}>", f"<{EX.z}>")
        client.delete_triple(GRAPH, f"<{EX.x}>", f"<{EX.y}>", f"<{EX.z}>")
        assert len(dataset.graph(URIRef(GRAPH))) == 0

    def test_mutations_need_direct_connection(self):
        with GraphStoreClient(http_url=ENDPOINT) as c:
            with pytest.raises(ConfigurationError):
                c.insert_triple(GRAPH, "<a>", "<b>", "<c>")
