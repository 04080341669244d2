"""Shared fixtures for rdfqa tests."""

from __future__ import annotations

import threading
import time

import pytest
from rdflib import XSD, Dataset, Literal, Namespace

from rdfqa.connection import GraphConnection
from rdfqa.dispatcher import BoundedDispatcher

EX = Namespace("http://example.org/")


class StubUnit:
    """Unit of work that records how it was driven.

    ``execute`` returns *rows* once *gate* is set (immediately if no gate is
    given); ``close`` opens the gate so abandoned units finish promptly.
    """

    def __init__(self, rows=None, *, gate=None, error=None, query="SELECT ?x WHERE { ?x ?p ?o }"):
        self.query = query
        self.rows = rows if rows is not None else []
        self.gate = gate
        self.error = error
        self.started = threading.Event()
        self.finished = threading.Event()
        self.execute_calls = 0
        self.close_calls = 0

    def execute(self):
        self.execute_calls += 1
        self.started.set()
        try:
            if self.gate is not None:
                self.gate.wait(5)
            if self.error is not None:
                raise self.error
            return list(self.rows)
        finally:
            self.finished.set()

    def close(self):
        self.close_calls += 1
        if self.gate is not None:
            self.gate.set()


def wait_for(predicate, timeout=5.0):
    """Poll *predicate* until it is true or *timeout* seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def dataset():
    """Small in-memory dataset with URIs, tagged and typed literals."""
    ds = Dataset()
    ds.add((EX.a, EX.p, EX.b))
    ds.add((EX.a, EX.p, EX.c))
    ds.add((EX.b, EX.label, Literal("B", lang="en")))
    ds.add((EX.a, EX.born, Literal("2008-12-31", datatype=XSD.date)))
    return ds


@pytest.fixture
def connection(dataset):
    return GraphConnection(dataset)


@pytest.fixture
def dispatcher():
    d = BoundedDispatcher(max_workers=4)
    yield d
    d.shutdown(wait=False)
