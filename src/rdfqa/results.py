"""
Result shaping: value encoding and per-variable aggregation.

Every backend value is flattened to a string.  Typed literals keep their
datatype as a ``lexical^^datatypeIRI`` suffix and language-tagged literals
keep their tag as ``lexical@lang``, so answer normalization can later
strip or inspect them without knowing which transport produced the row.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from pydantic import ValidationError
from rdflib import BNode, Literal
from rdflib.term import Node

from rdfqa.models import AggregatedResult, BindingValue, Row, SparqlResultsDocument

logger = logging.getLogger(__name__)

__all__ = [
    "aggregate_rows",
    "encode_binding",
    "encode_term",
    "encode_value",
    "rows_from_json",
]


def encode_value(
    value: str,
    datatype: str | None = None,
    lang: str | None = None,
) -> str:
    """Render a value with its datatype or language suffix."""
    if datatype:
        return f"{value}^^{datatype}"
    if lang:
        return f"{value}@{lang}"
    return value


def encode_term(term: Node) -> str:
    """Encode an rdflib term (URIRef, BNode or Literal) as a string."""
    if isinstance(term, Literal):
        datatype = str(term.datatype) if term.datatype is not None else None
        return encode_value(str(term), datatype, term.language)
    if isinstance(term, BNode):
        return f"_:{term}"
    return str(term)


def encode_binding(cell: BindingValue) -> str:
    """Encode one SPARQL JSON binding object as a string."""
    if cell.type == "bnode":
        return f"_:{cell.value}"
    return encode_value(cell.value, cell.datatype, cell.lang)


def rows_from_json(content: str) -> list[Row]:
    """Extract rows from a SPARQL JSON results document.

    A body that is not JSON, or lacks the ``results.bindings`` array, yields
    no rows.  Binding objects with no variables are skipped.
    """
    try:
        document = SparqlResultsDocument.model_validate_json(content)
    except ValidationError as e:
        logger.debug(f"Response is not a SPARQL JSON results document: {e}")
        return []

    rows: list[Row] = []
    for binding in document.results.bindings:
        row = {var: encode_binding(cell) for var, cell in binding.items()}
        if row:
            rows.append(row)
    return rows


def aggregate_rows(rows: Iterable[Mapping[str, str]]) -> AggregatedResult:
    """Fold rows into per-variable value sets.

    Variables and values keep first-seen order; duplicate values collapse.

    Example:
        >>> aggregate_rows([{"x": "a"}, {"x": "b"}, {"x": "a"}])
        {'x': ['a', 'b']}
    """
    seen: dict[str, dict[str, None]] = {}
    for row in rows:
        for var, value in row.items():
            seen.setdefault(var, {})[value] = None
    return {var: list(values) for var, values in seen.items()}
