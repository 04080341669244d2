"""
Data models shared across rdfqa.

Rows and aggregated results are plain dicts so callers can build them by
hand (gold answers are usually loaded from JSON).  SPARQL JSON documents
returned by HTTP endpoints are validated with pydantic models, and every
query execution is reported as an :class:`ExecutionResult` carrying an
explicit :class:`ExecutionOutcome`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# One result tuple: variable name -> encoded value, unbound variables omitted.
Row = Dict[str, str]

# Variable name -> ordered, duplicate-free list of encoded values.
AggregatedResult = Dict[str, List[str]]


# ── Execution results ─────────────────────────────────────────────


class ExecutionOutcome(str, Enum):
    """How a single query execution ended."""

    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass(frozen=True)
class ExecutionResult:
    """Result of running one query through the dispatcher."""

    query: str
    outcome: ExecutionOutcome
    rows: List[Row] = field(default_factory=list)
    duration_ms: int = 0
    error: Optional[BaseException] = None
    cached: bool = False

    @property
    def ok(self) -> bool:
        """True when the backend answered (possibly with zero rows)."""
        return self.outcome is ExecutionOutcome.COMPLETED


# ── SPARQL JSON results (application/sparql-results+json) ────────


class BindingValue(BaseModel):
    """One bound variable inside a SPARQL JSON binding object."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str = "literal"  # "uri" | "literal" | "typed-literal" | "bnode"
    value: str
    datatype: str | None = None
    lang: str | None = Field(default=None, alias="xml:lang")


class ResultBindings(BaseModel):
    """The ``results`` member of a SPARQL JSON document."""

    model_config = ConfigDict(extra="ignore")

    bindings: list[dict[str, BindingValue]]


class SparqlResultsDocument(BaseModel):
    """Top-level SPARQL JSON SELECT document."""

    model_config = ConfigDict(extra="ignore")

    head: dict[str, Any] = Field(default_factory=dict)
    results: ResultBindings
