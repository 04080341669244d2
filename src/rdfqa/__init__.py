"""rdfqa: a client-side query layer for graph stores.

Main modules:
- client: GraphStoreClient, cache-aware and deadline-aware query submission
- dispatcher: BoundedDispatcher and TimedExecution for bounded concurrency
- runners: direct (rdflib) and HTTP query runners
- cache: two-tier LRU result cache
- evaluation: answer normalization and gold/predicted comparison
"""

from .cache import ResultCache
from .client import GraphStoreClient, Transport
from .connection import GraphConnection
from .dispatcher import BoundedDispatcher, TimedExecution
from .errors import (
    ConfigurationError,
    ContractViolation,
    MalformedQueryError,
    QueryTimeoutError,
    RdfQaError,
    TransportError,
)
from .evaluation import ComparisonMode, answers_equal, extract_clean_answers
from .models import AggregatedResult, ExecutionOutcome, ExecutionResult, Row
from .results import aggregate_rows
from .runners import DirectQueryRunner, HttpQueryRunner, QueryRunner
from .version import VERSION

__all__ = [
    "VERSION",
    "AggregatedResult",
    "BoundedDispatcher",
    "ComparisonMode",
    "ConfigurationError",
    "ContractViolation",
    "DirectQueryRunner",
    "ExecutionOutcome",
    "ExecutionResult",
    "GraphConnection",
    "GraphStoreClient",
    "HttpQueryRunner",
    "MalformedQueryError",
    "QueryRunner",
    "QueryTimeoutError",
    "RdfQaError",
    "ResultCache",
    "Row",
    "TimedExecution",
    "Transport",
    "TransportError",
    "aggregate_rows",
    "answers_equal",
    "extract_clean_answers",
]
