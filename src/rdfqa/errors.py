"""Exception hierarchy for rdfqa.

Per-query failures (:class:`MalformedQueryError`, :class:`TransportError`,
:class:`QueryTimeoutError`) are absorbed by
:class:`~rdfqa.dispatcher.TimedExecution` and surface only as an
:class:`~rdfqa.models.ExecutionOutcome`.  :class:`ContractViolation` and
:class:`ConfigurationError` signal caller bugs and always propagate.
"""

from __future__ import annotations


class RdfQaError(Exception):
    """Base exception for rdfqa errors."""

    pass


class MalformedQueryError(RdfQaError):
    """Raised when the backend (or the local parser) rejects the query text."""

    pass


class TransportError(RdfQaError):
    """Raised when the store cannot be reached or returns an error."""

    pass


class QueryTimeoutError(RdfQaError):
    """A query exceeded its deadline."""

    pass


class ContractViolation(RdfQaError, ValueError):
    """Raised when a caller passes results of an unsupported shape."""

    pass


class ConfigurationError(RdfQaError):
    """Raised when a transport or option is missing or invalid."""

    pass
