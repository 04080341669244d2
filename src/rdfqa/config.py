"""Client configuration loaded from environment variables or a YAML file."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from rdfqa.errors import ConfigurationError


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, str(default))
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name, str(default))
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e


class Config:
    """Default configuration for :class:`~rdfqa.client.GraphStoreClient`."""

    # HTTP SPARQL endpoint (e.g. http://localhost:8890/sparql)
    HTTP_URL = os.getenv("RDFQA_HTTP_URL", "")

    # Direct connection: SPARQL protocol query/update endpoints
    QUERY_ENDPOINT = os.getenv("RDFQA_QUERY_ENDPOINT", "")
    UPDATE_ENDPOINT = os.getenv("RDFQA_UPDATE_ENDPOINT", "")
    USERNAME = os.getenv("RDFQA_USERNAME", "")
    PASSWORD = os.getenv("RDFQA_PASSWORD", "")

    # Per-query deadline in milliseconds (0 = wait forever)
    TIMEOUT_MS = _env_int("RDFQA_TIMEOUT_MS", 0)

    MAX_WORKERS = _env_int("RDFQA_MAX_WORKERS", 50)
    QUEUE_SIZE = _env_int("RDFQA_QUEUE_SIZE", MAX_WORKERS)

    # Entries per cache tier
    CACHE_SIZE = _env_int("RDFQA_CACHE_SIZE", 100_000)

    # Also cache the empty results of failed and timed-out queries
    CACHE_INCOMPLETE = os.getenv("RDFQA_CACHE_INCOMPLETE", "1") == "1"

    CONNECT_TIMEOUT = _env_float("RDFQA_CONNECT_TIMEOUT", 10.0)


class TestConfig(Config):
    """Configuration overrides for testing."""

    __test__ = False

    HTTP_URL = "http://localhost:8890/sparql"
    QUERY_ENDPOINT = ""
    UPDATE_ENDPOINT = ""
    TIMEOUT_MS = 2000
    MAX_WORKERS = 4
    QUEUE_SIZE = 4
    CACHE_SIZE = 100


def config_from_yaml(path: str | Path, base: type[Config] = Config) -> type[Config]:
    """Return a :class:`Config` subclass with overrides read from *path*.

    The file holds a mapping of option names (any case) to values, e.g.::

        http_url: http://localhost:8890/sparql
        timeout_ms: 10000
    """
    with open(path, encoding="utf-8") as f:
        data: Any = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: expected a mapping of options")

    overrides = {}
    for key, value in data.items():
        name = str(key).upper()
        if not hasattr(base, name):
            raise ConfigurationError(f"{path}: unknown option {key!r}")
        overrides[name] = value
    return type("FileConfig", (base,), overrides)
