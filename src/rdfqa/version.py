"""Version information for :mod:`rdfqa`."""

VERSION = "0.1.0"
