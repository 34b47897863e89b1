"""Athena queries over the cataloged tables."""

from .athena import AthenaQueryRunner, QueryResult, quote_identifier

__all__ = ["AthenaQueryRunner", "QueryResult", "quote_identifier"]
