"""
Query description and Firestore translation.

Usage:
    >>> from firestore_datasync.query import QueryBuilder, translate_query
    >>> query = QueryBuilder().where_in("status", ["open", "pending"]).limit(5)
    >>> firestore_query = translate_query(client.collection("tickets"), query)
"""

from .builder import (
    CursorKind,
    FilterOperator,
    QueryBuilder,
    QueryCursor,
    QueryFilter,
    QueryLimit,
    QueryLimitToLast,
    QueryOperation,
    QueryOrder,
    parse_operator,
)
from .translator import FIRESTORE_OPERATORS, apply_operation, translate_query

__all__ = [
    "CursorKind",
    "FilterOperator",
    "QueryBuilder",
    "QueryCursor",
    "QueryFilter",
    "QueryLimit",
    "QueryLimitToLast",
    "QueryOperation",
    "QueryOrder",
    "parse_operator",
    "FIRESTORE_OPERATORS",
    "apply_operation",
    "translate_query",
]
