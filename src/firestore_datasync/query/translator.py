"""
QueryBuilder -> Firestore query translation.

``translate_query`` is an order-preserving fold: every recorded operation is
applied, in insertion order, to the query produced by the previous one.
Nothing is skipped or reordered, with one defined exception: the set-based
operators (in, not-in, array-contains-any) are dropped when their value is
not a list or tuple, leaving the rest of the query intact.
"""

import logging
from typing import Any, Dict

from google.cloud.firestore_v1 import Query
from google.cloud.firestore_v1.base_query import FieldFilter

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
)

logger = logging.getLogger(__name__)

# Operator strings understood by google-cloud-firestore
FIRESTORE_OPERATORS: Dict[FilterOperator, str] = {
    FilterOperator.IS_EQUAL_TO: "==",
    FilterOperator.IS_NOT_EQUAL_TO: "!=",
    FilterOperator.IS_GREATER_THAN: ">",
    FilterOperator.IS_LESS_THAN: "<",
    FilterOperator.IS_GREATER_THAN_OR_EQUAL_TO: ">=",
    FilterOperator.IS_LESS_THAN_OR_EQUAL_TO: "<=",
    FilterOperator.ARRAY_CONTAINS: "array_contains",
    FilterOperator.ARRAY_CONTAINS_ANY: "array_contains_any",
    FilterOperator.IN: "in",
    FilterOperator.NOT_IN: "not-in",
}

_CURSOR_METHODS: Dict[CursorKind, str] = {
    CursorKind.START_AT: "start_at",
    CursorKind.START_AFTER: "start_after",
    CursorKind.END_AT: "end_at",
    CursorKind.END_BEFORE: "end_before",
}


def apply_filter(query: Any, query_filter: QueryFilter) -> Any:
    """Add one where clause, or return ``query`` unchanged for a malformed set filter."""
    value = query_filter.value
    if query_filter.operator.is_set_operator:
        if not isinstance(value, (list, tuple)):
            logger.debug(
                f"Skipping '{query_filter.operator.value}' filter on '{query_filter.field}': "
                f"value is {type(value).__name__}, not a list"
            )
            return query
        value = list(value)

    op_string = FIRESTORE_OPERATORS[query_filter.operator]
    return query.where(filter=FieldFilter(query_filter.field, op_string, value))


def apply_operation(query: Any, operation: QueryOperation) -> Any:
    """Apply a single recorded operation to a Firestore query or collection reference."""
    if isinstance(operation, QueryFilter):
        return apply_filter(query, operation)

    if isinstance(operation, QueryOrder):
        direction = Query.DESCENDING if operation.descending else Query.ASCENDING
        return query.order_by(operation.field, direction=direction)

    if isinstance(operation, QueryLimit):
        return query.limit(operation.count)

    if isinstance(operation, QueryLimitToLast):
        return query.limit_to_last(operation.count)

    if isinstance(operation, QueryCursor):
        method = getattr(query, _CURSOR_METHODS[operation.kind])
        return method(list(operation.values))

    raise TypeError(f"Unsupported query operation: {operation!r}")


def translate_query(base: Any, query: QueryBuilder) -> Any:
    """
    Build a Firestore query from a QueryBuilder.

    Args:
        base: CollectionReference (or Query) to start from.
        query: Recorded operations.

    Returns:
        Firestore Query with every operation applied in order. ``base`` itself
        is returned when the builder is empty.
    """
    firestore_query = base
    for operation in query.get_operations():
        firestore_query = apply_operation(firestore_query, operation)
    return firestore_query
