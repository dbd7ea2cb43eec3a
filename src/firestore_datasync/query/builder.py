"""
Backend-neutral query description.

``QueryBuilder`` records filter, order, limit and cursor operations in the
order they are added. It performs no validation of how operations combine
(a cursor without a matching ``order_by`` is only rejected by Firestore when
the query runs) and never reorders them; the translator replays them as-is.

Example:
    >>> query = (
    ...     QueryBuilder()
    ...     .where_equal_to("category", "mugs")
    ...     .order_by("price", descending=True)
    ...     .limit(10)
    ... )
    >>> [type(op).__name__ for op in query.get_operations()]
    ['QueryFilter', 'QueryOrder', 'QueryLimit']
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Tuple, Union


class FilterOperator(str, Enum):
    """Comparison operators supported by ``QueryBuilder.where``."""

    IS_EQUAL_TO = "isEqualTo"
    IS_NOT_EQUAL_TO = "isNotEqualTo"
    IS_GREATER_THAN = "isGreaterThan"
    IS_LESS_THAN = "isLessThan"
    IS_GREATER_THAN_OR_EQUAL_TO = "isGreaterThanOrEqualTo"
    IS_LESS_THAN_OR_EQUAL_TO = "isLessThanOrEqualTo"
    ARRAY_CONTAINS = "arrayContains"
    ARRAY_CONTAINS_ANY = "arrayContainsAny"
    IN = "in"
    NOT_IN = "notIn"

    @property
    def is_set_operator(self) -> bool:
        """True for operators whose value must be a list of candidates."""
        return self in (
            FilterOperator.ARRAY_CONTAINS_ANY,
            FilterOperator.IN,
            FilterOperator.NOT_IN,
        )


# Spellings accepted by from_dict / the CLI
_OPERATOR_ALIASES: Dict[str, FilterOperator] = {
    "==": FilterOperator.IS_EQUAL_TO,
    "!=": FilterOperator.IS_NOT_EQUAL_TO,
    ">": FilterOperator.IS_GREATER_THAN,
    "<": FilterOperator.IS_LESS_THAN,
    ">=": FilterOperator.IS_GREATER_THAN_OR_EQUAL_TO,
    "<=": FilterOperator.IS_LESS_THAN_OR_EQUAL_TO,
    "array-contains": FilterOperator.ARRAY_CONTAINS,
    "array_contains": FilterOperator.ARRAY_CONTAINS,
    "array-contains-any": FilterOperator.ARRAY_CONTAINS_ANY,
    "array_contains_any": FilterOperator.ARRAY_CONTAINS_ANY,
    "in": FilterOperator.IN,
    "not-in": FilterOperator.NOT_IN,
    "not_in": FilterOperator.NOT_IN,
}


def parse_operator(op: Union[str, FilterOperator]) -> FilterOperator:
    """
    Resolve an operator spelling to a FilterOperator.

    Accepts enum members, enum values ("isEqualTo"), enum names
    ("IS_EQUAL_TO") and the symbolic aliases ("==", "not-in", ...).

    Raises:
        ValueError: If the operator is unknown.
    """
    if isinstance(op, FilterOperator):
        return op
    if op in _OPERATOR_ALIASES:
        return _OPERATOR_ALIASES[op]
    try:
        return FilterOperator(op)
    except ValueError:
        pass
    try:
        return FilterOperator[op.upper()]
    except KeyError:
        valid = sorted(_OPERATOR_ALIASES) + [o.value for o in FilterOperator]
        raise ValueError(f"Unknown filter operator '{op}'. Valid options: {valid}")


class CursorKind(str, Enum):
    START_AT = "startAt"
    START_AFTER = "startAfter"
    END_AT = "endAt"
    END_BEFORE = "endBefore"


@dataclass(frozen=True)
class QueryFilter:
    field: str
    operator: FilterOperator
    value: Any


@dataclass(frozen=True)
class QueryOrder:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class QueryLimit:
    count: int


@dataclass(frozen=True)
class QueryLimitToLast:
    count: int


@dataclass(frozen=True)
class QueryCursor:
    """Pagination anchor; ``values`` align positionally with the active orders."""

    kind: CursorKind
    values: Tuple[Any, ...]


QueryOperation = Union[QueryFilter, QueryOrder, QueryLimit, QueryLimitToLast, QueryCursor]


def _positive_count(count: int, name: str) -> int:
    if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
        raise ValueError(f"{name} must be a positive integer, got {count!r}")
    return count


class QueryBuilder:
    """
    Ordered, append-only list of query operations.

    Every method returns the builder itself so calls can be chained.
    """

    def __init__(self):
        self._operations: List[QueryOperation] = []

    def _append(self, operation: QueryOperation) -> "QueryBuilder":
        self._operations.append(operation)
        return self

    # -- filters ------------------------------------------------------------

    def where(self, field: str, operator: Union[str, FilterOperator], value: Any) -> "QueryBuilder":
        return self._append(QueryFilter(field, parse_operator(operator), value))

    def where_equal_to(self, field: str, value: Any) -> "QueryBuilder":
        return self.where(field, FilterOperator.IS_EQUAL_TO, value)

    def where_not_equal_to(self, field: str, value: Any) -> "QueryBuilder":
        return self.where(field, FilterOperator.IS_NOT_EQUAL_TO, value)

    def where_greater_than(self, field: str, value: Any) -> "QueryBuilder":
        return self.where(field, FilterOperator.IS_GREATER_THAN, value)

    def where_less_than(self, field: str, value: Any) -> "QueryBuilder":
        return self.where(field, FilterOperator.IS_LESS_THAN, value)

    def where_greater_than_or_equal_to(self, field: str, value: Any) -> "QueryBuilder":
        return self.where(field, FilterOperator.IS_GREATER_THAN_OR_EQUAL_TO, value)

    def where_less_than_or_equal_to(self, field: str, value: Any) -> "QueryBuilder":
        return self.where(field, FilterOperator.IS_LESS_THAN_OR_EQUAL_TO, value)

    def where_array_contains(self, field: str, value: Any) -> "QueryBuilder":
        return self.where(field, FilterOperator.ARRAY_CONTAINS, value)

    def where_array_contains_any(self, field: str, values: Any) -> "QueryBuilder":
        return self.where(field, FilterOperator.ARRAY_CONTAINS_ANY, values)

    def where_in(self, field: str, values: Any) -> "QueryBuilder":
        return self.where(field, FilterOperator.IN, values)

    def where_not_in(self, field: str, values: Any) -> "QueryBuilder":
        return self.where(field, FilterOperator.NOT_IN, values)

    # -- ordering and size --------------------------------------------------

    def order_by(self, field: str, descending: bool = False) -> "QueryBuilder":
        return self._append(QueryOrder(field, descending))

    def limit(self, count: int) -> "QueryBuilder":
        return self._append(QueryLimit(_positive_count(count, "limit")))

    def limit_to_last(self, count: int) -> "QueryBuilder":
        return self._append(QueryLimitToLast(_positive_count(count, "limit_to_last")))

    # -- cursors ------------------------------------------------------------

    def start_at(self, *values: Any) -> "QueryBuilder":
        return self._append(QueryCursor(CursorKind.START_AT, tuple(values)))

    def start_after(self, *values: Any) -> "QueryBuilder":
        return self._append(QueryCursor(CursorKind.START_AFTER, tuple(values)))

    def end_at(self, *values: Any) -> "QueryBuilder":
        return self._append(QueryCursor(CursorKind.END_AT, tuple(values)))

    def end_before(self, *values: Any) -> "QueryBuilder":
        return self._append(QueryCursor(CursorKind.END_BEFORE, tuple(values)))

    # -- inspection ---------------------------------------------------------

    def get_operations(self) -> Tuple[QueryOperation, ...]:
        return tuple(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    def __repr__(self) -> str:
        return f"QueryBuilder({self._operations!r})"

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> "QueryBuilder":
        """
        Build a query from a plain mapping (YAML settings, CLI options).

        Keys are applied in this fixed order: where, order_by, limit,
        limit_to_last, start_at, start_after, end_at, end_before.

        Args:
            config: Mapping with any of:
                - where: list of {field, op, value} dicts
                - order_by: field name or list of names; "-field" sorts descending
                - limit / limit_to_last: positive integer
                - start_at / start_after / end_at / end_before: list of cursor values

        Returns:
            QueryBuilder with the operations recorded.

        Raises:
            ValueError: If a where clause lacks 'field' or uses an unknown operator.

        Example:
            >>> QueryBuilder.from_dict({
            ...     "where": [{"field": "status", "op": "==", "value": "open"}],
            ...     "order_by": "-created_at",
            ...     "limit": 20,
            ... })
        """
        query = cls()

        for i, clause in enumerate(config.get("where") or []):
            field = clause.get("field")
            if not field:
                raise ValueError(f"Where clause {i} missing 'field'")
            query.where(field, clause.get("op", "=="), clause.get("value"))

        order_by = config.get("order_by") or []
        for field in [order_by] if isinstance(order_by, str) else order_by:
            if field.startswith("-"):
                query.order_by(field[1:], descending=True)
            else:
                query.order_by(field)

        if config.get("limit") is not None:
            query.limit(int(config["limit"]))
        if config.get("limit_to_last") is not None:
            query.limit_to_last(int(config["limit_to_last"]))

        cursor_methods = {
            "start_at": query.start_at,
            "start_after": query.start_after,
            "end_at": query.end_at,
            "end_before": query.end_before,
        }
        for key, method in cursor_methods.items():
            values = config.get(key)
            if values is None:
                continue
            if not isinstance(values, (list, tuple)):
                values = [values]
            method(*values)

        return query
