"""
Row filter language shared by the row readers.

Filters are mappings of field to operator conditions, e.g.
``{"status": {"_eq": "published"}, "_or": [{"year": {"_gte": 2000}}, ...]}``.
Conditions on the same mapping are AND-ed. A nested mapping without
operators filters a related object (``{"author": {"name": {"_eq": "A"}}}``).
"""

import copy
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..paths import PATH_SEPARATOR, WILDCARD


LOGICAL_OPERATORS = {"_and", "_or"}


def is_operator_block(condition: Mapping[str, Any]) -> bool:
    """Check whether a condition mapping holds operators rather than nested fields"""
    return bool(condition) and all(str(key).startswith("_") for key in condition)


def _loose_equals(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is right
    return left == right or str(left) == str(right)


def _comparable(left: Any, right: Any) -> Tuple[Any, Any]:
    """Coerce numeric strings so ``"5" < 10`` compares numerically"""
    if isinstance(left, (int, float)) and isinstance(right, str):
        return left, float(right)
    if isinstance(left, str) and isinstance(right, (int, float)):
        return float(left), right
    return left, right


def _compare(left: Any, right: Any, op: Callable[[Any, Any], bool]) -> bool:
    if left is None or right is None:
        return False
    try:
        return op(*_comparable(left, right))
    except (TypeError, ValueError):
        return False


def _contains(value: Any, needle: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return str(needle) in value
    if isinstance(value, (list, tuple, set)):
        return any(_loose_equals(item, needle) for item in value)
    return False


def _apply_operator(operator: str, value: Any, argument: Any) -> bool:
    if operator == "_eq":
        return _loose_equals(value, argument)
    if operator == "_neq":
        return not _loose_equals(value, argument)
    if operator == "_in":
        return any(_loose_equals(value, item) for item in _as_list(argument))
    if operator == "_nin":
        return not any(_loose_equals(value, item) for item in _as_list(argument))
    if operator == "_gt":
        return _compare(value, argument, lambda a, b: a > b)
    if operator == "_gte":
        return _compare(value, argument, lambda a, b: a >= b)
    if operator == "_lt":
        return _compare(value, argument, lambda a, b: a < b)
    if operator == "_lte":
        return _compare(value, argument, lambda a, b: a <= b)
    if operator == "_null":
        return (value is None) == bool(argument)
    if operator == "_nnull":
        return (value is not None) == bool(argument)
    if operator == "_contains":
        return _contains(value, argument)
    if operator == "_ncontains":
        return not _contains(value, argument)
    if operator == "_starts_with":
        return isinstance(value, str) and value.startswith(str(argument))
    if operator == "_ends_with":
        return isinstance(value, str) and value.endswith(str(argument))
    raise ValueError(f"Unsupported filter operator: {operator}")


def _as_list(argument: Any) -> List[Any]:
    if isinstance(argument, (list, tuple, set)):
        return list(argument)
    if isinstance(argument, str):
        return [item.strip() for item in argument.split(",")]
    return [argument]


def matches_filter(row: Optional[Mapping[str, Any]], filter: Optional[Mapping[str, Any]]) -> bool:
    """
    Evaluate a filter against an in-memory row.

    Raises:
        ValueError: On unsupported operators or malformed conditions
    """
    if not filter:
        return True
    if row is None:
        return False

    for key, condition in filter.items():
        if key == "_and":
            if not all(matches_filter(row, sub) for sub in condition):
                return False
        elif key == "_or":
            if not any(matches_filter(row, sub) for sub in condition):
                return False
        elif not isinstance(condition, Mapping):
            raise ValueError(f"Filter condition for {key!r} must be a mapping")
        elif is_operator_block(condition):
            value = row.get(key)
            for operator, argument in condition.items():
                if not _apply_operator(operator, value, argument):
                    return False
        else:
            nested = row.get(key)
            if not isinstance(nested, Mapping) or not matches_filter(nested, condition):
                return False

    return True


def quote_identifier(name: str) -> str:
    """Quote an SQL identifier"""
    return '"' + str(name).replace('"', '""') + '"'


def compile_filter(
    filter: Optional[Mapping[str, Any]],
    columns: Optional[Iterable[str]] = None
) -> Tuple[str, List[Any]]:
    """
    Compile a filter to a parameterized SQLite WHERE expression.

    Args:
        filter: Filter mapping
        columns: Known columns; unknown field names are rejected when given

    Returns:
        Tuple of SQL expression and its parameters ("1" for an empty filter)

    Raises:
        ValueError: On unknown columns, nested filters, or unsupported operators
    """
    known = set(columns) if columns is not None else None
    params: List[Any] = []
    sql = _compile(filter or {}, known, params)
    return sql, params


def _compile(filter: Mapping[str, Any], known: Optional[set], params: List[Any]) -> str:
    clauses: List[str] = []

    for key, condition in filter.items():
        if key in LOGICAL_OPERATORS:
            parts = [_compile(sub, known, params) for sub in condition]
            if not parts:
                clauses.append("1" if key == "_and" else "0")
            else:
                joiner = " AND " if key == "_and" else " OR "
                clauses.append("(" + joiner.join(parts) + ")")
            continue

        if not isinstance(condition, Mapping):
            raise ValueError(f"Filter condition for {key!r} must be a mapping")
        if not is_operator_block(condition):
            raise ValueError(f"Nested filter on {key!r} is not supported by SQL readers")
        if known is not None and key not in known:
            raise ValueError(f"Unknown filter field: {key}")

        column = quote_identifier(key)
        for operator, argument in condition.items():
            clauses.append(_compile_operator(column, operator, argument, params))

    if not clauses:
        return "1"
    return " AND ".join(clauses)


def _compile_operator(column: str, operator: str, argument: Any, params: List[Any]) -> str:
    if operator == "_eq":
        params.append(argument)
        return f"{column} IS ?"
    if operator == "_neq":
        params.append(argument)
        return f"{column} IS NOT ?"
    if operator in ("_in", "_nin"):
        values = _as_list(argument)
        if not values:
            return "0" if operator == "_in" else "1"
        params.extend(values)
        placeholders = ", ".join("?" for _ in values)
        if operator == "_in":
            return f"{column} IN ({placeholders})"
        return f"({column} IS NULL OR {column} NOT IN ({placeholders}))"
    if operator in ("_gt", "_gte", "_lt", "_lte"):
        params.append(argument)
        symbol = {"_gt": ">", "_gte": ">=", "_lt": "<", "_lte": "<="}[operator]
        return f"{column} {symbol} ?"
    if operator == "_null":
        return f"{column} IS NULL" if argument else f"{column} IS NOT NULL"
    if operator == "_nnull":
        return f"{column} IS NOT NULL" if argument else f"{column} IS NULL"
    if operator == "_contains":
        params.append(str(argument))
        return f"instr({column}, ?) > 0"
    if operator == "_ncontains":
        params.append(str(argument))
        return f"({column} IS NULL OR instr({column}, ?) = 0)"
    if operator == "_starts_with":
        params.extend([str(argument), str(argument)])
        return f"substr({column}, 1, length(?)) = ?"
    if operator == "_ends_with":
        params.extend([str(argument), str(argument)])
        return f"substr({column}, -length(?)) = ?"
    raise ValueError(f"Unsupported filter operator: {operator}")


def split_fields(fields: Optional[Sequence[str]]) -> Tuple[Optional[List[str]], Dict[str, List[str]]]:
    """
    Split field paths into top-level columns and nested sub-paths.

    Returns:
        (columns or None for all, mapping of column to nested sub-paths)
    """
    if not fields or WILDCARD in fields:
        return None, {}

    columns: List[str] = []
    nested: Dict[str, List[str]] = {}
    for field in fields:
        head, sep, rest = field.partition(PATH_SEPARATOR)
        if head not in columns:
            columns.append(head)
        if sep:
            nested.setdefault(head, []).append(rest)
    return columns, nested


def project_fields(row: Mapping[str, Any], fields: Optional[Sequence[str]]) -> Dict[str, Any]:
    """
    Project a row onto dotted field paths.

    ``None`` or ``"*"`` keeps everything; ``"a.b"`` keeps ``row["a"]["b"]``
    under the same nesting; missing paths are skipped.
    """
    columns, nested = split_fields(fields)
    if columns is None:
        return copy.deepcopy(dict(row))

    projected: Dict[str, Any] = {}
    for column in columns:
        if column not in row:
            continue
        value = row[column]
        if column in nested and isinstance(value, Mapping):
            projected[column] = project_fields(value, nested[column])
        elif column in nested and value is not None:
            # Sub-paths of a scalar cannot be resolved
            continue
        else:
            projected[column] = copy.deepcopy(value)
    return projected
