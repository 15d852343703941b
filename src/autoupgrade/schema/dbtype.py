"""Parse declared column types into SQLite affinity, nullability and default."""

import re
from dataclasses import dataclass
from typing import Optional

from autoupgrade.exceptions import DbTypeParseError
from autoupgrade.types import TypeAffinity

__all__ = [
    "ColumnTypeInfo",
    "get_type_affinity",
    "parse_db_type",
    "collapse_quoted_literal",
]

_TYPE_DEF = re.compile(r"^\s*((\w+)(\s*\(\s*\d+\s*(,\s*\d+\s*)?\))?)(.*)$", re.DOTALL)
_NOT_NULL = re.compile(r"\bNOT\s+NULL\b", re.IGNORECASE)
_DEFAULT_NUMBER = re.compile(r"\bDEFAULT\s+([+-]?\d+(\.\d*)?)", re.IGNORECASE)
_DEFAULT_LITERAL = re.compile(r"\bDEFAULT\s+(('[^']*')+)", re.IGNORECASE)
_DEFAULT_EXPR = re.compile(r"\bDEFAULT\s*\(", re.IGNORECASE)
_TEXT_TYPES = re.compile(r"(CHAR|CLOB|TEXT)")
_REAL_TYPES = re.compile(r"(REAL|FLOA|DOUB)")


@dataclass(frozen=True)
class ColumnTypeInfo:
    """Canonical comparison view of a column type."""

    type_affinity: TypeAffinity
    not_null: bool
    default_value: Optional[str] = None


def get_type_affinity(type_name: str) -> TypeAffinity:
    """Return the SQLite affinity for a declared type name.

    The rules are evaluated in SQLite's order, so e.g. 'CHARINT' is INTEGER.
    """
    upper = type_name.upper()
    if "INT" in upper:
        return TypeAffinity.INTEGER
    if _TEXT_TYPES.search(upper):
        return TypeAffinity.TEXT
    if "BLOB" in upper:
        return TypeAffinity.BLOB
    if _REAL_TYPES.search(upper):
        return TypeAffinity.REAL
    return TypeAffinity.NUMERIC


def collapse_quoted_literal(value: Optional[str]) -> Optional[str]:
    """Collapse doubled single quotes inside a quoted SQL literal.

    Values that are not a single-quoted literal are returned unchanged.
    """
    if value is None or len(value) < 2:
        return value
    if not (value.startswith("'") and value.endswith("'")):
        return value
    return "'" + value[1:-1].replace("''", "'") + "'"


def _extract_default_expression(rest: str) -> Optional[str]:
    """Return the text between DEFAULT( and its balancing parenthesis."""
    match = _DEFAULT_EXPR.search(rest)
    if not match:
        return None
    depth = 1
    in_literal = False
    start = match.end()
    for pos in range(start, len(rest)):
        char = rest[pos]
        if char == "'":
            in_literal = not in_literal
        elif in_literal:
            continue
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return rest[start:pos].strip()
    return None


def parse_db_type(dbtype: str) -> ColumnTypeInfo:
    """Parse a declared type such as ``VARCHAR(20) NOT NULL DEFAULT 'x'``.

    Default values are probed as number, quoted literal and parenthesized
    expression, in that order; a later match overwrites an earlier one.

    Raises:
        DbTypeParseError: If no leading type token can be found.
    """
    match = _TYPE_DEF.match(dbtype)
    if not match:
        raise DbTypeParseError(dbtype)

    type_affinity = get_type_affinity(match.group(2))
    rest = match.group(5)

    not_null = _NOT_NULL.search(rest) is not None

    default_value: Optional[str] = None
    number = _DEFAULT_NUMBER.search(rest)
    if number:
        default_value = number.group(1)
    literal = _DEFAULT_LITERAL.search(rest)
    if literal:
        default_value = collapse_quoted_literal(literal.group(1))
    expression = _extract_default_expression(rest)
    if expression is not None:
        default_value = expression

    return ColumnTypeInfo(
        type_affinity=type_affinity, not_null=not_null, default_value=default_value
    )
