"""
Condition evaluation

Every filter in the query layer goes through compare(). Cells are untyped
text, so comparisons are case-insensitive string comparisons except for the
numeric operators.
"""

import math
import re
from typing import Any

NUMERIC_OPERATORS = {">", "<", ">=", "<="}
MEMBERSHIP_OPERATORS = {"in", "notin"}
OPERATORS = {"=", "!=", "contains", "like"} | NUMERIC_OPERATORS | MEMBERSHIP_OPERATORS

# Leading numeric prefix, so "12px" reads as 12 and "abc" as NaN
_FLOAT_PREFIX_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def to_text(value: Any) -> str:
    """Render a cell or filter value as comparison text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def normalize(value: Any) -> str:
    return to_text(value).lower()


def parse_float(text: str) -> float:
    m = _FLOAT_PREFIX_RE.match(text)
    if m:
        return float(m.group(1))
    stripped = text.strip().lstrip("+")
    if stripped.startswith("infinity"):
        return math.inf
    if stripped.startswith("-infinity"):
        return -math.inf
    return math.nan


def like_to_regex(pattern: str) -> re.Pattern:
    """'%' is the only wildcard; everything else matches literally."""
    body = ".*".join(re.escape(part) for part in pattern.split("%"))
    return re.compile(f"^{body}$", re.IGNORECASE | re.DOTALL)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def compare(row_value: Any, operator: str, value: Any) -> bool:
    """
    Evaluate one condition against a cell value.

    Unknown operators fall back to equality. Never raises.
    """
    left = normalize(row_value)

    if operator in MEMBERSHIP_OPERATORS:
        if not _is_sequence(value):
            return False
        members = {normalize(v) for v in value}
        return (left in members) if operator == "in" else (left not in members)

    right = normalize(value)

    if operator in NUMERIC_OPERATORS:
        a, b = parse_float(left), parse_float(right)
        # NaN compares False under every ordering operator
        if operator == ">":
            return a > b
        if operator == "<":
            return a < b
        if operator == ">=":
            return a >= b
        return a <= b

    if operator == "!=":
        return left != right
    if operator == "contains":
        return right in left
    if operator == "like":
        return bool(like_to_regex(right).match(left))
    return left == right
