"""Pure comparison functions, one family per value kind.

Every function takes already-extracted values and returns a bool. Values that
cannot be coerced to the declared kind raise EvaluationError so the caller can
fail the condition closed and still report why.
"""
import re

from alerts.errors import EvaluationError
from models.enums import ConditionOperator as Op, DataType

# Tolerance for numeric equality after float round-trips
EPSILON = 1e-3

_TRUE_WORDS = {"true", "yes", "1"}
_FALSE_WORDS = {"false", "no", "0"}


# ── Coercion ───────────────────────────────────────────

def to_number(value):
    """Coerce an int, float or numeric string to float. Booleans are not numbers."""
    if isinstance(value, bool) or value is None:
        raise EvaluationError(f"expected a number, got {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            raise EvaluationError(f"expected a number, got {value!r}") from None
    raise EvaluationError(f"expected a number, got {type(value).__name__}")


def to_integer(value):
    number = to_number(value)
    if not number.is_integer():
        raise EvaluationError(f"expected an integer, got {value!r}")
    return number


def to_bool(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise EvaluationError(f"expected a boolean, got {value!r}")


def to_text(value):
    if value is None:
        raise EvaluationError("expected a string, got None")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def coerce(value, data_type):
    """Coerce a value to the Python type matching a declared DataType."""
    if data_type == DataType.STRING:
        return to_text(value)
    if data_type == DataType.INTEGER:
        return to_integer(value)
    if data_type == DataType.FLOAT:
        return to_number(value)
    if data_type == DataType.BOOLEAN:
        return to_bool(value)
    raise EvaluationError(f"unknown data type {data_type!r}")


def as_list(value):
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


# ── String ─────────────────────────────────────────────

def compare_string(op, actual, expected, pattern=None):
    actual = to_text(actual)
    if op == Op.EQ:
        return actual == to_text(expected)
    if op == Op.NE:
        return actual != to_text(expected)
    if op in (Op.MATCH, Op.NOT_MATCH):
        if pattern is None:
            try:
                pattern = re.compile(to_text(expected))
            except re.error as e:
                raise EvaluationError(f"invalid regex {expected!r}: {e}") from None
        found = pattern.search(actual) is not None
        return found if op == Op.MATCH else not found
    if op in (Op.IN, Op.NOT_IN):
        member = actual in {to_text(v) for v in as_list(expected)}
        return member if op == Op.IN else not member
    if op in (Op.CONTAINS, Op.NOT_CONTAINS):
        found = to_text(expected) in actual
        return found if op == Op.CONTAINS else not found
    raise EvaluationError(f"operator {op.value!r} not supported for strings")


# ── Numeric ────────────────────────────────────────────

def compare_numeric(op, actual, expected):
    actual = to_number(actual)
    if op in (Op.IN, Op.NOT_IN):
        candidates = [to_number(v) for v in as_list(expected)]
        member = any(abs(actual - c) < EPSILON for c in candidates)
        return member if op == Op.IN else not member

    threshold = to_number(expected)
    if op == Op.EQ:
        return abs(actual - threshold) < EPSILON
    if op == Op.NE:
        return abs(actual - threshold) >= EPSILON
    if op == Op.GT:
        return actual > threshold
    if op == Op.GTE:
        return actual >= threshold
    if op == Op.LT:
        return actual < threshold
    if op == Op.LTE:
        return actual <= threshold
    raise EvaluationError(f"operator {op.value!r} not supported for numbers")


# ── Boolean ────────────────────────────────────────────

def compare_boolean(op, actual, expected):
    actual = to_bool(actual)
    expected = to_bool(expected)
    if op == Op.EQ:
        return actual == expected
    if op == Op.NE:
        return actual != expected
    raise EvaluationError(f"operator {op.value!r} not supported for booleans")


# ── Set ────────────────────────────────────────────────

def compare_set(op, actual, expected):
    """Compare an unordered set of strings against the expected members.

    in: any overlap, not_in: no overlap, contains: actual is a superset,
    not_contains: actual is not a superset.
    """
    actual = {to_text(v) for v in actual}
    expected = {to_text(v) for v in as_list(expected)}
    if op == Op.IN:
        return bool(actual & expected)
    if op == Op.NOT_IN:
        return not (actual & expected)
    if op == Op.CONTAINS:
        return expected <= actual
    if op == Op.NOT_CONTAINS:
        return not expected <= actual
    raise EvaluationError(f"operator {op.value!r} not supported for sets")


def compare_typed(op, actual, expected, data_type, pattern=None):
    """Dispatch to the comparator for a declared DataType."""
    if data_type == DataType.STRING:
        return compare_string(op, actual, expected, pattern)
    if data_type == DataType.BOOLEAN:
        return compare_boolean(op, actual, expected)
    if data_type == DataType.INTEGER:
        actual = to_integer(actual)
    return compare_numeric(op, actual, expected)
