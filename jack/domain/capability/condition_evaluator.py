"""Evaluator for the conditional-intent mini-language.

The grammar is closed and is not a general expression language:

    <intent_id>.data.<field> <op> <literal>     op in ===, ==, !==, !=
    <intent_id>.data.<field>                    truthiness check

Literals are ``true``, ``false``, ``null``, numbers, or single- or
double-quoted strings. Both equality spellings compare strictly: a bool
never equals a number and a string never equals a number.

Evaluation fails closed. A malformed expression, an unknown intent, a
result without data, or a missing field all evaluate to False, so the
conditional intent is skipped rather than executed.
"""
from typing import Any, Mapping, Tuple
import math
import re
import structlog

from jack.domain.models import ExecutionResult

logger = structlog.get_logger(__name__)


_COMPARISON = re.compile(r"^(\w+)\.data\.(\w+)\s*(===|!==|==|!=)\s*(.+)$")
_TRUTHINESS = re.compile(r"^(\w+)\.data\.(\w+)$")
_MISSING = object()
_NUMBER = re.compile(r"^-?\d+(\.\d+)?([eE][+-]?\d+)?$")


class InvalidLiteral(ValueError):
    pass


def parse_literal(raw: str) -> Any:
    """Parse the right-hand side of a comparison"""

    text = raw.strip()
    if text == "true":
        return True
    if text == "false":
        return False
    if text == "null":
        return None
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]

    # plain decimal notation only: no underscores, inf, nan or hex
    match = _NUMBER.match(text)
    if match is None:
        raise InvalidLiteral(f"Unsupported literal: {text!r}")
    if match.group(1) is None and match.group(2) is None:
        return int(text)
    return float(text)


def strict_equals(actual: Any, expected: Any) -> bool:
    """Equality without Python's bool/int and int/str coercions"""

    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected
    if isinstance(actual, (int, float)) and isinstance(expected, (int, float)):
        return actual == expected
    if actual is None or expected is None:
        return actual is None and expected is None
    return type(actual) is type(expected) and actual == expected


def is_truthy(value: Any) -> bool:
    """Truthiness as a JSON-minded caller expects it: empty containers are truthy"""

    if value is None or value is False:
        return False
    if isinstance(value, (int, float)):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True


def _lookup_field(
    results: Mapping[str, ExecutionResult], intent_id: str, field: str
) -> Tuple[bool, Any]:
    result = results.get(intent_id)
    if result is None or not isinstance(result.data, Mapping):
        return False, _MISSING
    value = result.data.get(field, _MISSING)
    return value is not _MISSING, value


def evaluate_condition(expr: str, results: Mapping[str, ExecutionResult]) -> bool:
    """Evaluate a condition expression against prior results"""

    expr = (expr or "").strip()

    match = _COMPARISON.match(expr)
    if match is None:
        bool_match = _TRUTHINESS.match(expr)
        if bool_match is None:
            logger.warning("Malformed condition expression", expr=expr)
            return False
        found, value = _lookup_field(results, bool_match.group(1), bool_match.group(2))
        return found and is_truthy(value)

    intent_id, field, operator, raw_value = match.groups()

    try:
        expected = parse_literal(raw_value)
    except InvalidLiteral:
        logger.warning("Malformed condition literal", expr=expr, literal=raw_value)
        return False

    found, actual = _lookup_field(results, intent_id, field)
    if not found:
        return False

    equal = strict_equals(actual, expected)
    return equal if operator in ("===", "==") else not equal
