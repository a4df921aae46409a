import math
import re
from dataclasses import dataclass
from typing import Optional

DEFAULT_EPSILON = 1e-9

_BLANK_LINES = re.compile(r"\n\s*\n")
_WHITESPACE = re.compile(r"\s+")
_NUMBER = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_SPECIAL = re.compile(r"^[+-]?(nan|inf|infinity)$", re.IGNORECASE)


@dataclass(frozen=True)
class CompareResult:
    equal: bool
    normalized_expected: str
    normalized_actual: str


def normalize(output: Optional[str], ignore_whitespace: bool = False) -> str:
    """Unify line endings, drop blank or whitespace-only lines and trim.

    With ``ignore_whitespace`` every whitespace run becomes one space.
    """
    if output is None:
        return ""
    result = output.replace("\r\n", "\n").replace("\r", "\n")
    result = _BLANK_LINES.sub("\n", result)
    if ignore_whitespace:
        result = _WHITESPACE.sub(" ", result)
    return result.strip()


def _parse_number(text: str) -> Optional[float]:
    if _NUMBER.match(text) or _SPECIAL.match(text):
        return float(text)
    return None


def _is_numeric_output(output: str) -> bool:
    if not output:
        return False
    for line in output.split("\n"):
        line = line.strip()
        if line and _parse_number(line) is None:
            return False
    return True


def _numbers_equal(expected: float, actual: float, epsilon: float) -> bool:
    if math.isnan(expected) or math.isnan(actual):
        return math.isnan(expected) and math.isnan(actual)
    if math.isinf(expected) or math.isinf(actual):
        return expected == actual
    return abs(expected - actual) <= epsilon


def _compare_numeric(expected: str, actual: str, epsilon: float) -> bool:
    expected_lines = expected.split("\n")
    actual_lines = actual.split("\n")
    if len(expected_lines) != len(actual_lines):
        return False

    for exp_line, act_line in zip(expected_lines, actual_lines):
        exp_line, act_line = exp_line.strip(), act_line.strip()
        exp_num, act_num = _parse_number(exp_line), _parse_number(act_line)
        if exp_num is None or act_num is None:
            if exp_line != act_line:
                return False
        elif not _numbers_equal(exp_num, act_num, epsilon):
            return False
    return True


class OutputComparator:
    """Expected-vs-actual text comparison with numeric epsilon tolerance."""

    def __init__(self, ignore_whitespace: bool = False, epsilon: float = DEFAULT_EPSILON):
        self.ignore_whitespace = ignore_whitespace
        self.epsilon = epsilon

    def compare(self, expected: Optional[str], actual: Optional[str],
                ignore_whitespace: bool = None, epsilon: float = None) -> bool:
        if expected is None and actual is None:
            return True
        if expected is None or actual is None:
            return False
        if ignore_whitespace is None:
            ignore_whitespace = self.ignore_whitespace
        if epsilon is None:
            epsilon = self.epsilon

        norm_expected = normalize(expected, ignore_whitespace)
        norm_actual = normalize(actual, ignore_whitespace)
        if norm_expected == norm_actual:
            return True
        if _is_numeric_output(norm_expected) and _is_numeric_output(norm_actual):
            return _compare_numeric(norm_expected, norm_actual, epsilon)
        return False

    def get_compare_result(self, expected: Optional[str], actual: Optional[str],
                           ignore_whitespace: bool = None, epsilon: float = None) -> CompareResult:
        if ignore_whitespace is None:
            ignore_whitespace = self.ignore_whitespace
        return CompareResult(
            equal=self.compare(expected, actual, ignore_whitespace, epsilon),
            normalized_expected=normalize(expected, ignore_whitespace),
            normalized_actual=normalize(actual, ignore_whitespace),
        )
