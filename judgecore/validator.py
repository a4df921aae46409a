"""Request-level checks run before anything is compiled.

The dangerous-construct scan is a coarse early filter; isolation is the
sandbox tool's job.
"""

import re
from typing import Optional, Sequence

from .config import (
    MAX_CODE_LENGTH,
    MAX_MEMORY_LIMIT,
    MAX_TEST_CASE_COUNT,
    MAX_TEST_CASE_SIZE,
    MAX_TIME_LIMIT,
    MIN_MEMORY_LIMIT,
    MIN_TIME_LIMIT,
    JudgeSettings,
)
from .languages import STRATEGIES
from .models import ExecutionLimits, JudgeResult, JudgeStatus, Language, TestCase

DANGEROUS_PATTERN = re.compile(
    r"Runtime\.getRuntime\(\)|ProcessBuilder|ProcessImpl|System\.exit|exec\(|loadLibrary|"
    r"class\.forName|reflect\.|Unsafe\.|FileInputStream|FileOutputStream|RandomAccessFile|"
    r"ServerSocket|Socket|URLClassLoader|\.\./|\.\.\\",
    re.IGNORECASE,
)

LANGUAGE_PATTERNS = {
    Language.PYTHON: re.compile(r"^\s*(import|from)\s+(subprocess|socket|ctypes|multiprocessing)\b", re.MULTILINE),
    Language.C: re.compile(r"\b(system|fork|popen|execv\w*)\s*\("),
    Language.CPP: re.compile(r"\b(system|fork|popen|execv\w*)\s*\("),
    Language.PHP: re.compile(r"\b(shell_exec|passthru|proc_open|popen|system)\s*\(", re.IGNORECASE),
}


def _reject(status: JudgeStatus, message: str) -> JudgeResult:
    return JudgeResult.error(status, message)


class InputValidator:
    def __init__(self, settings: JudgeSettings = None):
        self.settings = settings or JudgeSettings()

    def apply_default_limits(self, time_limit: Optional[int], memory_limit: Optional[int]) -> ExecutionLimits:
        """Missing or below-minimum limits fall back to the configured defaults."""
        if time_limit is None or time_limit < MIN_TIME_LIMIT:
            time_limit = self.settings.default_time_limit_ms
        if memory_limit is None or memory_limit < MIN_MEMORY_LIMIT:
            memory_limit = self.settings.default_memory_limit_kb
        return ExecutionLimits(int(time_limit), int(memory_limit))

    def check_source(self, source_code: Optional[str], language) -> Optional[JudgeResult]:
        if not source_code:
            return _reject(JudgeStatus.SYSTEM_ERROR, "Source code cannot be empty")
        if len(source_code) > MAX_CODE_LENGTH:
            return _reject(JudgeStatus.SYSTEM_ERROR,
                           f"Source code exceeds maximum length of {MAX_CODE_LENGTH} characters")
        try:
            parsed = Language.parse(language)
        except ValueError:
            return _reject(JudgeStatus.SYSTEM_ERROR, f"Unsupported language: {language}")
        if parsed not in STRATEGIES:
            return _reject(JudgeStatus.SYSTEM_ERROR, f"Unsupported language: {language}")
        return None

    def check_limits(self, time_limit: Optional[int], memory_limit: Optional[int]) -> Optional[JudgeResult]:
        if time_limit is None or memory_limit is None:
            return _reject(JudgeStatus.SYSTEM_ERROR, "Time limit and memory limit cannot be null")
        if not MIN_TIME_LIMIT <= time_limit <= MAX_TIME_LIMIT:
            return _reject(JudgeStatus.SYSTEM_ERROR,
                           f"Time limit must be between {MIN_TIME_LIMIT}ms and {MAX_TIME_LIMIT}ms")
        if not MIN_MEMORY_LIMIT <= memory_limit <= MAX_MEMORY_LIMIT:
            return _reject(JudgeStatus.SYSTEM_ERROR,
                           f"Memory limit must be between {MIN_MEMORY_LIMIT}KB and {MAX_MEMORY_LIMIT}KB")
        return None

    def check_test_cases(self, test_cases: Optional[Sequence[TestCase]], allow_empty: bool = False) -> Optional[JudgeResult]:
        if not test_cases:
            if allow_empty:
                return None
            return _reject(JudgeStatus.SYSTEM_ERROR, "Test cases cannot be empty")
        if len(test_cases) > MAX_TEST_CASE_COUNT:
            return _reject(JudgeStatus.SYSTEM_ERROR,
                           f"Too many test cases, maximum is {MAX_TEST_CASE_COUNT}")
        for i, test_case in enumerate(test_cases):
            if test_case is None:
                return _reject(JudgeStatus.SYSTEM_ERROR, f"Test case at index {i} is null")
            if test_case.input is not None and len(test_case.input) > MAX_TEST_CASE_SIZE:
                return _reject(JudgeStatus.SYSTEM_ERROR,
                               f"Test case input at index {i} exceeds maximum size of {MAX_TEST_CASE_SIZE}")
            if test_case.expected_output is not None and len(test_case.expected_output) > MAX_TEST_CASE_SIZE:
                return _reject(JudgeStatus.SYSTEM_ERROR,
                               f"Test case expected output at index {i} exceeds maximum size of {MAX_TEST_CASE_SIZE}")
        return None

    @staticmethod
    def contains_dangerous_code(source_code: str, language) -> bool:
        if DANGEROUS_PATTERN.search(source_code):
            return True
        pattern = LANGUAGE_PATTERNS.get(Language.parse(language))
        return bool(pattern and pattern.search(source_code))

    def validate(self, source_code: Optional[str], language, test_cases: Optional[Sequence[TestCase]],
                 time_limit: Optional[int], memory_limit: Optional[int]) -> Optional[JudgeResult]:
        """Return an early-rejection verdict, or None when the request may be judged."""
        rejection = (
            self.check_source(source_code, language)
            or self.check_test_cases(test_cases)
            or self.check_limits(time_limit, memory_limit)
        )
        if rejection:
            return rejection
        if self.contains_dangerous_code(source_code, language):
            return _reject(JudgeStatus.RUNTIME_ERROR, "Code contains potentially dangerous operations")
        return None
