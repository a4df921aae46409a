"""Tests for request validation."""

import pytest

from judgecore.config import (
    MAX_CODE_LENGTH,
    MAX_MEMORY_LIMIT,
    MAX_TEST_CASE_COUNT,
    MAX_TEST_CASE_SIZE,
    MAX_TIME_LIMIT,
    JudgeSettings,
)
from judgecore.models import JudgeStatus, TestCase
from judgecore.validator import InputValidator

CASES = [TestCase("1 2\n", "3\n")]
SOURCE = "print(3)\n"


@pytest.fixture
def validator():
    return InputValidator(JudgeSettings(default_time_limit_ms=1000, default_memory_limit_kb=262144))


class TestDefaultLimits:
    def test_missing_limits_take_defaults(self, validator):
        limits = validator.apply_default_limits(None, None)
        assert limits.time_limit_ms == 1000
        assert limits.memory_limit_kb == 262144

    def test_below_minimum_takes_defaults(self, validator):
        limits = validator.apply_default_limits(50, 512)
        assert limits.time_limit_ms == 1000
        assert limits.memory_limit_kb == 262144

    def test_valid_limits_kept(self, validator):
        limits = validator.apply_default_limits(2000, 65536)
        assert limits.time_limit_ms == 2000
        assert limits.memory_limit_kb == 65536

    def test_above_maximum_is_not_clamped(self, validator):
        limits = validator.apply_default_limits(MAX_TIME_LIMIT + 1, 65536)
        assert limits.time_limit_ms == MAX_TIME_LIMIT + 1


class TestValidate:
    def test_valid_request(self, validator):
        assert validator.validate(SOURCE, "python", CASES, 1000, 65536) is None

    @pytest.mark.parametrize("source", ["", None])
    def test_empty_source(self, validator, source):
        result = validator.validate(source, "python", CASES, 1000, 65536)
        assert result.status == JudgeStatus.SYSTEM_ERROR

    def test_source_too_long(self, validator):
        result = validator.validate("#" * (MAX_CODE_LENGTH + 1), "python", CASES, 1000, 65536)
        assert result.status == JudgeStatus.SYSTEM_ERROR
        assert "maximum length" in result.message

    def test_unknown_language(self, validator):
        result = validator.validate(SOURCE, "cobol", CASES, 1000, 65536)
        assert result.status == JudgeStatus.SYSTEM_ERROR
        assert "Unsupported language" in result.message

    def test_no_test_cases(self, validator):
        result = validator.validate(SOURCE, "python", [], 1000, 65536)
        assert result.status == JudgeStatus.SYSTEM_ERROR

    def test_too_many_test_cases(self, validator):
        cases = [TestCase("", "")] * (MAX_TEST_CASE_COUNT + 1)
        result = validator.validate(SOURCE, "python", cases, 1000, 65536)
        assert result.status == JudgeStatus.SYSTEM_ERROR

    def test_test_case_too_large(self, validator):
        cases = [TestCase("x" * (MAX_TEST_CASE_SIZE + 1), "")]
        result = validator.validate(SOURCE, "python", cases, 1000, 65536)
        assert result.status == JudgeStatus.SYSTEM_ERROR
        assert "index 0" in result.message

    def test_expected_output_too_large(self, validator):
        cases = [TestCase("", "x" * (MAX_TEST_CASE_SIZE + 1))]
        result = validator.validate(SOURCE, "python", cases, 1000, 65536)
        assert result.status == JudgeStatus.SYSTEM_ERROR

    @pytest.mark.parametrize("time_limit,memory_limit", [
        (MAX_TIME_LIMIT + 1, 65536),
        (99, 65536),
        (1000, MAX_MEMORY_LIMIT + 1),
        (1000, 1023),
        (None, 65536),
    ])
    def test_limits_out_of_range(self, validator, time_limit, memory_limit):
        result = validator.validate(SOURCE, "python", CASES, time_limit, memory_limit)
        assert result.status == JudgeStatus.SYSTEM_ERROR

    def test_limit_bounds_inclusive(self, validator):
        assert validator.validate(SOURCE, "python", CASES, 100, 1024) is None
        assert validator.validate(SOURCE, "python", CASES, MAX_TIME_LIMIT, MAX_MEMORY_LIMIT) is None


class TestDangerousCode:
    @pytest.mark.parametrize("source,language", [
        ("Runtime.getRuntime().exec(\"ls\");", "java"),
        ("new ProcessBuilder(\"sh\").start();", "java"),
        ("open('../secret')", "python"),
        ("import subprocess\nsubprocess.run(['ls'])", "python"),
        ("from socket import socket", "python"),
        ("int main() { system(\"ls\"); }", "cpp"),
        ("int main() { fork(); }", "c"),
        ("<?php shell_exec('ls');", "php"),
    ])
    def test_rejected_as_runtime_error(self, validator, source, language):
        result = validator.validate(source, language, CASES, 1000, 65536)
        assert result.status == JudgeStatus.RUNTIME_ERROR
        assert result.message == "Code contains potentially dangerous operations"

    @pytest.mark.parametrize("source,language", [
        ("print(sum(map(int, input().split())))", "python"),
        ("#include <cstdio>\nint main() { printf(\"3\"); }", "cpp"),
        ("fn main() { println!(\"3\"); }", "rust"),
    ])
    def test_ordinary_code_allowed(self, validator, source, language):
        assert not validator.contains_dangerous_code(source, language)
