"""Run-and-compare service behind the "test my code" button.

Unlike ``Judge.judge`` every case runs regardless of earlier failures and
the response reports each case on its own. Without cases the program runs
once on empty input and its output is returned.
"""

import enum
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel

from .context import JudgeContext, create_context
from .languages import build_command, compile_source
from .models import CaseResult, ExecutionLimits, JudgeStatus, Language, TestCase
from .workspace import workspace

_logger = logging.getLogger(__name__)

TEMP_DIR_PREFIX = "codetest_"


class TestStatus(str, enum.Enum):
    __test__ = False

    ALL_PASSED = "ALL_PASSED"
    PARTIAL_PASSED = "PARTIAL_PASSED"
    ALL_FAILED = "ALL_FAILED"
    COMPILE_ERROR = "COMPILE_ERROR"
    TIME_LIMIT_EXCEEDED = "TIME_LIMIT_EXCEEDED"
    MEMORY_LIMIT_EXCEEDED = "MEMORY_LIMIT_EXCEEDED"
    RUNTIME_ERROR = "RUNTIME_ERROR"
    SYSTEM_ERROR = "SYSTEM_ERROR"
    EXECUTED_ONLY = "EXECUTED_ONLY"


_CASE_STATUS = {
    JudgeStatus.ACCEPTED: TestStatus.ALL_PASSED,
    JudgeStatus.WRONG_ANSWER: TestStatus.ALL_FAILED,
    JudgeStatus.TIME_LIMIT_EXCEEDED: TestStatus.TIME_LIMIT_EXCEEDED,
    JudgeStatus.MEMORY_LIMIT_EXCEEDED: TestStatus.MEMORY_LIMIT_EXCEEDED,
    JudgeStatus.RUNTIME_ERROR: TestStatus.RUNTIME_ERROR,
}


class CodeTestCase(BaseModel):
    id: Optional[str] = None
    input: str = ""
    expected_output: Optional[str] = None
    description: Optional[str] = None


class CodeTestRequest(BaseModel):
    code: str
    language: str
    test_cases: Optional[List[CodeTestCase]] = None
    time_limit: Optional[int] = None
    memory_limit: Optional[int] = None
    show_detail: bool = False


class CaseTestResult(BaseModel):
    case_id: str
    index: int
    description: Optional[str] = None
    input: Optional[str] = None
    expected_output: Optional[str] = None
    actual_output: Optional[str] = None
    status: TestStatus
    execution_time: int = 0
    memory_used: int = 0
    error_message: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.status == TestStatus.ALL_PASSED


class CodeTestResponse(BaseModel):
    status: TestStatus
    message: str = ""
    passed_count: int = 0
    total_count: int = 0
    case_results: Optional[List[CaseTestResult]] = None
    total_execution_time: int = 0
    max_memory_used: int = 0
    output: Optional[str] = None

    @classmethod
    def error(cls, status: TestStatus, message: str) -> "CodeTestResponse":
        return cls(status=status, message=message)

    @classmethod
    def executed_only(cls, execution_time: int, memory_used: int, output: str) -> "CodeTestResponse":
        return cls(
            status=TestStatus.EXECUTED_ONLY,
            message="Code executed successfully",
            total_execution_time=execution_time,
            max_memory_used=memory_used,
            output=output,
        )

    @classmethod
    def summarize(cls, results: List[CaseTestResult]) -> "CodeTestResponse":
        passed = sum(r.passed for r in results)
        total = len(results)
        if passed == total:
            status, message = TestStatus.ALL_PASSED, "All test cases passed"
        elif passed == 0:
            status, message = TestStatus.ALL_FAILED, "All test cases failed"
        else:
            status, message = TestStatus.PARTIAL_PASSED, f"{passed}/{total} test cases passed"
        return cls(
            status=status,
            message=message,
            passed_count=passed,
            total_count=total,
            case_results=results,
            total_execution_time=sum(r.execution_time for r in results),
            max_memory_used=max((r.memory_used for r in results), default=0),
        )


class CodeTester:
    def __init__(self, context: JudgeContext = None):
        self.context = context or create_context()

    async def execute_test(self, request: CodeTestRequest) -> CodeTestResponse:
        limits = self.context.validator.apply_default_limits(request.time_limit, request.memory_limit)
        rejection = self._check(request, limits)
        if rejection is not None:
            return rejection

        language = Language.parse(request.language)
        try:
            async with self.context.pool.slot():
                with workspace(TEMP_DIR_PREFIX) as work_dir:
                    failed = await self._compile(language, request.code, work_dir)
                    if failed is not None:
                        return failed
                    command = build_command(language, work_dir, self.context.settings.sandbox)
                    if not request.test_cases:
                        return await self._execute_only(work_dir, command, limits)
                    results = []
                    for idx, case in enumerate(request.test_cases):
                        results.append(await self._execute_case(idx, case, work_dir, command,
                                                                limits, request.show_detail))
                    return CodeTestResponse.summarize(results)
        except Exception as e:
            _logger.exception("Unexpected error during code test")
            return CodeTestResponse.error(TestStatus.SYSTEM_ERROR, f"Error: {e}")

    async def execute_single_test(self, request: CodeTestRequest) -> CodeTestResponse:
        """Like ``execute_test`` but only the first case runs."""
        if request.test_cases:
            request = request.model_copy(update={"test_cases": request.test_cases[:1]})
        return await self.execute_test(request)

    def _check(self, request: CodeTestRequest, limits: ExecutionLimits) -> Optional[CodeTestResponse]:
        validator = self.context.validator
        cases = [TestCase(c.input, c.expected_output) for c in request.test_cases or []]
        rejection = (
            validator.check_source(request.code, request.language)
            or validator.check_test_cases(cases, allow_empty=True)
            or validator.check_limits(limits.time_limit_ms, limits.memory_limit_kb)
        )
        if rejection:
            _logger.warning("Invalid code test request: %s", rejection.message)
            return CodeTestResponse.error(TestStatus.SYSTEM_ERROR, f"Invalid request: {rejection.message}")
        if validator.contains_dangerous_code(request.code, request.language):
            return CodeTestResponse.error(TestStatus.RUNTIME_ERROR,
                                          "Code contains potentially dangerous operations")
        return None

    async def _compile(self, language: Language, code: str, work_dir: Path) -> Optional[CodeTestResponse]:
        try:
            result = await compile_source(language, code, work_dir,
                                          self.context.settings.judge.compile_timeout_sec)
        except OSError as e:
            return CodeTestResponse.error(TestStatus.SYSTEM_ERROR, f"Toolchain unavailable: {e}")
        if result.status == JudgeStatus.ACCEPTED:
            return None
        if result.status == JudgeStatus.COMPILATION_ERROR:
            return CodeTestResponse.error(TestStatus.COMPILE_ERROR, result.message or "Compilation failed")
        return CodeTestResponse.error(TestStatus.SYSTEM_ERROR, result.message)

    async def _execute_only(self, work_dir: Path, command: List[str], limits: ExecutionLimits) -> CodeTestResponse:
        result = await self._run(TestCase(), work_dir, command, limits)
        if result.status == JudgeStatus.TIME_LIMIT_EXCEEDED:
            return CodeTestResponse.error(TestStatus.TIME_LIMIT_EXCEEDED, "Execution timed out")
        if result.status == JudgeStatus.MEMORY_LIMIT_EXCEEDED:
            return CodeTestResponse.error(TestStatus.MEMORY_LIMIT_EXCEEDED, "Memory limit exceeded")
        if result.status == JudgeStatus.RUNTIME_ERROR:
            return CodeTestResponse.error(TestStatus.RUNTIME_ERROR, result.message or "Runtime error")
        if result.status == JudgeStatus.SYSTEM_ERROR:
            return CodeTestResponse.error(TestStatus.SYSTEM_ERROR, result.message)
        return CodeTestResponse.executed_only(result.execution_time, result.memory_used, result.actual_output)

    async def _execute_case(self, idx: int, case: CodeTestCase, work_dir: Path, command: List[str],
                            limits: ExecutionLimits, show_detail: bool) -> CaseTestResult:
        result = await self._run(TestCase(case.input, case.expected_output or ""), work_dir, command, limits)
        status = _CASE_STATUS.get(result.status, TestStatus.SYSTEM_ERROR)
        message = result.message or None
        if not case.expected_output:
            # nothing to compare against, a clean run passes
            if result.status == JudgeStatus.WRONG_ANSWER:
                status = TestStatus.ALL_PASSED
        elif result.status == JudgeStatus.WRONG_ANSWER:
            message = "Output mismatch"
        return CaseTestResult(
            case_id=case.id or f"case_{idx}",
            index=idx,
            description=case.description,
            input=case.input if show_detail else None,
            expected_output=case.expected_output if show_detail else None,
            actual_output=result.actual_output if show_detail else None,
            status=status,
            execution_time=result.execution_time,
            memory_used=result.memory_used,
            error_message=None if status == TestStatus.ALL_PASSED else message,
        )

    async def _run(self, test_case: TestCase, work_dir: Path, command: List[str],
                   limits: ExecutionLimits) -> CaseResult:
        result = await self.context.executor.execute(
            test_case, work_dir, command, limits.time_limit_ms, limits.memory_limit_kb)
        self.context.monitor.record_execution("code_test", result.execution_time,
                                              result.memory_used, result.accepted)
        return result
