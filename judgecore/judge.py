import asyncio
import itertools
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from .context import JudgeContext, create_context
from .languages import build_command, compile_source
from .models import (
    CaseResult,
    ExecutionLimits,
    ExecutionPolicy,
    JudgeResult,
    JudgeStatus,
    Language,
    TestCase,
)
from .pool import PoolRejected
from .workspace import workspace

_logger = logging.getLogger(__name__)

# ids for log correlation when the caller does not pass one
_judge_ids = itertools.count(1)


def failure_message(result: CaseResult) -> str:
    if result.message:
        return result.message
    return result.status.value


class Judge:
    """Compile once, run every test case, and reduce the outcomes to one verdict.

    ``judge`` never raises: validation failures, compile errors, sandbox
    failures and unexpected exceptions all come back as a ``JudgeResult``.
    The temp working directory is gone by the time it returns.
    """

    def __init__(self, context: JudgeContext = None):
        self.context = context or create_context()

    async def judge(self, test_cases: Sequence[TestCase], source_code: str, language,
                    time_limit: Optional[int] = None, memory_limit: Optional[int] = None,
                    policy: Optional[ExecutionPolicy] = None,
                    submission_id: Optional[int] = None) -> JudgeResult:
        judge_id = submission_id if submission_id is not None else next(_judge_ids)
        try:
            return await self._judge(judge_id, test_cases, source_code, language,
                                     time_limit, memory_limit, policy)
        except PoolRejected as e:
            _logger.warning("[Judge #%s] Rejected: %s", judge_id, e)
            return JudgeResult.error(JudgeStatus.SYSTEM_ERROR, str(e))
        except Exception as e:
            _logger.exception("[Judge #%s] Unexpected error during judge", judge_id)
            return JudgeResult.error(JudgeStatus.SYSTEM_ERROR, f"Unexpected error: {e}")

    async def _judge(self, judge_id, test_cases, source_code, language,
                     time_limit, memory_limit, policy) -> JudgeResult:
        validator = self.context.validator
        limits = validator.apply_default_limits(time_limit, memory_limit)
        rejection = validator.validate(source_code, language, test_cases,
                                       limits.time_limit_ms, limits.memory_limit_kb)
        if rejection is not None:
            _logger.warning("[Judge #%s] Input validation failed: %s", judge_id, rejection.message)
            return rejection

        language = Language.parse(language)
        policy = ExecutionPolicy(policy) if policy else self.context.settings.judge.policy
        _logger.info("[Judge #%s] Language: %s, Cases: %d, Policy: %s",
                     judge_id, language.value, len(test_cases), policy.value)

        async with self.context.pool.slot():
            with workspace(self.context.settings.judge.temp_prefix) as work_dir:
                compile_result = await self._compile(judge_id, language, source_code, work_dir)
                if compile_result.status != JudgeStatus.ACCEPTED:
                    return compile_result

                command = build_command(language, work_dir, self.context.settings.sandbox)
                if policy == ExecutionPolicy.AGGREGATE:
                    result = await self._run_aggregate(judge_id, test_cases, work_dir, command, limits)
                else:
                    result = await self._run_sequential(judge_id, test_cases, work_dir, command, limits)

        _logger.info("[Judge #%s] Result: %s, Time: %dms, Memory: %dKB, Score: %d",
                     judge_id, result.status.value, result.total_execution_time,
                     result.max_memory_used, result.score)
        return result

    async def _compile(self, judge_id, language: Language, source_code: str, work_dir: Path) -> JudgeResult:
        _logger.info("[Judge #%s] Compiling...", judge_id)
        try:
            result = await compile_source(language, source_code, work_dir,
                                          self.context.settings.judge.compile_timeout_sec)
        except OSError as e:
            _logger.error("[Judge #%s] Toolchain launch failed: %s", judge_id, e)
            return JudgeResult.error(JudgeStatus.SYSTEM_ERROR, f"Toolchain unavailable: {e}")
        if result.status != JudgeStatus.ACCEPTED:
            _logger.info("[Judge #%s] Compile Error: %s", judge_id, result.message[:200])
        return result

    async def _run_sequential(self, judge_id, test_cases: Sequence[TestCase], work_dir: Path,
                              command: List[str], limits: ExecutionLimits) -> JudgeResult:
        results = []
        total_time = 0
        max_memory = 0

        for idx, test_case in enumerate(test_cases):
            result = await self.context.executor.execute(
                test_case, work_dir, command, limits.time_limit_ms, limits.memory_limit_kb)
            self._record(idx, result)
            total_time += result.execution_time
            max_memory = max(max_memory, result.memory_used)
            results.append(result)

            if not result.accepted:
                _logger.info("[Judge #%s] Test %d failed with %s, stopping",
                             judge_id, idx + 1, result.status.value)
                return self._failure(results, idx, total_time, max_memory, total=len(test_cases))

        return self._success(results, total_time, max_memory)

    async def _run_aggregate(self, judge_id, test_cases: Sequence[TestCase], work_dir: Path,
                             command: List[str], limits: ExecutionLimits) -> JudgeResult:
        semaphore = asyncio.Semaphore(max(self.context.settings.judge.case_concurrency, 1))

        async def run_case(test_case: TestCase) -> CaseResult:
            async with semaphore:
                return await self.context.executor.execute(
                    test_case, work_dir, command, limits.time_limit_ms, limits.memory_limit_kb)

        # gather keeps submission order whatever order the cases finish in
        results = list(await asyncio.gather(*(run_case(tc) for tc in test_cases)))
        for idx, result in enumerate(results):
            self._record(idx, result)

        total_time = sum(r.execution_time for r in results)
        max_memory = max((r.memory_used for r in results), default=0)
        status = JudgeStatus.worst(r.status for r in results)
        if status == JudgeStatus.ACCEPTED:
            return self._success(results, total_time, max_memory)

        idx = next(i for i, r in enumerate(results) if r.status == status)
        _logger.info("[Judge #%s] %d/%d cases failed, first %s at test %d", judge_id,
                     sum(not r.accepted for r in results), len(results), status.value, idx + 1)
        return self._failure(results, idx, total_time, max_memory, total=len(results))

    def _record(self, idx: int, result: CaseResult) -> None:
        self.context.monitor.record_execution(
            f"case_{idx}", result.execution_time, result.memory_used, result.accepted)

    @staticmethod
    def _success(results: List[CaseResult], total_time: int, max_memory: int) -> JudgeResult:
        return JudgeResult(
            status=JudgeStatus.ACCEPTED,
            message="All test cases passed",
            total_execution_time=total_time,
            max_memory_used=max_memory,
            case_results=results,
            score=100,
        )

    @staticmethod
    def _failure(results: List[CaseResult], idx: int, total_time: int, max_memory: int,
                 total: int) -> JudgeResult:
        failed = results[idx]
        passed = sum(r.accepted for r in results)
        return JudgeResult(
            status=failed.status,
            message=failure_message(failed),
            total_execution_time=total_time,
            max_memory_used=max_memory,
            case_result=failed,
            case_results=results,
            score=int(passed * 100 / total),
            failed_case=idx + 1,
        )
