"""Runs one test case against an already built program.

The child is started in its own session. Its pipes are drained by
background tasks from the moment it starts, stdin is fed by another task,
and memory is sampled periodically until it exits. The only blocking
point is the timed wait on process exit. On every path the process group
and any remaining descendants are killed and the child is reaped before
``execute`` returns.
"""

import asyncio
import logging
import os
import signal
import time
from pathlib import Path
from typing import List

import psutil

from .comparator import OutputComparator, normalize
from .memory import MemoryProbe
from .models import CaseResult, JudgeStatus, TestCase

_logger = logging.getLogger(__name__)

READ_CHUNK = 64 * 1024
DRAIN_GRACE = 1.0  # s allowed for pipes to reach EOF once the child is gone
MAX_OUTPUT_SIZE = 10 * 1024 * 1024


class _OutputBuffer:
    """Collects a pipe's bytes up to ``limit``; the rest is read and dropped."""

    def __init__(self, limit: int):
        self.limit = limit
        self.overflowed = False
        self._chunks = []
        self._size = 0

    async def drain(self, stream: asyncio.StreamReader) -> None:
        while True:
            chunk = await stream.read(READ_CHUNK)
            if not chunk:
                return
            room = self.limit - self._size
            if len(chunk) > room:
                self.overflowed = True
                chunk = chunk[:max(room, 0)]
            if chunk:
                self._chunks.append(chunk)
                self._size += len(chunk)

    def text(self) -> str:
        return b"".join(self._chunks).decode("utf-8", errors="replace")


async def _feed_stdin(stdin: asyncio.StreamWriter, data: bytes) -> None:
    try:
        if data:
            stdin.write(data)
            await stdin.drain()
    except (BrokenPipeError, ConnectionResetError):
        # the program exited or closed stdin without reading everything
        pass
    finally:
        try:
            stdin.close()
        except (BrokenPipeError, ConnectionResetError, RuntimeError):
            pass


def _exit_message(returncode: int) -> str:
    if returncode < 0:
        try:
            name = signal.Signals(-returncode).name
        except ValueError:
            name = str(-returncode)
        return f"Killed by signal {name}"
    return f"Exit code: {returncode}"


def kill_process_tree(process: asyncio.subprocess.Process) -> None:
    """SIGKILL the child, its process group and every descendant psutil can see."""
    descendants = []
    if process.returncode is None:
        # once reaped the pid may belong to someone else
        try:
            descendants = psutil.Process(process.pid).children(recursive=True)
        except psutil.Error:
            pass

    if hasattr(os, "killpg"):
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            pass
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass

    for child in descendants:
        try:
            child.kill()
        except psutil.Error:
            pass


class SandboxExecutor:
    def __init__(self, comparator: OutputComparator = None, probe: MemoryProbe = None,
                 max_output_bytes: int = MAX_OUTPUT_SIZE, sample_interval_ms: int = 10):
        self.comparator = comparator or OutputComparator()
        self.probe = probe or MemoryProbe()
        self.max_output_bytes = max_output_bytes
        self.sample_interval = sample_interval_ms / 1000.0

    async def execute(self, test_case: TestCase, work_dir: Path, argv: List[str],
                      time_limit_ms: int, memory_limit_kb: int) -> CaseResult:
        """Run ``argv`` on one case and classify the outcome. Never raises."""
        process = None
        tasks = []
        stdout = _OutputBuffer(self.max_output_bytes)
        stderr = _OutputBuffer(self.max_output_bytes)
        stop_sampling = asyncio.Event()

        try:
            # unencodable input is a system error, never an empty stdin
            stdin_data = test_case.input.encode("utf-8") if test_case.input else b""
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(work_dir),
                start_new_session=True,
            )
            start_time = time.perf_counter()

            readers = [
                asyncio.create_task(stdout.drain(process.stdout)),
                asyncio.create_task(stderr.drain(process.stderr)),
            ]
            feeder = asyncio.create_task(_feed_stdin(process.stdin, stdin_data))
            sampler = asyncio.create_task(self._sample_memory(process.pid, stop_sampling))
            tasks = [*readers, feeder, sampler]

            timed_out = False
            try:
                await asyncio.wait_for(process.wait(), timeout=time_limit_ms / 1000.0)
            except asyncio.TimeoutError:
                timed_out = True
                kill_process_tree(process)
                await process.wait()

            elapsed_ms = int((time.perf_counter() - start_time) * 1000)
            stop_sampling.set()
            memory_used = await sampler
            await self._collect(process, readers)

            if timed_out:
                return self._result(JudgeStatus.TIME_LIMIT_EXCEEDED, test_case, stderr.text(),
                                    elapsed_ms, memory_used, stdout.text())

            if process.returncode != 0:
                message = stderr.text() or _exit_message(process.returncode)
                return self._result(JudgeStatus.RUNTIME_ERROR, test_case, message,
                                    elapsed_ms, memory_used, stdout.text())

            if stdout.overflowed:
                return self._result(JudgeStatus.RUNTIME_ERROR, test_case,
                                    f"Output limit exceeded ({self.max_output_bytes} bytes)",
                                    elapsed_ms, memory_used, stdout.text())

            return self._evaluate(test_case, stdout.text(), elapsed_ms, memory_used,
                                  time_limit_ms, memory_limit_kb)

        except Exception as e:
            _logger.exception("Execution failed: %s", argv[:1])
            return CaseResult(
                status=JudgeStatus.SYSTEM_ERROR,
                message=f"{type(e).__name__}: {e}",
                input=test_case.input,
                expected_output=test_case.expected_output,
            )
        finally:
            stop_sampling.set()
            for task in tasks:
                if not task.done():
                    task.cancel()
            if process is not None:
                await self._release(process)

    def _evaluate(self, test_case: TestCase, output: str, elapsed_ms: int, memory_used: int,
                  time_limit_ms: int, memory_limit_kb: int) -> CaseResult:
        if memory_used > memory_limit_kb:
            return self._result(JudgeStatus.MEMORY_LIMIT_EXCEEDED, test_case, "",
                                elapsed_ms, memory_used, output)
        if elapsed_ms > time_limit_ms:
            return self._result(JudgeStatus.TIME_LIMIT_EXCEEDED, test_case, "",
                                elapsed_ms, memory_used, output)

        compared = self.comparator.get_compare_result(test_case.expected_output, output)
        status = JudgeStatus.ACCEPTED if compared.equal else JudgeStatus.WRONG_ANSWER
        return CaseResult(
            status=status,
            execution_time=elapsed_ms,
            memory_used=memory_used,
            actual_output=compared.normalized_actual,
            expected_output=test_case.expected_output,
            input=test_case.input,
        )

    @staticmethod
    def _result(status: JudgeStatus, test_case: TestCase, message: str, elapsed_ms: int,
                memory_used: int, output: str) -> CaseResult:
        return CaseResult(
            status=status,
            message=message,
            execution_time=elapsed_ms,
            memory_used=memory_used,
            actual_output=normalize(output),
            expected_output=test_case.expected_output,
            input=test_case.input,
        )

    async def _sample_memory(self, pid: int, stop: asyncio.Event) -> int:
        peak = 0
        while True:
            sample = await asyncio.to_thread(self.probe.estimate_tree_usage, pid)
            peak = max(peak, sample)
            if stop.is_set():
                return peak
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.sample_interval)
            except asyncio.TimeoutError:
                continue
            return peak

    async def _collect(self, process: asyncio.subprocess.Process, readers: List[asyncio.Task]) -> None:
        _, pending = await asyncio.wait(readers, timeout=DRAIN_GRACE)
        if pending:
            # a descendant still holds the pipes open
            kill_process_tree(process)
            _, pending = await asyncio.wait(pending, timeout=DRAIN_GRACE)
            for task in pending:
                task.cancel()

    @staticmethod
    async def _release(process: asyncio.subprocess.Process) -> None:
        kill_process_tree(process)
        if process.returncode is None:
            await process.wait()
