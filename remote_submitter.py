"""
Remote judge submitter: posts solutions to a running judgecore server.
Supports batch submission with bounded concurrency.
"""
import asyncio
import logging
import time
from pathlib import Path
from typing import Dict, List, Optional

import aiohttp
from tqdm import tqdm

logger = logging.getLogger(__name__)


def _error_result(message: str) -> Dict:
    return {
        "success": False,
        "verdict": "System Error",
        "message": message,
        "time": 0,
        "memory": 0,
        "score": 0,
        "passed": False,
        "failed_test": None,
    }


class RemoteJudgeSubmitter:
    def __init__(self, base_url: str = "http://localhost:8000", max_workers: int = 8,
                 timeout: float = 300):
        """
        Args:
            base_url: judge server address
            max_workers: submissions in flight at once
            timeout: seconds to wait for one verdict
        """
        self.base_url = base_url
        self.judge_url = f"{base_url}/api/judge"
        self.max_workers = max_workers
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    @staticmethod
    def build_payload(code: str, problem_info: dict, language: Optional[str] = None) -> Dict:
        return {
            "code": code,
            "language": language or problem_info.get("language", "cpp"),
            "cases": [
                {"input": c.get("input", ""), "expected_output": c.get("expected_output", "")}
                for c in problem_info.get("cases", [])
            ],
            "time_limit": problem_info.get("time_limit"),
            "memory_limit": problem_info.get("memory_limit"),
            "policy": problem_info.get("policy"),
        }

    async def submit_code_async(self, session: aiohttp.ClientSession, code: str,
                                problem_info: dict, language: Optional[str] = None) -> Dict:
        """
        Submit one solution and wait for its verdict.

        Returns:
            result dict with verdict, time, memory, score and failed_test
        """
        payload = self.build_payload(code, problem_info, language)
        start_time = time.time()
        try:
            async with session.post(self.judge_url, json=payload) as response:
                if response.status != 200:
                    return _error_result(f"Submit failed: HTTP {response.status}")
                result = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return _error_result(f"Submit failed: {e}")

        status = result.get("status")
        return {
            "success": status != "System Error",
            "verdict": status,
            "message": result.get("message", ""),
            "time": result.get("total_execution_time", 0),
            "memory": result.get("max_memory_used", 0),
            "score": result.get("score", 0),
            "passed": status == "Accepted",
            "failed_test": result.get("failed_case") or None,
            "total_time": time.time() - start_time,
        }

    def submit_code(self, code: str, problem_info: dict, language: Optional[str] = None) -> Dict:
        """Blocking wrapper around ``submit_code_async``."""

        async def run():
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                return await self.submit_code_async(session, code, problem_info, language)

        return asyncio.run(run())

    async def batch_submit_code_async(self, problem_id: str, batch_code: List[str], problem_info: dict,
                                      original_result: str = "correct",
                                      language: Optional[str] = None) -> dict:
        semaphore = asyncio.Semaphore(max(self.max_workers, 1))
        results: List[Optional[Dict]] = [None] * len(batch_code)

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            with tqdm(total=len(batch_code), desc=f"Submitting {problem_id}") as pbar:

                async def submit(idx: int, code: str) -> None:
                    async with semaphore:
                        results[idx] = await self.submit_code_async(session, code, problem_info, language)
                    pbar.update(1)

                await asyncio.gather(*(submit(i, c) for i, c in enumerate(batch_code)))

        return summarize_batch(problem_id, batch_code, results, original_result)

    def batch_submit_code(self, problem_id: str, batch_code: List[str], problem_info: dict,
                          original_result: str = "correct", language: Optional[str] = None) -> dict:
        """
        Submit many solutions to one problem.

        Args:
            problem_id: label for the progress bar and logs
            batch_code: solutions to submit
            problem_info: cases and limits shared by every submission
            original_result: "correct" or "incorrect", which rates to report

        Returns:
            TPR/FNR (correct batch) or TNR/FPR (incorrect batch) and the accepted submissions
        """
        return asyncio.run(self.batch_submit_code_async(
            problem_id, batch_code, problem_info, original_result, language))


def summarize_batch(problem_id: str, batch_code: List[str], results: List[Dict],
                    original_result: str = "correct") -> dict:
    passed_cnt = 0
    error_cnt = 0
    passed_submissions = []

    for idx, (code, result) in enumerate(zip(batch_code, results)):
        if not result.get("success"):
            logger.warning("Submission %d for %s failed: %s", idx, problem_id, result.get("message"))
            error_cnt += 1
        elif result.get("passed"):
            passed_cnt += 1
            passed_submissions.append({"index": idx, "code": code, "result": result})

    valid_cnt = len(batch_code) - error_cnt
    if valid_cnt <= 0:
        raise ValueError(f"No valid submissions for problem {problem_id}")

    if original_result == "correct":
        return {
            "TPR": passed_cnt / valid_cnt,
            "FNR": 1 - passed_cnt / valid_cnt,
            "passed_submissions": passed_submissions,
        }
    return {
        "TNR": 1 - passed_cnt / valid_cnt,
        "FPR": passed_cnt / valid_cnt,
        "passed_submissions": passed_submissions,
    }


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    submitter = RemoteJudgeSubmitter(base_url="http://localhost:8000", max_workers=8)

    code_file = Path("test.cpp")
    if code_file.exists():
        code = code_file.read_text(encoding="utf-8")
        problem_info = {
            "language": "cpp",
            "cases": [{"input": "1 2\n", "expected_output": "3\n"}],
        }

        result = submitter.submit_code(code, problem_info)
        print(f"Verdict: {result['verdict']}")
        print(f"Time: {result['time']}ms")
        print(f"Score: {result.get('score', 0)}")
        print(f"Failed Test: {result.get('failed_test') or 'N/A'}")
    else:
        print(f"Error: {code_file} not found")
