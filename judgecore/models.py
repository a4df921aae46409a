from dataclasses import dataclass, field
from typing import Iterable, List, Optional
import enum


class JudgeStatus(str, enum.Enum):
    ACCEPTED = "Accepted"
    WRONG_ANSWER = "Wrong Answer"
    TIME_LIMIT_EXCEEDED = "Time Limit Exceeded"
    MEMORY_LIMIT_EXCEEDED = "Memory Limit Exceeded"
    RUNTIME_ERROR = "Runtime Error"
    COMPILATION_ERROR = "Compilation Error"
    SYSTEM_ERROR = "System Error"

    @property
    def precedence(self) -> int:
        """Rank used to pick one overall verdict; higher wins."""
        return _PRECEDENCE[self]

    @classmethod
    def worst(cls, statuses: Iterable["JudgeStatus"]) -> "JudgeStatus":
        return max(statuses, key=lambda s: s.precedence, default=cls.ACCEPTED)


_PRECEDENCE = {
    JudgeStatus.ACCEPTED: 0,
    JudgeStatus.WRONG_ANSWER: 1,
    JudgeStatus.TIME_LIMIT_EXCEEDED: 2,
    JudgeStatus.MEMORY_LIMIT_EXCEEDED: 3,
    JudgeStatus.RUNTIME_ERROR: 4,
    JudgeStatus.COMPILATION_ERROR: 5,
    JudgeStatus.SYSTEM_ERROR: 6,
}


class Language(str, enum.Enum):
    JAVA = "JAVA"
    PYTHON = "PYTHON"
    CPP = "CPP"
    C = "C"
    RUST = "RUST"
    GO = "GO"
    PHP = "PHP"
    KOTLIN = "KOTLIN"

    @classmethod
    def parse(cls, value) -> "Language":
        """Accept a Language or a case-insensitive tag such as ``"cpp"`` or ``"c++"``."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Unsupported language: {value!r}")
        tag = value.strip().upper()
        tag = _ALIASES.get(tag, tag)
        try:
            return cls(tag)
        except ValueError:
            raise ValueError(f"Unsupported language: {value}") from None


_ALIASES = {
    "C++": "CPP",
    "PY": "PYTHON",
    "PYTHON3": "PYTHON",
    "KT": "KOTLIN",
    "GOLANG": "GO",
}


class ExecutionPolicy(str, enum.Enum):
    SEQUENTIAL = "sequential"  # stop at the first non-accepted case
    AGGREGATE = "aggregate"  # run every case, roll up by precedence


@dataclass(frozen=True)
class TestCase:
    __test__ = False  # not a pytest class

    input: Optional[str] = ""
    expected_output: Optional[str] = ""


@dataclass(frozen=True)
class ExecutionLimits:
    time_limit_ms: int
    memory_limit_kb: int


@dataclass
class CaseResult:
    status: JudgeStatus
    message: str = ""
    execution_time: int = 0  # ms
    memory_used: int = 0  # KB
    actual_output: Optional[str] = None
    expected_output: Optional[str] = None
    input: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.status == JudgeStatus.ACCEPTED


@dataclass
class JudgeResult:
    status: JudgeStatus
    message: str = ""
    total_execution_time: int = 0
    max_memory_used: int = 0
    case_result: Optional[CaseResult] = None
    case_results: List[CaseResult] = field(default_factory=list)
    score: int = 0
    failed_case: int = 0  # 1-based, 0 when nothing failed

    @classmethod
    def error(cls, status: JudgeStatus, message: str) -> "JudgeResult":
        return cls(status=status, message=message)
