from .code_test import CodeTester
from .config import Settings, get_settings
from .context import JudgeContext, create_context
from .judge import Judge
from .models import CaseResult, ExecutionPolicy, JudgeResult, JudgeStatus, Language, TestCase

__all__ = [
    "CaseResult",
    "CodeTester",
    "ExecutionPolicy",
    "Judge",
    "JudgeContext",
    "JudgeResult",
    "JudgeStatus",
    "Language",
    "Settings",
    "TestCase",
    "create_context",
    "get_settings",
]
