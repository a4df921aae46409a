from dataclasses import dataclass

from .comparator import OutputComparator
from .config import Settings, get_settings
from .executor import SandboxExecutor
from .memory import MemoryProbe
from .monitor import PerformanceMonitor
from .pool import JudgePool
from .validator import InputValidator


@dataclass
class JudgeContext:
    """Everything a judge call needs, built once and passed in explicitly."""

    settings: Settings
    pool: JudgePool
    executor: SandboxExecutor
    validator: InputValidator
    monitor: PerformanceMonitor


def create_context(settings: Settings = None, monitor: PerformanceMonitor = None) -> JudgeContext:
    settings = settings or get_settings()
    judge_settings = settings.judge
    comparator = OutputComparator(
        ignore_whitespace=judge_settings.ignore_whitespace,
        epsilon=judge_settings.epsilon,
    )
    executor = SandboxExecutor(
        comparator=comparator,
        probe=MemoryProbe(),
        max_output_bytes=judge_settings.max_output_bytes,
        sample_interval_ms=judge_settings.memory_sample_interval_ms,
    )
    return JudgeContext(
        settings=settings,
        pool=JudgePool(judge_settings.max_concurrent_judges, judge_settings.max_pending_judges),
        executor=executor,
        validator=InputValidator(judge_settings),
        monitor=monitor or PerformanceMonitor(),
    )
