"""Judge configuration.

Runtime knobs come from the environment through pydantic-settings, one
class per concern with its own prefix. The hard limits and the toolchain
table below are fixed for the process.

Usage:
    from judgecore.config import get_settings
    settings = get_settings()
    settings.sandbox.enabled
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import ExecutionPolicy, Language

# Hard bounds
MIN_TIME_LIMIT = 100  # ms
MAX_TIME_LIMIT = 60000  # ms
MIN_MEMORY_LIMIT = 1024  # KB
MAX_MEMORY_LIMIT = 536870912  # KB
MAX_CODE_LENGTH = 65536
MAX_TEST_CASE_COUNT = 1000
MAX_TEST_CASE_SIZE = 102400

# Toolchain table: canonical source file, build argv ({source} is replaced
# with the absolute source path) and the artifact the run command uses.
TOOLCHAINS = {
    Language.CPP: {
        "source": "solution.cpp",
        "compile": ["g++", "-std=c++17", "-O2", "-Wall", "-o", "cpp_solution", "{source}"],
        "artifact": "cpp_solution",
    },
    Language.C: {
        "source": "solution.c",
        "compile": ["gcc", "-std=c11", "-O2", "-Wall", "-o", "c_solution", "{source}", "-lm"],
        "artifact": "c_solution",
    },
    Language.JAVA: {
        "source": "Main.java",
        "compile": ["javac", "{source}"],
        "artifact": "Main.class",
    },
    Language.KOTLIN: {
        "source": "Main.kt",
        "compile": ["kotlinc", "{source}", "-include-runtime", "-d", "Main.jar"],
        "artifact": "Main.jar",
    },
    Language.PYTHON: {
        "source": "solution.py",
        "compile": ["python3", "-m", "py_compile", "{source}"],
        "artifact": "solution.py",
    },
    Language.RUST: {
        "source": "solution.rs",
        "compile": ["rustc", "-C", "opt-level=3", "-o", "rust_solution", "{source}"],
        "artifact": "rust_solution",
    },
    Language.GO: {
        "source": "solution.go",
        "compile": ["go", "build", "-o", "go_solution", "{source}"],
        "artifact": "go_solution",
    },
    Language.PHP: {
        "source": "solution.php",
        "compile": ["php", "-l", "{source}"],
        "artifact": "solution.php",
    },
}


def _parse_bool(v):
    if isinstance(v, str):
        return v.lower() in ("1", "true", "yes")
    return bool(v)


class SandboxPolicy(BaseSettings):
    """How untrusted programs are wrapped by the external sandbox tool."""

    model_config = SettingsConfigDict(env_prefix="SANDBOX_", extra="ignore")

    enabled: bool = Field(default=True, description="Wrap programs in the sandbox tool")
    command: str = Field(default="firejail", description="Sandbox executable")
    quiet: bool = Field(default=True)
    seccomp: bool = Field(default=True)
    net_none: bool = Field(default=True)
    no_groups: bool = Field(default=True)
    no_new_privs: bool = Field(default=True)
    caps_drop: str = Field(default="all", description="Capabilities to drop, empty to keep")

    @field_validator("enabled", "quiet", "seccomp", "net_none", "no_groups", "no_new_privs", mode="before")
    @classmethod
    def parse_flag(cls, v):
        return _parse_bool(v)


class JudgeSettings(BaseSettings):
    """Engine behaviour and resource defaults."""

    model_config = SettingsConfigDict(env_prefix="JUDGE_", extra="ignore")

    default_time_limit_ms: int = Field(default=1000)
    default_memory_limit_kb: int = Field(default=256 * 1024)
    policy: ExecutionPolicy = Field(default=ExecutionPolicy.SEQUENTIAL)
    max_concurrent_judges: int = Field(default=4, description="Judge calls running at once")
    max_pending_judges: int = Field(default=32, description="Judge calls allowed to wait for a slot")
    case_concurrency: int = Field(default=4, description="Parallel cases in aggregate mode")
    compile_timeout_sec: float = Field(default=30)
    max_output_bytes: int = Field(default=10 * 1024 * 1024)
    memory_sample_interval_ms: int = Field(default=10)
    temp_prefix: str = Field(default="judge_")
    ignore_whitespace: bool = Field(default=False)
    epsilon: float = Field(default=1e-9)
    log_level: str = Field(default="INFO")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    @field_validator("ignore_whitespace", mode="before")
    @classmethod
    def parse_ignore_whitespace(cls, v):
        return _parse_bool(v)

    @field_validator("policy", mode="before")
    @classmethod
    def parse_policy(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v


class Settings:
    """All configuration sections, each loaded with its own prefix."""

    def __init__(self, sandbox: SandboxPolicy = None, judge: JudgeSettings = None) -> None:
        self.sandbox = sandbox or SandboxPolicy()
        self.judge = judge or JudgeSettings()


@lru_cache
def get_settings() -> Settings:
    return Settings()


def clear_settings_cache() -> None:
    get_settings.cache_clear()
