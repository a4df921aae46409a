"""Run commands for each language, optionally wrapped by the sandbox tool.

Builders are pure: they only assemble argv lists.
"""

from pathlib import Path
from typing import List

from .config import TOOLCHAINS, SandboxPolicy
from .models import Language


def sandbox_options(policy: SandboxPolicy) -> List[str]:
    if not policy.enabled:
        return []
    options = []
    if policy.quiet:
        options.append("--quiet")
    if policy.seccomp:
        options.append("--seccomp")
    if policy.net_none:
        options.append("--net=none")
    if policy.no_groups:
        options.append("--nogroups")
    if policy.no_new_privs:
        options.append("--nonewprivs")
    if policy.caps_drop:
        options.append(f"--caps.drop={policy.caps_drop}")
    return options


def sandbox_prefix(policy: SandboxPolicy, work_dir: Path) -> List[str]:
    """``[command, flags..., --private=<work_dir>]`` or nothing when disabled."""
    if not policy.enabled:
        return []
    return [policy.command, *sandbox_options(policy), f"--private={work_dir}"]


def _artifact(language: Language, work_dir: Path) -> str:
    return str(work_dir / TOOLCHAINS[language]["artifact"])


def build_native_command(language: Language, work_dir: Path, policy: SandboxPolicy) -> List[str]:
    """C, C++, Rust and Go all run the compiled binary directly."""
    return sandbox_prefix(policy, work_dir) + [_artifact(language, work_dir)]


def build_java_command(work_dir: Path, policy: SandboxPolicy) -> List[str]:
    return sandbox_prefix(policy, work_dir) + [
        "java", "-XX:+PerfDisableSharedMem", "-XX:+UseG1GC", "-XX:MaxRAMPercentage=75.0",
        "-cp", str(work_dir), "Main",
    ]


def build_kotlin_command(work_dir: Path, policy: SandboxPolicy) -> List[str]:
    return sandbox_prefix(policy, work_dir) + [
        "java", "-XX:+UseG1GC", "-jar", _artifact(Language.KOTLIN, work_dir),
    ]


def build_python_command(work_dir: Path, policy: SandboxPolicy) -> List[str]:
    command = sandbox_prefix(policy, work_dir)
    if policy.enabled:
        command += ["--read-only=/usr/lib", "--env=PYTHONSAFE=1"]
    return command + ["python3", "-OO", "-u", _artifact(Language.PYTHON, work_dir)]


def build_php_command(work_dir: Path, policy: SandboxPolicy) -> List[str]:
    return sandbox_prefix(policy, work_dir) + ["php", _artifact(Language.PHP, work_dir)]
