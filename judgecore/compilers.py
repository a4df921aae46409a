"""Per-language compile (or syntax check) steps.

Each compiler writes the source under its canonical name in ``work_dir``
and runs the toolchain with stdout and stderr merged. A failing toolchain
yields COMPILATION_ERROR with its output; failing to *launch* the
toolchain raises ``OSError`` for the caller to classify.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import List

from .config import TOOLCHAINS
from .models import JudgeResult, JudgeStatus, Language

_logger = logging.getLogger(__name__)

MAX_DIAGNOSTIC_LENGTH = 8000


async def run_toolchain(cmd: List[str], work_dir: Path, timeout: float, env: dict = None) -> JudgeResult:
    _logger.debug("Compile command: %s", " ".join(cmd))
    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
        stdin=asyncio.subprocess.DEVNULL,
        cwd=str(work_dir),
        env=env,
    )
    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()
        return JudgeResult.error(JudgeStatus.COMPILATION_ERROR, "Compilation timeout")

    if process.returncode != 0:
        output = stdout.decode("utf-8", errors="replace")
        return JudgeResult.error(JudgeStatus.COMPILATION_ERROR, output[:MAX_DIAGNOSTIC_LENGTH])
    return JudgeResult(JudgeStatus.ACCEPTED)


def write_source(language: Language, source_code: str, work_dir: Path) -> Path:
    source_file = work_dir / TOOLCHAINS[language]["source"]
    source_file.write_text(source_code, encoding="utf-8")
    return source_file


def toolchain_command(language: Language, source_file: Path) -> List[str]:
    return [arg.replace("{source}", str(source_file)) for arg in TOOLCHAINS[language]["compile"]]


def _toolchain_compiler(language: Language):
    async def compile_source(source_code: str, work_dir: Path, timeout: float) -> JudgeResult:
        source_file = write_source(language, source_code, work_dir)
        return await run_toolchain(toolchain_command(language, source_file), work_dir, timeout)

    compile_source.__name__ = f"compile_{language.value.lower()}"
    return compile_source


compile_cpp = _toolchain_compiler(Language.CPP)
compile_c = _toolchain_compiler(Language.C)
compile_java = _toolchain_compiler(Language.JAVA)
compile_kotlin = _toolchain_compiler(Language.KOTLIN)
compile_rust = _toolchain_compiler(Language.RUST)
compile_php = _toolchain_compiler(Language.PHP)


async def compile_python(source_code: str, work_dir: Path, timeout: float) -> JudgeResult:
    # syntax check only, the program is not executed here
    source_file = write_source(Language.PYTHON, source_code, work_dir)
    env = os.environ.copy()
    env["PYTHONPYCACHEPREFIX"] = str(work_dir / ".pycache")
    return await run_toolchain(toolchain_command(Language.PYTHON, source_file), work_dir, timeout, env)


async def compile_go(source_code: str, work_dir: Path, timeout: float) -> JudgeResult:
    source_file = write_source(Language.GO, source_code, work_dir)
    env = os.environ.copy()
    env.setdefault("GOCACHE", str(work_dir / ".gocache"))
    env["GO111MODULE"] = "off"
    return await run_toolchain(toolchain_command(Language.GO, source_file), work_dir, timeout, env)
