"""Language value -> {compile, build_command} strategy map.

Adding a language means adding a toolchain entry in ``config.TOOLCHAINS``,
a compiler, a command builder and one line here; nothing else dispatches
on language.
"""

from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Awaitable, Callable, Dict, List

from . import commands, compilers
from .config import TOOLCHAINS, SandboxPolicy
from .models import JudgeResult, Language


@dataclass(frozen=True)
class LanguageStrategy:
    language: Language
    compile: Callable[[str, Path, float], Awaitable[JudgeResult]]
    build_command: Callable[[Path, SandboxPolicy], List[str]]


STRATEGIES: Dict[Language, LanguageStrategy] = {
    Language.CPP: LanguageStrategy(
        Language.CPP, compilers.compile_cpp, partial(commands.build_native_command, Language.CPP)),
    Language.C: LanguageStrategy(
        Language.C, compilers.compile_c, partial(commands.build_native_command, Language.C)),
    Language.RUST: LanguageStrategy(
        Language.RUST, compilers.compile_rust, partial(commands.build_native_command, Language.RUST)),
    Language.GO: LanguageStrategy(
        Language.GO, compilers.compile_go, partial(commands.build_native_command, Language.GO)),
    Language.JAVA: LanguageStrategy(
        Language.JAVA, compilers.compile_java, commands.build_java_command),
    Language.KOTLIN: LanguageStrategy(
        Language.KOTLIN, compilers.compile_kotlin, commands.build_kotlin_command),
    Language.PYTHON: LanguageStrategy(
        Language.PYTHON, compilers.compile_python, commands.build_python_command),
    Language.PHP: LanguageStrategy(
        Language.PHP, compilers.compile_php, commands.build_php_command),
}


def supported_languages() -> List[Language]:
    return list(STRATEGIES)


def get_strategy(language) -> LanguageStrategy:
    return STRATEGIES[Language.parse(language)]


async def compile_source(language, source_code: str, work_dir: Path, timeout: float) -> JudgeResult:
    return await get_strategy(language).compile(source_code, work_dir, timeout)


def build_command(language, work_dir: Path, policy: SandboxPolicy) -> List[str]:
    return get_strategy(language).build_command(work_dir, policy)


def describe_languages(policy: SandboxPolicy) -> Dict[str, dict]:
    placeholder = Path("/workdir")
    return {
        language.value: {
            "source": TOOLCHAINS[language]["source"],
            "compile": TOOLCHAINS[language]["compile"],
            "run": build_command(language, placeholder, policy),
        }
        for language in STRATEGIES
    }
