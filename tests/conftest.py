import pytest

from judgecore.config import JudgeSettings, SandboxPolicy, Settings
from judgecore.context import create_context


@pytest.fixture
def make_context():
    """Build an unsandboxed context, optionally overriding judge settings."""

    def factory(**judge_overrides):
        settings = Settings(
            sandbox=SandboxPolicy(enabled=False),
            judge=JudgeSettings(**judge_overrides),
        )
        return create_context(settings)

    return factory


@pytest.fixture
def context(make_context):
    return make_context()
