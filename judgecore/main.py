import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import List, Optional

from fastapi import FastAPI, Request
from pydantic import BaseModel

from .code_test import CodeTester, CodeTestRequest, CodeTestResponse
from .config import get_settings
from .context import JudgeContext, create_context
from .judge import Judge
from .languages import describe_languages
from .models import ExecutionPolicy, JudgeResult, TestCase

_logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class CaseIn(BaseModel):
    input: str = ""
    expected_output: str = ""


class JudgeRequest(BaseModel):
    code: str
    language: str
    cases: List[CaseIn]
    time_limit: Optional[int] = None
    memory_limit: Optional[int] = None
    policy: Optional[ExecutionPolicy] = None
    submission_id: Optional[int] = None


def judge_result_to_dict(result: JudgeResult) -> dict:
    data = asdict(result)
    data["status"] = result.status.value
    for case in data["case_results"]:
        case["status"] = case["status"].value
    if data["case_result"] is not None:
        data["case_result"]["status"] = result.case_result.status.value
    return data


def create_app(context: JudgeContext = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx = context or create_context()
        configure_logging(ctx.settings.judge.log_level)
        app.state.context = ctx
        app.state.judge = Judge(ctx)
        app.state.tester = CodeTester(ctx)
        _logger.info("Judge engine ready: %d slots, policy %s",
                     ctx.pool.size, ctx.settings.judge.policy.value)
        yield

    app = FastAPI(title="Judge Core", lifespan=lifespan)

    @app.post("/api/judge")
    async def judge(body: JudgeRequest, request: Request):
        """Judge a submission against every case and return one verdict"""
        cases = [TestCase(c.input, c.expected_output) for c in body.cases]
        result = await request.app.state.judge.judge(
            cases, body.code, body.language,
            time_limit=body.time_limit,
            memory_limit=body.memory_limit,
            policy=body.policy,
            submission_id=body.submission_id,
        )
        return judge_result_to_dict(result)

    @app.post("/api/test", response_model=CodeTestResponse)
    async def code_test(body: CodeTestRequest, request: Request):
        """Run code against optional cases and report each one"""
        return await request.app.state.tester.execute_test(body)

    @app.post("/api/test/single", response_model=CodeTestResponse)
    async def code_test_single(body: CodeTestRequest, request: Request):
        """Run code against its first case only"""
        return await request.app.state.tester.execute_single_test(body)

    @app.get("/api/languages")
    async def get_languages(request: Request):
        """Get supported languages with their build and run commands"""
        return describe_languages(request.app.state.context.settings.sandbox)

    @app.get("/api/metrics")
    async def get_metrics(request: Request):
        return request.app.state.context.monitor.get_summary().to_dict()

    @app.get("/health")
    async def health(request: Request):
        pool = request.app.state.context.pool
        return {"status": "ok", "active": pool.active, "waiting": pool.waiting}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    configure_logging(settings.judge.log_level)
    uvicorn.run(app, host=settings.judge.host, port=settings.judge.port)
