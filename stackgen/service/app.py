"""FastAPI application entrypoint for stackgen service mode."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..errors import NeedsClarification, StackgenError
from ..models import AnswerSet
from ..orchestrator import Orchestrator


class DetectRequest(BaseModel):
    path: str


class StackResponse(BaseModel):
    id: str
    confidence: float
    ambiguous: bool
    evidence: List[str]


class DetectResponse(BaseModel):
    root: str
    stacks: List[StackResponse]
    signals: List[Dict[str, Any]]


class PlanRequest(BaseModel):
    path: str
    categories: List[str] = Field(default_factory=list)
    options: Dict[str, Any] = Field(default_factory=dict)
    stacks: Optional[List[str]] = None
    primary_stack: Optional[str] = None

    def to_answers(self) -> AnswerSet:
        options = dict(self.options)
        for category in self.categories:
            options[category] = True
        return AnswerSet(
            stacks=tuple(self.stacks) if self.stacks else None,
            primary_stack=self.primary_stack,
            options=options,
        )


class PlanResponse(BaseModel):
    config: Dict[str, Any]
    plan: Dict[str, Any]


class DoctorRequest(BaseModel):
    path: str = "."


class DoctorResponse(BaseModel):
    results: List[Dict[str, Any]]
    counts: Dict[str, int]
    exit_code: int


class HealthResponse(BaseModel):
    status: str


def _default_orchestrator() -> Orchestrator:
    return Orchestrator()


def create_app(
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
) -> FastAPI:
    """Create the FastAPI application exposing detect, plan and doctor."""

    app = FastAPI(title="stackgen service", version="0.1.0")

    async def get_orchestrator() -> Orchestrator:
        return orchestrator_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/detect", response_model=DetectResponse)
    async def detect(
        payload: DetectRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> DetectResponse:
        loop = asyncio.get_running_loop()
        detection = await loop.run_in_executor(None, orchestrator.detect, payload.path)
        data = detection.to_dict()
        return DetectResponse(root=data["root"], stacks=data["stacks"], signals=data["signals"])

    @app.post("/plan", response_model=PlanResponse)
    async def plan(
        payload: PlanRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> PlanResponse:
        loop = asyncio.get_running_loop()
        outcome = await loop.run_in_executor(
            None, orchestrator.plan, payload.path, payload.to_answers()
        )
        return PlanResponse(config=outcome.config.to_dict(), plan=outcome.plan.to_dict())

    @app.post("/doctor", response_model=DoctorResponse)
    async def doctor(
        payload: DoctorRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> DoctorResponse:
        # Remediation changes the host machine; it stays a CLI-only action.
        loop = asyncio.get_running_loop()
        report = await loop.run_in_executor(None, orchestrator.doctor, payload.path)
        return DoctorResponse(**report.to_dict())

    @app.exception_handler(NeedsClarification)
    async def clarification_handler(_: Any, exc: NeedsClarification) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc), "option": exc.option})

    @app.exception_handler(StackgenError)
    async def stackgen_error_handler(_: Any, exc: StackgenError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Any, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(NotADirectoryError)
    async def not_a_directory_handler(_: Any, exc: NotADirectoryError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    return app


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - integration path
    uvicorn.run(create_app(), host=host, port=port)
