"""Tests for the FastAPI service mode."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from stackgen.diagnostics import HealthReport, ProbeResult, ProbeStatus
from stackgen.errors import AmbiguousStack
from stackgen.models import DetectionResult, StackIdentity
from stackgen.orchestrator import Orchestrator
from stackgen.service import create_app


class _StubOrchestrator:
    def __init__(self) -> None:
        self.doctor_calls: list[str] = []

    def detect(self, path: str) -> DetectionResult:
        if path == "missing":
            raise FileNotFoundError(f"Workspace path does not exist: {path}")
        return DetectionResult(
            root=str(Path(path).resolve()),
            signals=[],
            identities=[StackIdentity("go", 1.0, evidence=("file:go.mod",))],
        )

    def plan(self, path: str, answers):
        raise AmbiguousStack(["go", "node"])

    def doctor(self, path: str) -> HealthReport:
        self.doctor_calls.append(path)
        return HealthReport.from_results(
            [ProbeResult("git-version", "git is installed", ProbeStatus.PASS, "2.43.0")]
        )


@pytest.fixture
def stub() -> _StubOrchestrator:
    return _StubOrchestrator()


@pytest.fixture
def client(stub: _StubOrchestrator) -> TestClient:
    return TestClient(create_app(lambda: stub))


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_detect_endpoint_returns_stacks(client: TestClient, tmp_path: Path) -> None:
    response = client.post("/detect", json={"path": str(tmp_path)})

    assert response.status_code == 200
    body = response.json()
    assert body["stacks"] == [
        {"id": "go", "confidence": 1.0, "ambiguous": False, "evidence": ["file:go.mod"]}
    ]


def test_detect_endpoint_maps_missing_path_to_404(client: TestClient) -> None:
    response = client.post("/detect", json={"path": "missing"})

    assert response.status_code == 404


def test_plan_endpoint_reports_clarification(client: TestClient) -> None:
    response = client.post("/plan", json={"path": ".", "categories": ["docker"]})

    assert response.status_code == 409
    assert response.json()["option"] == "primary-stack"


def test_doctor_endpoint_runs_read_only_check(client: TestClient, stub: _StubOrchestrator) -> None:
    response = client.post("/doctor", json={})

    assert response.status_code == 200
    assert response.json()["counts"] == {"pass": 1, "warn": 0, "fail": 0}
    assert stub.doctor_calls == ["."]


def test_plan_endpoint_with_real_orchestrator(tmp_path: Path) -> None:
    (tmp_path / "go.mod").write_text("module example.com/demo\n", encoding="utf-8")
    client = TestClient(create_app(lambda: Orchestrator(environ={})))

    response = client.post("/plan", json={"path": str(tmp_path), "categories": ["docker"]})

    assert response.status_code == 200
    ids = [node["id"] for node in response.json()["plan"]["nodes"]]
    assert "docker-go-dockerfile" in ids
    assert not (tmp_path / "Dockerfile").exists()
