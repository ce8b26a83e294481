"""End-to-end tests for stackgen.orchestrator."""

from __future__ import annotations

import json

import pytest

from stackgen.diagnostics import ObservationState, ProbeRule, ProbeStatus, Remediation, ToolVersionProbe
from stackgen.errors import AmbiguousStack, NeedsClarification
from stackgen.models import AnswerSet
from stackgen.orchestrator import EXIT_OK, EXIT_WARN, Orchestrator
from stackgen.writer import WriteStatus
from tests._fixtures.fake_runner import FakeRunner, ok


def _orchestrator(**kwargs) -> Orchestrator:
    kwargs.setdefault("environ", {})
    return Orchestrator(**kwargs)


def _statuses(outcome) -> dict[str, WriteStatus]:
    return {result.node_id: result.status for result in outcome.report.results}


def test_go_module_alone_is_detected_with_full_confidence(workspace) -> None:
    workspace.write({"go.mod": "module example.com/demo\n"})

    detection = _orchestrator().detect(workspace.path())

    assert [(identity.id, identity.confidence) for identity in detection.identities] == [("go", 1.0)]
    assert detection.identities[0].ambiguous is False
    assert "file:go.mod" in detection.identities[0].evidence


def test_tied_stacks_require_a_primary_for_docker(workspace) -> None:
    workspace.write({"go.mod": "module example.com/demo\n", "package.json": "{}\n"})
    orchestrator = _orchestrator()

    detection = orchestrator.detect(workspace.path())
    assert [identity.id for identity in detection.identities] == ["go", "node"]
    assert all(identity.ambiguous for identity in detection.identities)

    with pytest.raises(AmbiguousStack):
        orchestrator.generate(workspace.path(), AnswerSet(options={"docker": True}))
    assert not workspace.path().joinpath("Dockerfile").exists()


def test_tied_stacks_generate_multi_stack_categories(workspace) -> None:
    workspace.write({"go.mod": "module example.com/demo\n", "package.json": "{}\n"})

    outcome = _orchestrator().generate(workspace.path(), AnswerSet(options={"ci": True, "tests": True}))

    statuses = _statuses(outcome)
    assert statuses["ci-github-go"] is WriteStatus.MERGED
    assert statuses["ci-github-node"] is WriteStatus.MERGED
    assert statuses["tests-node-smoke"] is WriteStatus.CREATED
    workflow = workspace.read(".github/workflows/ci.yml")
    assert "go test ./..." in workflow
    assert outcome.exit_code == EXIT_OK


def test_explicit_primary_resolves_the_tie(workspace) -> None:
    workspace.write({"go.mod": "module example.com/demo\n", "package.json": "{}\n"})

    outcome = _orchestrator().plan(
        workspace.path(), AnswerSet(primary_stack="node", options={"docker": True})
    )

    ids = {node.id for node in outcome.plan}
    assert "docker-node-dockerfile" in ids
    assert "docker-go-dockerfile" not in ids


def test_existing_compose_file_is_skipped_not_overwritten(workspace) -> None:
    workspace.write(
        {
            "go.mod": "module example.com/demo\n",
            "docker-compose.yml": "services:\n  legacy: {}\n",
        }
    )

    outcome = _orchestrator().generate(workspace.path(), AnswerSet(options={"docker": True}))

    statuses = _statuses(outcome)
    assert statuses["docker-compose"] is WriteStatus.SKIPPED
    assert statuses["docker-go-dockerfile"] is WriteStatus.CREATED
    assert workspace.read("docker-compose.yml") == "services:\n  legacy: {}\n"
    assert outcome.exit_code == EXIT_WARN


def test_second_generate_run_changes_nothing(workspace) -> None:
    workspace.write({"go.mod": "module example.com/demo\n"})
    answers = AnswerSet(options={"tests": True, "docker": True, "ci": True})
    orchestrator = _orchestrator()

    first = orchestrator.generate(workspace.path(), answers)
    snapshot = workspace.snapshot()
    second = orchestrator.generate(workspace.path(), answers)

    assert first.exit_code == EXIT_OK
    assert set(_statuses(second).values()) == {WriteStatus.UNCHANGED}
    assert second.exit_code == EXIT_OK
    assert workspace.snapshot() == snapshot


def test_plan_is_a_dry_run_and_deterministic(workspace) -> None:
    workspace.write({"pyproject.toml": "[project]\nname = 'billing'\ndependencies = ['fastapi']\n"})
    answers = AnswerSet(options={"docker": True, "project": True})
    orchestrator = _orchestrator()

    first = orchestrator.plan(workspace.path(), answers)
    second = orchestrator.plan(workspace.path(), answers)

    assert first.plan.to_json() == second.plan.to_json()
    assert first.config.to_json() == second.config.to_json()
    assert first.config.get("framework") == "fastapi"
    assert first.config.get("app-port") == 8000
    assert sorted(p.name for p in workspace.path().iterdir()) == ["pyproject.toml"]


def test_config_file_answers_apply_below_explicit_ones(workspace) -> None:
    workspace.write(
        {
            "go.mod": "module example.com/demo\n",
            ".stackgen.yml": "answers:\n  docker: true\n  app-port: 7000\n",
        }
    )
    orchestrator = _orchestrator()

    from_config = orchestrator.plan(workspace.path())
    overridden = orchestrator.plan(workspace.path(), AnswerSet(options={"app-port": 9000}))

    assert "docker-go-dockerfile" in {node.id for node in from_config.plan}
    assert from_config.config.get("app-port") == 7000
    assert overridden.config.get("app-port") == 9000


def test_unknown_option_needs_clarification(workspace) -> None:
    workspace.write({"go.mod": "module example.com/demo\n"})

    with pytest.raises(NeedsClarification):
        _orchestrator().plan(workspace.path(), AnswerSet(options={"dockr": True}))


def test_detect_rejects_missing_workspace(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        _orchestrator().detect(tmp_path / "nope")


def test_doctor_fix_remediates_and_rechecks(workspace) -> None:
    tool = ("demo-tool", "--version")
    upgrade = ("demo-tool", "self-update")
    runner = FakeRunner({tool: [ok("demo-tool 1.0.0"), ok("demo-tool 2.1.0")], upgrade: ok("")})
    rule = ProbeRule(
        id="demo-tool",
        title="demo tool",
        probe=ToolVersionProbe(tool, minimum="2.0"),
        thresholds={ObservationState.STALE: ProbeStatus.FAIL},
        remediation=Remediation("update demo tool", upgrade),
    )

    report = _orchestrator(runner=runner).doctor(workspace.path(), fix=True, rules=[rule])

    assert report.results[0].status is ProbeStatus.PASS
    assert report.results[0].remediation_outcome == "succeeded"
    assert runner.calls == [tool, upgrade, tool]
    assert json.loads(report.to_json())["exit_code"] == 0


def test_doctor_honours_configured_skips(workspace) -> None:
    workspace.write({".stackgen.yml": "diagnostics:\n  skip: [demo-tool]\n"})
    rule = ProbeRule("demo-tool", "demo", ToolVersionProbe(("demo-tool", "--version")))

    report = _orchestrator(runner=FakeRunner({})).doctor(workspace.path(), rules=[rule])

    assert report.results == ()
    assert report.exit_code == 0


def test_go_test_declares_the_package_of_its_directory(workspace) -> None:
    workspace.write(
        {
            "go.mod": "module example.com/server\n\ngo 1.22\n",
            "cmd/server/main.go": "package main\n\nfunc main() {}\n",
        }
    )

    outcome = _orchestrator().generate(workspace.path(), AnswerSet(options={"tests": True}))

    assert _statuses(outcome)["tests-go-main"] is WriteStatus.CREATED
    assert workspace.read("cmd/server/main_test.go").splitlines()[0] == "package main"


def test_go_test_in_a_library_directory_uses_its_package_clause(workspace) -> None:
    workspace.write(
        {
            "go.mod": "module example.com/lib\n",
            "pkg/kv-store/store.go": "// Package kvstore is a tiny store.\npackage kvstore\n",
        }
    )

    outcome = _orchestrator().generate(workspace.path(), AnswerSet(options={"tests": True}))

    assert outcome.exit_code == EXIT_OK
    assert workspace.read("pkg/kv-store/main_test.go").startswith("package kvstore\n")


def test_machine_environment_alone_never_picks_a_stack(workspace) -> None:
    workspace.write({"README.md": "# notes\n"})
    orchestrator = _orchestrator(environ={"VIRTUAL_ENV": "/venv", "GOPATH": "/go"})

    assert orchestrator.detect(workspace.path()).identities == []
    with pytest.raises(NeedsClarification) as excinfo:
        orchestrator.generate(workspace.path(), AnswerSet(options={"project": True}))

    assert excinfo.value.option == "primary-stack"
    assert workspace.snapshot() == {"README.md": b"# notes\n"}


def test_existing_workflow_without_markers_is_left_alone(workspace) -> None:
    user_workflow = "name: Mine\non: push\njobs:\n  build:\n    runs-on: ubuntu-latest\n"
    workspace.write(
        {
            "go.mod": "module example.com/demo\n",
            "package.json": "{}\n",
            ".github/workflows/ci.yml": user_workflow,
        }
    )
    before = workspace.snapshot()

    outcome = _orchestrator().generate(workspace.path(), AnswerSet(options={"ci": True}))

    results = {result.node_id: result for result in outcome.report.results}
    assert results["ci-github-base"].status is WriteStatus.SKIPPED
    for node_id, block in (("ci-github-go", "go-job"), ("ci-github-node", "node-job")):
        assert results[node_id].status is WriteStatus.FAILED
        assert results[node_id].fatal is False
        assert results[node_id].reason == f"managed block '{block}' markers not found"
    assert outcome.exit_code == EXIT_WARN
    assert workspace.snapshot() == before
