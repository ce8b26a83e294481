"""Integration-style tests for the built-in collectors."""

from __future__ import annotations

from stackgen.collectors import collect_signals, discover_collectors
from stackgen.collectors.base import Collector
from stackgen.collectors.content import ContentCollector
from stackgen.collectors.environment import EnvironmentCollector
from stackgen.collectors.extensions import ExtensionCollector
from stackgen.collectors.manifests import ManifestCollector
from stackgen.models import Signal, SignalKind


def _by_name(signals):
    return {signal.name: signal for signal in signals}


def test_manifest_collector_reports_root_and_nested_markers(workspace) -> None:
    workspace.write(
        {
            "go.mod": "module example.com/demo\n",
            "web/package.json": "{}\n",
            ".github/workflows/ci.yml": "name: CI\n",
        }
    )

    signals = _by_name(ManifestCollector().collect(workspace.scan(), {}))

    assert signals["file:go.mod"].strength == 1.0
    assert signals["file:go.mod"].kind is SignalKind.FILE_PRESENCE
    assert signals["file:package.json"].strength == 0.8
    assert signals["file:package.json"].source == "web/package.json"
    assert "file:.github/workflows/" in signals


def test_content_collector_reads_python_metadata(workspace) -> None:
    workspace.write(
        {
            "pyproject.toml": """
            [project]
            name = "Billing Service"
            requires-python = ">=3.11"
            dependencies = ["fastapi>=0.110", "uvicorn"]

            [project.optional-dependencies]
            test = ["pytest"]
            """,
        }
    )

    signals = _by_name(ContentCollector().collect(workspace.scan(), {}))

    assert "content:python:framework:fastapi" in signals
    assert "content:python:test-framework:pytest" in signals
    assert signals["content:python:version"].detail == "3.11"
    assert signals["content:python:name"].detail == "Billing Service"


def test_content_collector_reads_node_metadata(workspace) -> None:
    workspace.write(
        {
            "package.json": """
            {"name": "@acme/web", "engines": {"node": ">=18"},
             "dependencies": {"express": "^4"}, "devDependencies": {"vitest": "^1"}}
            """,
            "pnpm-lock.yaml": "lockfileVersion: 6\n",
        }
    )

    signals = _by_name(ContentCollector().collect(workspace.scan(), {}))

    assert "content:node:framework:express" in signals
    assert "content:node:test-framework:vitest" in signals
    assert signals["content:node:version"].detail == "18"
    assert signals["content:node:name"].detail == "@acme/web"
    assert signals["content:node:package-manager"].detail == "pnpm"


def test_content_collector_reads_go_module_and_package_dir(workspace) -> None:
    workspace.write(
        {
            "go.mod": "module github.com/acme/widget\n\ngo 1.21\n",
            "cmd/widget/main.go": "package main\n",
            "cmd/widget/main_test.go": "package main\n",
        }
    )

    signals = _by_name(ContentCollector().collect(workspace.scan(), {}))

    assert signals["content:go:module"].detail == "github.com/acme/widget"
    assert signals["content:go:version"].detail == "1.21"
    assert signals["content:go:package-dir"].detail == "cmd/widget"
    assert signals["content:go:package"].detail == "main"


def test_content_collector_reads_go_package_clause_past_build_tags(workspace) -> None:
    workspace.write(
        {
            "go.mod": "module example.com/lib\n",
            "internal/store/store.go": "//go:build linux\n\n// Package store keeps state.\npackage store\n",
        }
    )

    signals = _by_name(ContentCollector().collect(workspace.scan(), {}))

    assert signals["content:go:package-dir"].detail == "internal/store"
    assert signals["content:go:package"].detail == "store"


def test_content_collector_reads_java_build_tool(workspace) -> None:
    workspace.write(
        {
            "build.gradle": """
            dependencies {
                implementation 'org.springframework.boot:spring-boot-starter-web:3.2.0'
                testImplementation 'org.junit.jupiter:junit-jupiter:5.10.0'
            }
            """,
        }
    )

    signals = _by_name(ContentCollector().collect(workspace.scan(), {}))

    assert "content:java:framework:spring-boot" in signals
    assert "content:java:test-framework:junit" in signals
    assert signals["content:java:build-tool"].detail == "gradle"


def test_content_collector_tolerates_malformed_manifests(workspace) -> None:
    workspace.write({"package.json": "{not json", "pyproject.toml": "[project\n"})

    signals = list(ContentCollector().collect(workspace.scan(), {}))

    names = {signal.name for signal in signals}
    assert "content:node:package-manager" in names
    assert not any(name.startswith("content:python:framework") for name in names)


def test_environment_collector_reports_presence_only() -> None:
    collector = EnvironmentCollector()
    signals = list(collector.collect(None, {"GOPATH": "/home/dev/go", "VIRTUAL_ENV": "  "}))

    assert [signal.name for signal in signals] == ["env:GOPATH"]
    assert signals[0].kind is SignalKind.ENV_VAR
    assert "/home/dev/go" not in (signals[0].detail or "")
    assert "/home/dev/go" not in signals[0].source


def test_extension_collector_scales_with_file_count(workspace) -> None:
    workspace.write({f"src/mod_{index}.py": "" for index in range(7)})
    workspace.write({"main.go": "package main\n"})

    signals = _by_name(ExtensionCollector().collect(workspace.scan(), {}))

    assert signals["ext:.py"].strength == 1.0
    assert signals["ext:.py"].source == "7 file(s)"
    assert signals["ext:.go"].strength == 0.2


class _ExplodingCollector(Collector):
    name = "exploding"

    def supports(self, manifest):
        return True

    def collect(self, manifest, environ):
        raise RuntimeError("boom")


def test_collect_signals_is_sorted_and_survives_a_failing_collector(workspace) -> None:
    workspace.write({"go.mod": "module example.com/demo\n", "package.json": "{}\n"})
    manifest = workspace.scan()
    collectors = discover_collectors() + [_ExplodingCollector()]

    first = collect_signals(manifest, {}, collectors, workers=3)
    second = collect_signals(manifest, {}, list(reversed(collectors)), workers=1)

    assert first == second
    assert first == sorted(first, key=Signal.sort_key)
    assert "file:go.mod" in {signal.name for signal in first}


def test_collect_signals_does_not_modify_the_workspace(workspace) -> None:
    workspace.write({"pyproject.toml": "[project]\nname = 'demo'\n"})
    before = workspace.snapshot()

    collect_signals(workspace.scan(), {"VIRTUAL_ENV": "/tmp/venv"}, discover_collectors())

    assert workspace.snapshot() == before
