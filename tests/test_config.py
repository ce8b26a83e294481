"""Tests for stackgen.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from stackgen.config import ConfigError, StackgenConfig, load_answers, load_config


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, StackgenConfig)
    assert config.root == tmp_path.resolve()
    assert config.exclude_paths == []
    assert config.collector.enabled == []
    assert config.collector.workers == 4
    assert config.classifier.floor is None
    assert config.classifier.weights == {}
    assert config.writer.workers == 4
    assert config.diagnostics.timeout == pytest.approx(5.0)
    assert config.diagnostics.skip == []
    assert config.answers == {}


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".stackgen.yml"
    config_file.write_text(
        """
exclude_paths:
  - "sandbox/"
collector:
  enabled: [manifests, content]
  workers: 2
classifier:
  floor: 0.35
  weights:
    extension: 0.1
  rules:
    - stack: python
      pattern: "file:tox.ini"
      evidence: secondary-manifest
writer:
  workers: "8"
diagnostics:
  workers: 3
  timeout: 2.5
  skip: [docker-daemon]
answers:
  app-port: 9000
  database: postgres
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.exclude_paths == ["sandbox/"]
    assert config.collector.enabled == ["manifests", "content"]
    assert config.collector.workers == 2
    assert config.classifier.floor == pytest.approx(0.35)
    assert config.classifier.weights == {"extension": pytest.approx(0.1)}
    assert config.classifier.rules == [
        {"stack": "python", "pattern": "file:tox.ini", "evidence": "secondary-manifest"}
    ]
    assert config.writer.workers == 8
    assert config.diagnostics.workers == 3
    assert config.diagnostics.timeout == pytest.approx(2.5)
    assert config.diagnostics.skip == ["docker-daemon"]
    assert config.answers == {"app-port": 9000, "database": "postgres"}


def test_load_config_rejects_non_mapping_root(tmp_path: Path) -> None:
    (tmp_path / ".stackgen.yml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_load_config_rejects_invalid_yaml(tmp_path: Path) -> None:
    (tmp_path / ".stackgen.yml").write_text("collector: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_load_answers_splits_reserved_keys(tmp_path: Path) -> None:
    answers_file = tmp_path / "answers.yml"
    answers_file.write_text(
        """
stacks: [go, node]
primary-stack: go
fix: yes
docker: true
app-port: 8081
""",
        encoding="utf-8",
    )

    answers = load_answers(answers_file)

    assert answers.stacks == ("go", "node")
    assert answers.primary_stack == "go"
    assert answers.fix is True
    assert answers.options == {"docker": True, "app-port": 8081}


def test_load_answers_requires_existing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_answers(tmp_path / "missing.yml")
