"""Configuration loading for stackgen (.stackgen.yml) and answers files."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .errors import ConfigError
from .models import AnswerSet

CONFIG_FILENAME = ".stackgen.yml"


@dataclass
class CollectorConfig:
    """Signal collector enablement and pool size."""

    enabled: List[str] = field(default_factory=list)
    workers: int = 4


@dataclass
class ClassifierConfig:
    """Overrides for the stack classifier rule table."""

    floor: Optional[float] = None
    weights: Dict[str, float] = field(default_factory=dict)
    rules: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class WriterConfig:
    """Artifact writer pool size."""

    workers: int = 4


@dataclass
class DiagnosticsConfig:
    """Diagnostic engine pool size, timeout and disabled rules."""

    workers: int = 4
    timeout: float = 5.0
    skip: List[str] = field(default_factory=list)


@dataclass
class StackgenConfig:
    """Represents the settings defined in .stackgen.yml."""

    root: Path
    exclude_paths: List[str] = field(default_factory=list)
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    writer: WriterConfig = field(default_factory=WriterConfig)
    diagnostics: DiagnosticsConfig = field(default_factory=DiagnosticsConfig)
    answers: Dict[str, Any] = field(default_factory=dict)


def load_config(config_path: Path) -> StackgenConfig:
    """Load configuration from disk, returning defaults when the file is absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return StackgenConfig(root=root)

    data = _read_yaml(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    collector = CollectorConfig()
    collector_data = _as_dict(data.get("collector"))
    if collector_data:
        collector.enabled = _as_str_list(collector_data.get("enabled"))
        collector.workers = _as_positive_int(collector_data.get("workers")) or collector.workers

    classifier = ClassifierConfig()
    classifier_data = _as_dict(data.get("classifier"))
    if classifier_data:
        classifier.floor = _as_float(classifier_data.get("floor"))
        classifier.weights = {
            str(key): weight
            for key, value in _as_dict(classifier_data.get("weights")).items()
            if (weight := _as_float(value)) is not None
        }
        rules = classifier_data.get("rules")
        if isinstance(rules, list):
            classifier.rules = [rule for rule in rules if isinstance(rule, dict)]

    writer = WriterConfig()
    writer_data = _as_dict(data.get("writer"))
    if writer_data:
        writer.workers = _as_positive_int(writer_data.get("workers")) or writer.workers

    diagnostics = DiagnosticsConfig()
    diagnostics_data = _as_dict(data.get("diagnostics"))
    if diagnostics_data:
        diagnostics.workers = (
            _as_positive_int(diagnostics_data.get("workers")) or diagnostics.workers
        )
        timeout = _as_float(diagnostics_data.get("timeout"))
        if timeout is not None and timeout > 0:
            diagnostics.timeout = timeout
        diagnostics.skip = _as_str_list(diagnostics_data.get("skip"))

    return StackgenConfig(
        root=root,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
        collector=collector,
        classifier=classifier,
        writer=writer,
        diagnostics=diagnostics,
        answers=_as_dict(data.get("answers")),
    )


def load_answers(path: Path) -> AnswerSet:
    """Read an Answer Set from a YAML file.

    The file is a mapping with optional ``stacks``, ``primary-stack`` and
    ``fix`` keys; every other key is treated as an option answer.
    """
    if not path.exists():
        raise ConfigError(f"Answers file not found: {path}")
    data = _read_yaml(path)
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")

    options = dict(data)
    stacks_value = options.pop("stacks", None)
    primary = options.pop("primary-stack", None)
    fix = options.pop("fix", None)

    stacks = tuple(_as_str_list(stacks_value)) if stacks_value is not None else None
    return AnswerSet(
        stacks=stacks or None,
        primary_stack=_as_str(primary),
        options={str(key): value for key, value in options.items()},
        fix=bool(_as_bool(fix)),
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_yaml(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str):
        try:
            parsed = int(value)
        except ValueError:
            return None
        return parsed if parsed > 0 else None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1", "on"}:
            return True
        if lowered in {"false", "no", "0", "off"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ClassifierConfig",
    "CollectorConfig",
    "ConfigError",
    "DiagnosticsConfig",
    "StackgenConfig",
    "WriterConfig",
    "load_answers",
    "load_config",
]
