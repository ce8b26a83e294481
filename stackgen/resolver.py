"""Configuration resolution: defaults < detected < explicit.

The resolver is a pure function of its three inputs. It never prompts; the
front end hands in an :class:`~stackgen.models.AnswerSet` and the resolver either
returns an immutable :class:`ResolvedConfiguration` or raises
:class:`~stackgen.errors.NeedsClarification` naming the option it could not
settle without guessing.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .classifier import STACKS
from .errors import AmbiguousStack, NeedsClarification
from .logging import get_logger
from .models import AnswerSet, Signal, StackIdentity

logger = get_logger("resolver")

CATEGORIES: Tuple[str, ...] = ("tests", "docker", "ci", "project")

# Categories whose artifacts only make sense for one stack (one Dockerfile, one
# project skeleton); selecting any of them requires a primary stack.
SINGLE_STACK_CATEGORIES = frozenset({"docker", "project"})


class Provenance(str, Enum):
    EXPLICIT = "explicit"
    DETECTED = "detected"
    DEFAULT = "default"


@dataclass(frozen=True)
class ResolvedOption:
    name: str
    value: Any
    provenance: Provenance


@dataclass(frozen=True)
class ResolvedConfiguration:
    """Final, provenance-tagged settings for one run."""

    stacks: Tuple[str, ...]
    options: Tuple[ResolvedOption, ...]

    def get(self, name: str, default: Any = None) -> Any:
        for option in self.options:
            if option.name == name:
                return option.value
        return default

    def provenance(self, name: str) -> Provenance:
        for option in self.options:
            if option.name == name:
                return option.provenance
        raise KeyError(name)

    def has_stack(self, stack: str) -> bool:
        return stack in self.stacks

    @property
    def primary_stack(self) -> Optional[str]:
        return self.get("primary-stack")

    def as_context(self) -> Dict[str, Any]:
        """Template context: option names with dashes turned into underscores."""
        context = {option.name.replace("-", "_"): _plain(option.value) for option in self.options}
        context["stacks"] = list(self.stacks)
        return context

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stacks": list(self.stacks),
            "options": {
                option.name: {
                    "value": _plain(option.value),
                    "provenance": option.provenance.value,
                }
                for option in self.options
            },
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True)


@dataclass(frozen=True)
class Evidence:
    """Read-only view over classifier output handed to option detectors."""

    identities: Tuple[StackIdentity, ...]
    signals: Tuple[Signal, ...]
    workspace_name: str

    def detail(self, name: str) -> Optional[str]:
        for signal in self.signals:
            if signal.name == name and signal.detail:
                return signal.detail
        return None

    def suffixes(self, prefix: str) -> List[str]:
        """Return the tail of every signal name starting with ``prefix``."""
        found = []
        for signal in self.signals:
            if signal.name.startswith(prefix):
                tail = signal.name[len(prefix):]
                if tail not in found:
                    found.append(tail)
        return found

    def has(self, name: str) -> bool:
        return any(signal.name == name for signal in self.signals)


Detector = Callable[[Evidence, Mapping[str, Any]], Optional[Any]]
DefaultFactory = Callable[[Evidence, Mapping[str, Any]], Any]


@dataclass(frozen=True)
class OptionSpec:
    """Declaration of one configurable option."""

    name: str
    default: Any = None
    detect: Optional[Detector] = None
    choices: Optional[Tuple[Any, ...]] = None
    coerce: Optional[Callable[[Any], Any]] = None

    def default_value(self, evidence: Evidence, resolved: Mapping[str, Any]) -> Any:
        if callable(self.default):
            return self.default(evidence, resolved)
        return self.default

    def validate(self, value: Any) -> Any:
        if self.coerce is not None:
            try:
                value = self.coerce(value)
            except (TypeError, ValueError) as exc:
                raise NeedsClarification(self.name, f"invalid value {value!r}: {exc}") from exc
        if self.choices is not None and value not in self.choices:
            allowed = ", ".join(str(choice) for choice in self.choices)
            raise NeedsClarification(
                self.name, f"{value!r} is not one of the supported values ({allowed})"
            )
        return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1", "on"}:
            return True
        if lowered in {"false", "no", "0", "off"}:
            return False
    raise ValueError("expected a boolean")


def _as_port(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("expected a port number")
    port = int(value)
    if not 1 <= port <= 65535:
        raise ValueError("port must be between 1 and 65535")
    return port


def _as_version(value: Any) -> str:
    text = str(value).strip()
    if not re.fullmatch(r"\d+(\.\d+){0,2}", text):
        raise ValueError("expected a dotted version number")
    return text


def _as_relative_dir(value: Any) -> str:
    text = str(value).strip().strip("/") or "."
    if text.startswith("..") or "/../" in f"/{text}/":
        raise ValueError("directory must stay inside the workspace")
    return text


def _slug(text: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9]+", "-", text).strip("-").lower()
    return cleaned or "app"


def _detect_project_name(evidence: Evidence, resolved: Mapping[str, Any]) -> Optional[str]:
    primary = resolved.get("primary-stack")
    order = [primary] if primary else []
    order.extend(stack for stack in resolved.get("stacks", ()) if stack != primary)
    for stack in order:
        if stack in ("node", "python"):
            name = evidence.detail(f"content:{stack}:name")
            if name:
                return _slug(name.rsplit("/", 1)[-1])
        if stack == "go":
            module = evidence.detail("content:go:module")
            if module:
                return _slug(module.rsplit("/", 1)[-1])
    return None


def _detect_version(stack: str) -> Detector:
    def _detect(evidence: Evidence, resolved: Mapping[str, Any]) -> Optional[str]:
        return evidence.detail(f"content:{stack}:version")

    return _detect


def _detect_first(prefix: str, preference: Sequence[str]) -> Detector:
    def _detect(evidence: Evidence, resolved: Mapping[str, Any]) -> Optional[str]:
        found = evidence.suffixes(prefix)
        for candidate in preference:
            if candidate in found:
                return candidate
        return None

    return _detect


def _detect_framework(evidence: Evidence, resolved: Mapping[str, Any]) -> Optional[str]:
    primary = resolved.get("primary-stack")
    stacks = [primary] if primary else list(resolved.get("stacks", ()))
    for stack in stacks:
        found = evidence.suffixes(f"content:{stack}:framework:")
        if found:
            return sorted(found)[0]
    return None


def _detect_ci_provider(evidence: Evidence, resolved: Mapping[str, Any]) -> Optional[str]:
    if evidence.has("file:.gitlab-ci.yml"):
        return "gitlab"
    if evidence.has("file:.github/workflows/"):
        return "github"
    return None


_DEFAULT_PORTS = {
    "flask": 5000,
    "fastapi": 8000,
    "django": 8000,
    "express": 3000,
    "next": 3000,
    "react": 3000,
}

_STACK_PORTS = {"python": 8000, "node": 3000, "go": 8080, "java": 8080}


def _default_port(evidence: Evidence, resolved: Mapping[str, Any]) -> int:
    framework = resolved.get("framework")
    if framework in _DEFAULT_PORTS:
        return _DEFAULT_PORTS[framework]
    return _STACK_PORTS.get(resolved.get("primary-stack") or "", 8080)


def _default_go_module(evidence: Evidence, resolved: Mapping[str, Any]) -> str:
    return f"example.com/{resolved.get('project-name', 'app')}"


_GO_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def _detect_go_package(evidence: Evidence, resolved: Mapping[str, Any]) -> Optional[str]:
    # Only the detected directory has a known package clause.
    if resolved.get("go-package-dir") != evidence.detail("content:go:package-dir"):
        return None
    return evidence.detail("content:go:package")


def _default_go_package(evidence: Evidence, resolved: Mapping[str, Any]) -> str:
    directory = resolved.get("go-package-dir", ".")
    if directory == ".":
        return "main"
    name = re.sub(r"[^A-Za-z0-9_]+", "_", directory.rsplit("/", 1)[-1]).lower().strip("_")
    return name if _GO_IDENTIFIER.fullmatch(name) else "main"


def _as_go_identifier(value: Any) -> str:
    text = str(value).strip()
    if not _GO_IDENTIFIER.fullmatch(text):
        raise ValueError("not a Go package name")
    return text


FRAMEWORKS = ("none", "fastapi", "django", "flask", "express", "next", "react", "spring-boot")

OPTION_SPECS: Tuple[OptionSpec, ...] = (
    OptionSpec("tests", default=False, coerce=_as_bool),
    OptionSpec("docker", default=False, coerce=_as_bool),
    OptionSpec("ci", default=False, coerce=_as_bool),
    OptionSpec("project", default=False, coerce=_as_bool),
    OptionSpec("regenerate-ci", default=False, coerce=_as_bool),
    OptionSpec(
        "project-name",
        default=lambda evidence, resolved: _slug(evidence.workspace_name),
        detect=_detect_project_name,
        coerce=lambda value: _slug(str(value)),
    ),
    OptionSpec("ci-provider", default="github", detect=_detect_ci_provider, choices=("github", "gitlab")),
    OptionSpec("python-version", default="3.12", detect=_detect_version("python"), coerce=_as_version),
    OptionSpec("node-version", default="20", detect=_detect_version("node"), coerce=_as_version),
    OptionSpec("go-version", default="1.22", detect=_detect_version("go"), coerce=_as_version),
    OptionSpec("java-version", default="21", detect=_detect_version("java"), coerce=_as_version),
    OptionSpec(
        "node-package-manager",
        default="npm",
        detect=lambda evidence, resolved: evidence.detail("content:node:package-manager"),
        choices=("npm", "yarn", "pnpm"),
    ),
    OptionSpec(
        "java-build-tool",
        default="maven",
        detect=lambda evidence, resolved: evidence.detail("content:java:build-tool"),
        choices=("maven", "gradle"),
    ),
    OptionSpec(
        "python-test-framework",
        default="pytest",
        detect=_detect_first("content:python:test-framework:", ("pytest",)),
        choices=("pytest", "unittest"),
    ),
    OptionSpec(
        "node-test-framework",
        default="jest",
        detect=_detect_first("content:node:test-framework:", ("vitest", "jest", "mocha")),
        choices=("jest", "vitest", "mocha"),
    ),
    OptionSpec("framework", default="none", detect=_detect_framework, choices=FRAMEWORKS),
    OptionSpec("app-port", default=_default_port, coerce=_as_port),
    OptionSpec("database", default="none", choices=("none", "postgres", "mysql", "redis")),
    OptionSpec(
        "go-package-dir",
        default=".",
        detect=lambda evidence, resolved: evidence.detail("content:go:package-dir"),
        coerce=_as_relative_dir,
    ),
    OptionSpec(
        "go-package",
        default=_default_go_package,
        detect=_detect_go_package,
        coerce=_as_go_identifier,
    ),
    OptionSpec("go-module", default=_default_go_module, detect=lambda evidence, resolved: evidence.detail("content:go:module")),
)

_RESERVED = ("stacks", "primary-stack")


class ConfigurationResolver:
    """Merges defaults, detected values and explicit answers."""

    def __init__(
        self,
        option_specs: Sequence[OptionSpec] = OPTION_SPECS,
        known_stacks: Sequence[str] = STACKS,
    ) -> None:
        self.option_specs = tuple(option_specs)
        self.known_stacks = tuple(known_stacks)

    def resolve(
        self,
        identities: Iterable[StackIdentity],
        signals: Iterable[Signal],
        answers: AnswerSet,
        *,
        workspace_name: str = "app",
    ) -> ResolvedConfiguration:
        evidence = Evidence(
            identities=tuple(identities),
            signals=tuple(sorted(signals, key=Signal.sort_key)),
            workspace_name=workspace_name,
        )
        explicit = dict(answers.options)
        known = {spec.name for spec in self.option_specs}
        for name in sorted(explicit):
            if name not in known and name not in _RESERVED:
                raise NeedsClarification(name, "unknown option; refusing to ignore an explicit answer")

        resolved: Dict[str, Any] = {}
        records: List[ResolvedOption] = []

        stacks, stacks_provenance = self._resolve_stacks(evidence, answers, explicit)
        resolved["stacks"] = stacks

        # Category switches first: whether a primary stack is required depends on them.
        category_specs = [spec for spec in self.option_specs if spec.name in CATEGORIES]
        for spec in category_specs:
            records.append(self._resolve_one(spec, evidence, resolved, explicit))
            resolved[spec.name] = records[-1].value

        selected = [name for name in CATEGORIES if resolved.get(name)]
        primary = self._resolve_primary(evidence, answers, explicit, stacks, stacks_provenance, selected)
        records.append(primary)
        resolved["primary-stack"] = primary.value

        for spec in self.option_specs:
            if spec.name in CATEGORIES:
                continue
            record = self._resolve_one(spec, evidence, resolved, explicit)
            records.append(record)
            resolved[spec.name] = record.value

        records.append(ResolvedOption("stacks", stacks, stacks_provenance))
        records.sort(key=lambda record: record.name)
        config = ResolvedConfiguration(stacks=stacks, options=tuple(records))
        logger.debug("Resolved configuration for stacks %s", ", ".join(stacks) or "(none)")
        return config

    def _resolve_one(
        self,
        spec: OptionSpec,
        evidence: Evidence,
        resolved: Mapping[str, Any],
        explicit: Mapping[str, Any],
    ) -> ResolvedOption:
        if spec.name in explicit and explicit[spec.name] is not None:
            return ResolvedOption(spec.name, spec.validate(explicit[spec.name]), Provenance.EXPLICIT)
        if spec.detect is not None:
            detected = spec.detect(evidence, resolved)
            if detected is not None:
                try:
                    return ResolvedOption(spec.name, spec.validate(detected), Provenance.DETECTED)
                except NeedsClarification:
                    logger.debug("Ignoring unusable detected value %r for %s", detected, spec.name)
        return ResolvedOption(spec.name, spec.default_value(evidence, resolved), Provenance.DEFAULT)

    def _resolve_stacks(
        self,
        evidence: Evidence,
        answers: AnswerSet,
        explicit: Mapping[str, Any],
    ) -> Tuple[Tuple[str, ...], Provenance]:
        requested = answers.stacks
        if requested is None and explicit.get("stacks") is not None:
            value = explicit["stacks"]
            requested = (value,) if isinstance(value, str) else tuple(value)
        if requested is not None:
            cleaned = tuple(dict.fromkeys(str(stack).strip().lower() for stack in requested))
            if not cleaned:
                raise NeedsClarification("stacks", "an explicit stack list cannot be empty")
            unknown = [stack for stack in cleaned if stack not in self.known_stacks]
            if unknown:
                raise NeedsClarification(
                    "stacks",
                    f"unsupported stack(s) {', '.join(unknown)}; known stacks are "
                    f"{', '.join(self.known_stacks)}",
                )
            return tuple(sorted(cleaned)), Provenance.EXPLICIT

        detected = tuple(
            sorted(identity.id for identity in evidence.identities if identity.id in self.known_stacks)
        )
        if detected:
            return detected, Provenance.DETECTED
        return (), Provenance.DEFAULT

    def _resolve_primary(
        self,
        evidence: Evidence,
        answers: AnswerSet,
        explicit: Mapping[str, Any],
        stacks: Tuple[str, ...],
        stacks_provenance: Provenance,
        selected: Sequence[str],
    ) -> ResolvedOption:
        requested = answers.primary_stack or explicit.get("primary-stack")
        if requested:
            choice = str(requested).strip().lower()
            if choice not in stacks:
                available = ", ".join(stacks) or "none"
                raise NeedsClarification(
                    "primary-stack",
                    f"'{choice}' is not among the selected stacks ({available})",
                )
            return ResolvedOption("primary-stack", choice, Provenance.EXPLICIT)

        if len(stacks) == 1:
            if stacks_provenance is Provenance.EXPLICIT:
                return ResolvedOption("primary-stack", stacks[0], Provenance.EXPLICIT)
            if not any(identity.ambiguous for identity in evidence.identities if identity.id == stacks[0]):
                return ResolvedOption("primary-stack", stacks[0], Provenance.DETECTED)

        ranked = [identity for identity in evidence.identities if identity.id in stacks]
        top = ranked[0] if ranked else None
        if top is not None and not top.ambiguous:
            return ResolvedOption("primary-stack", top.id, Provenance.DETECTED)

        required = [name for name in selected if name in SINGLE_STACK_CATEGORIES]
        if not required:
            return ResolvedOption("primary-stack", None, Provenance.DEFAULT)

        tied = [identity.id for identity in ranked if identity.ambiguous]
        if tied:
            raise AmbiguousStack(tied)
        if not stacks:
            raise NeedsClarification(
                "primary-stack",
                f"no stack was detected and {', '.join(required)} generation is stack-specific",
            )
        raise NeedsClarification(
            "primary-stack",
            f"several stacks are selected ({', '.join(stacks)}) and "
            f"{', '.join(required)} generation targets exactly one",
        )


def _plain(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_plain(item) for item in value]
    return value


__all__ = [
    "CATEGORIES",
    "ConfigurationResolver",
    "Evidence",
    "OPTION_SPECS",
    "OptionSpec",
    "Provenance",
    "ResolvedConfiguration",
    "ResolvedOption",
    "SINGLE_STACK_CATEGORIES",
]
