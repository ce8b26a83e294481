"""Pipeline orchestration for detect/plan/generate/doctor runs."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

from .classifier import RuleTable, StackClassifier
from .collectors import Collector, collect_signals, discover_collectors
from .config import StackgenConfig, load_config
from .diagnostics import (
    CommandRunner,
    DiagnosticEngine,
    HealthReport,
    ProbeRule,
    SubprocessRunner,
    default_rules,
    select_rules,
)
from .logging import get_logger
from .models import AnswerSet, DetectionResult
from .planner import GenerationPlan, GenerationPlanner
from .registry import ArtifactRegistry
from .repo_scanner import WorkspaceScanner
from .resolver import ConfigurationResolver, ResolvedConfiguration
from .writer import ArtifactWriter, GenerationReport

EXIT_OK = 0
EXIT_WARN = 1
EXIT_FATAL = 2


@dataclass
class PlanOutcome:
    """Detection, resolved configuration and plan for one workspace."""

    detection: DetectionResult
    config: ResolvedConfiguration
    plan: GenerationPlan


@dataclass
class GenerateOutcome(PlanOutcome):
    report: GenerationReport

    @property
    def exit_code(self) -> int:
        return self.report.exit_code


class Orchestrator:
    """Wires scanner, collectors, classifier, resolver, planner and writer."""

    def __init__(
        self,
        scanner: WorkspaceScanner | None = None,
        collectors: Optional[Iterable[Collector]] = None,
        registry: ArtifactRegistry | None = None,
        runner: CommandRunner | None = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.scanner = scanner or WorkspaceScanner()
        self._collector_overrides = list(collectors) if collectors is not None else None
        self.registry = registry or ArtifactRegistry()
        self.runner = runner
        self.environ = dict(environ) if environ is not None else None
        self.logger = get_logger("orchestrator")

    def detect(self, path: str | Path) -> DetectionResult:
        """Collect evidence and classify the workspace at ``path``."""
        root = Path(path).expanduser().resolve()
        config = load_config(root)
        return self._detect(root, config)

    def resolve(
        self, path: str | Path, answers: AnswerSet | None = None
    ) -> tuple[DetectionResult, ResolvedConfiguration]:
        root = Path(path).expanduser().resolve()
        config = load_config(root)
        detection = self._detect(root, config)
        return detection, self._resolve(root, config, detection, answers or AnswerSet())

    def plan(self, path: str | Path, answers: AnswerSet | None = None) -> PlanOutcome:
        """Dry run: everything up to the plan, nothing written."""
        detection, resolved = self.resolve(path, answers)
        plan = GenerationPlanner(self.registry).plan(resolved)
        return PlanOutcome(detection=detection, config=resolved, plan=plan)

    def generate(
        self,
        path: str | Path,
        answers: AnswerSet | None = None,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> GenerateOutcome:
        root = Path(path).expanduser().resolve()
        config = load_config(root)
        detection = self._detect(root, config)
        resolved = self._resolve(root, config, detection, answers or AnswerSet())
        plan = GenerationPlanner(self.registry).plan(resolved)
        self.logger.info("Executing %d planned operation(s) in %s", len(plan), root)
        writer = ArtifactWriter(root, workers=config.writer.workers)
        report = writer.execute(plan, cancel_event=cancel_event)
        return GenerateOutcome(detection=detection, config=resolved, plan=plan, report=report)

    def doctor(
        self,
        path: str | Path = ".",
        *,
        fix: bool = False,
        rules: Optional[Sequence[ProbeRule]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> HealthReport:
        """Run the environment health check; remediations only when ``fix``."""
        root = Path(path).expanduser().resolve()
        config = load_config(root)
        selected = select_rules(
            rules if rules is not None else default_rules(str(root)),
            config.diagnostics.skip,
        )
        engine = DiagnosticEngine(
            self.runner or SubprocessRunner(),
            environ=self._environ(),
            workers=config.diagnostics.workers,
            timeout=config.diagnostics.timeout,
        )
        self.logger.info("Evaluating %d probe rule(s)%s", len(selected), " with fixes" if fix else "")
        return engine.evaluate(selected, fix=fix, cancel_event=cancel_event)

    def _detect(self, root: Path, config: StackgenConfig) -> DetectionResult:
        manifest = self.scanner.scan(root)
        self.logger.debug("Scanner discovered %d files", len(manifest.files))
        collectors = self._select_collectors(config)
        signals = collect_signals(
            manifest,
            self._environ(),
            collectors,
            workers=config.collector.workers,
        )
        classifier = StackClassifier(RuleTable.from_config(config.classifier))
        identities = classifier.classify(signals)
        self.logger.info(
            "Detected stacks: %s",
            ", ".join(f"{identity.id} ({identity.confidence:.2f})" for identity in identities) or "none",
        )
        return DetectionResult(root=str(root), signals=signals, identities=identities)

    def _resolve(
        self,
        root: Path,
        config: StackgenConfig,
        detection: DetectionResult,
        answers: AnswerSet,
    ) -> ResolvedConfiguration:
        effective = answers.merged_with(config.answers) if config.answers else answers
        return ConfigurationResolver().resolve(
            detection.identities,
            detection.signals,
            effective,
            workspace_name=root.name or "app",
        )

    def _select_collectors(self, config: StackgenConfig) -> list[Collector]:
        if self._collector_overrides is not None:
            return list(self._collector_overrides)
        return discover_collectors(config.collector.enabled or None)

    def _environ(self) -> dict[str, str]:
        return dict(self.environ) if self.environ is not None else dict(os.environ)


__all__ = [
    "EXIT_FATAL",
    "EXIT_OK",
    "EXIT_WARN",
    "GenerateOutcome",
    "Orchestrator",
    "PlanOutcome",
]
