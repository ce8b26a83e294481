"""Concurrent evaluation of probe rules with optional remediation."""

from __future__ import annotations

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Mapping, Optional, Sequence

from ..errors import ProbeError, ProbeTimeout
from ..logging import get_logger
from .probes import ProbeContext
from .rules import HealthReport, ProbeResult, ProbeRule, ProbeStatus
from .runner import CommandRunner, SubprocessRunner

logger = get_logger("diagnostics")


class DiagnosticEngine:
    """Runs probe rules on a bounded pool and folds them into a report."""

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        *,
        environ: Optional[Mapping[str, str]] = None,
        workers: int = 4,
        timeout: float = 5.0,
    ) -> None:
        self.runner = runner or SubprocessRunner()
        self.environ = dict(environ) if environ is not None else dict(os.environ)
        self.workers = max(1, workers)
        self.timeout = timeout

    def evaluate(
        self,
        rules: Sequence[ProbeRule],
        *,
        fix: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> HealthReport:
        rules = list(rules)
        seen = set()
        for rule in rules:
            if rule.id in seen:
                raise ValueError(f"Duplicate probe rule id: {rule.id}")
            seen.add(rule.id)

        cancel = cancel_event or threading.Event()
        context = ProbeContext(runner=self.runner, environ=self.environ, timeout=self.timeout)
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="stackgen-probe") as pool:
            futures = [pool.submit(self._check, rule, context, cancel) for rule in rules]
            results: List[ProbeResult] = [future.result() for future in futures]

        if fix:
            for index, rule in enumerate(rules):
                if results[index].status is ProbeStatus.PASS or rule.remediation is None:
                    continue
                if cancel.is_set():
                    break
                results[index] = self._remediate(rule, context)

        report = HealthReport.from_results(results)
        logger.info(
            "Health check: %d pass, %d warn, %d fail", report.passed, report.warned, report.failed
        )
        return report

    def _check(self, rule: ProbeRule, context: ProbeContext, cancel: threading.Event) -> ProbeResult:
        if cancel.is_set():
            return ProbeResult(rule.id, rule.title, ProbeStatus.FAIL, "not evaluated", "cancelled")
        try:
            observation = rule.probe.observe(context)
        except ProbeTimeout as exc:
            logger.warning("%s: %s", rule.id, exc)
            return ProbeResult(rule.id, rule.title, ProbeStatus.FAIL, "timeout", str(exc))
        except Exception as exc:
            logger.warning("%s: probe raised %s", rule.id, exc, exc_info=True)
            return ProbeResult(
                rule.id, rule.title, ProbeStatus.FAIL, "probe error", f"{type(exc).__name__}: {exc}"
            )
        status = rule.classify(observation)
        logger.debug("%s -> %s (%s)", rule.id, status.value, observation.state.value)
        return ProbeResult(rule.id, rule.title, status, observation.evidence, observation.detail)

    def _remediate(self, rule: ProbeRule, context: ProbeContext) -> ProbeResult:
        assert rule.remediation is not None
        remediation = rule.remediation
        logger.info("Remediating %s: %s", rule.id, remediation.description)
        failure: Optional[str] = None
        try:
            outcome = self.runner.run(remediation.argv, remediation.timeout)
            if not outcome.ok:
                failure = f"remediation exited with {outcome.exit_code}"
                line = outcome.first_line()
                if line:
                    failure = f"{failure}: {line}"
        except ProbeError as exc:
            failure = f"remediation failed: {exc}"

        # Exactly one re-check; never loop on a remediation.
        recheck = self._check(rule, context, threading.Event())
        if recheck.status is ProbeStatus.PASS:
            return recheck.remediated("succeeded")
        reason = failure or f"still {recheck.status.value} after remediation: {recheck.detail or recheck.evidence}"
        logger.warning("%s: %s", rule.id, reason)
        return recheck.remediated(reason)


__all__ = ["DiagnosticEngine"]
