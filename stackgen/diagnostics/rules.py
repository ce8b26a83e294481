"""Probe rules, results and the health report fold."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import reduce
from typing import Dict, Iterable, Mapping, Optional, Tuple

from .probes import Observation, ObservationState, Probe


class ProbeStatus(str, Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


@dataclass(frozen=True)
class Remediation:
    """A bounded repair command, only run in fix mode."""

    description: str
    argv: Tuple[str, ...]
    timeout: float = 120.0


@dataclass(frozen=True)
class ProbeRule:
    """One diagnostic check and how its observations map to a status.

    ``thresholds`` maps observation states to statuses. ``ok`` passes unless
    mapped otherwise; any other state that is not mapped fails.
    """

    id: str
    title: str
    probe: Probe
    thresholds: Mapping[ObservationState, ProbeStatus] = field(default_factory=dict)
    remediation: Optional[Remediation] = None

    def classify(self, observation: Observation) -> ProbeStatus:
        if observation.state in self.thresholds:
            return self.thresholds[observation.state]
        if observation.state is ObservationState.OK:
            return ProbeStatus.PASS
        return ProbeStatus.FAIL


@dataclass(frozen=True)
class ProbeResult:
    rule_id: str
    title: str
    status: ProbeStatus
    evidence: str
    detail: Optional[str] = None
    remediation_attempted: bool = False
    remediation_outcome: Optional[str] = None

    def remediated(self, outcome: str) -> "ProbeResult":
        return replace(self, remediation_attempted=True, remediation_outcome=outcome)

    def to_dict(self) -> Dict[str, object]:
        return {
            "rule": self.rule_id,
            "title": self.title,
            "status": self.status.value,
            "evidence": self.evidence,
            "detail": self.detail,
            "remediation_attempted": self.remediation_attempted,
            "remediation_outcome": self.remediation_outcome,
        }


@dataclass(frozen=True)
class HealthReport:
    """Immutable aggregate of probe results in rule-declared order."""

    results: Tuple[ProbeResult, ...] = ()
    passed: int = 0
    warned: int = 0
    failed: int = 0

    def add(self, result: ProbeResult) -> "HealthReport":
        return HealthReport(
            results=self.results + (result,),
            passed=self.passed + (result.status is ProbeStatus.PASS),
            warned=self.warned + (result.status is ProbeStatus.WARN),
            failed=self.failed + (result.status is ProbeStatus.FAIL),
        )

    @classmethod
    def from_results(cls, results: Iterable[ProbeResult]) -> "HealthReport":
        return reduce(lambda report, result: report.add(result), results, cls())

    @property
    def counts(self) -> Dict[str, int]:
        return {"pass": self.passed, "warn": self.warned, "fail": self.failed}

    @property
    def exit_code(self) -> int:
        return 0 if self.warned == 0 and self.failed == 0 else 1

    def to_dict(self) -> Dict[str, object]:
        return {
            "results": [result.to_dict() for result in self.results],
            "counts": self.counts,
            "exit_code": self.exit_code,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True)


__all__ = ["HealthReport", "ProbeResult", "ProbeRule", "ProbeStatus", "Remediation"]
