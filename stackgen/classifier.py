"""Stack classification from collected signals.

Confidence per stack is a noisy-OR over every matching rule row::

    confidence = 1 - prod(1 - weight * strength)

so a single primary manifest is conclusive (1.0) while several weak hints
accumulate without ever exceeding 1. Weights come from a rule table that can be
overridden in ``.stackgen.yml`` (see ``DEFAULT_WEIGHTS``).
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .config import ClassifierConfig
from .errors import ConfigError
from .logging import get_logger
from .models import Signal, StackIdentity

STACKS: Tuple[str, ...] = ("go", "java", "node", "python")

DEFAULT_FLOOR = 0.2

DEFAULT_WEIGHTS: Dict[str, float] = {
    "primary-manifest": 1.0,
    "secondary-manifest": 0.9,
    "lock-file": 0.6,
    "content": 0.5,
    "extension": 0.3,
    "env": 0.15,
}

logger = get_logger("classifier")


@dataclass(frozen=True)
class ClassifierRule:
    """One row of the weighted rule table."""

    stack: str
    pattern: str
    evidence: str
    weight: float

    def matches(self, signal: Signal) -> bool:
        return fnmatchcase(signal.name, self.pattern)


_RULE_ROWS: Tuple[Tuple[str, str, str], ...] = (
    ("go", "file:go.mod", "primary-manifest"),
    ("go", "file:go.sum", "lock-file"),
    ("go", "content:go:*", "content"),
    ("go", "env:GOPATH", "env"),
    ("go", "env:GOROOT", "env"),
    ("go", "ext:.go", "extension"),
    ("java", "file:pom.xml", "primary-manifest"),
    ("java", "file:build.gradle", "primary-manifest"),
    ("java", "file:build.gradle.kts", "primary-manifest"),
    ("java", "content:java:*", "content"),
    ("java", "env:JAVA_HOME", "env"),
    ("java", "ext:.java", "extension"),
    ("java", "ext:.kt", "extension"),
    ("node", "file:package.json", "primary-manifest"),
    ("node", "file:package-lock.json", "lock-file"),
    ("node", "file:yarn.lock", "lock-file"),
    ("node", "file:pnpm-lock.yaml", "lock-file"),
    ("node", "content:node:*", "content"),
    ("node", "env:NVM_DIR", "env"),
    ("node", "ext:.js", "extension"),
    ("node", "ext:.mjs", "extension"),
    ("node", "ext:.ts", "extension"),
    ("node", "ext:.tsx", "extension"),
    ("python", "file:pyproject.toml", "primary-manifest"),
    ("python", "file:requirements.txt", "secondary-manifest"),
    ("python", "file:setup.py", "secondary-manifest"),
    ("python", "file:setup.cfg", "secondary-manifest"),
    ("python", "file:Pipfile", "secondary-manifest"),
    ("python", "file:poetry.lock", "lock-file"),
    ("python", "content:python:*", "content"),
    ("python", "env:VIRTUAL_ENV", "env"),
    ("python", "env:CONDA_PREFIX", "env"),
    ("python", "ext:.py", "extension"),
)


class RuleTable:
    """Weighted mapping from signal names to stacks."""

    def __init__(self, rules: Sequence[ClassifierRule], floor: float = DEFAULT_FLOOR) -> None:
        if not 0.0 <= floor <= 1.0:
            raise ConfigError(f"classifier.floor must be within [0, 1], got {floor}")
        for rule in rules:
            if not 0.0 <= rule.weight <= 1.0:
                raise ConfigError(
                    f"Weight for '{rule.pattern}' ({rule.stack}) must be within [0, 1]"
                )
        self.rules: Tuple[ClassifierRule, ...] = tuple(rules)
        self.floor = floor

    @classmethod
    def default(cls, weights: Mapping[str, float] | None = None) -> "RuleTable":
        effective = dict(DEFAULT_WEIGHTS)
        if weights:
            effective.update(weights)
        rules = [
            ClassifierRule(stack=stack, pattern=pattern, evidence=evidence, weight=effective[evidence])
            for stack, pattern, evidence in _RULE_ROWS
        ]
        return cls(rules)

    @classmethod
    def from_config(cls, config: Optional[ClassifierConfig]) -> "RuleTable":
        if config is None:
            return cls.default()
        unknown = set(config.weights) - set(DEFAULT_WEIGHTS)
        if unknown:
            raise ConfigError(f"Unknown classifier weight classes: {', '.join(sorted(unknown))}")
        base = cls.default(config.weights)
        rules = list(base.rules)
        for row in config.rules:
            stack = row.get("stack")
            pattern = row.get("pattern")
            if not isinstance(stack, str) or not isinstance(pattern, str):
                raise ConfigError("classifier.rules entries need 'stack' and 'pattern'")
            evidence = str(row.get("evidence", "content"))
            weight = row.get("weight", base.weight_for(evidence))
            if not isinstance(weight, (int, float)) or isinstance(weight, bool):
                raise ConfigError(f"classifier.rules weight for '{pattern}' must be a number")
            rules.append(
                ClassifierRule(stack=stack, pattern=pattern, evidence=evidence, weight=float(weight))
            )
        floor = config.floor if config.floor is not None else DEFAULT_FLOOR
        return cls(rules, floor=floor)

    def weight_for(self, evidence: str) -> float:
        for rule in self.rules:
            if rule.evidence == evidence:
                return rule.weight
        return DEFAULT_WEIGHTS.get(evidence, DEFAULT_WEIGHTS["content"])


class StackClassifier:
    """Turns a signal set into ranked stack identities."""

    def __init__(self, table: RuleTable | None = None) -> None:
        self.table = table or RuleTable.default()

    def classify(self, signals: Iterable[Signal]) -> List[StackIdentity]:
        """Return identities ranked by confidence, ties flagged as ambiguous."""
        remaining: Dict[str, float] = defaultdict(lambda: 1.0)
        evidence: Dict[str, List[str]] = defaultdict(list)

        for signal in sorted(signals, key=Signal.sort_key):
            for rule in self.table.rules:
                if not rule.matches(signal):
                    continue
                contribution = rule.weight * signal.strength
                if contribution <= 0:
                    continue
                remaining[rule.stack] *= 1.0 - contribution
                if signal.name not in evidence[rule.stack]:
                    evidence[rule.stack].append(signal.name)

        scores = {
            stack: round(min(1.0, max(0.0, 1.0 - product)), 4)
            for stack, product in remaining.items()
        }
        if not scores:
            return []

        ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
        kept = [(stack, score) for stack, score in ranked if score >= self.table.floor]
        below_floor = not kept
        if below_floor:
            # Environment variables describe the machine, not the workspace.
            grounded = [
                (stack, score)
                for stack, score in ranked
                if not all(name.startswith("env:") for name in evidence[stack])
            ]
            if not grounded:
                logger.debug("Only environment evidence matched; no stack identified")
                return []
            top_score = grounded[0][1]
            kept = [(stack, score) for stack, score in grounded if score == top_score]

        top = kept[0][1]
        tied = sum(1 for _, score in kept if score == top) > 1

        identities = [
            StackIdentity(
                id=stack,
                confidence=score,
                ambiguous=below_floor or (tied and score == top),
                evidence=tuple(evidence[stack]),
            )
            for stack, score in kept
        ]
        logger.debug(
            "Classified stacks: %s",
            ", ".join(f"{identity.id}={identity.confidence}" for identity in identities),
        )
        return identities


__all__ = [
    "ClassifierRule",
    "DEFAULT_FLOOR",
    "DEFAULT_WEIGHTS",
    "RuleTable",
    "STACKS",
    "StackClassifier",
]
