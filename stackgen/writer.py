"""Plan execution against the workspace filesystem."""

from __future__ import annotations

import json
import threading
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .errors import WriteConflict
from .fs import PathEscape, atomic_write, confine, read_existing
from .logging import get_logger
from .markers import MarkerManager
from .planner import DIRECTORY, GenerationPlan, PlanNode
from .registry import MergePolicy

logger = get_logger("writer")


class WriteStatus(str, Enum):
    CREATED = "created"
    OVERWRITTEN = "overwritten"
    MERGED = "merged"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class WriteResult:
    """Outcome of one plan node."""

    node_id: str
    path: str
    status: WriteStatus
    reason: Optional[str] = None
    fatal: bool = False

    def to_dict(self) -> Dict[str, object]:
        return {
            "node": self.node_id,
            "path": self.path,
            "status": self.status.value,
            "reason": self.reason,
            "fatal": self.fatal,
        }


@dataclass(frozen=True)
class GenerationReport:
    """Ordered write results with aggregate counts."""

    results: Tuple[WriteResult, ...]

    @property
    def counts(self) -> Dict[str, int]:
        totals = {status.value: 0 for status in WriteStatus}
        for result in self.results:
            totals[result.status.value] += 1
        return totals

    @property
    def exit_code(self) -> int:
        if any(result.fatal for result in self.results):
            return 2
        if any(result.status in (WriteStatus.FAILED, WriteStatus.SKIPPED) for result in self.results):
            return 1
        return 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "results": [result.to_dict() for result in self.results],
            "counts": self.counts,
            "exit_code": self.exit_code,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True)


class ArtifactWriter:
    """Executes a :class:`GenerationPlan` layer by layer.

    Layers run one after another. Inside a layer, nodes are grouped by parent
    directory and each group runs serially on one pool worker, so two nodes
    never touch the same directory entry at the same time.
    """

    def __init__(
        self,
        root: Path,
        *,
        workers: int = 4,
        markers: Optional[MarkerManager] = None,
    ) -> None:
        self.root = Path(root)
        self.workers = max(1, workers)
        self.markers = markers or MarkerManager()

    def execute(
        self,
        plan: GenerationPlan,
        cancel_event: Optional[threading.Event] = None,
    ) -> GenerationReport:
        if not self.root.is_dir():
            raise NotADirectoryError(f"Workspace root {self.root} is not a directory")
        cancel = cancel_event or threading.Event()
        outcomes: Dict[str, WriteResult] = {}
        blocked: Set[str] = set()

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="stackgen-writer") as pool:
            for layer in plan.layers():
                groups = _group_by_parent(layer)
                futures = [
                    pool.submit(self._run_group, group, blocked, cancel) for group in groups
                ]
                for future in futures:
                    for result, blocking in future.result():
                        outcomes[result.node_id] = result
                        if blocking:
                            blocked.add(result.node_id)

        results = tuple(outcomes[node.id] for node in plan)
        report = GenerationReport(results=results)
        logger.info(
            "Wrote plan: %s",
            ", ".join(f"{count} {status}" for status, count in report.counts.items() if count),
        )
        return report

    def _run_group(
        self,
        group: Sequence[PlanNode],
        blocked: Set[str],
        cancel: threading.Event,
    ) -> List[Tuple[WriteResult, bool]]:
        """Run one directory group; each result says whether it blocks dependents."""
        results: List[Tuple[WriteResult, bool]] = []
        for node in group:
            if cancel.is_set():
                results.append((WriteResult(node.id, node.path, WriteStatus.SKIPPED, "cancelled"), True))
                continue
            failed_deps = [dep for dep in node.depends_on if dep in blocked]
            if failed_deps:
                reason = f"dependency {failed_deps[0]} did not complete"
                logger.warning("%s: %s", node.path, reason)
                results.append((WriteResult(node.id, node.path, WriteStatus.SKIPPED, reason), True))
                continue
            result = self._apply(node)
            results.append((result, result.status is WriteStatus.FAILED))
        return results

    def _apply(self, node: PlanNode) -> WriteResult:
        try:
            target = confine(self.root, node.path)
            if node.kind == DIRECTORY:
                result = self._ensure_directory(node, target)
            elif node.policy is MergePolicy.SKIP_IF_EXISTS:
                result = self._skip_if_exists(node, target)
            elif node.policy is MergePolicy.OVERWRITE:
                result = self._overwrite(node, target)
            else:
                result = self._merge(node, target)
        except WriteConflict as exc:
            logger.warning("Merge conflict on %s: %s", node.path, exc.reason)
            return WriteResult(node.id, node.path, WriteStatus.FAILED, exc.reason)
        except UnicodeDecodeError:
            reason = "existing target is not UTF-8 text"
            logger.warning("Cannot update %s: %s", node.path, reason)
            return WriteResult(node.id, node.path, WriteStatus.FAILED, reason)
        except PathEscape as exc:
            logger.warning("Refusing to write %s: %s", node.path, exc)
            return WriteResult(node.id, node.path, WriteStatus.FAILED, str(exc), fatal=True)
        except OSError as exc:
            logger.warning("Failed to write %s: %s", node.path, exc)
            return WriteResult(node.id, node.path, WriteStatus.FAILED, str(exc), fatal=True)
        logger.debug("%s %s", result.status.value, node.path)
        return result

    def _ensure_directory(self, node: PlanNode, target: Path) -> WriteResult:
        if target.is_dir():
            return WriteResult(node.id, node.path, WriteStatus.UNCHANGED)
        target.mkdir(exist_ok=True)
        return WriteResult(node.id, node.path, WriteStatus.CREATED)

    def _skip_if_exists(self, node: PlanNode, target: Path) -> WriteResult:
        try:
            raw = target.read_bytes()
        except FileNotFoundError:
            atomic_write(target, node.content or "")
            return WriteResult(node.id, node.path, WriteStatus.CREATED)
        existing = _decoded(raw)
        if existing is not None and self._same(existing, node):
            return WriteResult(node.id, node.path, WriteStatus.UNCHANGED)
        return WriteResult(
            node.id, node.path, WriteStatus.SKIPPED, "target exists and differs; left untouched"
        )

    def _overwrite(self, node: PlanNode, target: Path) -> WriteResult:
        try:
            existing = _decoded(target.read_bytes())
        except FileNotFoundError:
            atomic_write(target, node.content or "")
            return WriteResult(node.id, node.path, WriteStatus.CREATED)
        if existing is not None and self._same(existing, node):
            return WriteResult(node.id, node.path, WriteStatus.UNCHANGED)
        atomic_write(target, node.content or "")
        return WriteResult(node.id, node.path, WriteStatus.OVERWRITTEN)

    def _same(self, existing: str, node: PlanNode) -> bool:
        """Equal content, ignoring whatever later merge nodes put inside managed blocks."""
        content = node.content or ""
        if existing == content:
            return True
        return self.markers.blank(existing, node.path) == self.markers.blank(content, node.path)

    def _merge(self, node: PlanNode, target: Path) -> WriteResult:
        existing = read_existing(target)
        if existing is None:
            raise WriteConflict(node.path, f"cannot merge block '{node.block}' into a missing file")
        updated = self.markers.replace(existing, node.path, node.block or "", node.content or "")
        if updated == existing:
            return WriteResult(node.id, node.path, WriteStatus.UNCHANGED)
        atomic_write(target, updated)
        return WriteResult(node.id, node.path, WriteStatus.MERGED)


def _decoded(raw: bytes) -> Optional[str]:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None


def _group_by_parent(layer: Iterable[PlanNode]) -> List[List[PlanNode]]:
    groups: Dict[str, List[PlanNode]] = defaultdict(list)
    for node in layer:
        parent = node.path.rsplit("/", 1)[0] if "/" in node.path else ""
        groups[parent].append(node)
    return [groups[key] for key in sorted(groups)]


__all__ = ["ArtifactWriter", "GenerationReport", "WriteResult", "WriteStatus"]
