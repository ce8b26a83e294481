"""Generation planning: resolved configuration -> ordered write operations.

The planner is pure. It renders every applicable artifact spec, adds a
directory node for each ancestor directory, links merge-block patches to the
node that creates their target, and orders the graph into layers with a
heap-based Kahn sort so identical inputs always yield the identical plan.
"""

from __future__ import annotations

import json
from collections import defaultdict
from dataclasses import dataclass
from heapq import heapify, heappop, heappush
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import PlanConflict, PlanError
from .fs import PathEscape, normalize_relative
from .logging import get_logger
from .registry import ArtifactRegistry, ArtifactSpec, MergePolicy
from .resolver import ResolvedConfiguration

logger = get_logger("planner")

DIRECTORY = "directory"
FILE = "file"


@dataclass(frozen=True)
class PlanNode:
    """One resolved write operation."""

    id: str
    kind: str
    path: str
    content: Optional[str] = None
    policy: Optional[MergePolicy] = None
    spec_id: Optional[str] = None
    category: Optional[str] = None
    block: Optional[str] = None
    depends_on: Tuple[str, ...] = ()
    layer: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "kind": self.kind,
            "path": self.path,
            "policy": self.policy.value if self.policy else None,
            "spec": self.spec_id,
            "category": self.category,
            "block": self.block,
            "depends_on": list(self.depends_on),
            "layer": self.layer,
            "content": self.content,
        }


@dataclass(frozen=True)
class GenerationPlan:
    """Topologically ordered plan nodes grouped by layer."""

    nodes: Tuple[PlanNode, ...]

    def __iter__(self) -> Iterator[PlanNode]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def get(self, node_id: str) -> PlanNode:
        for node in self.nodes:
            if node.id == node_id:
                return node
        raise KeyError(node_id)

    def layers(self) -> List[Tuple[PlanNode, ...]]:
        grouped: Dict[int, List[PlanNode]] = defaultdict(list)
        for node in self.nodes:
            grouped[node.layer].append(node)
        return [tuple(grouped[layer]) for layer in sorted(grouped)]

    def to_dict(self) -> Dict[str, object]:
        return {"nodes": [node.to_dict() for node in self.nodes]}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True)


@dataclass
class _Draft:
    id: str
    kind: str
    path: str
    content: Optional[str] = None
    spec: Optional[ArtifactSpec] = None


class GenerationPlanner:
    """Builds a :class:`GenerationPlan` from a registry and a configuration."""

    def __init__(self, registry: Optional[ArtifactRegistry] = None) -> None:
        self.registry = registry or ArtifactRegistry()

    def plan(self, config: ResolvedConfiguration) -> GenerationPlan:
        specs = self.registry.applicable(config)
        files = [self._render(spec, config) for spec in specs]
        self._check_collisions(files)

        drafts: Dict[str, _Draft] = {draft.id: draft for draft in files}
        for draft in files:
            for directory in _ancestors(draft.path):
                node_id = _dir_id(directory)
                drafts.setdefault(node_id, _Draft(node_id, DIRECTORY, directory))
        self._check_directory_clashes(drafts)

        edges = self._edges(drafts)
        layers = _layer(drafts, edges)
        ordered = sorted(drafts.values(), key=lambda draft: (layers[draft.id], draft.id))
        nodes = tuple(
            PlanNode(
                id=draft.id,
                kind=draft.kind,
                path=draft.path,
                content=draft.content,
                policy=draft.spec.policy if draft.spec else None,
                spec_id=draft.spec.id if draft.spec else None,
                category=draft.spec.category if draft.spec else None,
                block=draft.spec.block if draft.spec else None,
                depends_on=tuple(sorted(edges[draft.id])),
                layer=layers[draft.id],
            )
            for draft in ordered
        )
        logger.debug(
            "Planned %d node(s) from %d applicable spec(s) across %d layer(s)",
            len(nodes),
            len(specs),
            len(set(layers.values())),
        )
        return GenerationPlan(nodes=nodes)

    def _render(self, spec: ArtifactSpec, config: ResolvedConfiguration) -> _Draft:
        context = config.as_context()
        context["stack"] = spec.stack
        raw_path = self.registry.renderer.render_path(spec.path, context)
        try:
            path = normalize_relative(raw_path)
        except PathEscape as exc:
            raise PlanError(f"Artifact '{spec.id}' targets an unsafe path: {exc}") from exc
        content = self.registry.renderer.render_file(spec.template, context)
        return _Draft(id=spec.id, kind=FILE, path=path, content=content, spec=spec)

    @staticmethod
    def _check_collisions(files: List[_Draft]) -> None:
        owners: Dict[Tuple[str, Optional[str]], List[str]] = defaultdict(list)
        for draft in files:
            assert draft.spec is not None
            block = draft.spec.block if draft.spec.policy is MergePolicy.MERGE_BLOCK else None
            owners[(draft.path, block)].append(draft.id)
        for (path, _block), spec_ids in sorted(owners.items(), key=lambda item: (item[0][0], item[0][1] or "")):
            if len(spec_ids) > 1:
                raise PlanConflict(path, sorted(spec_ids))

    @staticmethod
    def _check_directory_clashes(drafts: Dict[str, _Draft]) -> None:
        directories = {draft.path for draft in drafts.values() if draft.kind == DIRECTORY}
        for draft in sorted(drafts.values(), key=lambda item: item.id):
            if draft.kind == FILE and draft.path in directories:
                raise PlanConflict(draft.path, [draft.id, _dir_id(draft.path)])

    @staticmethod
    def _edges(drafts: Dict[str, _Draft]) -> Dict[str, set]:
        edges: Dict[str, set] = {node_id: set() for node_id in drafts}
        creators: Dict[str, str] = {}
        for draft in drafts.values():
            if draft.kind == FILE and draft.spec and draft.spec.policy is not MergePolicy.MERGE_BLOCK:
                creators[draft.path] = draft.id

        for draft in drafts.values():
            parent = _parent(draft.path)
            if parent:
                edges[draft.id].add(_dir_id(parent))
            if draft.spec is None:
                continue
            if draft.spec.policy is MergePolicy.MERGE_BLOCK and draft.path in creators:
                edges[draft.id].add(creators[draft.path])
            for dependency in draft.spec.depends_on:
                if dependency in drafts:
                    edges[draft.id].add(dependency)
                else:
                    logger.debug("%s: dependency %s is not part of this plan", draft.id, dependency)
        return edges


def _layer(drafts: Dict[str, _Draft], edges: Dict[str, set]) -> Dict[str, int]:
    """Kahn's algorithm with a heap keyed on node id; returns node -> layer."""
    dependents: Dict[str, List[str]] = defaultdict(list)
    indegree = {node_id: len(deps) for node_id, deps in edges.items()}
    for node_id, deps in edges.items():
        for dependency in deps:
            dependents[dependency].append(node_id)

    ready = [node_id for node_id, count in indegree.items() if count == 0]
    heapify(ready)
    layers: Dict[str, int] = {}
    while ready:
        node_id = heappop(ready)
        layers[node_id] = max((layers[dep] + 1 for dep in edges[node_id]), default=0)
        for dependent in dependents[node_id]:
            indegree[dependent] -= 1
            if indegree[dependent] == 0:
                heappush(ready, dependent)

    if len(layers) != len(drafts):
        stuck = sorted(node_id for node_id in drafts if node_id not in layers)
        raise PlanError(f"Artifact dependencies form a cycle involving: {', '.join(stuck)}")
    return layers


def _dir_id(path: str) -> str:
    return f"dir:{path}"


def _parent(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


def _ancestors(path: str) -> List[str]:
    parts = path.split("/")[:-1]
    return ["/".join(parts[: index + 1]) for index in range(len(parts))]


__all__ = ["DIRECTORY", "FILE", "GenerationPlan", "GenerationPlanner", "PlanNode"]
