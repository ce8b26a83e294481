"""Signal collector implementations and discovery utilities."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from importlib import metadata
from typing import Callable, Iterable, List, Mapping, Sequence, Set

from .base import Collector
from .content import ContentCollector
from .environment import EnvironmentCollector
from .extensions import ExtensionCollector
from .manifests import ManifestCollector
from ..logging import get_logger
from ..models import Signal, WorkspaceManifest

_ENTRY_POINT_GROUP = "stackgen.collectors"

_BUILTIN_FACTORIES: dict[str, Callable[[], Collector]] = {
    "manifests": ManifestCollector,
    "content": ContentCollector,
    "environment": EnvironmentCollector,
    "extensions": ExtensionCollector,
}

logger = get_logger("collectors")


def discover_collectors(enabled: Sequence[str] | None = None) -> List[Collector]:
    """Return instantiated collectors, honoring optional enabled names."""

    enabled_set: Set[str] | None = None
    if enabled:
        enabled_set = {name.lower() for name in enabled}

    collectors: List[Collector] = []
    seen: Set[str] = set()

    def _add(name: str, factory: Callable[[], Collector]) -> None:
        key = name.lower()
        if enabled_set is not None and key not in enabled_set:
            return
        if key in seen:
            return
        instance = factory()
        if not isinstance(instance, Collector):
            raise TypeError(f"Collector factory for '{name}' did not return a Collector instance")
        collectors.append(instance)
        seen.add(key)

    for name, factory in _BUILTIN_FACTORIES.items():
        _add(name, factory)

    for entry in _iter_entry_points():
        try:
            loaded = entry.load()
        except (ImportError, AttributeError) as exc:
            raise RuntimeError(f"Failed to load collector entry point '{entry.name}': {exc}") from exc

        def _factory(obj: object = loaded) -> Collector:
            return _coerce_collector(obj)

        _add(entry.name, _factory)

    if enabled_set is not None:
        missing = enabled_set - seen
        if missing:
            raise ValueError(f"Unknown collectors requested: {', '.join(sorted(missing))}")

    return collectors


def collect_signals(
    manifest: WorkspaceManifest,
    environ: Mapping[str, str],
    collectors: Iterable[Collector],
    *,
    workers: int = 4,
) -> List[Signal]:
    """Run collectors on a bounded pool and return signals in a stable order."""
    selected = [collector for collector in collectors if collector.supports(manifest)]
    if not selected:
        return []

    snapshot = dict(environ)

    def _run(collector: Collector) -> List[Signal]:
        try:
            return list(collector.collect(manifest, snapshot))
        except Exception:  # noqa: BLE001 - collector failures are logged and dropped
            logger.exception("Collector %s failed; continuing without it", collector.name)
            return []

    with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
        batches = list(pool.map(_run, selected))

    signals = [signal for batch in batches for signal in batch]
    signals.sort(key=Signal.sort_key)
    logger.debug("Collected %d signals from %d collectors", len(signals), len(selected))
    return signals


def _coerce_collector(obj: object) -> Collector:
    if isinstance(obj, Collector):
        return obj
    if isinstance(obj, type) and issubclass(obj, Collector):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, Collector):
            return instance
    raise TypeError("Collector entry point must be a Collector subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "Collector",
    "ContentCollector",
    "EnvironmentCollector",
    "ExtensionCollector",
    "ManifestCollector",
    "collect_signals",
    "discover_collectors",
]
