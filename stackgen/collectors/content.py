"""Content-match collector for dependency manifests and version pins."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from .base import Collector
from .utils import (
    PYTHON_TEST_FRAMEWORKS,
    detect_java_frameworks,
    detect_java_test_frameworks,
    detect_node_frameworks,
    detect_node_package_manager,
    detect_node_test_frameworks,
    detect_python_frameworks,
    java_version_pin,
    load_go_module,
    load_java_dependencies,
    load_node_dependencies,
    load_package_json,
    load_python_dependencies,
    node_version_pin,
    python_project_name,
    python_version_pin,
)
from ..logging import get_logger
from ..models import Signal, SignalKind, WorkspaceManifest

_CONTENT_FILES = {
    "go.mod",
    "package.json",
    ".nvmrc",
    "pyproject.toml",
    "requirements.txt",
    ".python-version",
    "pom.xml",
    "build.gradle",
    "build.gradle.kts",
}

logger = get_logger("collectors.content")

_GO_PACKAGE_CLAUSE = re.compile(r"^\s*package\s+([A-Za-z_][A-Za-z0-9_]*)", re.MULTILINE)


def _go_sources(manifest: WorkspaceManifest) -> Dict[str, List[str]]:
    sources: Dict[str, List[str]] = {}
    for entry in manifest.files:
        if entry.path.endswith(".go") and not entry.path.endswith("_test.go"):
            directory = entry.path.rsplit("/", 1)[0] if "/" in entry.path else "."
            sources.setdefault(directory, []).append(entry.path)
    return sources


def _go_package_dir(manifest: WorkspaceManifest) -> Optional[str]:
    """Directory of the first non-test Go source, preferring the module root."""
    directories = sorted(_go_sources(manifest))
    if not directories:
        return None
    if "." in directories:
        return "."
    return directories[0]


def _go_package_name(root: Path, manifest: WorkspaceManifest, directory: str) -> Optional[str]:
    """Package clause of the first source in ``directory`` that declares one."""
    for relative in sorted(_go_sources(manifest).get(directory, [])):
        try:
            text = (root / relative).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Skipping unreadable Go source %s: %s", relative, exc)
            continue
        match = _GO_PACKAGE_CLAUSE.search(text)
        if match:
            return match.group(1)
    return None


def _content(stack: str, topic: str, source: str, detail: Optional[str] = None) -> Signal:
    name = f"content:{stack}:{topic}"
    return Signal(
        name=name,
        kind=SignalKind.CONTENT_MATCH,
        strength=1.0,
        source=source,
        detail=detail,
    )


class ContentCollector(Collector):
    """Matches frameworks, test runners and version pins inside manifests."""

    name = "content"

    def supports(self, manifest: WorkspaceManifest) -> bool:
        return bool(_CONTENT_FILES.intersection(manifest.paths()))

    def collect(
        self, manifest: WorkspaceManifest, environ: Mapping[str, str]
    ) -> Iterable[Signal]:
        root = Path(manifest.root)
        paths = manifest.paths()
        signals: List[Signal] = []
        signals.extend(self._python(root, paths))
        signals.extend(self._node(root, paths))
        signals.extend(self._go(root, paths, manifest))
        signals.extend(self._java(root, paths))
        return signals

    def _python(self, root: Path, paths: set[str]) -> List[Signal]:
        if not {"pyproject.toml", "requirements.txt", ".python-version"} & paths:
            return []
        source = "pyproject.toml" if "pyproject.toml" in paths else "requirements.txt"
        signals: List[Signal] = []
        dependencies = load_python_dependencies(root)
        for framework in detect_python_frameworks(dependencies):
            signals.append(_content("python", f"framework:{framework}", source))
        for runner in PYTHON_TEST_FRAMEWORKS:
            if runner in dependencies:
                signals.append(_content("python", f"test-framework:{runner}", source))
        version = python_version_pin(root)
        if version:
            signals.append(_content("python", "version", source, version))
        name = python_project_name(root)
        if name:
            signals.append(_content("python", "name", "pyproject.toml", name))
        return signals

    def _node(self, root: Path, paths: set[str]) -> List[Signal]:
        if not {"package.json", ".nvmrc"} & paths:
            return []
        signals: List[Signal] = []
        dependencies = load_node_dependencies(root)
        for framework in detect_node_frameworks(dependencies):
            signals.append(_content("node", f"framework:{framework}", "package.json"))
        for runner in detect_node_test_frameworks(dependencies):
            signals.append(_content("node", f"test-framework:{runner}", "package.json"))
        version = node_version_pin(root)
        if version:
            signals.append(_content("node", "version", "package.json", version))
        name = load_package_json(root).get("name")
        if isinstance(name, str) and name:
            signals.append(_content("node", "name", "package.json", name))
        if "package.json" in paths:
            manager = detect_node_package_manager(paths)
            signals.append(_content("node", "package-manager", "package.json", manager))
        return signals

    def _go(self, root: Path, paths: set[str], manifest: WorkspaceManifest) -> List[Signal]:
        if "go.mod" not in paths:
            return []
        module = load_go_module(root)
        signals: List[Signal] = []
        if "module" in module:
            signals.append(_content("go", "module", "go.mod", module["module"]))
        if "version" in module:
            signals.append(_content("go", "version", "go.mod", module["version"]))
        package_dir = _go_package_dir(manifest)
        if package_dir is not None:
            signals.append(_content("go", "package-dir", package_dir, package_dir))
            package = _go_package_name(root, manifest, package_dir)
            if package:
                signals.append(_content("go", "package", package_dir, package))
        return signals

    def _java(self, root: Path, paths: set[str]) -> List[Signal]:
        if not {"pom.xml", "build.gradle", "build.gradle.kts"} & paths:
            return []
        source = "pom.xml" if "pom.xml" in paths else "build.gradle"
        signals: List[Signal] = []
        dependencies = load_java_dependencies(root)
        for framework in detect_java_frameworks(dependencies):
            signals.append(_content("java", f"framework:{framework}", source))
        for runner in detect_java_test_frameworks(dependencies):
            signals.append(_content("java", f"test-framework:{runner}", source))
        version = java_version_pin(root)
        if version:
            signals.append(_content("java", "version", source, version))
        tool = "maven" if "pom.xml" in paths else "gradle"
        signals.append(_content("java", "build-tool", source, tool))
        return signals
