"""Shared helper utilities for collector implementations.

Every loader here is best-effort: unreadable or malformed files produce empty
results so that one broken manifest never aborts collection.
"""

from __future__ import annotations

import json
import re
import tomllib
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from ..logging import get_logger

logger = get_logger("collectors")

PYTHON_FRAMEWORKS = {
    "fastapi": "fastapi",
    "django": "django",
    "flask": "flask",
}

NODE_FRAMEWORKS = {
    "express": "express",
    "next": "next",
    "react": "react",
}

PYTHON_TEST_FRAMEWORKS = ("pytest",)
NODE_TEST_FRAMEWORKS = ("vitest", "jest", "mocha")


def read_text(root: Path, relative: str) -> Optional[str]:
    """Return file contents or None when the file is missing or unreadable."""
    path = root / relative
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Unable to read %s: %s", path, exc)
        return None


# Python helpers


def load_python_dependencies(root: Path) -> List[str]:
    """Collect Python dependency names from requirements.txt and pyproject.toml."""
    deps: Set[str] = set()

    requirements = read_text(root, "requirements.txt")
    if requirements is not None:
        deps.update(_parse_requirements(requirements))

    pyproject = load_pyproject(root)
    if pyproject:
        deps.update(_pyproject_dependencies(pyproject))

    return sorted(dep.lower() for dep in deps)


def load_pyproject(root: Path) -> Dict[str, object]:
    text = read_text(root, "pyproject.toml")
    if text is None:
        return {}
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        logger.debug("Malformed pyproject.toml: %s", exc)
        return {}
    return data if isinstance(data, dict) else {}


def _parse_requirements(text: str) -> List[str]:
    packages: List[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(("#", "-")):
            continue
        name = re.split(r"[<>=!~\[; ]", stripped, maxsplit=1)[0].strip()
        if name:
            packages.append(name)
    return packages


def _pyproject_dependencies(data: Dict[str, object]) -> Set[str]:
    packages: Set[str] = set()
    dependencies: List[object] = []

    project = data.get("project")
    if isinstance(project, dict):
        dependencies.extend(project.get("dependencies", []) or [])
        optional = project.get("optional-dependencies", {}) or {}
        if isinstance(optional, dict):
            for values in optional.values():
                dependencies.extend(values or [])

    tool = data.get("tool")
    poetry = tool.get("poetry", {}) if isinstance(tool, dict) else {}
    if isinstance(poetry, dict):
        poetry_deps = poetry.get("dependencies", {}) or {}
        if isinstance(poetry_deps, dict):
            dependencies.extend(poetry_deps.keys())

    for dep in dependencies:
        if not isinstance(dep, str):
            continue
        name = re.split(r"[<>=!~\[; ]", dep, maxsplit=1)[0].strip()
        if name and name.lower() != "python":
            packages.add(name)
    return packages


def python_project_name(root: Path) -> Optional[str]:
    project = load_pyproject(root).get("project")
    if isinstance(project, dict) and isinstance(project.get("name"), str):
        return project["name"]
    return None


def python_version_pin(root: Path) -> Optional[str]:
    """Return the pinned Python version from .python-version or requires-python."""
    pinned = read_text(root, ".python-version")
    if pinned is not None:
        match = re.search(r"(\d+\.\d+)", pinned)
        if match:
            return match.group(1)

    project = load_pyproject(root).get("project")
    if isinstance(project, dict):
        requires = project.get("requires-python")
        if isinstance(requires, str):
            match = re.search(r"(\d+\.\d+)", requires)
            if match:
                return match.group(1)
    return None


# Node.js helpers


def load_package_json(root: Path) -> Dict[str, object]:
    """Return the parsed package.json contents or an empty dict."""
    text = read_text(root, "package.json")
    if text is None:
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.debug("Malformed package.json: %s", exc)
        return {}
    return data if isinstance(data, dict) else {}


def load_node_dependencies(root: Path) -> Dict[str, List[str]]:
    """Return Node.js dependencies separated into runtime/dev lists."""
    data = load_package_json(root)

    def _extract(key: str) -> List[str]:
        deps = data.get(key, {})
        if isinstance(deps, dict):
            return sorted(deps.keys())
        return []

    return {
        "dependencies": _extract("dependencies"),
        "devDependencies": _extract("devDependencies"),
    }


def node_version_pin(root: Path) -> Optional[str]:
    """Return the Node major version from .nvmrc or package.json engines."""
    nvmrc = read_text(root, ".nvmrc")
    if nvmrc is not None:
        match = re.search(r"(\d+)", nvmrc)
        if match:
            return match.group(1)

    engines = load_package_json(root).get("engines")
    if isinstance(engines, dict) and isinstance(engines.get("node"), str):
        match = re.search(r"(\d+)", engines["node"])
        if match:
            return match.group(1)
    return None


def detect_node_package_manager(paths: Set[str]) -> str:
    """Infer the preferred Node package manager based on lockfiles."""
    if "pnpm-lock.yaml" in paths:
        return "pnpm"
    if "yarn.lock" in paths:
        return "yarn"
    return "npm"


# Go helpers


def load_go_module(root: Path) -> Dict[str, str]:
    """Return the ``module`` path and ``go`` directive from go.mod."""
    text = read_text(root, "go.mod")
    if text is None:
        return {}
    result: Dict[str, str] = {}
    module = re.search(r"^module\s+(\S+)", text, re.MULTILINE)
    if module:
        result["module"] = module.group(1)
    version = re.search(r"^go\s+(\d+\.\d+)", text, re.MULTILINE)
    if version:
        result["version"] = version.group(1)
    return result


# Java helpers


def load_pom(root: Path) -> Optional[ET.Element]:
    text = read_text(root, "pom.xml")
    if text is None:
        return None
    try:
        return ET.fromstring(text)
    except ET.ParseError as exc:
        logger.debug("Malformed pom.xml: %s", exc)
        return None


def load_java_dependencies(root: Path) -> List[str]:
    """Collect Java dependencies from pom.xml and build.gradle files."""
    deps: Set[str] = set()

    pom = load_pom(root)
    if pom is not None:
        deps.update(_parse_pom_dependencies(pom))

    for name in ("build.gradle", "build.gradle.kts"):
        text = read_text(root, name)
        if text is not None:
            deps.update(_parse_gradle_dependencies(text))

    return sorted(deps)


def java_version_pin(root: Path) -> Optional[str]:
    pom = load_pom(root)
    if pom is None:
        return None
    namespace = _detect_xml_namespace(pom)
    prefix = f"{{{namespace}}}" if namespace else ""
    for tag in ("maven.compiler.release", "maven.compiler.source", "java.version"):
        value = pom.findtext(f".//{prefix}properties/{prefix}{tag}")
        if value and value.strip():
            return value.strip()
    return None


def _parse_pom_dependencies(root: ET.Element) -> Set[str]:
    deps: Set[str] = set()
    namespace = _detect_xml_namespace(root)
    prefix = f"{{{namespace}}}" if namespace else ""

    for dep in root.findall(f".//{prefix}dependency"):
        group = dep.findtext(f"{prefix}groupId", default="")
        artifact = dep.findtext(f"{prefix}artifactId", default="")
        if group and artifact:
            deps.add(f"{group}:{artifact}")
    return deps


def _detect_xml_namespace(element: ET.Element) -> str | None:
    match = re.match(r"\{(.+)}", element.tag)
    return match.group(1) if match else None


def _parse_gradle_dependencies(content: str) -> Set[str]:
    deps: Set[str] = set()
    pattern = re.compile(r"['\"]([\w\-.]+:[\w\-.]+)(?::[\w\-.]+)?['\"]")
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("//"):
            continue
        if any(token in line.lower() for token in ("implementation", "api", "compile", "runtimeonly")):
            match = pattern.search(line)
            if match:
                deps.add(match.group(1))
    return deps


# Framework heuristics


def detect_python_frameworks(dependencies: Iterable[str]) -> List[str]:
    lower_deps = {dep.lower() for dep in dependencies}
    return [label for key, label in PYTHON_FRAMEWORKS.items() if key in lower_deps]


def detect_node_frameworks(node_dependencies: Dict[str, List[str]]) -> List[str]:
    lower = {dep.lower() for deps in node_dependencies.values() for dep in deps}
    return [label for key, label in NODE_FRAMEWORKS.items() if key in lower]


def detect_java_frameworks(java_dependencies: Iterable[str]) -> List[str]:
    for dep in java_dependencies:
        lower = dep.lower()
        if "spring-boot" in lower or "springframework" in lower:
            return ["spring-boot"]
    return []


def detect_node_test_frameworks(node_dependencies: Dict[str, List[str]]) -> List[str]:
    lower = {dep.lower() for deps in node_dependencies.values() for dep in deps}
    return [name for name in NODE_TEST_FRAMEWORKS if name in lower]


def detect_java_test_frameworks(java_dependencies: Iterable[str]) -> List[str]:
    for dep in java_dependencies:
        if "junit" in dep.lower():
            return ["junit"]
    return []
