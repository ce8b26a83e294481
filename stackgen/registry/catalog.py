"""Built-in artifact catalog.

Adding a stack means adding rows here (plus classifier rules and templates);
the planner and writer never branch on stack names.
"""

from __future__ import annotations

from typing import Tuple

from .specs import ArtifactSpec, MergePolicy, when

OVERWRITE = MergePolicy.OVERWRITE
SKIP = MergePolicy.SKIP_IF_EXISTS
MERGE = MergePolicy.MERGE_BLOCK

TESTS: Tuple[ArtifactSpec, ...] = (
    ArtifactSpec(
        id="tests-python-conftest",
        category="tests",
        stack="python",
        path="tests/conftest.py",
        template="tests/python_conftest.py.j2",
        policy=SKIP,
        applies=when(("tests", True), ("python-test-framework", "pytest"), stack="python"),
    ),
    ArtifactSpec(
        id="tests-python-smoke",
        category="tests",
        stack="python",
        path="tests/test_smoke.py",
        template="tests/python_test_smoke.py.j2",
        policy=SKIP,
        applies=when(("tests", True), stack="python"),
    ),
    ArtifactSpec(
        id="tests-python-pytest-ini",
        category="tests",
        stack="python",
        path="pytest.ini",
        template="tests/pytest.ini.j2",
        policy=SKIP,
        applies=when(("tests", True), ("python-test-framework", "pytest"), stack="python"),
    ),
    ArtifactSpec(
        id="tests-node-smoke",
        category="tests",
        stack="node",
        path="tests/smoke.test.js",
        template="tests/node_smoke.test.js.j2",
        policy=SKIP,
        applies=when(("tests", True), stack="node"),
    ),
    ArtifactSpec(
        id="tests-go-main",
        category="tests",
        stack="go",
        path="{{ go_package_dir }}/main_test.go",
        template="tests/go_main_test.go.j2",
        policy=SKIP,
        applies=when(("tests", True), stack="go"),
    ),
    ArtifactSpec(
        id="tests-java-app",
        category="tests",
        stack="java",
        path="src/test/java/AppTest.java",
        template="tests/java_AppTest.java.j2",
        policy=SKIP,
        applies=when(("tests", True), stack="java"),
    ),
)

DOCKER: Tuple[ArtifactSpec, ...] = tuple(
    ArtifactSpec(
        id=f"docker-{stack}-dockerfile",
        category="docker",
        stack=stack,
        path="Dockerfile",
        template=f"docker/Dockerfile.{stack}.j2",
        policy=SKIP,
        applies=when(("docker", True), primary=stack),
    )
    for stack in ("go", "java", "node", "python")
) + tuple(
    ArtifactSpec(
        id=f"docker-{stack}-ignore",
        category="docker",
        stack=stack,
        path=".dockerignore",
        template=f"docker/dockerignore_{stack}.j2",
        policy=MERGE,
        block="stack",
        applies=when(("docker", True), primary=stack),
        depends_on=("docker-ignore",),
    )
    for stack in ("go", "java", "node", "python")
) + (
    ArtifactSpec(
        id="docker-ignore",
        category="docker",
        path=".dockerignore",
        template="docker/dockerignore.j2",
        policy=SKIP,
        applies=when(("docker", True)),
    ),
    ArtifactSpec(
        id="docker-compose",
        category="docker",
        path="docker-compose.yml",
        template="docker/docker-compose.yml.j2",
        policy=SKIP,
        applies=when(("docker", True)),
    ),
    ArtifactSpec(
        id="docker-readme",
        category="docker",
        path="README.md",
        template="docker/readme_block.md.j2",
        policy=MERGE,
        block="docker",
        applies=when(("docker", True), ("project", True)),
        depends_on=("project-readme",),
    ),
)

CI: Tuple[ArtifactSpec, ...] = (
    ArtifactSpec(
        id="ci-github-base",
        category="ci",
        path=".github/workflows/ci.yml",
        template="ci/github_base.yml.j2",
        policy=SKIP,
        applies=when(("ci", True), ("ci-provider", "github"), ("regenerate-ci", False)),
    ),
    ArtifactSpec(
        id="ci-github-base-regenerate",
        category="ci",
        path=".github/workflows/ci.yml",
        template="ci/github_base.yml.j2",
        policy=OVERWRITE,
        applies=when(("ci", True), ("ci-provider", "github"), ("regenerate-ci", True)),
    ),
    ArtifactSpec(
        id="ci-gitlab-base",
        category="ci",
        path=".gitlab-ci.yml",
        template="ci/gitlab_base.yml.j2",
        policy=SKIP,
        applies=when(("ci", True), ("ci-provider", "gitlab"), ("regenerate-ci", False)),
    ),
    ArtifactSpec(
        id="ci-gitlab-base-regenerate",
        category="ci",
        path=".gitlab-ci.yml",
        template="ci/gitlab_base.yml.j2",
        policy=OVERWRITE,
        applies=when(("ci", True), ("ci-provider", "gitlab"), ("regenerate-ci", True)),
    ),
) + tuple(
    ArtifactSpec(
        id=f"ci-{provider}-{stack}",
        category="ci",
        stack=stack,
        path=path,
        template=f"ci/{provider}_{stack}.yml.j2",
        policy=MERGE,
        block=f"{stack}-job",
        applies=when(("ci", True), ("ci-provider", provider), stack=stack),
    )
    for provider, path in (("github", ".github/workflows/ci.yml"), ("gitlab", ".gitlab-ci.yml"))
    for stack in ("go", "java", "node", "python")
) + (
    ArtifactSpec(
        id="ci-readme",
        category="ci",
        path="README.md",
        template="ci/readme_block.md.j2",
        policy=MERGE,
        block="ci",
        applies=when(("ci", True), ("project", True)),
        depends_on=("project-readme",),
    ),
)

PROJECT: Tuple[ArtifactSpec, ...] = (
    ArtifactSpec(
        id="project-readme",
        category="project",
        path="README.md",
        template="project/README.md.j2",
        policy=SKIP,
        applies=when(("project", True)),
    ),
    ArtifactSpec(
        id="project-gitignore",
        category="project",
        path=".gitignore",
        template="project/gitignore.j2",
        policy=SKIP,
        applies=when(("project", True)),
    ),
    ArtifactSpec(
        id="project-editorconfig",
        category="project",
        path=".editorconfig",
        template="project/editorconfig.j2",
        policy=SKIP,
        applies=when(("project", True)),
    ),
) + tuple(
    ArtifactSpec(
        id=f"project-{stack}-gitignore",
        category="project",
        stack=stack,
        path=".gitignore",
        template=f"project/gitignore_{stack}.j2",
        policy=MERGE,
        block="stack",
        applies=when(("project", True), primary=stack),
        depends_on=("project-gitignore",),
    )
    for stack in ("go", "java", "node", "python")
) + (
    ArtifactSpec(
        id="project-go-mod",
        category="project",
        stack="go",
        path="go.mod",
        template="project/go.mod.j2",
        policy=SKIP,
        applies=when(("project", True), primary="go"),
    ),
    ArtifactSpec(
        id="project-go-main",
        category="project",
        stack="go",
        path="main.go",
        template="project/go_main.go.j2",
        policy=SKIP,
        applies=when(("project", True), primary="go"),
    ),
    ArtifactSpec(
        id="project-node-package",
        category="project",
        stack="node",
        path="package.json",
        template="project/package.json.j2",
        policy=SKIP,
        applies=when(("project", True), primary="node"),
    ),
    ArtifactSpec(
        id="project-node-index",
        category="project",
        stack="node",
        path="src/index.js",
        template="project/node_index.js.j2",
        policy=SKIP,
        applies=when(("project", True), primary="node"),
    ),
    ArtifactSpec(
        id="project-python-pyproject",
        category="project",
        stack="python",
        path="pyproject.toml",
        template="project/pyproject.toml.j2",
        policy=SKIP,
        applies=when(("project", True), primary="python"),
    ),
    ArtifactSpec(
        id="project-python-package",
        category="project",
        stack="python",
        path="src/{{ project_name | snake }}/__init__.py",
        template="project/python_init.py.j2",
        policy=SKIP,
        applies=when(("project", True), primary="python"),
    ),
    ArtifactSpec(
        id="project-java-pom",
        category="project",
        stack="java",
        path="pom.xml",
        template="project/pom.xml.j2",
        policy=SKIP,
        applies=when(("project", True), ("java-build-tool", "maven"), primary="java"),
    ),
    ArtifactSpec(
        id="project-java-gradle",
        category="project",
        stack="java",
        path="build.gradle",
        template="project/build.gradle.j2",
        policy=SKIP,
        applies=when(("project", True), ("java-build-tool", "gradle"), primary="java"),
    ),
    ArtifactSpec(
        id="project-java-app",
        category="project",
        stack="java",
        path="src/main/java/App.java",
        template="project/java_App.java.j2",
        policy=SKIP,
        applies=when(("project", True), primary="java"),
    ),
)

CATALOG: Tuple[ArtifactSpec, ...] = TESTS + DOCKER + CI + PROJECT


__all__ = ["CATALOG", "CI", "DOCKER", "PROJECT", "TESTS"]
