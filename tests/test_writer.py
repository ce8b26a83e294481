"""Tests for plan execution in stackgen.writer."""

from __future__ import annotations

import os
import stat
import threading
from pathlib import Path

import pytest

from stackgen.planner import DIRECTORY, FILE, GenerationPlan, PlanNode
from stackgen.registry import MergePolicy
from stackgen.writer import ArtifactWriter, WriteStatus

README_BASE = "# demo\n<!-- stackgen:begin:docker -->\n<!-- stackgen:end:docker -->\n"


def _file(node_id: str, path: str, content: str, policy=MergePolicy.SKIP_IF_EXISTS, **kwargs) -> PlanNode:
    return PlanNode(id=node_id, kind=FILE, path=path, content=content, policy=policy, **kwargs)


def _dir(path: str, layer: int = 0, depends_on=()) -> PlanNode:
    return PlanNode(id=f"dir:{path}", kind=DIRECTORY, path=path, layer=layer, depends_on=depends_on)


def _plan(*nodes: PlanNode) -> GenerationPlan:
    return GenerationPlan(nodes=tuple(nodes))


def _readme_plan(body: str = "Run `docker compose up`.\n") -> GenerationPlan:
    return _plan(
        _file("readme", "README.md", README_BASE),
        _file(
            "readme-docker",
            "README.md",
            body,
            policy=MergePolicy.MERGE_BLOCK,
            block="docker",
            depends_on=("readme",),
            layer=1,
        ),
    )


def test_execute_creates_directories_and_files(tmp_path: Path) -> None:
    plan = _plan(
        _dir("src"),
        _file("main", "src/main.py", "print('hi')\n", depends_on=("dir:src",), layer=1),
    )

    report = ArtifactWriter(tmp_path).execute(plan)

    assert [result.status for result in report.results] == [WriteStatus.CREATED, WriteStatus.CREATED]
    assert (tmp_path / "src" / "main.py").read_text(encoding="utf-8") == "print('hi')\n"
    assert report.exit_code == 0


def test_skip_if_exists_leaves_differing_file_untouched(tmp_path: Path) -> None:
    (tmp_path / "docker-compose.yml").write_text("services: {}\n", encoding="utf-8")
    plan = _plan(_file("compose", "docker-compose.yml", "services:\n  app: {}\n"))

    report = ArtifactWriter(tmp_path).execute(plan)

    result = report.results[0]
    assert result.status is WriteStatus.SKIPPED
    assert result.fatal is False
    assert (tmp_path / "docker-compose.yml").read_text(encoding="utf-8") == "services: {}\n"
    assert report.exit_code == 1


def test_skip_if_exists_reports_unchanged_for_identical_content(tmp_path: Path) -> None:
    (tmp_path / ".editorconfig").write_text("root = true\n", encoding="utf-8")

    report = ArtifactWriter(tmp_path).execute(_plan(_file("ec", ".editorconfig", "root = true\n")))

    assert report.results[0].status is WriteStatus.UNCHANGED
    assert report.exit_code == 0


def test_overwrite_replaces_and_keeps_mode(tmp_path: Path) -> None:
    target = tmp_path / "ci.yml"
    target.write_text("old\n", encoding="utf-8")
    os.chmod(target, 0o640)

    report = ArtifactWriter(tmp_path).execute(
        _plan(_file("ci", "ci.yml", "new\n", policy=MergePolicy.OVERWRITE))
    )

    assert report.results[0].status is WriteStatus.OVERWRITTEN
    assert target.read_text(encoding="utf-8") == "new\n"
    assert stat.S_IMODE(target.stat().st_mode) == 0o640


def test_merge_block_updates_only_the_block(tmp_path: Path) -> None:
    readme = tmp_path / "README.md"
    readme.write_text("# mine\nhand notes\n" + README_BASE.split("\n", 1)[1], encoding="utf-8")

    report = ArtifactWriter(tmp_path).execute(_readme_plan())

    statuses = {result.node_id: result.status for result in report.results}
    assert statuses == {"readme": WriteStatus.SKIPPED, "readme-docker": WriteStatus.MERGED}
    text = readme.read_text(encoding="utf-8")
    assert text.startswith("# mine\nhand notes\n")
    assert "Run `docker compose up`." in text


def test_second_run_is_idempotent(tmp_path: Path) -> None:
    writer = ArtifactWriter(tmp_path)
    first = writer.execute(_readme_plan())
    snapshot = (tmp_path / "README.md").read_text(encoding="utf-8")

    second = writer.execute(_readme_plan())

    assert [result.status for result in first.results] == [WriteStatus.CREATED, WriteStatus.MERGED]
    assert [result.status for result in second.results] == [WriteStatus.UNCHANGED, WriteStatus.UNCHANGED]
    assert second.exit_code == 0
    assert (tmp_path / "README.md").read_text(encoding="utf-8") == snapshot


def test_merge_without_markers_fails_without_touching_file(tmp_path: Path) -> None:
    readme = tmp_path / "README.md"
    readme.write_text("# hand written, no markers\n", encoding="utf-8")

    report = ArtifactWriter(tmp_path).execute(_readme_plan())

    merge = report.results[1]
    assert merge.status is WriteStatus.FAILED
    assert merge.fatal is False
    assert "not found" in (merge.reason or "")
    assert readme.read_text(encoding="utf-8") == "# hand written, no markers\n"
    assert report.exit_code == 1


def test_dependents_of_failed_nodes_are_skipped(tmp_path: Path) -> None:
    (tmp_path / "notes.txt").write_text("no markers\n", encoding="utf-8")
    plan = _plan(
        _file("patch", "notes.txt", "x\n", policy=MergePolicy.MERGE_BLOCK, block="k"),
        _file("after", "after.txt", "y\n", depends_on=("patch",), layer=1),
    )

    report = ArtifactWriter(tmp_path).execute(plan)

    after = report.results[1]
    assert after.status is WriteStatus.SKIPPED
    assert after.reason == "dependency patch did not complete"
    assert not (tmp_path / "after.txt").exists()


def test_symlink_escape_is_fatal(tmp_path: Path) -> None:
    root = tmp_path / "root"
    outside = tmp_path / "outside"
    root.mkdir()
    outside.mkdir()
    (root / "out").symlink_to(outside, target_is_directory=True)

    report = ArtifactWriter(root).execute(_plan(_file("evil", "out/x.txt", "x\n")))

    assert report.results[0].status is WriteStatus.FAILED
    assert report.results[0].fatal is True
    assert report.exit_code == 2
    assert list(outside.iterdir()) == []


def test_undecodable_existing_target_is_skipped_untouched(tmp_path: Path) -> None:
    original = b"\xff\xfeuser edits\n"
    (tmp_path / "docker-compose.yml").write_bytes(original)
    plan = _plan(
        _file("compose", "docker-compose.yml", "services: {}\n"),
        _file("other", "other.txt", "ok\n"),
    )

    report = ArtifactWriter(tmp_path).execute(plan)

    statuses = {result.node_id: result.status for result in report.results}
    assert statuses == {"compose": WriteStatus.SKIPPED, "other": WriteStatus.CREATED}
    assert (tmp_path / "docker-compose.yml").read_bytes() == original
    assert report.exit_code == 1


def test_overwrite_replaces_undecodable_target(tmp_path: Path) -> None:
    (tmp_path / "blob.txt").write_bytes(b"\xff\xfe\x00binary")

    report = ArtifactWriter(tmp_path).execute(
        _plan(_file("blob", "blob.txt", "text\n", policy=MergePolicy.OVERWRITE))
    )

    assert report.results[0].status is WriteStatus.OVERWRITTEN
    assert (tmp_path / "blob.txt").read_text(encoding="utf-8") == "text\n"


def test_merge_into_undecodable_target_fails_node_only(tmp_path: Path) -> None:
    original = b"\xff\xfe\x00binary"
    (tmp_path / "README.md").write_bytes(original)
    plan = _plan(
        _file("readme-docker", "README.md", "body\n", policy=MergePolicy.MERGE_BLOCK, block="docker"),
        _file("other", "other.txt", "ok\n"),
    )

    report = ArtifactWriter(tmp_path).execute(plan)

    results = {result.node_id: result for result in report.results}
    assert results["readme-docker"].status is WriteStatus.FAILED
    assert results["readme-docker"].fatal is False
    assert results["readme-docker"].reason == "existing target is not UTF-8 text"
    assert results["other"].status is WriteStatus.CREATED
    assert (tmp_path / "README.md").read_bytes() == original
    assert report.exit_code == 1


def test_cancelled_run_skips_pending_nodes(tmp_path: Path) -> None:
    cancel = threading.Event()
    cancel.set()

    report = ArtifactWriter(tmp_path).execute(_plan(_file("a", "a.txt", "a\n")), cancel_event=cancel)

    assert report.results[0].status is WriteStatus.SKIPPED
    assert report.results[0].reason == "cancelled"
    assert not (tmp_path / "a.txt").exists()


def test_report_counts_cover_every_status(tmp_path: Path) -> None:
    report = ArtifactWriter(tmp_path).execute(_plan(_file("a", "a.txt", "a\n")))

    assert report.counts == {
        "created": 1,
        "overwritten": 0,
        "merged": 0,
        "unchanged": 0,
        "skipped": 0,
        "failed": 0,
    }
    assert report.to_dict()["exit_code"] == 0


def test_writer_requires_directory_root(tmp_path: Path) -> None:
    with pytest.raises(NotADirectoryError):
        ArtifactWriter(tmp_path / "missing").execute(_plan())
