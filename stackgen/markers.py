"""Managed marker utilities for merge-block writes."""

from __future__ import annotations

from typing import Dict, Tuple

from .errors import WriteConflict

_HTML_SUFFIXES = (".md", ".markdown", ".html", ".xml")


class MarkerManager:
    """Replaces the span between a ``stackgen`` begin/end marker pair.

    The marker style follows the target's comment syntax: HTML comments for
    Markdown and XML, ``#`` comments for everything else (YAML, Dockerfile,
    ignore files, TOML).
    """

    HTML_BEGIN = "<!-- stackgen:begin:{key} -->"
    HTML_END = "<!-- stackgen:end:{key} -->"
    HASH_BEGIN = "# stackgen:begin:{key}"
    HASH_END = "# stackgen:end:{key}"

    def tokens(self, path: str, key: str) -> Tuple[str, str]:
        if path.lower().endswith(_HTML_SUFFIXES):
            return self.HTML_BEGIN.format(key=key), self.HTML_END.format(key=key)
        return self.HASH_BEGIN.format(key=key), self.HASH_END.format(key=key)

    def replace(self, text: str, path: str, key: str, new_body: str) -> str:
        """Return ``text`` with only the managed block for ``key`` replaced.

        Raises ``WriteConflict`` when the markers are missing, duplicated or out
        of order; the caller must not guess where the block belongs.
        """
        begin, end = self.tokens(path, key)
        begin_count = _count_marker(text, begin)
        end_count = _count_marker(text, end)
        if begin_count == 0 or end_count == 0:
            raise WriteConflict(path, f"managed block '{key}' markers not found")
        if begin_count > 1 or end_count > 1:
            raise WriteConflict(path, f"managed block '{key}' markers appear more than once")

        begin_index = _find_marker(text, begin)
        end_index = _find_marker(text, end)
        if end_index < begin_index:
            raise WriteConflict(path, f"managed block '{key}' end marker precedes its begin marker")

        line_start = text.rfind("\n", 0, end_index) + 1
        end_indent = text[line_start:end_index]
        if end_indent.strip():
            end_indent = ""

        inner = new_body.rstrip("\n")
        span = f"\n{inner}\n{end_indent}" if inner else f"\n{end_indent}"
        return text[: begin_index + len(begin)] + span + text[end_index:]

    def extract(self, text: str, path: str) -> Dict[str, str]:
        """Return a mapping of block key to current content (without markers)."""
        begin_prefix, _ = self.tokens(path, "\0")
        begin_prefix = begin_prefix.split("\0", 1)[0]
        blocks: Dict[str, str] = {}
        position = 0
        while True:
            start_index = text.find(begin_prefix, position)
            if start_index == -1:
                break
            key_start = start_index + len(begin_prefix)
            line_end = text.find("\n", key_start)
            line_end = len(text) if line_end == -1 else line_end
            key = text[key_start:line_end].replace("-->", "").strip()
            _, end = self.tokens(path, key)
            end_index = text.find(end, line_end)
            if end_index == -1:
                break
            blocks[key] = text[line_end:end_index].strip("\n").rstrip()
            position = end_index + len(end)
        return blocks

    def blank(self, text: str, path: str) -> str:
        """Return ``text`` with every well-formed managed block emptied.

        Malformed marker layouts leave the text as is so callers comparing
        the result simply see a difference.
        """
        for key in self.extract(text, path):
            try:
                text = self.replace(text, path, key, "")
            except WriteConflict:
                return text
        return text


def _marker_positions(text: str, token: str) -> list[int]:
    """Offsets where ``token`` occurs as a whole marker (not a longer key)."""
    positions = []
    start = 0
    while True:
        index = text.find(token, start)
        if index == -1:
            return positions
        tail = text[index + len(token): index + len(token) + 1]
        if tail in ("", "\n", "\r", " "):
            positions.append(index)
        start = index + len(token)


def _count_marker(text: str, token: str) -> int:
    return len(_marker_positions(text, token))


def _find_marker(text: str, token: str) -> int:
    positions = _marker_positions(text, token)
    return positions[0] if positions else -1


__all__ = ["MarkerManager"]
