"""Scripted CommandRunner used by diagnostics tests."""

from __future__ import annotations

import threading
from typing import Dict, List, Sequence, Tuple, Union

from stackgen.diagnostics import CommandResult

Response = Union[CommandResult, Exception]


class FakeRunner:
    """Replays queued responses per argv; the last response repeats."""

    def __init__(self, responses: Dict[Tuple[str, ...], Union[Response, List[Response]]]) -> None:
        self._responses = {
            argv: list(value) if isinstance(value, list) else [value]
            for argv, value in responses.items()
        }
        self.calls: List[Tuple[str, ...]] = []
        self._lock = threading.Lock()

    def run(self, argv: Sequence[str], timeout: float) -> CommandResult:
        key = tuple(argv)
        with self._lock:
            self.calls.append(key)
            queue = self._responses.get(key)
            if not queue:
                raise AssertionError(f"unexpected command {key}")
            response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response


def ok(stdout: str) -> CommandResult:
    return CommandResult(stdout=stdout, stderr="", exit_code=0)


def failed(stderr: str, exit_code: int = 1) -> CommandResult:
    return CommandResult(stdout="", stderr=stderr, exit_code=exit_code)
