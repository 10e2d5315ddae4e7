"""Race a blocking callable against a wall-clock deadline.

The callable runs on a daemon thread and is never interrupted; if the
deadline passes first the caller simply stops waiting.  Exiting the
process is left to the outermost entry point.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass
class DeadlineOutcome:
    completed: bool
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def timed_out(self) -> bool:
        return not self.completed

    def result(self) -> Any:
        """The callable's return value, re-raising whatever it raised."""
        if self.error is not None:
            raise self.error
        return self.value


def run_with_deadline(fn: Callable[[], Any], timeout: float) -> DeadlineOutcome:
    done = threading.Event()
    box: dict = {}

    def _target() -> None:
        try:
            box["value"] = fn()
        except BaseException as exc:  # handed back to the waiting thread
            box["error"] = exc
        finally:
            done.set()

    threading.Thread(target=_target, name="deadline-worker", daemon=True).start()
    if not done.wait(timeout):
        return DeadlineOutcome(completed=False)
    return DeadlineOutcome(completed=True, value=box.get("value"), error=box.get("error"))
