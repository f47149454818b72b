"""Isolation region around lesson execution and the channel carrying its failures.

Whatever actually runs the TSX (a browser live-code renderer, a headless
runner) is passed in as ``execute``. Failures never mutate shared state here;
they are posted to an ``ErrorChannel`` and picked up by the runtime feedback
loop.
"""

from __future__ import annotations

import logging
import queue
from collections.abc import Callable, Iterator

from lessoncraft.models import RuntimeErrorReport

log = logging.getLogger(__name__)

SANDBOX_SCOPE = (
    "useState",
    "useEffect",
    "useRef",
    "useMemo",
    "useCallback",
    "useContext",
    "useReducer",
    "render",
)

Executor = Callable[[str], None]


class ErrorChannel:
    """Thread-safe queue of runtime error reports."""

    def __init__(self) -> None:
        self._queue: queue.Queue[RuntimeErrorReport] = queue.Queue()

    def report(self, report: RuntimeErrorReport) -> None:
        self._queue.put(report)

    def drain(self) -> Iterator[RuntimeErrorReport]:
        """Yield the reports queued so far, oldest first."""
        while True:
            try:
                yield self._queue.get_nowait()
            except queue.Empty:
                return

    def empty(self) -> bool:
        return self._queue.empty()


def run_isolated(channel: ErrorChannel, artifact_id: str, code: str, execute: Executor) -> bool:
    """Execute ``code`` and forward any failure to ``channel``.

    Returns ``True`` when execution finished cleanly.
    """
    try:
        execute(code)
    except Exception as exc:
        message = str(exc) or exc.__class__.__name__
        log.warning("Lesson %s runtime error: %s", artifact_id, message)
        channel.report(RuntimeErrorReport(artifact_id=artifact_id, message=message, code=code))
        return False
    return True
