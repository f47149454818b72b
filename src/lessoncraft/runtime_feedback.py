"""One-shot repair of lessons that pass validation but crash in the sandbox."""

from __future__ import annotations

import logging
from collections.abc import Callable

from lessoncraft.errors import LessonError, RuntimeFailure
from lessoncraft.generator import LessonGenerator
from lessoncraft.models import GenerationRequest, RepairContext, RuntimeErrorReport, RuntimeRepairResult
from lessoncraft.orchestrator import ArtifactLocks, generate_code
from lessoncraft.sandbox import ErrorChannel
from lessoncraft.store import Store
from lessoncraft.tracing import Tracer, open_tracer
from lessoncraft.validator import validate

log = logging.getLogger(__name__)


class RuntimeFeedbackLoop:
    """Repairs a lesson at most once per distinct runtime error message.

    The message of every attempt, successful or not, is stored as the
    lesson's ``last_runtime_error``. A report repeating that message is
    skipped and handed back unchanged.
    """

    def __init__(
        self,
        store: Store,
        generator: LessonGenerator,
        locks: ArtifactLocks | None = None,
        tracer_factory: Callable[[], Tracer] = open_tracer,
    ):
        self.store = store
        self.generator = generator
        self.locks = locks or ArtifactLocks()
        self.tracer_factory = tracer_factory

    def handle(self, report: RuntimeErrorReport) -> RuntimeRepairResult:
        with self.locks.for_artifact(report.artifact_id):
            lesson = self.store.require_lesson(report.artifact_id)
            if lesson.code is None:
                raise RuntimeFailure(f"Lesson {lesson.id} has no code to repair")

            if report.message == lesson.last_runtime_error:
                log.warning(
                    "Skipping runtime repair for lesson %s: already attempted for %r",
                    lesson.id,
                    report.message,
                )
                return RuntimeRepairResult(
                    artifact_id=lesson.id, outcome="skipped", code=lesson.code, error=report.message
                )

            log.info("Runtime repair for lesson %s: %s", lesson.id, report.message)
            request = GenerationRequest(
                topic=lesson.topic,
                kind="runtime-repair",
                context=RepairContext(
                    topic=lesson.topic, message=report.message, code=report.code or lesson.code
                ),
            )
            tracer = self.tracer_factory()
            try:
                code = generate_code(request, self.generator, tracer)
            except LessonError as exc:
                return self._fail(lesson.id, f"Runtime repair failed: {exc}", report.message)
            finally:
                tracer.shutdown()

            violation = validate(code)
            if violation is not None:
                return self._fail(
                    lesson.id, f"Repaired code failed validation: {violation.message}", report.message
                )

            self.store.save_runtime_repair(lesson.id, code, report.message)
            log.info("Lesson %s repaired and saved", lesson.id)
            return RuntimeRepairResult(artifact_id=lesson.id, outcome="repaired", code=code)

    def _fail(self, lesson_id: str, message: str, runtime_error: str) -> RuntimeRepairResult:
        log.error("Runtime repair for lesson %s failed: %s", lesson_id, message)
        self.store.mark_runtime_failure(lesson_id, message, runtime_error)
        return RuntimeRepairResult(artifact_id=lesson_id, outcome="failed", error=message)

    def drain(self, channel: ErrorChannel) -> list[RuntimeRepairResult]:
        """Handle every report currently waiting on ``channel``."""
        return [self.handle(report) for report in channel.drain()]
