"""Generate → sanitize → validate, with exactly one structural repair attempt."""

from __future__ import annotations

import logging
import threading
import weakref
from collections.abc import Callable
from dataclasses import dataclass

from lessoncraft.errors import GenerationFailure, LessonError, RepairExhausted
from lessoncraft.generator import LessonGenerator
from lessoncraft.models import GenerationRequest, LessonArtifact, RepairContext, Violation
from lessoncraft.prompting import build_prompts
from lessoncraft.sanitizer import sanitize
from lessoncraft.store import Store
from lessoncraft.tracing import NullTracer, Tracer, open_tracer
from lessoncraft.validator import validate

log = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


class ArtifactLocks:
    """One lock per artifact id so two pipelines never write the same lesson.

    Entries are weak: a lock nobody holds or waits on is dropped.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()

    def for_artifact(self, artifact_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(artifact_id, threading.Lock())


@dataclass(frozen=True)
class PipelineResult:
    code: str
    attempts: int
    first_violation: Violation | None = None


def generate_code(
    request: GenerationRequest,
    generator: LessonGenerator,
    tracer: Tracer | None = None,
) -> str:
    """Run one model call for ``request`` and return the sanitized text.

    Any adapter error becomes ``GenerationFailure``; there is no code to repair.
    The call is recorded on ``tracer`` as one generation, failed or not.
    """
    tracer = tracer or NullTracer()
    system_prompt, user_prompt = build_prompts(request)
    trace_input = [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]
    model = getattr(generator, "model_name", None)
    try:
        raw = generator.generate(system_prompt=system_prompt, user_prompt=user_prompt)
        if not raw or not raw.strip():
            raise GenerationFailure("Generator returned empty output")
    except GenerationFailure as exc:
        tracer.record_generation(request.kind, model, trace_input, error=str(exc))
        raise
    except Exception as exc:
        failure = GenerationFailure(f"Generator failed: {exc}")
        tracer.record_generation(request.kind, model, trace_input, error=str(failure))
        raise failure from exc
    tracer.record_generation(request.kind, model, trace_input, output=raw)
    return sanitize(raw)


def run_pipeline(
    topic: str,
    generator: LessonGenerator,
    progress_callback: ProgressCallback | None = None,
    tracer: Tracer | None = None,
) -> PipelineResult:
    """Produce validated lesson code for ``topic``.

    Raises:
        GenerationFailure: The adapter failed on either attempt.
        RepairExhausted: The single structural repair still failed validation.
    """
    if progress_callback:
        progress_callback(f"generating lesson for: {topic}")
    log.info("Generating lesson for %r", topic)
    code = generate_code(GenerationRequest(topic=topic), generator, tracer)

    first = validate(code)
    if first is None:
        log.info("Initial validation successful")
        return PipelineResult(code=code, attempts=1)

    log.warning("Initial generation failed validation: %s. Triggering self-repair", first.message)
    if progress_callback:
        progress_callback(f"validation failed ({first.kind}); requesting one repair")
    repair = GenerationRequest(
        topic=topic,
        kind="structural-repair",
        context=RepairContext(topic=topic, message=first.message, code=code),
    )
    code = generate_code(repair, generator, tracer)

    second = validate(code)
    if second is not None:
        log.error("Self-repair failed validation: %s", second.message)
        raise RepairExhausted(first, second)

    log.info("Self-repair validation successful")
    return PipelineResult(code=code, attempts=2, first_violation=first)


class LessonOrchestrator:
    """Runs the pipeline for stored lessons and performs the terminal write."""

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

    def create_and_generate(
        self, topic: str, progress_callback: ProgressCallback | None = None
    ) -> LessonArtifact:
        lesson = self.store.create_lesson(topic)
        return self.generate(lesson.id, progress_callback=progress_callback)

    def generate(
        self,
        artifact_id: str,
        progress_callback: ProgressCallback | None = None,
        error_prefix: str = "",
    ) -> LessonArtifact:
        """Generate code for a stored lesson and write exactly one terminal state.

        Generation and validation failures are stored on the lesson and the
        updated row is returned. ``PersistenceFailure`` propagates.
        """
        with self.locks.for_artifact(artifact_id):
            lesson = self.store.require_lesson(artifact_id)
            tracer = self.tracer_factory()
            try:
                result = run_pipeline(lesson.topic, self.generator, progress_callback, tracer)
            except LessonError as exc:
                log.error("Generation failed for lesson %s: %s", artifact_id, exc)
                return self.store.mark_error(artifact_id, f"{error_prefix}{exc}")
            finally:
                tracer.shutdown()

            saved = self.store.mark_generated(artifact_id, result.code)
            log.info("Lesson %s generated after %d attempt(s)", artifact_id, result.attempts)
            return saved

    def regenerate(
        self, artifact_id: str, progress_callback: ProgressCallback | None = None
    ) -> LessonArtifact:
        """Throw away the current code and rerun the full pipeline."""
        log.info("Regenerating lesson %s", artifact_id)
        return self.generate(artifact_id, progress_callback, error_prefix="Regeneration failed: ")
