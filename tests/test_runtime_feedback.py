from __future__ import annotations

import pytest

from lessoncraft.errors import RuntimeFailure
from lessoncraft.models import RuntimeErrorReport
from lessoncraft.runtime_feedback import RuntimeFeedbackLoop
from lessoncraft.sandbox import SANDBOX_SCOPE, ErrorChannel, run_isolated

ERROR = "Cannot read properties of undefined (reading 'map')"


@pytest.fixture
def live_lesson(store, valid_lesson):
    lesson = store.create_lesson("Pythagorean theorem")
    return store.mark_generated(lesson.id, valid_lesson.strip())


def test_handle_given_new_error_when_repair_is_valid_then_code_is_replaced_and_error_remembered(
    store,
    scripted_generator,
    live_lesson,
    valid_lesson,
) -> None:
    # Given
    repaired = valid_lesson.replace("useState<number>(3)", "useState<number>(5)")
    generator = scripted_generator([repaired])
    loop = RuntimeFeedbackLoop(store, generator)
    report = RuntimeErrorReport(artifact_id=live_lesson.id, message=ERROR, code=live_lesson.code)

    # When
    result = loop.handle(report)

    # Then
    assert result.outcome == "repaired"
    assert result.code == repaired.strip()
    saved = store.get_lesson(live_lesson.id)
    assert saved.code == repaired.strip()
    assert saved.status == "generated"
    assert saved.compile_error is None
    assert saved.last_runtime_error == ERROR
    assert live_lesson.code in generator.calls[0]["system_prompt"]
    assert ERROR in generator.calls[0]["system_prompt"]


def test_drain_given_two_identical_reports_when_handled_then_only_one_repair_is_attempted(
    store,
    scripted_generator,
    live_lesson,
    valid_lesson,
) -> None:
    # Given
    generator = scripted_generator([valid_lesson])
    loop = RuntimeFeedbackLoop(store, generator)
    channel = ErrorChannel()
    for _ in range(2):
        channel.report(RuntimeErrorReport(artifact_id=live_lesson.id, message=ERROR, code=live_lesson.code))

    # When
    results = loop.drain(channel)

    # Then
    assert [result.outcome for result in results] == ["repaired", "skipped"]
    assert results[1].error == ERROR
    assert len(generator.calls) == 1
    assert channel.empty()


def test_handle_given_invalid_repair_when_handled_then_failure_is_surfaced_without_repair_of_repair(
    store,
    scripted_generator,
    live_lesson,
    untyped_lesson,
) -> None:
    # Given
    generator = scripted_generator([untyped_lesson])
    loop = RuntimeFeedbackLoop(store, generator)
    report = RuntimeErrorReport(artifact_id=live_lesson.id, message=ERROR, code=live_lesson.code)

    # When
    first = loop.handle(report)
    second = loop.handle(report)

    # Then
    assert first.outcome == "failed"
    assert first.error.startswith("Repaired code failed validation: Code contains untyped hooks")
    assert second.outcome == "skipped"
    assert len(generator.calls) == 1
    saved = store.get_lesson(live_lesson.id)
    assert saved.status == "error"
    assert saved.code == live_lesson.code
    assert saved.compile_error == first.error


def test_handle_given_distinct_errors_when_handled_then_each_gets_one_attempt(
    store,
    scripted_generator,
    live_lesson,
    valid_lesson,
) -> None:
    # Given
    generator = scripted_generator([valid_lesson, valid_lesson])
    loop = RuntimeFeedbackLoop(store, generator)

    # When
    first = loop.handle(RuntimeErrorReport(artifact_id=live_lesson.id, message="a is not defined", code="x"))
    second = loop.handle(RuntimeErrorReport(artifact_id=live_lesson.id, message="b is not defined", code="y"))

    # Then
    assert first.outcome == "repaired"
    assert second.outcome == "repaired"
    assert len(generator.calls) == 2


def test_handle_given_adapter_failure_when_handled_then_failure_is_recorded(
    store,
    scripted_generator,
    live_lesson,
) -> None:
    # Given
    generator = scripted_generator([ConnectionError("network unreachable")])
    loop = RuntimeFeedbackLoop(store, generator)

    # When
    result = loop.handle(RuntimeErrorReport(artifact_id=live_lesson.id, message=ERROR, code=live_lesson.code))

    # Then
    assert result.outcome == "failed"
    assert "network unreachable" in result.error
    assert store.get_lesson(live_lesson.id).last_runtime_error == ERROR


def test_handle_given_lesson_without_code_when_handled_then_runtime_failure_is_raised(
    store,
    scripted_generator,
) -> None:
    # Given
    lesson = store.create_lesson("Empty")
    loop = RuntimeFeedbackLoop(store, scripted_generator([]))

    # When
    with pytest.raises(RuntimeFailure, match="no code to repair"):
        loop.handle(RuntimeErrorReport(artifact_id=lesson.id, message=ERROR, code="x"))


def test_run_isolated_given_failing_execution_when_run_then_error_is_posted_to_channel() -> None:
    # Given
    channel = ErrorChannel()

    def execute(code: str) -> None:
        raise TypeError(ERROR)

    # When
    ok = run_isolated(channel, "lesson-1", "const LessonComponent = () => null;", execute)

    # Then
    assert ok is False
    reports = list(channel.drain())
    assert reports == [
        RuntimeErrorReport(artifact_id="lesson-1", message=ERROR, code="const LessonComponent = () => null;")
    ]


def test_run_isolated_given_clean_execution_when_run_then_channel_stays_empty() -> None:
    # Given
    channel = ErrorChannel()
    executed: list[str] = []

    # When
    ok = run_isolated(channel, "lesson-1", "code", executed.append)

    # Then
    assert ok is True
    assert executed == ["code"]
    assert channel.empty()


def test_sandbox_scope_given_module_when_inspected_then_it_lists_provided_primitives() -> None:
    assert "useState" in SANDBOX_SCOPE
    assert "render" in SANDBOX_SCOPE
