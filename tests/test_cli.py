from __future__ import annotations

import re

from typer.testing import CliRunner

from lessoncraft.cli import app

runner = CliRunner()


def _generate(db_path, topic: str = "Fractions") -> str:
    result = runner.invoke(app, ["generate", topic, "--db", str(db_path), "--local-only"])
    assert result.exit_code == 0, result.output
    match = re.search(r"Lesson generated\. id=(\w+)", result.output)
    assert match is not None
    return match.group(1)


def test_generate_given_local_only_when_invoked_then_steps_and_lesson_id_are_printed(tmp_path) -> None:
    # Given
    db_path = tmp_path / "lessons.db"

    # When
    result = runner.invoke(app, ["generate", "Fractions", "--db", str(db_path), "--local-only"])

    # Then
    assert result.exit_code == 0, result.output
    assert "[1/3] Initializing storage" in result.output
    assert "[3/3] Saved lesson state" in result.output
    assert "Lesson generated. id=" in result.output


def test_show_given_generated_lesson_when_written_to_file_then_code_ends_with_invocation(tmp_path) -> None:
    # Given
    db_path = tmp_path / "lessons.db"
    lesson_id = _generate(db_path)
    output = tmp_path / "out" / "lesson.tsx"

    # When
    result = runner.invoke(app, ["show", lesson_id, "--db", str(db_path), "-o", str(output)])

    # Then
    assert result.exit_code == 0, result.output
    assert "status=generated" in result.output
    assert output.read_text(encoding="utf-8").rstrip().endswith("render(<LessonComponent />);")


def test_list_given_two_lessons_when_invoked_then_both_topics_are_listed(tmp_path) -> None:
    # Given
    db_path = tmp_path / "lessons.db"
    _generate(db_path, "Fractions")
    _generate(db_path, "Orbits")

    # When
    result = runner.invoke(app, ["list", "--db", str(db_path)])

    # Then
    assert result.exit_code == 0, result.output
    assert "Fractions" in result.output
    assert "Orbits" in result.output


def test_repair_given_same_error_twice_when_invoked_then_second_run_is_skipped(tmp_path) -> None:
    # Given
    db_path = tmp_path / "lessons.db"
    lesson_id = _generate(db_path)
    args = ["repair", lesson_id, "--error", "x is not defined", "--db", str(db_path), "--local-only"]

    # When
    first = runner.invoke(app, args)
    second = runner.invoke(app, args)

    # Then
    assert first.exit_code == 0, first.output
    assert f"Lesson repaired. id={lesson_id}" in first.output
    assert second.exit_code == 0, second.output
    assert "Already attempted a repair for this error" in second.output


def test_show_given_unknown_id_when_invoked_then_command_fails(tmp_path) -> None:
    # Given
    db_path = tmp_path / "lessons.db"

    # When
    result = runner.invoke(app, ["show", "missing", "--db", str(db_path)])

    # Then
    assert result.exit_code != 0
