"""Typer-based CLI for generating, repairing, and inspecting lessons."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from lessoncraft import config
from lessoncraft.errors import LessonError
from lessoncraft.generator import GeminiGenerator, TemplateGenerator
from lessoncraft.models import LessonArtifact, RuntimeErrorReport
from lessoncraft.orchestrator import ArtifactLocks, LessonOrchestrator
from lessoncraft.runtime_feedback import RuntimeFeedbackLoop
from lessoncraft.sandbox import ErrorChannel
from lessoncraft.store import Store

app = typer.Typer(add_completion=False, help="lessoncraft: generate interactive TSX lessons from a topic")

_LOCKS = ArtifactLocks()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log pipeline progress"),
) -> None:
    level = logging.INFO if verbose else getattr(logging, config.log_level(), logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _echo_step(step: int, total: int, message: str) -> None:
    """Print a normalized progress step line."""
    typer.echo(f"[{step}/{total}] {message}")


def _open_store(db_path: Path) -> Store:
    store = Store(db_path)
    store.init_db()
    return store


def _make_generator(model_name: str, local_only: bool) -> GeminiGenerator | TemplateGenerator:
    if local_only:
        return TemplateGenerator()
    return GeminiGenerator(model_name=model_name)


def _require(store: Store, lesson_id: str) -> LessonArtifact:
    lesson = store.get_lesson(lesson_id)
    if not lesson:
        raise typer.BadParameter(f"Lesson not found: {lesson_id}")
    return lesson


def _echo_outcome(lesson: LessonArtifact) -> None:
    if lesson.status == "generated":
        typer.echo(f"Lesson generated. id={lesson.id} status={lesson.status}")
        return
    typer.echo(f"Lesson failed. id={lesson.id} status={lesson.status} error={lesson.compile_error}", err=True)
    raise typer.Exit(code=1)


@app.command("init-db")
def init_db(
    db_path: Path = typer.Option(config.db_path(), "--db", help="SQLite database path"),
) -> None:
    """Initialize the SQLite database schema."""
    _open_store(db_path)
    typer.echo(f"DB initialized: {db_path}")


@app.command("generate")
def generate(
    topic: str = typer.Argument(..., help="What the lesson should teach"),
    db_path: Path = typer.Option(config.db_path(), "--db", help="SQLite database path"),
    model_name: str = typer.Option(config.model_name(), help="Gemini model name"),
    local_only: bool = typer.Option(False, help="Skip Gemini and use the offline lesson template"),
) -> None:
    """Create a lesson for TOPIC and run the generate/validate/repair pipeline."""
    _echo_step(1, 3, "Initializing storage")
    store = _open_store(db_path)
    lesson = store.create_lesson(topic)

    _echo_step(2, 3, f"Generating lesson {lesson.id}")
    try:
        with _make_generator(model_name, local_only) as generator:
            orchestrator = LessonOrchestrator(store, generator, _LOCKS)
            lesson = orchestrator.generate(lesson.id, progress_callback=lambda msg: typer.echo(f"    {msg}"))
    except LessonError as exc:
        lesson = store.mark_error(lesson.id, str(exc))

    _echo_step(3, 3, "Saved lesson state")
    _echo_outcome(lesson)


@app.command("regenerate")
def regenerate(
    lesson_id: str = typer.Argument(..., help="Lesson ID from database"),
    db_path: Path = typer.Option(config.db_path(), "--db", help="SQLite database path"),
    model_name: str = typer.Option(config.model_name(), help="Gemini model name"),
    local_only: bool = typer.Option(False, help="Skip Gemini and use the offline lesson template"),
) -> None:
    """Rerun the full pipeline for an existing lesson."""
    store = _open_store(db_path)
    _require(store, lesson_id)
    try:
        with _make_generator(model_name, local_only) as generator:
            orchestrator = LessonOrchestrator(store, generator, _LOCKS)
            lesson = orchestrator.regenerate(lesson_id, progress_callback=lambda msg: typer.echo(f"    {msg}"))
    except LessonError as exc:
        lesson = store.mark_error(lesson_id, f"Regeneration failed: {exc}")
    _echo_outcome(lesson)


@app.command("repair")
def repair(
    lesson_id: str = typer.Argument(..., help="Lesson ID from database"),
    error: str = typer.Option(..., "--error", help="Runtime error message reported by the sandbox"),
    code_file: Path | None = typer.Option(None, "--code-file", help="Code that raised the error"),
    db_path: Path = typer.Option(config.db_path(), "--db", help="SQLite database path"),
    model_name: str = typer.Option(config.model_name(), help="Gemini model name"),
    local_only: bool = typer.Option(False, help="Skip Gemini and use the offline lesson template"),
) -> None:
    """Feed a runtime error back into the one-shot runtime repair loop."""
    store = _open_store(db_path)
    lesson = _require(store, lesson_id)
    code = code_file.read_text(encoding="utf-8") if code_file else lesson.code
    if not code:
        raise typer.BadParameter(f"Lesson {lesson_id} has no code to repair")

    channel = ErrorChannel()
    channel.report(RuntimeErrorReport(artifact_id=lesson_id, message=error, code=code))
    try:
        with _make_generator(model_name, local_only) as generator:
            results = RuntimeFeedbackLoop(store, generator, _LOCKS).drain(channel)
    except LessonError as exc:
        typer.echo(f"Repair failed. id={lesson_id} error={exc}", err=True)
        raise typer.Exit(code=1) from exc

    for result in results:
        if result.outcome == "repaired":
            typer.echo(f"Lesson repaired. id={result.artifact_id}")
        elif result.outcome == "skipped":
            typer.echo(f"Already attempted a repair for this error. id={result.artifact_id} error={result.error}")
        else:
            typer.echo(f"Repair failed. id={result.artifact_id} error={result.error}", err=True)
            raise typer.Exit(code=1)


@app.command("show")
def show(
    lesson_id: str = typer.Argument(..., help="Lesson ID from database"),
    db_path: Path = typer.Option(config.db_path(), "--db", help="SQLite database path"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the TSX code to this file"),
) -> None:
    """Print a lesson's state and code, or write the code to a file."""
    store = _open_store(db_path)
    lesson = _require(store, lesson_id)
    typer.echo(f"id={lesson.id} status={lesson.status} compile_status={lesson.compile_status}")
    typer.echo(f"topic: {lesson.topic}")
    if lesson.compile_error:
        typer.echo(f"error: {lesson.compile_error}")
    if not lesson.code:
        return
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(lesson.code + "\n", encoding="utf-8")
        typer.echo(f"Code written to: {output}")
    else:
        typer.echo(lesson.code)


@app.command("list")
def list_lessons(
    db_path: Path = typer.Option(config.db_path(), "--db", help="SQLite database path"),
    limit: int = typer.Option(50, help="Maximum number of lessons to show"),
) -> None:
    """List stored lessons, newest first."""
    store = _open_store(db_path)
    for lesson in store.list_lessons(limit=limit):
        typer.echo(f"{lesson.id}  {lesson.status:<9}  {lesson.topic}")


@app.command("doctor")
def doctor(
    db_path: Path = typer.Option(config.db_path(), "--db", help="SQLite database path"),
) -> None:
    """Print local environment diagnostics used by the CLI."""
    typer.echo(f"DB exists: {db_path.exists()} ({db_path})")
    typer.echo(f"GEMINI_API_KEY set: {bool(config.resolve_gemini_api_key())}")
    typer.echo(f"Model: {config.model_name()} timeout={config.llm_timeout_secs()}s")
    typer.echo(f"Langfuse tracing: {'enabled' if config.langfuse_credentials() else 'disabled'}")


if __name__ == "__main__":
    app()
