"""Pydantic models shared across generation, repair, and persistence layers."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, model_validator

AttemptKind = Literal["initial", "structural-repair", "runtime-repair"]
LessonStatus = Literal["pending", "generated", "error"]
CompileStatus = Literal["pending", "success", "failed"]
RepairOutcome = Literal["repaired", "skipped", "failed"]

ViolationKind = Literal[
    "too_short",
    "contains_import",
    "contains_require",
    "contains_alert",
    "namespaced_hook",
    "forbidden_redeclaration",
    "untyped_hook",
    "component_not_found",
    "logic_outside_component",
    "missing_return",
    "missing_invocation",
    "disallowed_tag",
    "missing_quiz",
    "undefined_type",
]


class Violation(BaseModel):
    """The first structural rule a piece of code breaks."""

    model_config = ConfigDict(frozen=True)

    kind: ViolationKind
    message: str


class RepairContext(BaseModel):
    """Inputs for a repair prompt: the failing code and what went wrong."""

    model_config = ConfigDict(frozen=True)

    topic: str
    message: str
    code: str | None = None


class GenerationRequest(BaseModel):
    """One model call for a topic, tagged with the kind of attempt."""

    model_config = ConfigDict(frozen=True)

    topic: str
    kind: AttemptKind = "initial"
    context: RepairContext | None = None

    @model_validator(mode="after")
    def _repair_needs_context(self) -> "GenerationRequest":
        if self.kind != "initial" and self.context is None:
            raise ValueError(f"{self.kind} requests need a repair context")
        return self


class LessonArtifact(BaseModel):
    """Persisted lesson row as seen by the orchestrator and runtime loop."""

    id: str
    topic: str
    code: str | None = None
    status: LessonStatus = "pending"
    compile_status: CompileStatus = "pending"
    compile_error: str | None = None
    last_runtime_error: str | None = None
    created_at: datetime
    updated_at: datetime


class RuntimeErrorReport(BaseModel):
    """A failure caught while the sandbox executed a lesson."""

    model_config = ConfigDict(frozen=True)

    artifact_id: str
    message: str
    code: str


class RuntimeRepairResult(BaseModel):
    """What the runtime feedback loop did with one report."""

    artifact_id: str
    outcome: RepairOutcome
    code: str | None = None
    error: str | None = None
