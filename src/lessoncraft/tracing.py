"""Optional Langfuse tracing of model calls.

A tracer lives for one request: the orchestrator opens it, every adapter
call is recorded as one generation, and ``shutdown`` flushes it when the
request ends.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from lessoncraft import config

log = logging.getLogger(__name__)


class Tracer(Protocol):
    def record_generation(
        self,
        name: str,
        model: str | None,
        input: Any,
        output: str | None = None,
        error: str | None = None,
    ) -> None: ...

    def shutdown(self) -> None: ...


class NullTracer:
    """Tracer used when Langfuse is not configured."""

    def record_generation(
        self,
        name: str,
        model: str | None,
        input: Any,
        output: str | None = None,
        error: str | None = None,
    ) -> None:
        return None

    def shutdown(self) -> None:
        return None


class LangfuseTracer:
    def __init__(self, public_key: str, secret_key: str, base_url: str):
        from langfuse import Langfuse

        self._client = Langfuse(public_key=public_key, secret_key=secret_key, host=base_url)

    def record_generation(
        self,
        name: str,
        model: str | None,
        input: Any,
        output: str | None = None,
        error: str | None = None,
    ) -> None:
        """Record one model call; failures are logged at ERROR level in Langfuse."""
        try:
            generation = self._client.start_generation(name=name, model=model, input=input)
            if error is None:
                generation.update(output=output)
            else:
                generation.update(
                    output=f"// Error generating lesson: {error}",
                    level="ERROR",
                    status_message=error,
                )
            generation.end()
        except Exception as exc:
            log.warning("Langfuse generation could not be recorded: %r", exc)

    def shutdown(self) -> None:
        try:
            self._client.shutdown()
        except Exception as exc:
            log.warning("Langfuse shutdown failed: %r", exc)


def open_tracer() -> Tracer:
    """Create a tracer for one request from the ``LANGFUSE_*`` environment."""
    credentials = config.langfuse_credentials()
    if credentials is None:
        log.debug("Langfuse environment variables not set; tracing disabled")
        return NullTracer()
    return LangfuseTracer(*credentials)
