# -----------------------------------------------------------
# Adaptive Entity-Routing RAG
# Execution trace for pipeline nodes.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Execution trace for pipeline nodes.

``pipeline_step`` wraps a node so that every execution appends exactly one
``WorkflowStep`` to ``state.steps``. Nodes may add two private keys to their
update: ``step_details`` (trace payload) and ``step_status`` (e.g. skipped).
"""

import functools
import time
from typing import Any, Awaitable, Callable

import structlog

from adaptive_rag.schemas import StepStatus, WorkflowStep

logger = structlog.get_logger()

FAILURE_ANSWER = "Sorry, something went wrong while processing your question. Please try again later."

Node = Callable[..., Awaitable[dict[str, Any]]]


def pipeline_step(name: str) -> Callable[[Node], Node]:
    """Time a node, record its outcome, and turn exceptions into a failed state."""

    def decorator(node: Node) -> Node:
        @functools.wraps(node)
        async def wrapper(state: Any, config: Any) -> dict[str, Any]:
            started = time.perf_counter()
            try:
                update = dict(await node(state, config))
            except Exception as e:
                duration_ms = (time.perf_counter() - started) * 1000
                logger.exception("pipeline_step_failed", step=name, duration_ms=round(duration_ms, 1))
                return {
                    "failed": True,
                    "final_answer": FAILURE_ANSWER,
                    "steps": [WorkflowStep(
                        name=name,
                        status=StepStatus.ERROR,
                        duration_ms=duration_ms,
                        error=f"{type(e).__name__}: {e}",
                    )],
                }

            duration_ms = (time.perf_counter() - started) * 1000
            status = update.pop("step_status", StepStatus.COMPLETED)
            details = update.pop("step_details", {})
            update["steps"] = [WorkflowStep(
                name=name,
                status=status,
                duration_ms=duration_ms,
                details=details,
            )]
            logger.info("pipeline_step_done", step=name, status=StepStatus(status).value, duration_ms=round(duration_ms, 1))
            return update

        return wrapper

    return decorator
