"""
Lightweight observability utilities.

Why this exists
---------------
A conversational turn fans out into several model calls, and any of them
may be slow, time out, or quietly degrade to a fallback answer. Plain
request logs cannot tell those cases apart.

This module gives every turn and every collaborator call a structured
latency record, and gives simulated HR actions a dedicated audit logger.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager

logger = logging.getLogger("voice_link.trace")
action_logger = logging.getLogger("voice_link.actions")


@contextmanager
def trace_span(name: str, **metadata):
    """
    Measure execution duration of a critical operation.

    Wraps:
    - dialogue turns
    - intent classification / slot extraction / general responses
    - text-to-speech requests

    Example log:
    [TRACE] classify_intent duration_ms=412.08 mode=llm

    Guarantees
    ----------
    - Always logs completion (even if exception occurs)
    - Never suppresses exceptions
    - Produces structured key=value logs
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        duration_ms = (time.perf_counter() - start) * 1000

        meta = " ".join(f"{k}={v}" for k, v in metadata.items())
        logger.info("[TRACE] %s duration_ms=%.2f %s", name, duration_ms, meta)


def log_action_triggered(intent: str, **details) -> None:
    """
    Record a simulated backend action.

    Nothing is submitted anywhere; the log line is the action.
    """
    meta = " ".join(f'{k}="{v}"' for k, v in details.items())
    action_logger.info("ACTION TRIGGERED: intent=%s %s", intent, meta)
