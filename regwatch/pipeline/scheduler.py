"""Per-source run state and due-ness.

State machine per source and invocation::

    Idle -> Due -> Running -> Succeeded | Failed
    Idle -> Skipped            (cooldown not elapsed)
"""

from datetime import datetime, timedelta, timezone
from enum import Enum

from regwatch.sources.schemas import Source


class SourceRunState(str, Enum):
    IDLE = "idle"
    DUE = "due"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


_TRANSITIONS: dict[SourceRunState, frozenset[SourceRunState]] = {
    SourceRunState.IDLE: frozenset({SourceRunState.DUE, SourceRunState.SKIPPED}),
    SourceRunState.DUE: frozenset({SourceRunState.RUNNING}),
    SourceRunState.RUNNING: frozenset({SourceRunState.SUCCEEDED, SourceRunState.FAILED}),
    SourceRunState.SUCCEEDED: frozenset(),
    SourceRunState.FAILED: frozenset(),
    SourceRunState.SKIPPED: frozenset(),
}


class InvalidTransition(Exception):
    """Raised on an illegal run-state change."""


def advance(current: SourceRunState, new: SourceRunState) -> SourceRunState:
    """Return ``new`` if the transition is legal."""
    if new not in _TRANSITIONS[current]:
        raise InvalidTransition(f"{current.value} -> {new.value}")
    return new


def is_due(
    source: Source,
    last_run: datetime | None,
    now: datetime | None = None,
) -> bool:
    """True if ``poll_interval_minutes`` has elapsed since ``last_run``."""
    if last_run is None:
        return True
    now = now or datetime.now(timezone.utc)
    return now - last_run >= timedelta(minutes=source.poll_interval_minutes)


def order_for_run(sources: list[Source]) -> tuple[list[Source], list[Source]]:
    """Split into (critical, rest), each keeping registry order."""
    critical = [s for s in sources if s.is_critical]
    rest = [s for s in sources if not s.is_critical]
    return critical, rest
