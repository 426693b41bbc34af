"""Job status state machine.

    queued -> running -> {completed, failed, cancelled}
    queued -> cancelled

Terminal states have no outgoing transitions. Forced removal deletes the
record and is not a transition.
"""

from transcodarr.db.types import JobStatus
from transcodarr.jobs.exceptions import InvalidTransitionError

ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.RUNNING, JobStatus.CANCELLED}),
    JobStatus.RUNNING: frozenset(
        {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}
    ),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """Return True if ``current -> target`` is a legal status change."""
    return target in ALLOWED_TRANSITIONS[current]


def sources_for(target: JobStatus) -> tuple[JobStatus, ...]:
    """Return every status from which ``target`` can be reached."""
    return tuple(
        status for status, targets in ALLOWED_TRANSITIONS.items() if target in targets
    )


def validate_transition(
    current: JobStatus, target: JobStatus, job_id: int | None = None
) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is legal."""
    if not can_transition(current, target):
        raise InvalidTransitionError(job_id, current.value, target.value)
