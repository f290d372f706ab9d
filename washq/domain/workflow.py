from datetime import datetime
from typing import Optional, Union

from washq.domain.errors import InvalidTransitionError, UnknownStatusError
from washq.domain.states import JobStatus

# Forward wash flow. Index in this tuple is the order used for transition checks.
STATUS_ORDER: tuple[JobStatus, ...] = (
    JobStatus.RECEIVED,
    JobStatus.IN_PROGRESS,
    JobStatus.WASHING,
    JobStatus.DRYING,
    JobStatus.COMPLETED,
    JobStatus.DELIVERED,
)

TERMINAL_STATUSES = frozenset({JobStatus.DELIVERED, JobStatus.CANCELLED})

# Jobs in these states no longer occupy a bay.
INACTIVE_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.DELIVERED, JobStatus.CANCELLED})

_SUCCESSORS: dict[JobStatus, Optional[JobStatus]] = {
    current: (STATUS_ORDER[i + 1] if i + 1 < len(STATUS_ORDER) else None)
    for i, current in enumerate(STATUS_ORDER)
}
_SUCCESSORS[JobStatus.CANCELLED] = None


def parse_status(value: Union[str, JobStatus]) -> JobStatus:
    """Coerce a wire value into a JobStatus, raising UnknownStatusError otherwise."""
    if isinstance(value, JobStatus):
        return value
    try:
        return JobStatus(value)
    except ValueError:
        raise UnknownStatusError(value) from None


def order_index(status: JobStatus) -> int:
    return STATUS_ORDER.index(status)


def is_terminal(status: Union[str, JobStatus]) -> bool:
    return parse_status(status) in TERMINAL_STATUSES


def is_active(status: Union[str, JobStatus]) -> bool:
    return parse_status(status) not in INACTIVE_STATUSES


def can_transition(current: Union[str, JobStatus], target: Union[str, JobStatus]) -> bool:
    """
    Returns True if a job in `current` may be moved to `target`.

    Rules:
        - Nothing leaves DELIVERED or CANCELLED.
        - CANCELLED is reachable from every other status.
        - Otherwise the target must not be behind the current status in
          STATUS_ORDER. Re-applying the same status is allowed, and so is
          jumping several stages ahead.
    """
    current = parse_status(current)
    target = parse_status(target)

    if current in TERMINAL_STATUSES:
        return False
    if target == JobStatus.CANCELLED:
        return True
    return order_index(target) >= order_index(current)


def next_status(current: Union[str, JobStatus]) -> Optional[JobStatus]:
    """Single forward successor, or None once the job is delivered or cancelled."""
    return _SUCCESSORS[parse_status(current)]


def apply_transition(job, target: Union[str, JobStatus], now: datetime):
    """
    Moves `job` (a db Job row or anything shaped like one) to `target` in
    place and returns it.

    Raises InvalidTransitionError without touching the job when the move is
    not allowed. Re-applying the current status is a no-op and leaves
    updated_at alone. Entering DELIVERED stamps actual_delivery with `now`.
    """
    target = parse_status(target)
    current = parse_status(job.status)

    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)
    if current == target:
        return job

    job.status = target
    job.updated_at = now
    if target == JobStatus.DELIVERED:
        job.actual_delivery = now
    return job
