from dataclasses import dataclass
from typing import Union

from washq.domain.states import CapacityMode

SINGLE_CAPACITY_REASON = "Another job is already in progress"


@dataclass(frozen=True)
class Admit:
    accepted: bool = True


@dataclass(frozen=True)
class Reject:
    reason: str
    accepted: bool = False


AdmissionDecision = Union[Admit, Reject]


def effective_limit(capacity: CapacityMode, max_concurrent_jobs: int) -> int:
    # SINGLE shops run one car no matter what max_concurrent_jobs says.
    if CapacityMode(capacity) == CapacityMode.SINGLE:
        return 1
    return max_concurrent_jobs


def decide_admission(
    capacity: CapacityMode,
    max_concurrent_jobs: int,
    active_count: int,
) -> AdmissionDecision:
    """
    Decides whether a business may start another job.

    Args:
        capacity: The business car handling mode.
        max_concurrent_jobs: Bay count, only read for MULTIPLE.
        active_count: Jobs of this business not yet COMPLETED, DELIVERED or
                      CANCELLED, counted at decision time.

    Returns:
        Admit() or Reject(reason) with the user-facing reason.
    """
    if CapacityMode(capacity) == CapacityMode.SINGLE:
        if active_count == 0:
            return Admit()
        return Reject(SINGLE_CAPACITY_REASON)

    if active_count < max_concurrent_jobs:
        return Admit()
    return Reject(f"Maximum capacity of {max_concurrent_jobs} jobs reached")
