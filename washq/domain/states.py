from enum import StrEnum


class JobStatus(StrEnum):
    RECEIVED = "RECEIVED"         # Car checked in, waiting for a bay
    IN_PROGRESS = "IN_PROGRESS"   # Pre-wash / prep started
    WASHING = "WASHING"
    DRYING = "DRYING"
    COMPLETED = "COMPLETED"       # Ready for pickup
    DELIVERED = "DELIVERED"       # Handed back to the customer
    CANCELLED = "CANCELLED"


class CapacityMode(StrEnum):
    SINGLE = "SINGLE"       # One car at a time
    MULTIPLE = "MULTIPLE"   # Up to max_concurrent_jobs cars


class JobEvent(StrEnum):
    CREATED = "CREATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
