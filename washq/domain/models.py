from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional
from uuid import UUID


@dataclass(frozen=True)
class ServiceSnapshot:
    """Catalog values frozen onto a job at creation time."""
    service_id: UUID
    name: str
    price: Decimal
    max_time: Optional[int] = None

    @classmethod
    def from_service(cls, service: Any) -> "ServiceSnapshot":
        return cls(
            service_id=service.id,
            name=service.name,
            price=Decimal(str(service.price or 0)),
            max_time=service.max_time,
        )


def total_price(snapshots: Iterable[ServiceSnapshot]) -> Decimal:
    return sum((s.price for s in snapshots), Decimal("0"))
