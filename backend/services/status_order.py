"""
Transit Hub - Shipment Status Order

Single source of truth for the customs-clearance lifecycle. Every ordering
comparison in the backend (auto-advance eligibility, alert completeness checks,
progress milestones) goes through rank() below. Do not copy the order anywhere
else.
"""

from enum import Enum
from typing import Dict, List, Optional, Union


class ShipmentStatus(str, Enum):
    """Shipment lifecycle states, declared in lifecycle order."""
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    ARRIVED = "ARRIVED"
    DDI_OBTAINED = "DDI_OBTAINED"
    DECLARATION_FILED = "DECLARATION_FILED"
    LIQUIDATION_ISSUED = "LIQUIDATION_ISSUED"
    CUSTOMS_PAID = "CUSTOMS_PAID"
    BAE_ISSUED = "BAE_ISSUED"
    TERMINAL_PAID = "TERMINAL_PAID"
    DO_RELEASED = "DO_RELEASED"
    EXIT_NOTE_ISSUED = "EXIT_NOTE_ISSUED"
    IN_DELIVERY = "IN_DELIVERY"
    DELIVERED = "DELIVERED"
    INVOICED = "INVOICED"
    CLOSED = "CLOSED"
    ARCHIVED = "ARCHIVED"


STATUS_ORDER = tuple(s.value for s in ShipmentStatus)

_RANKS: Dict[str, int] = {status: index for index, status in enumerate(STATUS_ORDER)}

# Shipments in these states are out of the dashboard working set
ACTIVE_EXCLUDED_STATUSES = (
    ShipmentStatus.DELIVERED.value,
    ShipmentStatus.INVOICED.value,
    ShipmentStatus.CLOSED.value,
    ShipmentStatus.ARCHIVED.value,
)

StatusLike = Union[ShipmentStatus, str, None]


def _key(status: StatusLike) -> Optional[str]:
    if isinstance(status, ShipmentStatus):
        return status.value
    return status


def rank(status: StatusLike) -> int:
    """Position of a status in the lifecycle, or -1 when unknown."""
    return _RANKS.get(_key(status), -1)


def is_known_status(status: StatusLike) -> bool:
    return _key(status) in _RANKS


# =============================================================================
# PROGRESS MILESTONES
# =============================================================================

MILESTONES = (
    (ShipmentStatus.PENDING, "Reception"),
    (ShipmentStatus.ARRIVED, "Arrival"),
    (ShipmentStatus.DDI_OBTAINED, "DDI"),
    (ShipmentStatus.DECLARATION_FILED, "Declaration"),
    (ShipmentStatus.CUSTOMS_PAID, "Duties paid"),
    (ShipmentStatus.BAE_ISSUED, "BAE"),
    (ShipmentStatus.DO_RELEASED, "DO"),
    (ShipmentStatus.EXIT_NOTE_ISSUED, "Exit note"),
    (ShipmentStatus.DELIVERED, "Delivered"),
)


def progress_percent(status: StatusLike) -> int:
    """Overall completion of the lifecycle, 0-100."""
    current = rank(status)
    if current < 0:
        return 0
    return min(100, round(current / (len(STATUS_ORDER) - 1) * 100))


def milestone_progress(status: StatusLike) -> List[Dict]:
    current = rank(status)
    key = _key(status)
    return [
        {
            "status": milestone.value,
            "label": label,
            "completed": current >= rank(milestone),
            "current": key == milestone.value,
        }
        for milestone, label in MILESTONES
    ]
