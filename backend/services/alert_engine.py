"""
Transit Hub - Alert Engine

Scans a company's active shipments and produces the dashboard alert feed:

1. Vessel      ETA within 48h (warning) / ETA passed while still PENDING (danger)
2. Deadline    Demurrage (surestaries) risk since actual arrival, before DO release
3. Document    DDI / declaration / BAE missing for the current lifecycle stage
4. Finance     Unpaid disbursements above the configured threshold
5. Deadline    No activity for more than 5 days

Alerts are derived on every call and never persisted. Their ids depend only on
(shipment id, alert family) so the UI can diff successive refreshes.
The feed is a heuristic: it only looks at the most recently updated shipments
and tolerates stale reads.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional

from services import hub_config
from services.shipment_models import DocumentType, ExpenseType, parse_utc, round_half_up
from services.status_order import ShipmentStatus, rank

logger = logging.getLogger(__name__)


class AlertSeverity(str, Enum):
    DANGER = "danger"
    WARNING = "warning"
    INFO = "info"


class AlertCategory(str, Enum):
    VESSEL = "vessel"
    DOCUMENT = "document"
    FINANCE = "finance"
    DEADLINE = "deadline"


SEVERITY_PRIORITY = {
    AlertSeverity.DANGER.value: 0,
    AlertSeverity.WARNING.value: 1,
    AlertSeverity.INFO.value: 2,
}


@dataclass
class Alert:
    """A single dashboard alert. References a shipment, never owns it."""
    id: str
    type: str
    category: str
    message: str
    shipment_id: Optional[str] = None
    tracking_number: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)


def _alert(family: str, severity: AlertSeverity, category: AlertCategory,
           message: str, shipment: Dict) -> Alert:
    return Alert(
        id=f"{family}-{shipment['id']}",
        type=severity.value,
        category=category.value,
        message=message,
        shipment_id=shipment["id"],
        tracking_number=shipment.get("tracking_number"),
    )


def _days_between(later: datetime, earlier: datetime) -> float:
    return (later - earlier).total_seconds() / 86400


# =============================================================================
# ALERT FAMILIES
# =============================================================================

def _vessel_alert(shipment: Dict, now: datetime) -> Optional[Alert]:
    eta = parse_utc(shipment.get("eta"))
    if eta is None:
        return None
    tracking = shipment.get("tracking_number")
    hours_until_eta = (eta - now).total_seconds() / 3600

    if 0 < hours_until_eta <= hub_config.ETA_WARNING_HOURS:
        vessel = shipment.get("vessel_name") or "N/A"
        return _alert(
            "eta", AlertSeverity.WARNING, AlertCategory.VESSEL,
            f'Vessel "{vessel}" arrives in {round_half_up(hours_until_eta)}h - {tracking}',
            shipment,
        )
    if hours_until_eta < 0 and shipment.get("status") == ShipmentStatus.PENDING.value:
        return _alert(
            "eta-passed", AlertSeverity.DANGER, AlertCategory.VESSEL,
            f"Vessel arrived {abs(round_half_up(hours_until_eta / 24))}d ago - status not updated - {tracking}",
            shipment,
        )
    return None


def _surestaries_alert(shipment: Dict, now: datetime) -> Optional[Alert]:
    ata = parse_utc(shipment.get("ata"))
    if ata is None or rank(shipment.get("status")) >= rank(ShipmentStatus.DO_RELEASED):
        return None
    tracking = shipment.get("tracking_number")
    days = _days_between(now, ata)

    if days >= hub_config.SURESTARIES_DANGER_DAYS:
        return _alert(
            "surestaries", AlertSeverity.DANGER, AlertCategory.DEADLINE,
            f"Demurrage risk: {round_half_up(days)}d since arrival, DO not released - {tracking}",
            shipment,
        )
    if days > hub_config.SURESTARIES_WARNING_DAYS:
        return _alert(
            "surestaries-warn", AlertSeverity.WARNING, AlertCategory.DEADLINE,
            f"{round_half_up(days)}d since arrival - speed up clearance - {tracking}",
            shipment,
        )
    return None


# (family, stage reached, document expected, severity, message)
MISSING_DOCUMENT_CHECKS = (
    ("missing-ddi", ShipmentStatus.ARRIVED, DocumentType.DDI, AlertSeverity.WARNING, "DDI missing"),
    ("missing-decl", ShipmentStatus.DDI_OBTAINED, DocumentType.DECLARATION, AlertSeverity.WARNING,
     "Declaration not filed"),
    ("missing-bae", ShipmentStatus.CUSTOMS_PAID, DocumentType.BAE, AlertSeverity.INFO, "BAE pending"),
)


def _missing_document_alerts(shipment: Dict) -> List[Alert]:
    doc_types = {d.get("type") for d in shipment.get("documents") or []}
    status_rank = rank(shipment.get("status"))
    tracking = shipment.get("tracking_number")
    alerts = []
    for family, stage, doc_type, severity, label in MISSING_DOCUMENT_CHECKS:
        if status_rank >= rank(stage) and doc_type.value not in doc_types:
            alerts.append(_alert(family, severity, AlertCategory.DOCUMENT, f"{label} - {tracking}", shipment))
    return alerts


def unpaid_disbursements(expenses: Iterable[Dict]) -> float:
    return sum(
        e.get("amount") or 0
        for e in expenses
        if e.get("type") == ExpenseType.DISBURSEMENT.value and not e.get("paid")
    )


def _unpaid_alert(shipment: Dict, threshold: float) -> Optional[Alert]:
    unpaid = unpaid_disbursements(shipment.get("expenses") or [])
    if unpaid <= threshold:
        return None
    return _alert(
        "unpaid", AlertSeverity.WARNING, AlertCategory.FINANCE,
        f"{round_half_up(unpaid / 1_000_000)}M GNF of unpaid disbursements - {shipment.get('tracking_number')}",
        shipment,
    )


def _stale_alert(shipment: Dict, now: datetime) -> Optional[Alert]:
    updated = parse_utc(shipment.get("updated_utc"))
    if updated is None or rank(shipment.get("status")) >= rank(ShipmentStatus.DELIVERED):
        return None
    days = _days_between(now, updated)
    if days <= hub_config.STALE_AFTER_DAYS:
        return None
    return _alert(
        "stale", AlertSeverity.INFO, AlertCategory.DEADLINE,
        f"No activity for {round_half_up(days)}d - {shipment.get('tracking_number')}",
        shipment,
    )


# =============================================================================
# EVALUATION
# =============================================================================

def evaluate_shipment_alerts(
    shipment: Dict,
    now: datetime,
    unpaid_threshold: Optional[float] = None,
) -> List[Alert]:
    """All alerts for one shipment snapshot, in family order."""
    if unpaid_threshold is None:
        unpaid_threshold = hub_config.UNPAID_DISBURSEMENT_THRESHOLD

    alerts: List[Alert] = []
    for alert in (_vessel_alert(shipment, now), _surestaries_alert(shipment, now)):
        if alert:
            alerts.append(alert)
    alerts.extend(_missing_document_alerts(shipment))
    for alert in (_unpaid_alert(shipment, unpaid_threshold), _stale_alert(shipment, now)):
        if alert:
            alerts.append(alert)
    return alerts


def sort_alerts(alerts: List[Alert]) -> List[Alert]:
    """Stable sort: danger, then warning, then info."""
    return sorted(alerts, key=lambda a: SEVERITY_PRIORITY.get(a.type, len(SEVERITY_PRIORITY)))


def compute_alerts(
    shipments: Iterable[Dict],
    now: Optional[datetime] = None,
    unpaid_threshold: Optional[float] = None,
) -> List[Alert]:
    """Evaluate a batch of shipments; a shipment that fails is skipped."""
    now = now or datetime.now(timezone.utc)
    alerts: List[Alert] = []
    for shipment in shipments:
        try:
            alerts.extend(evaluate_shipment_alerts(shipment, now, unpaid_threshold))
        except Exception as e:
            logger.warning("Alert evaluation skipped for shipment %s: %s", shipment.get("id"), e)
    return sort_alerts(alerts)


async def generate_alerts(
    store,
    company_id: str,
    now: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> List[Alert]:
    """Alert feed for a company's most recently updated active shipments."""
    limit = limit or hub_config.ALERT_WORKING_SET_SIZE
    try:
        shipments = await store.list_active_shipments(company_id, limit)
    except Exception as e:
        logger.error("Alert generation failed for company %s: %s", company_id, e)
        return []
    return compute_alerts(shipments, now=now)


def balance_alert(total_provisions: float, total_disbursements: float) -> Optional[Alert]:
    """Company-wide alert when disbursements exceed provisions received."""
    balance = total_provisions - total_disbursements
    if balance >= 0:
        return None
    return Alert(
        id="negative-balance",
        type=AlertSeverity.DANGER.value,
        category=AlertCategory.FINANCE.value,
        message=f"Negative overall balance: {round_half_up(balance):,} GNF",
    )


async def company_balance_alert(store, company_id: str) -> Optional[Alert]:
    """balance_alert over the company's expense totals; None if they cannot be read."""
    try:
        totals = await store.get_expense_totals(company_id)
    except Exception as e:
        logger.error("Balance check failed for company %s: %s", company_id, e)
        return None
    return balance_alert(
        totals.get(ExpenseType.PROVISION.value, 0),
        totals.get(ExpenseType.DISBURSEMENT.value, 0),
    )
