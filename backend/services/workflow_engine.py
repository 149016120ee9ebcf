"""
Transit Hub - Shipment Workflow Engine

Moves shipments along the customs-clearance lifecycle when a triggering event
arrives:
- a document is added        -> DOCUMENT_STATUS_MAP target, forward only
- a terminal fee is paid     -> TERMINAL_PAID, only from BAE_ISSUED

Each successful advance performs exactly one compare-and-set status write and
one timeline insert. Auto-advance is a side effect of the document/expense
action that triggered it, so failures are logged and reported in the
AdvanceResult, never raised.

The privileged manual path (set_status_manually) is unconstrained by the
lifecycle order and does raise, since it is the primary action of its request.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from services.shipment_models import TimelineEvent
from services.shipment_store import ShipmentStore
from services.status_order import ShipmentStatus, is_known_status
from services.workflow_triggers import document_advances, is_terminal_category, target_for_document, target_for_expense

logger = logging.getLogger(__name__)


class ShipmentNotFoundError(Exception):
    """Raised when a shipment does not exist (or is not visible to the caller)."""
    pass


class InvalidStatusError(Exception):
    """Raised when a manual status change names an unknown status."""
    pass


# =============================================================================
# RESULT
# =============================================================================

class AdvanceResult:
    """Outcome of an auto-advance attempt."""

    def __init__(
        self,
        advanced: bool = False,
        old_status: Optional[str] = None,
        new_status: Optional[str] = None,
        reason: Optional[str] = None,
        error: Optional[str] = None,
    ):
        self.advanced = advanced
        self.old_status = old_status
        self.new_status = new_status
        self.reason = reason
        self.error = error
        self.timestamp = datetime.now(timezone.utc).isoformat()

    @classmethod
    def skipped(cls, reason: str, old_status: Optional[str] = None) -> "AdvanceResult":
        return cls(advanced=False, old_status=old_status, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "advanced": self.advanced,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "reason": self.reason,
            "timestamp": self.timestamp,
        }
        if self.error:
            result["error"] = self.error
        return result


def _enum_value(status) -> Optional[str]:
    return getattr(status, "value", status)


# =============================================================================
# ENGINE
# =============================================================================

class ShipmentWorkflowEngine:
    """Applies trigger decisions to persisted shipments."""

    def __init__(self, store: ShipmentStore):
        self.store = store

    async def advance_on_document(
        self,
        shipment_id: str,
        document_type: str,
        actor_id: Optional[str] = None,
    ) -> AdvanceResult:
        """Advance after a document was persisted. Never raises."""
        document_type = _enum_value(document_type)
        try:
            target = target_for_document(document_type)
            if target is None:
                return AdvanceResult.skipped(f"Document type {document_type} has no status trigger")

            shipment = await self.store.get_shipment(shipment_id)
            if not shipment:
                logger.warning("Auto-advance skipped: shipment %s not found", shipment_id)
                return AdvanceResult.skipped("Shipment not found")

            current = shipment.get("status")
            if document_advances(document_type, current) is None:
                return AdvanceResult.skipped(
                    f"{current} is already at or past {target.value}", old_status=current
                )

            return await self._apply(
                shipment,
                target.value,
                actor_id,
                action=f"Status advanced automatically -> {target.value}",
                description=f"Document {document_type} added. Moved from {current} to {target.value}.",
                trigger=f"document {document_type}",
            )
        except Exception as e:
            logger.error("Auto-advance on document failed: shipment=%s, type=%s: %s",
                         shipment_id, document_type, e)
            return AdvanceResult(advanced=False, reason="Auto-advance failed", error=str(e))

    async def advance_on_expense_paid(
        self,
        shipment_id: str,
        expense_category: str,
        actor_id: Optional[str] = None,
    ) -> AdvanceResult:
        """Advance after an expense was marked paid. Never raises."""
        expense_category = _enum_value(expense_category)
        try:
            if not is_terminal_category(expense_category):
                return AdvanceResult.skipped(f"Expense category {expense_category} has no status trigger")

            shipment = await self.store.get_shipment(shipment_id)
            if not shipment:
                logger.warning("Auto-advance skipped: shipment %s not found", shipment_id)
                return AdvanceResult.skipped("Shipment not found")

            current = shipment.get("status")
            target = target_for_expense(expense_category, current)
            if target is None:
                return AdvanceResult.skipped(
                    f"Terminal fees only advance from {ShipmentStatus.BAE_ISSUED.value}, shipment is {current}",
                    old_status=current,
                )

            return await self._apply(
                shipment,
                target.value,
                actor_id,
                action=f"Status advanced automatically -> {target.value}",
                description=f"Terminal fees paid ({expense_category}). Moved from {current} to {target.value}.",
                trigger=f"expense {expense_category}",
            )
        except Exception as e:
            logger.error("Auto-advance on expense paid failed: shipment=%s, category=%s: %s",
                         shipment_id, expense_category, e)
            return AdvanceResult(advanced=False, reason="Auto-advance failed", error=str(e))

    async def _apply(
        self,
        shipment: Dict,
        target: str,
        actor_id: Optional[str],
        action: str,
        description: str,
        trigger: str,
    ) -> AdvanceResult:
        shipment_id = shipment["id"]
        current = shipment.get("status")
        actor_name = await self.store.get_user_name(actor_id)

        written = await self.store.set_status_if_current(shipment_id, current, target)
        if not written:
            logger.info("Auto-advance lost race: shipment=%s no longer %s", shipment_id, current)
            return AdvanceResult.skipped("Status changed concurrently", old_status=current)

        event = TimelineEvent(
            shipment_id=shipment_id,
            action=action,
            description=description,
            actor_id=actor_id,
            actor_name=actor_name,
        )
        try:
            await self.store.append_timeline_event(event)
        except Exception as e:
            logger.error(
                "Inconsistent shipment %s: status written %s -> %s but timeline append failed: %s",
                shipment_id, current, target, e,
            )
            return AdvanceResult(
                advanced=False,
                old_status=current,
                new_status=target,
                reason="Timeline append failed after status write",
                error=str(e),
            )

        logger.info(
            "Auto-advanced %s: %s -> %s (%s, actor=%s)",
            shipment.get("tracking_number") or shipment_id, current, target, trigger, actor_id,
        )
        return AdvanceResult(advanced=True, old_status=current, new_status=target,
                             reason=f"Triggered by {trigger}")

    async def set_status_manually(
        self,
        shipment_id: str,
        status: str,
        actor_id: Optional[str] = None,
        comment: Optional[str] = None,
        company_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Privileged status change, any direction.

        Returns the timeline entry that was recorded.
        """
        status = _enum_value(status)
        if not is_known_status(status):
            raise InvalidStatusError(f"Unknown status: {status}")

        shipment = await self.store.get_shipment(shipment_id, company_id)
        if not shipment:
            raise ShipmentNotFoundError(f"Shipment {shipment_id} not found")

        current = shipment.get("status")
        actor_name = await self.store.get_user_name(actor_id)
        if not await self.store.set_status(shipment_id, status):
            raise ShipmentNotFoundError(f"Shipment {shipment_id} not found")

        event = TimelineEvent(
            shipment_id=shipment_id,
            action=f"Status -> {status}",
            description=comment or f"Moved from {current} to {status}",
            actor_id=actor_id,
            actor_name=actor_name,
        )
        await self.store.append_timeline_event(event)

        logger.info("Manual status change %s: %s -> %s (actor=%s)",
                    shipment.get("tracking_number") or shipment_id, current, status, actor_id)
        return {"old_status": current, "new_status": status, "timeline_event": event.to_dict()}


async def record_timeline_event(store: ShipmentStore, event: TimelineEvent) -> bool:
    """Best-effort timeline write for actions that have already succeeded."""
    try:
        await store.append_timeline_event(event)
        return True
    except Exception as e:
        logger.error("Timeline event dropped for shipment %s (%s): %s", event.shipment_id, event.action, e)
        return False
