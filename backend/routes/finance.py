"""
Transit Hub - Finance Router

Expense payment. Paying a terminal-handling fee may auto-advance the shipment.
"""

from fastapi import APIRouter, HTTPException, Header
from typing import Optional
import logging

from services.shipment_models import TimelineEvent
from services.shipment_store import StoreError
from services.workflow_engine import record_timeline_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/finance", tags=["finance"])

# Store and workflow engine - set by main app
store = None
workflow_engine = None

def set_dependencies(shipment_store, engine):
    global store, workflow_engine
    store = shipment_store
    workflow_engine = engine


@router.post("/expenses/{expense_id}/pay")
async def pay_expense(
    expense_id: str,
    x_company_id: str = Header(...),
    x_user_id: Optional[str] = Header(None),
):
    """Mark an expense as paid."""
    try:
        expense = await store.get_expense(expense_id, x_company_id)
        if not expense:
            raise HTTPException(status_code=404, detail="Expense not found")
        if expense.get("paid"):
            raise HTTPException(status_code=400, detail="This expense is already paid")

        updated = await store.mark_expense_paid(expense_id, x_user_id)
        if not updated:
            raise HTTPException(status_code=400, detail="This expense is already paid")
    except StoreError as e:
        logger.error("Pay expense failed: %s", e)
        raise HTTPException(status_code=500, detail="Database error")

    shipment_id = updated["shipment_id"]
    amount = updated.get("amount") or 0

    actor_name = None
    try:
        actor_name = await store.get_user_name(x_user_id)
    except StoreError as e:
        logger.warning("Actor lookup failed for %s: %s", x_user_id, e)
    await record_timeline_event(store, TimelineEvent(
        shipment_id=shipment_id,
        action=f"Disbursement paid: {round(amount):,} GNF",
        description=updated.get("description"),
        actor_id=x_user_id,
        actor_name=actor_name,
    ))

    advanced = await workflow_engine.advance_on_expense_paid(
        shipment_id, updated.get("category"), x_user_id
    )
    logger.info("Expense %s paid (%s, %s GNF) on %s",
                expense_id, updated.get("category"), amount, expense.get("tracking_number") or shipment_id)

    return {
        "expense": updated,
        "status_advanced": advanced.to_dict(),
    }
