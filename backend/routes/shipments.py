"""
Transit Hub - Shipments Router

Dashboard alerts, next steps, progress, manual status changes and document
uploads (which may auto-advance the shipment status).
"""

from fastapi import APIRouter, HTTPException, Header
from typing import Optional
from pydantic import BaseModel, Field
import logging
import uuid

from services.alert_engine import company_balance_alert, generate_alerts
from services.next_steps import get_next_steps
from services.shipment_models import DocumentType, TimelineEvent, utc_now_iso
from services.shipment_store import StoreError
from services.status_order import ShipmentStatus, milestone_progress, progress_percent
from services.workflow_engine import InvalidStatusError, ShipmentNotFoundError, record_timeline_event
from services.workflow_triggers import field_hints_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/shipments", tags=["shipments"])

# Store and workflow engine - set by main app
store = None
workflow_engine = None

def set_dependencies(shipment_store, engine):
    global store, workflow_engine
    store = shipment_store
    workflow_engine = engine


# ==================== MODELS ====================

class StatusUpdate(BaseModel):
    status: ShipmentStatus
    comment: Optional[str] = None


class DocumentCreate(BaseModel):
    type: DocumentType
    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    reference: Optional[str] = None
    issue_date: Optional[str] = None


async def _load_shipment(shipment_id: str, company_id: str, snapshot: bool = False) -> dict:
    try:
        if snapshot:
            shipment = await store.get_shipment_snapshot(shipment_id, company_id)
        else:
            shipment = await store.get_shipment(shipment_id, company_id)
    except StoreError as e:
        logger.error("Shipment lookup failed: %s", e)
        raise HTTPException(status_code=500, detail="Database error")
    if not shipment:
        raise HTTPException(status_code=404, detail="Shipment not found")
    return shipment


# ==================== DASHBOARD ====================

@router.get("/alerts")
async def get_alerts(x_company_id: str = Header(...)):
    """Alert feed for the caller's active shipments, most severe first."""
    alerts = await generate_alerts(store, x_company_id)
    balance = await company_balance_alert(store, x_company_id)
    if balance:
        alerts.insert(0, balance)
    return {
        "count": len(alerts),
        "alerts": [a.to_dict() for a in alerts],
    }


@router.get("/{shipment_id}/next-steps")
async def get_shipment_next_steps(shipment_id: str, x_company_id: str = Header(...)):
    shipment = await _load_shipment(shipment_id, x_company_id, snapshot=True)
    try:
        steps = get_next_steps(shipment.get("status"), shipment["documents"], shipment["expenses"])
    except Exception as e:
        logger.warning("Next steps unavailable for shipment %s: %s", shipment_id, e)
        steps = []
    return {"steps": [s.to_dict() for s in steps]}


@router.get("/{shipment_id}/progress")
async def get_shipment_progress(shipment_id: str, x_company_id: str = Header(...)):
    shipment = await _load_shipment(shipment_id, x_company_id)
    status = shipment.get("status")
    return {
        "status": status,
        "percent": progress_percent(status),
        "milestones": milestone_progress(status),
    }


# ==================== STATUS ====================

@router.patch("/{shipment_id}/status")
async def update_shipment_status(
    shipment_id: str,
    update: StatusUpdate,
    x_company_id: str = Header(...),
    x_user_id: Optional[str] = Header(None),
):
    """Manual status change. Not bound by the lifecycle order."""
    try:
        result = await workflow_engine.set_status_manually(
            shipment_id,
            update.status.value,
            actor_id=x_user_id,
            comment=update.comment,
            company_id=x_company_id,
        )
    except ShipmentNotFoundError:
        raise HTTPException(status_code=404, detail="Shipment not found")
    except InvalidStatusError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError as e:
        logger.error("Manual status change failed: %s", e)
        raise HTTPException(status_code=500, detail="Database error")
    return {"success": True, **result}


# ==================== DOCUMENTS ====================

@router.post("/{shipment_id}/documents", status_code=201)
async def add_shipment_document(
    shipment_id: str,
    payload: DocumentCreate,
    x_company_id: str = Header(...),
    x_user_id: Optional[str] = Header(None),
):
    """
    Attach a document to a shipment.

    One document per type, except OTHER. Once stored, the document may push the
    shipment forward; that outcome is reported but never fails the upload.
    """
    shipment = await _load_shipment(shipment_id, x_company_id)
    doc_type = payload.type.value

    try:
        if payload.type != DocumentType.OTHER:
            existing = await store.find_document_of_type(shipment_id, doc_type)
            if existing:
                raise HTTPException(
                    status_code=409,
                    detail=f'A "{doc_type}" document already exists for this shipment '
                           f'({existing.get("name")}). Delete it first to replace it.',
                )

        document = {
            "id": str(uuid.uuid4()),
            "shipment_id": shipment_id,
            "type": doc_type,
            "name": payload.name,
            "url": payload.url,
            "reference": payload.reference,
            "issue_date": payload.issue_date,
            "created_utc": utc_now_iso(),
        }
        await store.insert_document(document)
    except StoreError as e:
        logger.error("Add document failed: %s", e)
        raise HTTPException(status_code=500, detail="Database error")

    actor_name = None
    try:
        actor_name = await store.get_user_name(x_user_id)
    except StoreError as e:
        logger.warning("Actor lookup failed for %s: %s", x_user_id, e)
    await record_timeline_event(store, TimelineEvent(
        shipment_id=shipment_id,
        action=f"Document added: {payload.name}",
        description=f"Type: {doc_type}",
        actor_id=x_user_id,
        actor_name=actor_name,
    ))

    advanced = await workflow_engine.advance_on_document(shipment_id, doc_type, x_user_id)
    logger.info("Document %s added to %s", doc_type, shipment.get("tracking_number") or shipment_id)

    return {
        "document": document,
        "status_advanced": advanced.to_dict(),
        "field_hints": field_hints_for(doc_type),
    }
