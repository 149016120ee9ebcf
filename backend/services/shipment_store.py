"""
Transit Hub - Shipment Store

MongoDB access for shipments and the records hanging off them. This is the
persistence collaborator the workflow engine and the alert engine are built
against; everything above it deals in plain dicts.

Collections:
- shipments        one document per shipment file (status, eta, ata, updated_utc...)
- documents        uploaded documents, keyed by shipment_id
- expenses         provisions and disbursements, keyed by shipment_id
- timeline_events  append-only audit trail, keyed by shipment_id
- users            actor names for timeline attribution
"""

import logging
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from services.shipment_models import ExpenseType, TimelineEvent, utc_now_iso
from services.status_order import ACTIVE_EXCLUDED_STATUSES

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when the database rejects or fails an operation."""
    pass


SHIPMENT_PROJECTION = {
    "_id": 0, "id": 1, "company_id": 1, "tracking_number": 1, "status": 1,
    "eta": 1, "ata": 1, "vessel_name": 1, "updated_utc": 1,
}


class ShipmentStore:
    """Thin async wrapper over the motor database."""

    def __init__(self, db):
        self.db = db

    async def create_indexes(self):
        try:
            await self.db.shipments.create_index("id", unique=True)
            await self.db.shipments.create_index([("company_id", 1), ("updated_utc", -1)])
            await self.db.shipments.create_index("status")
            await self.db.documents.create_index("id", unique=True)
            await self.db.documents.create_index([("shipment_id", 1), ("type", 1)])
            await self.db.expenses.create_index("id", unique=True)
            await self.db.expenses.create_index("shipment_id")
            await self.db.timeline_events.create_index([("shipment_id", 1), ("date_utc", -1)])
            await self.db.users.create_index("id", unique=True)
        except PyMongoError as e:
            raise StoreError(f"Index creation failed: {e}") from e
        logger.info("Database indexes created")

    # ==================== SHIPMENTS ====================

    async def get_shipment(self, shipment_id: str, company_id: Optional[str] = None) -> Optional[Dict]:
        query = {"id": shipment_id}
        if company_id:
            query["company_id"] = company_id
        try:
            return await self.db.shipments.find_one(query, SHIPMENT_PROJECTION)
        except PyMongoError as e:
            raise StoreError(f"Shipment lookup failed for {shipment_id}: {e}") from e

    async def get_shipment_snapshot(self, shipment_id: str, company_id: Optional[str] = None) -> Optional[Dict]:
        """Shipment plus its document types and expenses."""
        shipment = await self.get_shipment(shipment_id, company_id)
        if not shipment:
            return None
        attached = await self._attach_children([shipment])
        return attached[0]

    async def list_active_shipments(self, company_id: str, limit: int) -> List[Dict]:
        """Most recently updated shipments that are still being worked on."""
        try:
            shipments = await self.db.shipments.find(
                {"company_id": company_id, "status": {"$nin": list(ACTIVE_EXCLUDED_STATUSES)}},
                SHIPMENT_PROJECTION,
            ).sort("updated_utc", -1).limit(limit).to_list(limit)
        except PyMongoError as e:
            raise StoreError(f"Active shipment listing failed for company {company_id}: {e}") from e
        return await self._attach_children(shipments)

    async def _attach_children(self, shipments: List[Dict]) -> List[Dict]:
        ids = [s["id"] for s in shipments]
        by_id = {s["id"]: s for s in shipments}
        for s in shipments:
            s["documents"] = []
            s["expenses"] = []
        if not ids:
            return shipments
        try:
            documents = await self.db.documents.find(
                {"shipment_id": {"$in": ids}},
                {"_id": 0, "shipment_id": 1, "type": 1},
            ).to_list(None)
            expenses = await self.db.expenses.find(
                {"shipment_id": {"$in": ids}},
                {"_id": 0, "shipment_id": 1, "type": 1, "category": 1, "paid": 1, "amount": 1},
            ).to_list(None)
        except PyMongoError as e:
            raise StoreError(f"Loading documents/expenses failed: {e}") from e

        for d in documents:
            by_id[d["shipment_id"]]["documents"].append({"type": d.get("type")})
        for e in expenses:
            by_id[e["shipment_id"]]["expenses"].append({
                "type": e.get("type"),
                "category": e.get("category"),
                "paid": bool(e.get("paid")),
                "amount": e.get("amount") or 0,
            })
        return shipments

    async def set_status_if_current(self, shipment_id: str, expected: str, new_status: str) -> bool:
        """
        Compare-and-set status write.

        Returns False when the shipment is no longer in the expected status
        (another trigger got there first).
        """
        try:
            result = await self.db.shipments.update_one(
                {"id": shipment_id, "status": expected},
                {"$set": {"status": new_status, "updated_utc": utc_now_iso()}},
            )
        except PyMongoError as e:
            raise StoreError(f"Status write failed for {shipment_id}: {e}") from e
        return result.modified_count == 1

    async def set_status(self, shipment_id: str, new_status: str) -> bool:
        """Unconditional status write for privileged manual changes."""
        try:
            result = await self.db.shipments.update_one(
                {"id": shipment_id},
                {"$set": {"status": new_status, "updated_utc": utc_now_iso()}},
            )
        except PyMongoError as e:
            raise StoreError(f"Status write failed for {shipment_id}: {e}") from e
        return result.matched_count == 1

    async def touch(self, shipment_id: str):
        try:
            await self.db.shipments.update_one(
                {"id": shipment_id}, {"$set": {"updated_utc": utc_now_iso()}}
            )
        except PyMongoError as e:
            raise StoreError(f"Touch failed for {shipment_id}: {e}") from e

    # ==================== TIMELINE / USERS ====================

    async def append_timeline_event(self, event: TimelineEvent):
        try:
            await self.db.timeline_events.insert_one(event.to_dict())
        except PyMongoError as e:
            raise StoreError(f"Timeline append failed for {event.shipment_id}: {e}") from e

    async def get_user_name(self, user_id: Optional[str]) -> Optional[str]:
        if not user_id:
            return None
        try:
            user = await self.db.users.find_one({"id": user_id}, {"_id": 0, "name": 1})
        except PyMongoError as e:
            raise StoreError(f"User lookup failed for {user_id}: {e}") from e
        return user.get("name") if user else None

    # ==================== DOCUMENTS ====================

    async def find_document_of_type(self, shipment_id: str, doc_type: str) -> Optional[Dict]:
        try:
            return await self.db.documents.find_one(
                {"shipment_id": shipment_id, "type": doc_type},
                {"_id": 0, "id": 1, "name": 1},
            )
        except PyMongoError as e:
            raise StoreError(f"Document lookup failed for {shipment_id}: {e}") from e

    async def insert_document(self, document: Dict[str, Any]) -> Dict[str, Any]:
        try:
            await self.db.documents.insert_one(dict(document))
        except PyMongoError as e:
            raise StoreError(f"Document insert failed for {document.get('shipment_id')}: {e}") from e
        await self.touch(document["shipment_id"])
        return document

    # ==================== EXPENSES ====================

    async def get_expense(self, expense_id: str, company_id: Optional[str] = None) -> Optional[Dict]:
        """Expense by id; with company_id, only if its shipment belongs to that company."""
        try:
            expense = await self.db.expenses.find_one({"id": expense_id}, {"_id": 0})
        except PyMongoError as e:
            raise StoreError(f"Expense lookup failed for {expense_id}: {e}") from e
        if not expense:
            return None
        if company_id:
            shipment = await self.get_shipment(expense.get("shipment_id"), company_id)
            if not shipment:
                return None
            expense["tracking_number"] = shipment.get("tracking_number")
        return expense

    async def mark_expense_paid(self, expense_id: str, actor_id: Optional[str]) -> Optional[Dict]:
        """Flip an unpaid expense to paid. None if it was already paid or is gone."""
        try:
            updated = await self.db.expenses.find_one_and_update(
                {"id": expense_id, "paid": False},
                {"$set": {"paid": True, "paid_utc": utc_now_iso(), "paid_by": actor_id}},
                projection={"_id": 0},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise StoreError(f"Expense payment failed for {expense_id}: {e}") from e
        if updated:
            await self.touch(updated["shipment_id"])
        return updated

    async def get_expense_totals(self, company_id: str) -> Dict[str, float]:
        """Provisions and disbursements summed over every shipment of a company."""
        try:
            shipment_ids = await self.db.shipments.distinct("id", {"company_id": company_id})
            rows = await self.db.expenses.aggregate([
                {"$match": {"shipment_id": {"$in": shipment_ids}}},
                {"$group": {"_id": "$type", "total": {"$sum": "$amount"}}},
            ]).to_list(None)
        except PyMongoError as e:
            raise StoreError(f"Expense totals failed for company {company_id}: {e}") from e

        totals = {t.value: 0 for t in ExpenseType}
        for row in rows:
            if row.get("_id") in totals:
                totals[row["_id"]] = row.get("total") or 0
        return totals
