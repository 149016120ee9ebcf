"""
Shared fixtures: an in-memory stand-in for ShipmentStore.
"""

import copy
import pytest
from datetime import datetime, timezone

from services.shipment_store import StoreError
from services.status_order import ACTIVE_EXCLUDED_STATUSES


class InMemoryShipmentStore:
    """Mirrors the ShipmentStore interface over plain dicts."""

    def __init__(self):
        self.shipments = {}
        self.documents = []
        self.expenses = {}
        self.timeline = []
        self.users = {}
        self.status_writes = []
        self.fail_timeline = False
        self.fail_lookup = False
        self.lose_next_race = False

    # ---- seeding helpers ----

    def add_shipment(self, shipment_id="shp-1", status="PENDING", company_id="co-1", **fields):
        shipment = {
            "id": shipment_id,
            "company_id": company_id,
            "tracking_number": fields.pop("tracking_number", f"TRK-{shipment_id}"),
            "status": status,
            "eta": None,
            "ata": None,
            "vessel_name": None,
            "updated_utc": datetime.now(timezone.utc).isoformat(),
        }
        shipment.update(fields)
        self.shipments[shipment_id] = shipment
        return shipment

    def add_document(self, shipment_id, doc_type, name=None):
        self.documents.append({
            "id": f"doc-{len(self.documents) + 1}",
            "shipment_id": shipment_id,
            "type": doc_type,
            "name": name or f"{doc_type}.pdf",
        })

    def add_expense(self, expense_id, shipment_id, type="DISBURSEMENT", category="DD",
                    amount=1000, paid=False, description=None):
        self.expenses[expense_id] = {
            "id": expense_id,
            "shipment_id": shipment_id,
            "type": type,
            "category": category,
            "amount": amount,
            "paid": paid,
            "description": description or f"{category} expense",
        }

    # ---- ShipmentStore interface ----

    async def get_shipment(self, shipment_id, company_id=None):
        if self.fail_lookup:
            raise StoreError("connection refused")
        shipment = self.shipments.get(shipment_id)
        if not shipment or (company_id and shipment["company_id"] != company_id):
            return None
        return copy.deepcopy(shipment)

    def _with_children(self, shipment):
        shipment["documents"] = [
            {"type": d["type"]} for d in self.documents if d["shipment_id"] == shipment["id"]
        ]
        shipment["expenses"] = [
            {"type": e["type"], "category": e["category"], "paid": e["paid"], "amount": e["amount"]}
            for e in self.expenses.values() if e["shipment_id"] == shipment["id"]
        ]
        return shipment

    async def get_shipment_snapshot(self, shipment_id, company_id=None):
        shipment = await self.get_shipment(shipment_id, company_id)
        return self._with_children(shipment) if shipment else None

    async def list_active_shipments(self, company_id, limit):
        if self.fail_lookup:
            raise StoreError("connection refused")
        active = [
            copy.deepcopy(s) for s in self.shipments.values()
            if s["company_id"] == company_id and s["status"] not in ACTIVE_EXCLUDED_STATUSES
        ]
        active.sort(key=lambda s: s.get("updated_utc") or "", reverse=True)
        return [self._with_children(s) for s in active[:limit]]

    async def set_status_if_current(self, shipment_id, expected, new_status):
        if self.lose_next_race:
            self.lose_next_race = False
            return False
        shipment = self.shipments.get(shipment_id)
        if not shipment or shipment["status"] != expected:
            return False
        shipment["status"] = new_status
        self.status_writes.append((shipment_id, expected, new_status))
        return True

    async def set_status(self, shipment_id, new_status):
        shipment = self.shipments.get(shipment_id)
        if not shipment:
            return False
        self.status_writes.append((shipment_id, shipment["status"], new_status))
        shipment["status"] = new_status
        return True

    async def append_timeline_event(self, event):
        if self.fail_timeline:
            raise StoreError("timeline write rejected")
        self.timeline.append(event.to_dict())

    async def get_user_name(self, user_id):
        return self.users.get(user_id)

    async def find_document_of_type(self, shipment_id, doc_type):
        for d in self.documents:
            if d["shipment_id"] == shipment_id and d["type"] == doc_type:
                return {"id": d["id"], "name": d["name"]}
        return None

    async def insert_document(self, document):
        self.documents.append(dict(document))
        return document

    async def get_expense(self, expense_id, company_id=None):
        expense = self.expenses.get(expense_id)
        if not expense:
            return None
        if company_id:
            shipment = self.shipments.get(expense["shipment_id"])
            if not shipment or shipment["company_id"] != company_id:
                return None
        return dict(expense)

    async def mark_expense_paid(self, expense_id, actor_id):
        expense = self.expenses.get(expense_id)
        if not expense or expense["paid"]:
            return None
        expense["paid"] = True
        expense["paid_by"] = actor_id
        return dict(expense)

    async def get_expense_totals(self, company_id):
        if self.fail_lookup:
            raise StoreError("connection refused")
        totals = {"PROVISION": 0, "DISBURSEMENT": 0}
        for e in self.expenses.values():
            shipment = self.shipments.get(e["shipment_id"])
            if shipment and shipment["company_id"] == company_id:
                totals[e["type"]] += e["amount"] or 0
        return totals


@pytest.fixture
def store():
    s = InMemoryShipmentStore()
    s.users["user-1"] = "Mariama Camara"
    return s
