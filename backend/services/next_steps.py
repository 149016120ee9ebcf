"""
Transit Hub - Next Steps

Derives the actions still required on a shipment from its status and the
documents/expenses already recorded. Pure function: no I/O, and the list keeps
the order in which each branch appends its steps.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Iterable, List, Optional

from services.shipment_models import DocumentType, ExpenseType
from services.status_order import ShipmentStatus


@dataclass
class NextStep:
    label: str
    action: str                     # add_document | pay_expenses | update_delivery | invoice
    priority: str                   # high | medium | low
    document_needed: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)


def _add_document(label: str, doc_type: DocumentType, priority: str = "high") -> NextStep:
    return NextStep(label=label, action="add_document", priority=priority, document_needed=doc_type.value)


def get_next_steps(
    status,
    documents: Iterable[Dict],
    expenses: Iterable[Dict],
) -> List[NextStep]:
    status = getattr(status, "value", status)
    doc_types = {d.get("type") for d in documents}
    has_unpaid = any(
        e.get("type") == ExpenseType.DISBURSEMENT.value and not e.get("paid")
        for e in expenses
    )
    steps: List[NextStep] = []

    if status in (ShipmentStatus.DRAFT.value, ShipmentStatus.PENDING.value):
        if DocumentType.BL.value not in doc_types:
            steps.append(_add_document("Add the bill of lading", DocumentType.BL))
        if DocumentType.INVOICE.value not in doc_types:
            steps.append(_add_document("Add the commercial invoice", DocumentType.INVOICE))
        steps.append(_add_document("Obtain the DDI", DocumentType.DDI, priority="medium"))

    elif status == ShipmentStatus.ARRIVED.value:
        if DocumentType.DDI.value not in doc_types:
            steps.append(_add_document("Obtain the DDI", DocumentType.DDI))

    elif status == ShipmentStatus.DDI_OBTAINED.value:
        steps.append(_add_document("File the customs declaration", DocumentType.DECLARATION))

    elif status == ShipmentStatus.DECLARATION_FILED.value:
        steps.append(_add_document("Obtain the liquidation", DocumentType.LIQUIDATION))

    elif status == ShipmentStatus.LIQUIDATION_ISSUED.value:
        if has_unpaid:
            steps.append(NextStep("Pay the customs duties", "pay_expenses", "high"))
        steps.append(_add_document("Add the quittance", DocumentType.QUITTANCE))

    elif status == ShipmentStatus.CUSTOMS_PAID.value:
        steps.append(_add_document("Obtain the BAE", DocumentType.BAE))

    elif status == ShipmentStatus.BAE_ISSUED.value:
        steps.append(NextStep("Pay the terminal fees", "pay_expenses", "high"))
        if (DocumentType.TERMINAL_INVOICE.value not in doc_types
                and DocumentType.TERMINAL_RECEIPT.value not in doc_types):
            steps.append(_add_document("Add the terminal invoice/receipt", DocumentType.TERMINAL_INVOICE,
                                       priority="medium"))

    elif status == ShipmentStatus.TERMINAL_PAID.value:
        steps.append(_add_document("Obtain the delivery order", DocumentType.DO))

    elif status == ShipmentStatus.DO_RELEASED.value:
        steps.append(_add_document("Obtain the exit note", DocumentType.EXIT_NOTE))

    elif status == ShipmentStatus.EXIT_NOTE_ISSUED.value:
        steps.append(NextStep("Arrange the delivery", "update_delivery", "high"))

    elif status == ShipmentStatus.IN_DELIVERY.value:
        steps.append(_add_document("Confirm the delivery", DocumentType.DELIVERY_NOTE))

    elif status == ShipmentStatus.DELIVERED.value:
        if has_unpaid:
            steps.append(NextStep("Settle the remaining disbursements", "pay_expenses", "medium"))
        steps.append(NextStep("Issue the invoice", "invoice", "medium"))

    return steps
