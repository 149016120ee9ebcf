"""
Transit Hub - Workflow Triggers

Pure mappings from a triggering event to the status a shipment should reach.
Both tables are intentionally partial: an event with no entry is a no-op.
"""

from typing import Dict, Optional

from services.shipment_models import DocumentType, ExpenseCategory
from services.status_order import ShipmentStatus, StatusLike, rank


# =============================================================================
# DOCUMENT TRIGGERS
# =============================================================================

DOCUMENT_STATUS_MAP: Dict[str, ShipmentStatus] = {
    DocumentType.BL.value: ShipmentStatus.PENDING,
    DocumentType.DDI.value: ShipmentStatus.DDI_OBTAINED,
    DocumentType.DECLARATION.value: ShipmentStatus.DECLARATION_FILED,
    DocumentType.LIQUIDATION.value: ShipmentStatus.LIQUIDATION_ISSUED,
    DocumentType.QUITTANCE.value: ShipmentStatus.CUSTOMS_PAID,
    DocumentType.BAE.value: ShipmentStatus.BAE_ISSUED,
    DocumentType.TERMINAL_INVOICE.value: ShipmentStatus.TERMINAL_PAID,
    DocumentType.TERMINAL_RECEIPT.value: ShipmentStatus.TERMINAL_PAID,
    DocumentType.DO.value: ShipmentStatus.DO_RELEASED,
    DocumentType.EXIT_NOTE.value: ShipmentStatus.EXIT_NOTE_ISSUED,
    DocumentType.DELIVERY_NOTE.value: ShipmentStatus.DELIVERED,
}


def _value(item) -> Optional[str]:
    return getattr(item, "value", item)


def target_for_document(document_type) -> Optional[ShipmentStatus]:
    """Status a newly added document pushes the shipment to, if any."""
    return DOCUMENT_STATUS_MAP.get(_value(document_type))


def document_advances(document_type, current_status: StatusLike) -> Optional[ShipmentStatus]:
    """Target status when the document moves the shipment strictly forward."""
    target = target_for_document(document_type)
    if target is None or rank(target) <= rank(current_status):
        return None
    return target


# =============================================================================
# EXPENSE TRIGGERS
# =============================================================================

TERMINAL_EXPENSE_CATEGORIES = frozenset({
    ExpenseCategory.ACCONAGE.value,
    ExpenseCategory.BRANCHEMENT.value,
    ExpenseCategory.SURESTARIES.value,
    ExpenseCategory.MANUTENTION.value,
    ExpenseCategory.PASSAGE_TERRE.value,
    ExpenseCategory.RELEVAGE.value,
    ExpenseCategory.SECURITE_TERMINAL.value,
})

# Terminal fees only advance a shipment whose BAE has just been issued
EXPENSE_TRIGGER_SOURCE = ShipmentStatus.BAE_ISSUED
EXPENSE_TRIGGER_TARGET = ShipmentStatus.TERMINAL_PAID


def is_terminal_category(category) -> bool:
    return _value(category) in TERMINAL_EXPENSE_CATEGORIES


def target_for_expense(category, current_status: StatusLike) -> Optional[ShipmentStatus]:
    """TERMINAL_PAID when a terminal fee is paid on a BAE_ISSUED shipment."""
    if not is_terminal_category(category):
        return None
    if _value(current_status) != EXPENSE_TRIGGER_SOURCE.value:
        return None
    return EXPENSE_TRIGGER_TARGET


# =============================================================================
# FIELD HINTS
# =============================================================================

# Shipment fields a user should fill from each document once it is uploaded
DOCUMENT_FIELD_HINTS: Dict[str, Dict[str, object]] = {
    DocumentType.BL.value: {
        "label": "Bill of lading",
        "fields": ["bl_number", "vessel_name", "voyage_number", "port_of_loading",
                   "port_of_discharge", "client_name", "description", "gross_weight",
                   "package_count"],
    },
    DocumentType.INVOICE.value: {
        "label": "Commercial invoice",
        "fields": ["cif_value", "cif_currency", "supplier_name", "supplier_country",
                   "description", "hs_code"],
    },
    DocumentType.DDI.value: {
        "label": "DDI",
        "fields": ["ddi_number"],
    },
    DocumentType.DECLARATION.value: {
        "label": "Customs declaration",
        "fields": ["declaration_number", "customs_regime", "hs_code", "cif_value",
                   "exchange_rate"],
    },
    DocumentType.LIQUIDATION.value: {
        "label": "Liquidation",
        "fields": ["liquidation_number", "duty_dd", "duty_rtl", "duty_tva", "duty_pc",
                   "duty_ca", "duty_bfu", "total_duties"],
    },
    DocumentType.QUITTANCE.value: {
        "label": "Quittance",
        "fields": ["quittance_number"],
    },
    DocumentType.BAE.value: {
        "label": "BAE",
        "fields": ["bae_number"],
    },
    DocumentType.DO.value: {
        "label": "Delivery order",
        "fields": ["do_number"],
    },
    DocumentType.EXIT_NOTE.value: {
        "label": "Exit note",
        "fields": ["bs_number"],
    },
}


def field_hints_for(document_type) -> Optional[Dict[str, object]]:
    return DOCUMENT_FIELD_HINTS.get(_value(document_type))
