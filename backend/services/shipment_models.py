"""
Transit Hub - Shipment Domain Types

Enumerations for documents and expenses attached to a shipment, and the
append-only timeline record written on every status change.
"""

import math
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional


class DocumentType(str, Enum):
    """Documents that can be attached to a shipment file."""
    BL = "BL"                                   # Bill of lading
    INVOICE = "INVOICE"                         # Commercial invoice
    PACKING_LIST = "PACKING_LIST"
    DDI = "DDI"                                 # Import declaration request
    PHYTO_CERT = "PHYTO_CERT"
    ORIGIN_CERT = "ORIGIN_CERT"
    EUR1 = "EUR1"
    TRANSIT_ORDER = "TRANSIT_ORDER"
    DECLARATION = "DECLARATION"                 # Customs declaration
    LIQUIDATION = "LIQUIDATION"                 # Duty assessment
    QUITTANCE = "QUITTANCE"                     # Duty payment receipt
    BAE = "BAE"                                 # Customs release ("bon a enlever")
    DO = "DO"                                   # Carrier delivery order
    EXIT_NOTE = "EXIT_NOTE"                     # Port exit note
    EIR = "EIR"
    TERMINAL_INVOICE = "TERMINAL_INVOICE"
    TERMINAL_RECEIPT = "TERMINAL_RECEIPT"
    MSC_INVOICE = "MSC_INVOICE"
    DELIVERY_NOTE = "DELIVERY_NOTE"
    CUSTOMS_INVOICE = "CUSTOMS_INVOICE"
    OTHER = "OTHER"


class ExpenseType(str, Enum):
    PROVISION = "PROVISION"          # Money received from the client
    DISBURSEMENT = "DISBURSEMENT"    # Money paid out on the client's behalf


class ExpenseCategory(str, Enum):
    # Customs duties
    DD = "DD"
    TVA = "TVA"
    RTL = "RTL"
    PC = "PC"
    CA = "CA"
    BFU = "BFU"
    DDI_FEE = "DDI_FEE"
    # Terminal handling
    ACCONAGE = "ACCONAGE"
    BRANCHEMENT = "BRANCHEMENT"
    SURESTARIES = "SURESTARIES"
    MANUTENTION = "MANUTENTION"
    PASSAGE_TERRE = "PASSAGE_TERRE"
    RELEVAGE = "RELEVAGE"
    SECURITE_TERMINAL = "SECURITE_TERMINAL"
    # Shipping line
    DO_FEE = "DO_FEE"
    SEAWAY_BILL = "SEAWAY_BILL"
    MANIFEST_FEE = "MANIFEST_FEE"
    CONTAINER_DAMAGE = "CONTAINER_DAMAGE"
    SECURITE_MSC = "SECURITE_MSC"
    SURCHARGE = "SURCHARGE"
    PAC = "PAC"
    ADP_FEE = "ADP_FEE"
    # Transport and services
    TRANSPORT = "TRANSPORT"
    TRANSPORT_ADD = "TRANSPORT_ADD"
    HONORAIRES = "HONORAIRES"
    COMMISSION = "COMMISSION"
    ASSURANCE = "ASSURANCE"
    MAGASINAGE = "MAGASINAGE"
    SCANNER = "SCANNER"
    ESCORTE = "ESCORTE"
    AUTRE = "AUTRE"


def round_half_up(amount: float) -> int:
    """Round half up, as the customs liquidation slips and the dashboard figures do."""
    return int(math.floor(amount + 0.5))


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_utc(value) -> Optional[datetime]:
    """Accept a datetime or an ISO string; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class TimelineEvent:
    """Immutable audit record attached to a shipment."""

    def __init__(
        self,
        shipment_id: str,
        action: str,
        description: Optional[str] = None,
        actor_id: Optional[str] = None,
        actor_name: Optional[str] = None,
    ):
        self.id = str(uuid.uuid4())
        self.shipment_id = shipment_id
        self.action = action
        self.description = description
        self.actor_id = actor_id
        self.actor_name = actor_name
        self.date_utc = utc_now_iso()

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "shipment_id": self.shipment_id,
            "action": self.action,
            "description": self.description,
            "actor_id": self.actor_id,
            "actor_name": self.actor_name,
            "date_utc": self.date_utc,
        }
