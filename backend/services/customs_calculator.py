"""
Transit Hub - Customs Duty Calculator

Guinean import duties for the standard IM4 regime (release for consumption).
All amounts are in GNF and rounded to the franc.

- DD   customs duty          on CIF
- RTL  processing levy       on CIF
- TVA  VAT                   on CIF + DD
- PC   community levy        on CIF
- CA   African contribution  on CIF
- BFU  unified freight office
"""

from dataclasses import dataclass, asdict
from typing import Dict, Optional

from services.shipment_models import round_half_up

DISCLAIMER = (
    "These figures are indicative. Actual rates depend on the HS code and the "
    "regulations in force."
)

# Reference exchange rates to GNF used for quick quotes
REFERENCE_EXCHANGE_RATES = {
    "USD": 8646,
    "EUR": 9400,
    "GNF": 1,
}


@dataclass
class DutyRates:
    dd: float
    rtl: float
    tva: float
    pc: float
    ca: float
    bfu: float


IM4_RATES = DutyRates(dd=0.35, rtl=0.02, tva=0.18, pc=0.005, ca=0.0, bfu=0.005)


@dataclass
class DutyBreakdown:
    dd: int
    rtl: int
    tva: int
    pc: int
    ca: int
    bfu: int
    total: int

    def to_dict(self) -> Dict:
        return asdict(self)


def calculate_duties(cif_gnf: float, rates: DutyRates = IM4_RATES) -> DutyBreakdown:
    if cif_gnf < 0:
        raise ValueError("CIF value cannot be negative")
    dd = round_half_up(cif_gnf * rates.dd)
    rtl = round_half_up(cif_gnf * rates.rtl)
    tva = round_half_up((cif_gnf + dd) * rates.tva)
    pc = round_half_up(cif_gnf * rates.pc)
    ca = round_half_up(cif_gnf * rates.ca)
    bfu = round_half_up(cif_gnf * rates.bfu)
    return DutyBreakdown(dd=dd, rtl=rtl, tva=tva, pc=pc, ca=ca, bfu=bfu,
                         total=dd + rtl + tva + pc + ca + bfu)


# =============================================================================
# QUICK QUOTE
# =============================================================================

QUOTE_RATES = DutyRates(dd=0.35, rtl=0.02, tva=0.18, pc=0.005, ca=0.0025, bfu=0.0)


def bfu_flat_fee(value_gnf: float) -> int:
    if value_gnf > 100_000_000:
        return 500_000
    if value_gnf > 50_000_000:
        return 350_000
    return 200_000


def estimate_import_duties(value: float, currency: str = "USD", hs_code: Optional[str] = None) -> Dict:
    """Quote for the calculator screen: converts to GNF, BFU as a flat fee."""
    currency = (currency or "USD").upper()
    rate = REFERENCE_EXCHANGE_RATES.get(currency, REFERENCE_EXCHANGE_RATES["USD"])
    value_gnf = value * rate

    dd = round_half_up(value_gnf * QUOTE_RATES.dd)
    rtl = round_half_up(value_gnf * QUOTE_RATES.rtl)
    pc = round_half_up(value_gnf * QUOTE_RATES.pc)
    ca = round_half_up(value_gnf * QUOTE_RATES.ca)
    tva_base = value_gnf + dd
    tva = round_half_up(tva_base * QUOTE_RATES.tva)
    bfu = bfu_flat_fee(value_gnf)

    return {
        "hs_code": hs_code,
        "cif_value": value,
        "cif_currency": currency,
        "exchange_rate": rate,
        "cif_value_gnf": value_gnf,
        "duties": {
            "dd": {"rate": QUOTE_RATES.dd * 100, "amount": dd},
            "rtl": {"rate": QUOTE_RATES.rtl * 100, "amount": rtl},
            "pc": {"rate": QUOTE_RATES.pc * 100, "amount": pc},
            "ca": {"rate": QUOTE_RATES.ca * 100, "amount": ca},
            "tva": {"rate": QUOTE_RATES.tva * 100, "base": tva_base, "amount": tva},
            "bfu": {"amount": bfu},
        },
        "total_duties": dd + rtl + pc + ca + tva + bfu,
        "disclaimer": DISCLAIMER,
    }
