"""
Transit Hub - Configuration

Environment-driven settings shared by the services. Values are read once at
import time; the server loads .env before importing the services.
"""

import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


# =============================================================================
# DATABASE
# =============================================================================

MONGO_URL = os.environ.get("MONGO_URL", "mongodb://localhost:27017")
DB_NAME = os.environ.get("DB_NAME", "transit_hub")


# =============================================================================
# ALERT ENGINE
# =============================================================================

# Most-recently-updated active shipments scanned per dashboard refresh
ALERT_WORKING_SET_SIZE = _int_env("ALERT_WORKING_SET_SIZE", 30)

# Unpaid disbursements (GNF) above which a finance alert is raised
UNPAID_DISBURSEMENT_THRESHOLD = _float_env("UNPAID_DISBURSEMENT_THRESHOLD", 50_000_000)

ETA_WARNING_HOURS = _int_env("ETA_WARNING_HOURS", 48)
SURESTARIES_WARNING_DAYS = _int_env("SURESTARIES_WARNING_DAYS", 4)
SURESTARIES_DANGER_DAYS = _int_env("SURESTARIES_DANGER_DAYS", 7)
STALE_AFTER_DAYS = _int_env("STALE_AFTER_DAYS", 5)


# =============================================================================
# AI MODELS
# =============================================================================

GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
AI_MODELS = [
    m.strip()
    for m in os.environ.get("AI_MODELS", "gemini-2.5-flash,gemini-2.0-flash,gemini-1.5-flash").split(",")
    if m.strip()
]
AI_PROBE_TIMEOUT_SECONDS = _float_env("AI_PROBE_TIMEOUT_SECONDS", 20.0)
