"""
Transit Hub - Routes Package

Modular API routers for the shipment back-office.
"""

from .shipments import router as shipments_router, set_dependencies as set_shipments_deps
from .finance import router as finance_router, set_dependencies as set_finance_deps
from .customs import router as customs_router

__all__ = [
    'shipments_router', 'set_shipments_deps',
    'finance_router', 'set_finance_deps',
    'customs_router',
]
