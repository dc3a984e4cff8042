"""
Routers for the stock ledger service
"""

from .auth import router as auth_router
from .products import router as products_router
from .stock import router as stock_router
from .ledger import router as ledger_router
from .reports import router as reports_router
from .notifications import router as notifications_router

__all__ = [
    "auth_router",
    "products_router",
    "stock_router",
    "ledger_router",
    "reports_router",
    "notifications_router",
]
