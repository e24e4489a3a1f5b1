"""
API Routers package.

Each module contains a FastAPI router for a specific domain.
"""

from .documents import router as documents_router
from .anomalies import router as anomalies_router
from .products import router as products_router
from .suppliers import router as suppliers_router
from .spending import router as spending_router
from .jobs import router as jobs_router, worker_router

__all__ = [
    "documents_router",
    "anomalies_router",
    "products_router",
    "suppliers_router",
    "spending_router",
    "jobs_router",
    "worker_router",
]
