import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.core.config import settings
from backend.core.database import init_db
from backend.core.worker import init_worker, stop_scheduler
from backend.api.routers import (
    documents_router, anomalies_router, products_router, suppliers_router,
    spending_router, jobs_router, worker_router
)

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown."""
    # Startup
    init_db()
    try:
        init_worker()
    except Exception as e:
        logger.warning(f"Failed to start worker: {e}")

    yield  # Application runs here

    # Shutdown
    stop_scheduler()


app = FastAPI(title="Kitchen Documents & Inventory", version=VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for router in (
    documents_router, anomalies_router, products_router, suppliers_router,
    spending_router, jobs_router, worker_router
):
    app.include_router(router)


@app.get("/api/health")
def health_check():
    return {"status": "ok", "version": VERSION}
