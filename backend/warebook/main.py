import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from warebook.config import settings
from warebook.database import engine
from warebook.middleware.exceptions import register_exception_handlers
from warebook.routers import bookings, health, pricing, warehouse_staff, warehouses
from warebook.utils.cache import close_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Warebook starting ({settings.environment})")
    yield
    await close_redis()
    await engine.dispose()
    logger.info("Warebook stopped")


app = FastAPI(
    title="Warebook",
    description="Warehouse storage marketplace: pricing, availability and booking lifecycle",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)

# Public reads (quotes, slots, rate tables) and authenticated writes
app.include_router(pricing.router, prefix="/api/v1/pricing", tags=["pricing"])
app.include_router(warehouses.router, prefix="/api/v1/warehouses", tags=["warehouses"])
app.include_router(bookings.router, prefix="/api/v1/bookings", tags=["bookings"])
app.include_router(warehouse_staff.router, prefix="/api/v1/warehouse-staff", tags=["warehouse-staff"])
