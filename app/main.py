# app/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI

from app.core.config import get_settings
from app.database import create_db_and_tables

# Table models must be imported before create_all()
from app.models import user as _user_models  # noqa: F401
from app.models import restaurant as _restaurant_models  # noqa: F401
from app.models import menu as _menu_models  # noqa: F401
from app.models import coupon as _coupon_models  # noqa: F401
from app.models import inventory as _inventory_models  # noqa: F401
from app.models import tax as _tax_models  # noqa: F401
from app.models import settings as _settings_models  # noqa: F401
from app.models import order as _order_models  # noqa: F401
from app.models import delivery as _delivery_models  # noqa: F401

from app.routers.orders import router as orders_router
from app.routers.deliveries import router as deliveries_router
from app.routers.coupons import router as coupons_router

settings = get_settings()

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup creates any missing tables; a database that cannot be reached
    aborts the boot.
    """
    logger.info("Startup: creating POS tables if missing")
    try:
        create_db_and_tables()
    except Exception:
        logger.exception("Startup: database unavailable")
        raise
    logger.info("Startup: database ready")
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

# POS terminals and kitchen displays run in the browser
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for router in (orders_router, deliveries_router, coupons_router):
    app.include_router(router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "restaurant-pos-backend"}
