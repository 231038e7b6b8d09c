# kibble/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI

from kibble.carrier.transport import get_transport
from kibble.core.config import get_settings
from kibble.database import create_db_and_tables

# Import models so SQLModel metadata is populated before create_all()
from kibble.models import customer as _customer_models  # noqa: F401
from kibble.models import product as _product_models  # noqa: F401
from kibble.models import order as _order_models  # noqa: F401
from kibble.models import state as _state_models  # noqa: F401


# Routers
from kibble.routers.auth import router as auth_router
from kibble.routers.customers import router as customers_router
from kibble.routers.products import router as products_router
from kibble.routers.cart import router as cart_router
from kibble.routers.shipping import router as shipping_router
from kibble.routers.checkout import router as checkout_router
from kibble.routers.orders import router as orders_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.

    Shutdown:
      - Close the carrier HTTP client.
    """
    logger.info("Startup: connecting to the database...")
    try:
        create_db_and_tables()
        logger.info("Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"Startup: DB connection FAILED: {e}")
        raise
    yield
    get_transport().close()


app = FastAPI(
    title=settings.PROJECT_NAME or "Kitty Kibble API",
    version="0.1.0",
    lifespan=lifespan,
)


# --- CORS configuration ---
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Versioned API prefix, e.g. /api/v1
app.include_router(auth_router, prefix=settings.API_V1_STR)
app.include_router(customers_router, prefix=settings.API_V1_STR)
app.include_router(products_router, prefix=settings.API_V1_STR)
app.include_router(cart_router, prefix=settings.API_V1_STR)
app.include_router(shipping_router, prefix=settings.API_V1_STR)
app.include_router(checkout_router, prefix=settings.API_V1_STR)
app.include_router(orders_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "kitty-kibble-backend"}
