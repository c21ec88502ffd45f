import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, status
from stockroom.core.db import init_db, close_db
from stockroom.api.v1.catalog import router as catalog_router
from stockroom.api.v1.hygiene import router as hygiene_router
from stockroom.api.v1.inventory import router as inventory_router
from stockroom.api.v1.monitor import router as monitor_router
from stockroom.api.v1.orders import router as orders_router
from stockroom.api.v1.purchase_orders import router as purchase_orders_router
from stockroom.api.v1.reports import router as reports_router
from stockroom.core.config import PROJECT_NAME, SEED_DEMO_DATA, VERSION
from stockroom.core.exception_handlers import setup_exception_handlers
from stockroom.scripts.seed_data import seed
from stockroom.services.kitchen import build_kitchen

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
log = logging.getLogger("stockroom")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles startup and shutdown events."""
    log.info(f"Starting {PROJECT_NAME} v{VERSION}...")
    await init_db() # Connect to the outbox DB and generate schemas
    yield
    await close_db()
    log.info(f"{PROJECT_NAME} stopped.")

app = FastAPI(
    title=PROJECT_NAME,
    version=VERSION,
    lifespan=lifespan,
    # Configure API documentation and paths
    docs_url="/docs",
    redoc_url="/redoc"
)

app.state.kitchen = build_kitchen()
if SEED_DEMO_DATA:
    seed(app.state.kitchen)

# Include routers for modular API structure
app.include_router(catalog_router, prefix="/api/v1/catalog", tags=["Catalog"])
app.include_router(inventory_router, prefix="/api/v1/inventory", tags=["Inventory Ledger"])
app.include_router(orders_router, prefix="/api/v1/orders", tags=["Manual Orders"])
app.include_router(monitor_router, prefix="/api/v1/monitor", tags=["Alerts"])
app.include_router(purchase_orders_router, prefix="/api/v1/purchase-orders", tags=["Purchase Orders"])
app.include_router(hygiene_router, prefix="/api/v1/hygiene", tags=["Hygiene"])
app.include_router(reports_router, prefix="/api/v1/reports", tags=["Reports"])


setup_exception_handlers(app)

@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Simple health check endpoint."""
    return {"status": "ok", "app_name": PROJECT_NAME}
