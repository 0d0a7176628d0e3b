from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import os

# Scheduler
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .database import db_manager, AsyncSessionLocal
from .routers import analytics, auth, customers, invoices, payments
from .services.invoices import InvoiceService

# Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("billing-service")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
SCHEDULER_ENABLED = os.getenv("BILLING_SCHEDULER_ENABLED", "false").lower() in ("1", "true", "yes")


# --- SCHEDULER (Segundo Plano) ---
async def run_mark_overdue_job():
    """Tarea diaria: pasa a OVERDUE las facturas vencidas."""
    logger.info("⏰ [SCHEDULER] Revisando facturas vencidas...")
    try:
        async with AsyncSessionLocal() as db:
            updated = await InvoiceService.mark_as_overdue(db)
        logger.info(f"⏰ [SCHEDULER] Tarea finalizada. Facturas vencidas: {updated}")
    except Exception as e:
        logger.error(f"❌ [SCHEDULER] Falló la tarea: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 1. Crear tablas al inicio
    await db_manager.create_tables()

    # 2. Scheduler opcional
    scheduler = None
    if SCHEDULER_ENABLED:
        scheduler = AsyncIOScheduler(timezone="UTC")
        scheduler.add_job(run_mark_overdue_job, "interval", hours=24)
        scheduler.add_job(run_mark_overdue_job)  # Ejecutar ya al inicio
        scheduler.start()
        logger.info("⏰ Scheduler iniciado.")

    yield

    # 3. Apagado
    if scheduler:
        scheduler.shutdown()


# --- Configuración de FastAPI ---
app = FastAPI(
    title="NetCharge Pro Billing",
    description="Clientes, facturación mensual y cobros (efectivo, transferencia y QRIS) de un servicio WiFi.",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(customers.router, prefix="/api")
app.include_router(invoices.router, prefix="/api")
app.include_router(payments.router, prefix="/api")
app.include_router(analytics.router, prefix="/api")
app.include_router(auth.router, prefix="/api")


@app.get("/health")
def health_check():
    return {"status": "ok", "service": "billing-service"}
