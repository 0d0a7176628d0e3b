import calendar
import logging
import random
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from sqlalchemy import func, update, delete

from .. import crud, models, schemas
from .customers import CustomerService

logger = logging.getLogger(__name__)

MONTH_NAMES = [
    "Enero", "Febrero", "Marzo", "Abril", "Mayo", "Junio",
    "Julio", "Agosto", "Septiembre", "Octubre", "Noviembre", "Diciembre"
]


def generate_invoice_number(today: Optional[date] = None) -> str:
    """INV-<año><mes>-<4 dígitos aleatorios>. Único solo estadísticamente."""
    today = today or datetime.now(timezone.utc).date()
    return f"INV-{today.year}{today.month:02d}-{random.randint(0, 9999):04d}"


def current_billing_period(today: date):
    """Periodo del mes calendario actual y vencimiento el día 10 del mes siguiente."""
    period_start = today.replace(day=1)
    last_day = calendar.monthrange(today.year, today.month)[1]
    period_end = today.replace(day=last_day)

    if today.month == 12:
        due_date = date(today.year + 1, 1, 10)
    else:
        due_date = date(today.year, today.month + 1, 10)
    return period_start, period_end, due_date


def apply_paid_amount(invoice: models.Invoice, amount: Decimal) -> bool:
    """
    Suma el abono a la factura. Marca PAID cuando lo pagado cubre el monto.
    No hace commit: el llamador decide la transacción.
    """
    invoice.paid_amount = Decimal(invoice.paid_amount or 0) + Decimal(amount)
    if invoice.paid_amount >= invoice.amount:
        invoice.status = models.InvoiceStatus.PAID.value
        return True
    return False


class InvoiceService:

    @staticmethod
    async def create(db: AsyncSession, data: schemas.InvoiceCreate) -> models.Invoice:
        """
        Emite una factura para un cliente existente.

        El número se genera con año/mes actual y sufijo aleatorio; lo pagado
        arranca en 0 y el estado es PENDING salvo que se indique otro.
        """
        await CustomerService.get(db, data.customer_id)

        values = crud.to_column_values(data.model_dump(exclude={"status"}))
        db_invoice = models.Invoice(
            **values,
            invoice_number=generate_invoice_number(),
            paid_amount=Decimal("0.00"),
            status=(data.status or models.InvoiceStatus.PENDING).value
        )
        db.add(db_invoice)
        await db.commit()
        await db.refresh(db_invoice)
        return db_invoice

    @staticmethod
    async def list(db: AsyncSession, invoice_status: Optional[str] = None):
        query = select(models.Invoice).options(selectinload(models.Invoice.customer))
        if invoice_status:
            query = query.filter(models.Invoice.status == invoice_status)
        query = query.order_by(models.Invoice.created_at.desc(), models.Invoice.id.desc())
        result = await db.execute(query)
        return result.scalars().all()

    @staticmethod
    async def get(db: AsyncSession, invoice_id: int) -> models.Invoice:
        """Factura con cliente y pagos cargados."""
        invoice = await crud.get_invoice(db, invoice_id, with_customer=True, with_payments=True)
        if not invoice:
            raise HTTPException(status_code=404, detail="Factura no encontrada")
        return invoice

    @staticmethod
    async def get_by_customer(db: AsyncSession, customer_id: int):
        query = (
            select(models.Invoice)
            .options(selectinload(models.Invoice.payments))
            .filter(models.Invoice.customer_id == customer_id)
            .order_by(models.Invoice.created_at.desc(), models.Invoice.id.desc())
        )
        result = await db.execute(query)
        return result.scalars().all()

    @staticmethod
    async def update(db: AsyncSession, invoice_id: int, data: schemas.InvoiceUpdate) -> models.Invoice:
        invoice = await crud.get_invoice(db, invoice_id)
        if not invoice:
            raise HTTPException(status_code=404, detail="Factura no encontrada")

        for field, value in crud.to_column_values(data.model_dump(exclude_unset=True)).items():
            setattr(invoice, field, value)

        db.add(invoice)
        await db.commit()
        return await InvoiceService.get(db, invoice_id)

    @staticmethod
    async def delete(db: AsyncSession, invoice_id: int) -> None:
        invoice = await crud.get_invoice(db, invoice_id)
        if not invoice:
            raise HTTPException(status_code=404, detail="Factura no encontrada")

        await db.execute(delete(models.Invoice).where(models.Invoice.id == invoice_id))
        await db.commit()
        logger.info(f"🗑️ Factura eliminada: {invoice.invoice_number}")

    @staticmethod
    async def update_paid_amount(db: AsyncSession, invoice_id: int, amount: Decimal) -> models.Invoice:
        """Registra un abono sobre la factura. Única vía por la que una factura pasa a PAID."""
        invoice = await InvoiceService.get(db, invoice_id)
        if apply_paid_amount(invoice, amount):
            logger.info(f"✅ Factura {invoice.invoice_number} pagada por completo")

        db.add(invoice)
        await db.commit()
        return await InvoiceService.get(db, invoice_id)

    @staticmethod
    async def mark_as_overdue(db: AsyncSession) -> int:
        """
        Pasa a OVERDUE las facturas PENDING con fecha de vencimiento pasada.

        Idempotente: una segunda corrida solo afecta facturas que venzan entre medio.

        Returns:
            int: Cantidad de facturas actualizadas.
        """
        today = datetime.now(timezone.utc).date()
        stmt = (
            update(models.Invoice)
            .where(
                models.Invoice.status == models.InvoiceStatus.PENDING.value,
                models.Invoice.due_date < today
            )
            .values(status=models.InvoiceStatus.OVERDUE.value)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.commit()

        affected = result.rowcount or 0
        logger.info(f"⏰ Facturas marcadas como vencidas: {affected}")
        return affected

    @staticmethod
    async def generate_monthly_invoices(db: AsyncSession, skip_existing: bool = False) -> List[models.Invoice]:
        """
        Genera la factura del mes en curso para cada cliente activo.

        Cada factura se confirma por separado: si una falla, las anteriores quedan creadas.
        Sin `skip_existing`, dos corridas en el mismo mes duplican las facturas.

        Args:
            db (AsyncSession): Sesión DB.
            skip_existing (bool): Omite clientes que ya tienen factura para este periodo.

        Returns:
            List[models.Invoice]: Facturas creadas.
        """
        today = datetime.now(timezone.utc).date()
        period_start, period_end, due_date = current_billing_period(today)
        description = f"Suscripción WiFi {MONTH_NAMES[today.month - 1]} {today.year}"

        active_customers = await CustomerService.list_active(db)

        already_billed = set()
        if skip_existing:
            query = select(models.Invoice.customer_id).filter(
                models.Invoice.billing_period_start == period_start
            )
            already_billed = set((await db.execute(query)).scalars().all())

        invoices = []
        skipped = 0
        for customer in active_customers:
            if customer.id in already_billed:
                skipped += 1
                continue

            invoice = await InvoiceService.create(db, schemas.InvoiceCreate(
                customer_id=customer.id,
                amount=customer.monthly_rate,
                billing_period_start=period_start,
                billing_period_end=period_end,
                due_date=due_date,
                description=description
            ))
            invoices.append(invoice)

        logger.info(
            f"🧾 Generación mensual {period_start:%Y-%m}: {len(invoices)} facturas creadas, {skipped} omitidas"
        )
        return invoices

    @staticmethod
    async def dashboard_stats(db: AsyncSession):
        """Montos pendientes/vencidos y facturas cobradas en el mes (por fecha de actualización)."""
        now = datetime.now(timezone.utc)
        start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        async def sum_amount_by_status(status_value: str):
            query = select(func.sum(models.Invoice.amount)).filter(models.Invoice.status == status_value)
            return (await db.execute(query)).scalar() or 0

        total_pending = await sum_amount_by_status(models.InvoiceStatus.PENDING.value)
        total_overdue = await sum_amount_by_status(models.InvoiceStatus.OVERDUE.value)

        paid_query = select(
            func.count(models.Invoice.id),
            func.sum(models.Invoice.paid_amount)
        ).filter(
            models.Invoice.status == models.InvoiceStatus.PAID.value,
            models.Invoice.updated_at >= start_of_month,
            models.Invoice.updated_at <= now
        )
        paid_count, paid_sum = (await db.execute(paid_query)).one()

        return {
            "total_pending": float(total_pending),
            "total_overdue": float(total_overdue),
            "total_paid_this_month": paid_count or 0,
            "total_revenue_this_month": float(paid_sum or 0)
        }
