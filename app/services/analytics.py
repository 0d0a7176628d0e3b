from datetime import date, datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from sqlalchemy import func, extract

from .. import models


# periodo -> (días hacia atrás, agrupación)
PERIODS = {
    "7days": (7, "day"),
    "30days": (30, "day"),
    "12months": (365, "month"),
}
DEFAULT_PERIOD = "30days"

COMPLETED = models.PaymentStatus.COMPLETED.value


def period_config(period: str):
    """Periodos desconocidos se tratan como 30days."""
    days, group_by = PERIODS.get(period, PERIODS[DEFAULT_PERIOD])
    start = datetime.now(timezone.utc) - timedelta(days=days)
    return start, group_by


def percent_change(current, previous) -> int:
    if not previous:
        return 100 if current > 0 else 0
    return round((current - previous) / previous * 100)


def _to_date(value) -> date:
    # func.date devuelve texto en SQLite y date en PostgreSQL
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    if isinstance(value, datetime):
        return value.date()
    return value


def _bucket_columns(column, group_by: str):
    if group_by == "month":
        return [extract("year", column).label("year"), extract("month", column).label("month")]
    return [func.date(column).label("day")]


def _bucket_date(row, group_by: str) -> date:
    if group_by == "month":
        return date(int(row.year), int(row.month), 1)
    return _to_date(row.day)


async def _sum_payments(db: AsyncSession, start=None, end=None) -> float:
    """Suma de todos los pagos registrados en [start, end), sin importar su estado."""
    query = select(func.sum(models.Payment.amount))
    if start is not None:
        query = query.filter(models.Payment.created_at >= start)
    if end is not None:
        query = query.filter(models.Payment.created_at < end)
    return float((await db.execute(query)).scalar() or 0)


async def _count(db: AsyncSession, model, *filters) -> int:
    query = select(func.count(model.id))
    if filters:
        query = query.filter(*filters)
    return (await db.execute(query)).scalar() or 0


class AnalyticsService:
    """Reportes de solo lectura para el panel de administración."""

    @staticmethod
    async def revenue_stats(db: AsyncSession, period: str = DEFAULT_PERIOD):
        """
        Ingresos de pagos completados agrupados por día o por mes.

        Solo aparecen los intervalos con pagos; sin pagos la serie queda vacía.
        """
        start, group_by = period_config(period)
        buckets = _bucket_columns(models.Payment.created_at, group_by)

        query = (
            select(*buckets, func.sum(models.Payment.amount).label("revenue"))
            .filter(
                models.Payment.status == COMPLETED,
                models.Payment.created_at >= start
            )
            .group_by(*buckets)
            .order_by(*buckets)
        )
        rows = (await db.execute(query)).all()

        data = [{"date": _bucket_date(row, group_by), "revenue": float(row.revenue or 0)} for row in rows]
        return {
            "period": period,
            "data": data,
            "total": sum(point["revenue"] for point in data)
        }

    @staticmethod
    async def customer_growth(db: AsyncSession, period: str = DEFAULT_PERIOD):
        start, group_by = period_config(period)
        buckets = _bucket_columns(models.Customer.created_at, group_by)

        query = (
            select(*buckets, func.count(models.Customer.id).label("quantity"))
            .filter(models.Customer.created_at >= start)
            .group_by(*buckets)
            .order_by(*buckets)
        )
        rows = (await db.execute(query)).all()

        data = []
        cumulative = 0
        for row in rows:
            cumulative += row.quantity
            data.append({"date": _bucket_date(row, group_by), "new": row.quantity, "total": cumulative})

        return {"period": period, "data": data, "total_new": cumulative}

    @staticmethod
    async def payment_stats(db: AsyncSession):
        since = datetime.now(timezone.utc) - timedelta(days=30)
        total = await _count(db, models.Payment, models.Payment.status == COMPLETED)
        recent = await _count(
            db, models.Payment,
            models.Payment.status == COMPLETED,
            models.Payment.created_at >= since
        )

        query = (
            select(
                models.Payment.method,
                func.count(models.Payment.id).label("quantity"),
                func.sum(models.Payment.amount).label("total")
            )
            .filter(models.Payment.status == COMPLETED)
            .group_by(models.Payment.method)
        )
        rows = (await db.execute(query)).all()

        return {
            "total": total,
            "recent": recent,
            "by_method": [
                {"method": row.method, "count": row.quantity, "total": float(row.total or 0)} for row in rows
            ]
        }

    @staticmethod
    async def dashboard_summary(db: AsyncSession):
        """Conteos de clientes y facturas; ingresos = suma de todos los pagos registrados (histórico y mes en curso)."""
        now = datetime.now(timezone.utc)
        start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        total_customers = await _count(db, models.Customer)
        active_customers = await _count(
            db, models.Customer, models.Customer.status == models.CustomerStatus.ACTIVE.value
        )
        total_invoices = await _count(db, models.Invoice)
        paid_invoices = await _count(
            db, models.Invoice, models.Invoice.status == models.InvoiceStatus.PAID.value
        )

        return {
            "customers": {
                "total": total_customers,
                "active": active_customers,
                "inactive": total_customers - active_customers
            },
            "invoices": {
                "total": total_invoices,
                "paid": paid_invoices,
                "pending": total_invoices - paid_invoices
            },
            "revenue": {
                "total": await _sum_payments(db),
                "this_month": await _sum_payments(db, start=start_of_month)
            }
        }

    @staticmethod
    async def top_customers(db: AsyncSession, limit: int = 5):
        """Clientes ordenados por la suma de sus facturas pagadas."""
        total_revenue = func.sum(models.Invoice.amount).label("total_revenue")
        query = (
            select(
                models.Customer.id,
                models.Customer.name,
                models.Customer.email,
                total_revenue,
                func.count(models.Invoice.id).label("invoice_count")
            )
            .join(models.Invoice, models.Invoice.customer_id == models.Customer.id)
            .filter(models.Invoice.status == models.InvoiceStatus.PAID.value)
            .group_by(models.Customer.id, models.Customer.name, models.Customer.email)
            .order_by(total_revenue.desc())
            .limit(limit)
        )
        rows = (await db.execute(query)).all()

        return [
            {
                "customer_id": row.id,
                "customer_name": row.name,
                "customer_email": row.email,
                "total_revenue": float(row.total_revenue or 0),
                "invoice_count": row.invoice_count
            }
            for row in rows
        ]

    @staticmethod
    async def recent_activities(db: AsyncSession, limit: int = 10):
        """
        Últimos pagos y facturas de los últimos 7 días mezclados por fecha.
        Se toman hasta `limit` de cada tipo y se recorta el resultado a `limit`.
        """
        week_ago = datetime.now(timezone.utc) - timedelta(days=7)

        payments_query = (
            select(models.Payment)
            .options(selectinload(models.Payment.invoice).selectinload(models.Invoice.customer))
            .order_by(models.Payment.created_at.desc(), models.Payment.id.desc())
            .limit(limit)
        )
        invoices_query = (
            select(models.Invoice)
            .options(selectinload(models.Invoice.customer))
            .filter(models.Invoice.created_at >= week_ago)
            .order_by(models.Invoice.created_at.desc(), models.Invoice.id.desc())
            .limit(limit)
        )
        payments = (await db.execute(payments_query)).scalars().all()
        invoices = (await db.execute(invoices_query)).scalars().all()

        activities = []
        for p in payments:
            customer_name = p.invoice.customer.name if p.invoice and p.invoice.customer else None
            activities.append({
                "id": p.id,
                "type": "payment",
                "title": f"Payment received from {customer_name or 'Unknown'}",
                "amount": float(p.amount),
                "date": p.created_at,
                "status": p.status,
                "customer_name": customer_name
            })
        for i in invoices:
            customer_name = i.customer.name if i.customer else None
            activities.append({
                "id": i.id,
                "type": "invoice",
                "title": f"Invoice {i.invoice_number} created for {customer_name or 'Unknown'}",
                "amount": float(i.amount),
                "date": i.created_at,
                "status": i.status,
                "customer_name": customer_name
            })

        # SQLite devuelve fechas sin zona; se normalizan para poder ordenar
        def sort_key(activity):
            value = activity["date"]
            return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

        activities.sort(key=sort_key, reverse=True)
        return activities[:limit]

    @staticmethod
    async def status_distribution(db: AsyncSession):
        customers_query = (
            select(models.Customer.status, func.count(models.Customer.id).label("quantity"))
            .group_by(models.Customer.status)
            .order_by(models.Customer.status)
        )
        invoices_query = (
            select(
                models.Invoice.status,
                func.count(models.Invoice.id).label("quantity"),
                func.sum(models.Invoice.amount).label("total")
            )
            .group_by(models.Invoice.status)
            .order_by(models.Invoice.status)
        )
        customer_rows = (await db.execute(customers_query)).all()
        invoice_rows = (await db.execute(invoices_query)).all()

        return {
            "customers": [{"status": row.status, "count": row.quantity} for row in customer_rows],
            "invoices": [
                {"status": row.status, "count": row.quantity, "total": float(row.total or 0)}
                for row in invoice_rows
            ]
        }

    @staticmethod
    async def trend_comparison(db: AsyncSession):
        """
        Últimos 30 días contra los 30 anteriores, y mes calendario actual contra el anterior.
        Los ingresos suman todos los pagos registrados, como el resumen del panel.
        """
        now = datetime.now(timezone.utc)
        thirty_days_ago = now - timedelta(days=30)
        sixty_days_ago = now - timedelta(days=60)

        current_customers = await _count(db, models.Customer, models.Customer.created_at >= thirty_days_ago)
        previous_customers = await _count(
            db, models.Customer,
            models.Customer.created_at >= sixty_days_ago,
            models.Customer.created_at < thirty_days_ago
        )
        current_invoices = await _count(db, models.Invoice, models.Invoice.created_at >= thirty_days_ago)
        previous_invoices = await _count(
            db, models.Invoice,
            models.Invoice.created_at >= sixty_days_ago,
            models.Invoice.created_at < thirty_days_ago
        )
        current_revenue = await _sum_payments(db, start=thirty_days_ago)
        previous_revenue = await _sum_payments(db, start=sixty_days_ago, end=thirty_days_ago)

        start_of_this_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        start_of_last_month = (start_of_this_month - timedelta(days=1)).replace(day=1)
        this_month_revenue = await _sum_payments(db, start=start_of_this_month)
        last_month_revenue = await _sum_payments(db, start=start_of_last_month, end=start_of_this_month)

        return {
            "customers": percent_change(current_customers, previous_customers),
            "invoices": percent_change(current_invoices, previous_invoices),
            "revenue": percent_change(current_revenue, previous_revenue),
            "this_month": percent_change(this_month_revenue, last_month_revenue)
        }
