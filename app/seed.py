import asyncio
import calendar
import random
import sys
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from app import crud, models
from app.database import AsyncSessionLocal, db_manager
from app.services.invoices import MONTH_NAMES, generate_invoice_number
from app.services.payments import generate_payment_number
from netcharge_common.security import get_password_hash

# Plan -> tarifa mensual (IDR)
PACKAGE_RATES = {
    models.PackageType.BASIC: Decimal("100000"),
    models.PackageType.STANDARD: Decimal("250000"),
    models.PackageType.PREMIUM: Decimal("500000"),
}
DEMO_CUSTOMERS = 10
DEMO_MONTHS = 3


def _months_back(today: date, months: int) -> date:
    year, month = today.year, today.month - months
    while month < 1:
        month += 12
        year -= 1
    return date(year, month, 1)


async def seed_admin(email: str, password: str, name: str = "Administrador"):
    await db_manager.create_tables()
    async with AsyncSessionLocal() as db:
        if await crud.get_user_by_email(db, email):
            print(f"⚠️ [SEED] El usuario {email} ya existe. Nada que hacer.")
            return

        user = await crud.create_user(db, {
            "email": email,
            "hashed_password": get_password_hash(password),
            "name": name,
            "role": models.UserRole.ADMIN.value,
            "is_active": True
        })
        print(f"✅ [SEED] Administrador creado: {user.email} (id={user.id})")


async def seed_demo():
    """Diez clientes con tres meses de facturas; las pagadas llevan su pago completado."""
    await db_manager.create_tables()
    now = datetime.now(timezone.utc)
    today = now.date()

    async with AsyncSessionLocal() as db:
        try:
            invoices_created = 0
            payments_created = 0

            for i in range(1, DEMO_CUSTOMERS + 1):
                package = (
                    models.PackageType.BASIC if i <= 3
                    else models.PackageType.STANDARD if i <= 7
                    else models.PackageType.PREMIUM
                )
                joined = now - timedelta(days=max(30 - i * 2, 0))
                customer = models.Customer(
                    name=f"Customer {i}",
                    email=f"customer{i}@example.com",
                    phone=f"08123456{i:03d}",
                    address=f"Jl. Demo No. {i}, Jakarta",
                    package_type=package.value,
                    monthly_rate=PACKAGE_RATES[package],
                    status=(models.CustomerStatus.ACTIVE if i <= 8 else models.CustomerStatus.INACTIVE).value,
                    billing_start_date=joined.date(),
                    created_at=joined
                )
                db.add(customer)
                await db.flush()

                for months_ago in range(DEMO_MONTHS):
                    period_start = _months_back(today, months_ago)
                    last_day = calendar.monthrange(period_start.year, period_start.month)[1]
                    due_date = period_start.replace(day=15)
                    issued = datetime.combine(due_date - timedelta(days=5), datetime.min.time(), tzinfo=timezone.utc)

                    is_paid = months_ago > 0 or random.random() > 0.3
                    if is_paid:
                        inv_status = models.InvoiceStatus.PAID
                    else:
                        inv_status = random.choice([models.InvoiceStatus.PENDING, models.InvoiceStatus.OVERDUE])

                    amount = customer.monthly_rate
                    invoice = models.Invoice(
                        invoice_number=generate_invoice_number(period_start),
                        customer_id=customer.id,
                        amount=amount,
                        paid_amount=amount if is_paid else Decimal("0.00"),
                        status=inv_status.value,
                        billing_period_start=period_start,
                        billing_period_end=period_start.replace(day=last_day),
                        due_date=due_date,
                        description=f"Suscripción WiFi {MONTH_NAMES[period_start.month - 1]} {period_start.year}",
                        created_at=issued,
                        updated_at=issued
                    )
                    db.add(invoice)
                    await db.flush()
                    invoices_created += 1

                    if is_paid:
                        paid_at = issued + timedelta(days=random.randint(0, 4))
                        db.add(models.Payment(
                            payment_number=generate_payment_number(paid_at.date()),
                            invoice_id=invoice.id,
                            amount=amount,
                            method=random.choice(list(models.PaymentMethod)).value,
                            status=models.PaymentStatus.COMPLETED.value,
                            paid_by=customer.name,
                            created_at=paid_at,
                            updated_at=paid_at
                        ))
                        payments_created += 1

            await db.commit()
            print(
                f"✅ [SEED] Demo cargado: {DEMO_CUSTOMERS} clientes, "
                f"{invoices_created} facturas, {payments_created} pagos"
            )
        except Exception as e:
            print(f"❌ [SEED] Error crítico: {e}")
            await db.rollback()
            raise


if __name__ == "__main__":
    # python -m app.seed admin <email> <password> [nombre]
    # python -m app.seed demo
    command = sys.argv[1] if len(sys.argv) > 1 else ""

    if command == "admin" and len(sys.argv) >= 4:
        asyncio.run(seed_admin(sys.argv[2], sys.argv[3], sys.argv[4] if len(sys.argv) > 4 else "Administrador"))
    elif command == "demo":
        asyncio.run(seed_demo())
    else:
        print("Uso: python -m app.seed admin <email> <password> [nombre] | python -m app.seed demo")
        sys.exit(1)
