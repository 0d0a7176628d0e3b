import enum
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from sqlalchemy import or_
from . import models

# --- CLIENTES ---
async def get_customer(db: AsyncSession, customer_id: int):
    query = select(models.Customer).filter(models.Customer.id == customer_id)
    result = await db.execute(query)
    return result.scalars().first()

async def get_customer_by_email(db: AsyncSession, email: str):
    """Busca un cliente por email (clave única de negocio)."""
    query = select(models.Customer).filter(models.Customer.email == email)
    result = await db.execute(query)
    return result.scalars().first()

async def get_customer_by_phone(db: AsyncSession, phone: str):
    query = select(models.Customer).filter(models.Customer.phone == phone)
    result = await db.execute(query)
    return result.scalars().first()

# --- FACTURAS ---
async def get_invoice(
    db: AsyncSession,
    invoice_id: int,
    with_customer: bool = False,
    with_payments: bool = False
):
    """
    Busca una factura por ID.

    Las relaciones se cargan solo cuando se piden; `populate_existing` fuerza
    la recarga si la factura ya vive en la sesión.
    """
    query = select(models.Invoice).filter(models.Invoice.id == invoice_id)
    if with_customer:
        query = query.options(selectinload(models.Invoice.customer))
    if with_payments:
        query = query.options(selectinload(models.Invoice.payments))

    result = await db.execute(query.execution_options(populate_existing=True))
    return result.scalars().first()

# --- PAGOS ---
async def get_payment(db: AsyncSession, payment_id: int, with_invoice: bool = False):
    query = select(models.Payment).filter(models.Payment.id == payment_id)
    if with_invoice:
        query = query.options(
            selectinload(models.Payment.invoice).selectinload(models.Invoice.customer)
        )
    result = await db.execute(query.execution_options(populate_existing=True))
    return result.scalars().first()

async def get_payment_by_reference(db: AsyncSession, reference: str):
    """Busca un pago por ID de transacción externo o, en su defecto, por número de pago."""
    query = (
        select(models.Payment)
        .filter(or_(
            models.Payment.transaction_id == reference,
            models.Payment.payment_number == reference
        ))
        .order_by(models.Payment.id.desc())
    )
    result = await db.execute(query)
    return result.scalars().first()

# --- USUARIOS ---
async def get_user_by_id(db: AsyncSession, user_id: int):
    query = select(models.User).filter(models.User.id == user_id)
    result = await db.execute(query)
    return result.scalars().first()

async def get_user_by_email(db: AsyncSession, email: str):
    query = select(models.User).filter(models.User.email == email)
    result = await db.execute(query)
    return result.scalars().first()

async def create_user(db: AsyncSession, user_data: dict) -> models.User:
    db_user = models.User(**user_data)
    db.add(db_user)
    await db.commit()
    await db.refresh(db_user)
    return db_user

# --- UTILIDADES ---
def to_column_values(values: dict) -> dict:
    """Convierte los enums de los esquemas a su valor de texto para las columnas."""
    return {k: (v.value if isinstance(v, enum.Enum) else v) for k, v in values.items()}
