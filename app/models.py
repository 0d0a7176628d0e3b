from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, Date, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from decimal import Decimal
import enum

from .database import Base


def utcnow():
    return datetime.now(timezone.utc)

# --- ENUMS ---
class PackageType(str, enum.Enum):
    BASIC = "basic"
    STANDARD = "standard"
    PREMIUM = "premium"

class CustomerStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"

class InvoiceStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"

class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    QRIS = "qris"

class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"

class UserRole(str, enum.Enum):
    ADMIN = "admin"
    OPERATOR = "operator"

# Transiciones permitidas del pago. Se consulta antes de cada cambio de estado.
PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING.value: {PaymentStatus.COMPLETED.value, PaymentStatus.FAILED.value},
    PaymentStatus.COMPLETED.value: {PaymentStatus.REFUNDED.value},
    PaymentStatus.FAILED.value: set(),
    PaymentStatus.REFUNDED.value: set(),
}

def can_transition_payment(current: str, target: str) -> bool:
    return target in PAYMENT_TRANSITIONS.get(current, set())


# --- MODELOS ---
class Customer(Base):
    """
    Suscriptor del servicio WiFi.

    Attributes:
        monthly_rate: Tarifa mensual que se factura en la generación automática.
        billing_day: Día del mes de corte (1-28).
    """
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, index=True, nullable=False)
    address = Column(String, nullable=True)

    # Plan contratado
    package_type = Column(String, default=PackageType.BASIC.value, nullable=False)
    monthly_rate = Column(Numeric(10, 2), nullable=False)
    status = Column(String, default=CustomerStatus.ACTIVE.value, index=True, nullable=False)

    # Datos de red (texto libre, sin validar formato)
    mac_address = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)

    billing_start_date = Column(Date, nullable=True)
    billing_day = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    invoices = relationship("Invoice", back_populates="customer", passive_deletes=True)


class Invoice(Base):
    """Factura mensual de un cliente."""
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String, unique=True, index=True, nullable=False)    # INV-202410-0042
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), index=True, nullable=False)

    amount = Column(Numeric(10, 2), nullable=False)
    paid_amount = Column(Numeric(10, 2), default=Decimal("0.00"), nullable=False)
    status = Column(String, default=InvoiceStatus.PENDING.value, index=True, nullable=False)

    # Periodo facturado
    billing_period_start = Column(Date, nullable=False)
    billing_period_end = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    customer = relationship("Customer", back_populates="invoices")
    payments = relationship("Payment", back_populates="invoice", passive_deletes=True)


class Payment(Base):
    """Intento de pago (exitoso o no) contra una factura."""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    payment_number = Column(String, unique=True, index=True, nullable=False)    # PAY-20241019-0042
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), index=True, nullable=False)

    amount = Column(Numeric(10, 2), nullable=False)
    method = Column(String, default=PaymentMethod.CASH.value, nullable=False)
    status = Column(String, default=PaymentStatus.PENDING.value, index=True, nullable=False)

    transaction_id = Column(String, index=True, nullable=True)  # Referencia externa (pasarela)
    qris_code = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    paid_by = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    invoice = relationship("Invoice", back_populates="payments")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    name = Column(String, nullable=False)
    role = Column(String, default=UserRole.OPERATOR.value, nullable=False)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
