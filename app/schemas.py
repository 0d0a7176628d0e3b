from pydantic import BaseModel, EmailStr, ConfigDict, Field
from decimal import Decimal
from datetime import datetime, date
from typing import List, Optional

from .models import PackageType, CustomerStatus, InvoiceStatus, PaymentMethod, PaymentStatus

# --- CLIENTES ---
class CustomerBase(BaseModel):
    """Datos base del suscriptor compartidos entre creación y lectura."""
    name: str = Field(..., min_length=1, description="Nombre del suscriptor")
    email: EmailStr
    phone: str = Field(..., min_length=1, description="Teléfono de contacto, ej. +6281234567890")
    address: Optional[str] = None
    package_type: PackageType = PackageType.BASIC
    monthly_rate: Decimal = Field(..., ge=0, description="Tarifa mensual")
    status: CustomerStatus = CustomerStatus.ACTIVE
    mac_address: Optional[str] = None
    ip_address: Optional[str] = None
    billing_start_date: Optional[date] = None
    billing_day: int = Field(1, ge=1, le=28, description="Día de corte (1-28)")

class CustomerCreate(CustomerBase):
    pass

class CustomerUpdate(BaseModel):
    """Actualización parcial: solo se aplican los campos enviados."""
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    package_type: Optional[PackageType] = None
    monthly_rate: Optional[Decimal] = Field(None, ge=0)
    status: Optional[CustomerStatus] = None
    mac_address: Optional[str] = None
    ip_address: Optional[str] = None
    billing_start_date: Optional[date] = None
    billing_day: Optional[int] = Field(None, ge=1, le=28)

class CustomerResponse(CustomerBase):
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

class CustomerSummary(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    model_config = ConfigDict(from_attributes=True)

# --- FACTURAS ---
class InvoiceCreate(BaseModel):
    customer_id: int
    amount: Decimal = Field(..., ge=0)
    billing_period_start: date
    billing_period_end: date
    due_date: date
    description: Optional[str] = None
    status: Optional[InvoiceStatus] = None

class InvoiceUpdate(BaseModel):
    """Sin paid_amount: lo pagado solo cambia con abonos (update_paid_amount / confirmación de pago)."""
    amount: Optional[Decimal] = Field(None, ge=0)
    status: Optional[InvoiceStatus] = None
    billing_period_start: Optional[date] = None
    billing_period_end: Optional[date] = None
    due_date: Optional[date] = None
    description: Optional[str] = None

class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    customer_id: int
    amount: Decimal
    paid_amount: Decimal
    status: InvoiceStatus
    billing_period_start: date
    billing_period_end: date
    due_date: date
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

# --- PAGOS ---
class PaymentCreate(BaseModel):
    invoice_id: int
    amount: Decimal = Field(..., ge=0)
    method: PaymentMethod = PaymentMethod.CASH
    transaction_id: Optional[str] = Field(None, description="ID de transacción externo")
    notes: Optional[str] = None
    paid_by: Optional[str] = None

class PaymentFailRequest(BaseModel):
    reason: Optional[str] = None

class QrisCallback(BaseModel):
    transaction_id: str
    status: str = Field(..., pattern="^(success|failed)$")

class PaymentResponse(BaseModel):
    id: int
    payment_number: str
    invoice_id: int
    amount: Decimal
    method: PaymentMethod
    status: PaymentStatus
    transaction_id: Optional[str] = None
    qris_code: Optional[str] = None
    notes: Optional[str] = None
    paid_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

class InvoiceWithCustomer(InvoiceResponse):
    customer: CustomerSummary

class InvoiceWithPayments(InvoiceResponse):
    payments: List[PaymentResponse] = []

class InvoiceDetail(InvoiceResponse):
    customer: CustomerSummary
    payments: List[PaymentResponse] = []

class PaymentDetail(PaymentResponse):
    invoice: InvoiceWithCustomer

class QrisPaymentResponse(BaseModel):
    payment: PaymentResponse
    qris_code: str

class MethodBreakdown(BaseModel):
    method: str
    count: int
    amount: float

class PaymentStatsResponse(BaseModel):
    total_payments: int
    total_amount: float
    by_method: List[MethodBreakdown]

class InvoiceDashboardStats(BaseModel):
    total_pending: float
    total_overdue: float
    total_paid_this_month: int
    total_revenue_this_month: float

class MarkOverdueResponse(BaseModel):
    updated: int

# --- USUARIOS ---
class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    role: str
    is_active: bool
    model_config = ConfigDict(from_attributes=True)

# --- ANALÍTICA ---
class RevenuePoint(BaseModel):
    date: date
    revenue: float

class RevenueStats(BaseModel):
    period: str
    data: List[RevenuePoint]
    total: float

class GrowthPoint(BaseModel):
    date: date
    new: int
    total: int

class CustomerGrowth(BaseModel):
    period: str
    data: List[GrowthPoint]
    total_new: int

class MethodTotal(BaseModel):
    method: str
    count: int
    total: float

class AnalyticsPaymentStats(BaseModel):
    total: int
    recent: int
    by_method: List[MethodTotal]

class CustomerCounts(BaseModel):
    total: int
    active: int
    inactive: int

class InvoiceCounts(BaseModel):
    total: int
    paid: int
    pending: int

class RevenueTotals(BaseModel):
    total: float
    this_month: float

class DashboardSummary(BaseModel):
    customers: CustomerCounts
    invoices: InvoiceCounts
    revenue: RevenueTotals

class TopCustomer(BaseModel):
    customer_id: int
    customer_name: str
    customer_email: str
    total_revenue: float
    invoice_count: int

class Activity(BaseModel):
    id: int
    type: str               # payment | invoice
    title: str
    amount: float
    date: datetime
    status: str
    customer_name: Optional[str] = None

class StatusCount(BaseModel):
    status: str
    count: int

class StatusAmount(BaseModel):
    status: str
    count: int
    total: float

class StatusDistribution(BaseModel):
    customers: List[StatusCount]
    invoices: List[StatusAmount]

class TrendComparison(BaseModel):
    customers: int
    invoices: int
    revenue: int
    this_month: int
