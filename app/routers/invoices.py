from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from .. import schemas
from ..database import get_db
from ..models import InvoiceStatus
from ..security import RequirePermission
from ..services.invoices import InvoiceService
from ..utils.pdf_generator import generate_invoice_pdf
from netcharge_common.security import Permissions, UserPayload

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.post("", response_model=schemas.InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    data: schemas.InvoiceCreate,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.INVOICE_CREATE))
):
    return await InvoiceService.create(db, data)


@router.get("", response_model=List[schemas.InvoiceWithCustomer])
async def list_invoices(
    status: Optional[InvoiceStatus] = None,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.INVOICE_READ))
):
    return await InvoiceService.list(db, status.value if status else None)


# Rutas fijas antes de /{invoice_id}
@router.get("/dashboard/stats", response_model=schemas.InvoiceDashboardStats)
async def invoice_dashboard_stats(
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.REPORTS_VIEW))
):
    return await InvoiceService.dashboard_stats(db)


@router.get("/customer/{customer_id}", response_model=List[schemas.InvoiceWithPayments])
async def list_customer_invoices(
    customer_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.INVOICE_READ))
):
    return await InvoiceService.get_by_customer(db, customer_id)


@router.post("/generate/monthly", response_model=List[schemas.InvoiceResponse])
async def generate_monthly_invoices(
    skip_existing: bool = False,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.INVOICE_GENERATE))
):
    """
    Factura el mes en curso a todos los clientes activos.
    Sin `skip_existing=true` repetir la llamada duplica las facturas del mes.
    """
    return await InvoiceService.generate_monthly_invoices(db, skip_existing=skip_existing)


@router.post("/mark-overdue", response_model=schemas.MarkOverdueResponse)
async def mark_overdue_invoices(
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.INVOICE_UPDATE))
):
    updated = await InvoiceService.mark_as_overdue(db)
    return {"updated": updated}


@router.get("/{invoice_id}", response_model=schemas.InvoiceDetail)
async def get_invoice(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.INVOICE_READ))
):
    return await InvoiceService.get(db, invoice_id)


@router.get("/{invoice_id}/pdf")
async def download_invoice_pdf(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.INVOICE_READ))
):
    invoice = await InvoiceService.get(db, invoice_id)
    pdf_buffer = generate_invoice_pdf(invoice, customer=invoice.customer, payments=invoice.payments)

    return StreamingResponse(
        pdf_buffer,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={invoice.invoice_number}.pdf"}
    )


@router.patch("/{invoice_id}", response_model=schemas.InvoiceDetail)
async def update_invoice(
    invoice_id: int,
    data: schemas.InvoiceUpdate,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.INVOICE_UPDATE))
):
    return await InvoiceService.update(db, invoice_id, data)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.INVOICE_DELETE))
):
    await InvoiceService.delete(db, invoice_id)
