import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from .. import schemas
from ..database import get_db
from ..security import RequirePermission
from ..services.payments import PaymentService
from ..utils.qris import verify_callback_signature
from netcharge_common.security import Permissions, UserPayload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("", response_model=schemas.PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    data: schemas.PaymentCreate,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.PAYMENT_CREATE))
):
    return await PaymentService.create(db, data)


@router.get("", response_model=List[schemas.PaymentDetail])
async def list_payments(
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.PAYMENT_READ))
):
    return await PaymentService.list(db)


@router.get("/stats", response_model=schemas.PaymentStatsResponse)
async def payment_stats(
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.REPORTS_VIEW))
):
    return await PaymentService.payment_stats(db)


@router.get("/invoice/{invoice_id}", response_model=List[schemas.PaymentResponse])
async def list_invoice_payments(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.PAYMENT_READ))
):
    return await PaymentService.get_by_invoice(db, invoice_id)


@router.post("/qris/generate/{invoice_id}", response_model=schemas.QrisPaymentResponse)
async def generate_qris_payment(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.PAYMENT_CREATE))
):
    return await PaymentService.generate_qris_payment(db, invoice_id)


# Esquema del cuerpo para /docs: la ruta lee el cuerpo crudo
QRIS_CALLBACK_BODY = {
    "requestBody": {
        "required": True,
        "content": {"application/json": {"schema": schemas.QrisCallback.model_json_schema()}}
    }
}


@router.post("/qris/callback", response_model=schemas.PaymentDetail, openapi_extra=QRIS_CALLBACK_BODY)
async def qris_callback(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.PAYMENT_CONFIRM))
):
    """
    Notificación de la pasarela QRIS.
    Con QRIS_CALLBACK_SECRET configurado se exige X-Callback-Signature (HMAC-SHA256 del cuerpo).
    El cuerpo esperado es QrisCallback; se valida a mano tras comprobar la firma.
    """
    body = await request.body()
    if not verify_callback_signature(body, request.headers.get("X-Callback-Signature")):
        logger.warning("⚠️ [QRIS] Firma de callback inválida")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Firma de callback inválida")

    try:
        data = schemas.QrisCallback.model_validate(json.loads(body or b"{}"))
    except ValueError as e:
        # JSON mal formado o campos inválidos
        raise HTTPException(status_code=422, detail=str(e))

    return await PaymentService.handle_qris_callback(db, data)


@router.get("/{payment_id}", response_model=schemas.PaymentDetail)
async def get_payment(
    payment_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.PAYMENT_READ))
):
    return await PaymentService.get(db, payment_id)


@router.post("/{payment_id}/confirm", response_model=schemas.PaymentDetail)
async def confirm_payment(
    payment_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.PAYMENT_CONFIRM))
):
    return await PaymentService.confirm(db, payment_id)


@router.post("/{payment_id}/fail", response_model=schemas.PaymentDetail)
async def fail_payment(
    payment_id: int,
    data: Optional[schemas.PaymentFailRequest] = None,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.PAYMENT_CONFIRM))
):
    return await PaymentService.fail(db, payment_id, data.reason if data else None)
