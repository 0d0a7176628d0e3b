import logging
import random
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from sqlalchemy import func

from .. import crud, models, schemas
from ..utils.qris import build_qris_code
from .invoices import InvoiceService, apply_paid_amount

logger = logging.getLogger(__name__)

CALLBACK_TARGETS = {
    "success": models.PaymentStatus.COMPLETED.value,
    "failed": models.PaymentStatus.FAILED.value,
}


def generate_payment_number(today: Optional[date] = None) -> str:
    """PAY-<AAAAMMDD>-<4 dígitos aleatorios>."""
    today = today or datetime.now(timezone.utc).date()
    return f"PAY-{today:%Y%m%d}-{random.randint(0, 9999):04d}"


def _check_transition(payment: models.Payment, target: str):
    if not models.can_transition_payment(payment.status, target):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"El pago {payment.payment_number} está en estado '{payment.status}' y no puede pasar a '{target}'"
        )


class PaymentService:

    @staticmethod
    async def create(db: AsyncSession, data: schemas.PaymentCreate) -> models.Payment:
        """
        Registra un intento de pago PENDING contra una factura abierta.

        Raises:
            HTTPException 404: La factura no existe.
            HTTPException 400: La factura ya está pagada o anulada.
        """
        invoice = await crud.get_invoice(db, data.invoice_id)
        if not invoice:
            raise HTTPException(status_code=404, detail="Factura no encontrada")

        if invoice.status == models.InvoiceStatus.PAID.value:
            raise HTTPException(status_code=400, detail="Invoice already paid")
        if invoice.status == models.InvoiceStatus.CANCELLED.value:
            raise HTTPException(status_code=400, detail="Invoice is cancelled")

        payment_number = generate_payment_number()
        qris_code = None
        if data.method == models.PaymentMethod.QRIS:
            qris_code = build_qris_code(data.amount, payment_number)

        db_payment = models.Payment(
            **crud.to_column_values(data.model_dump()),
            payment_number=payment_number,
            qris_code=qris_code,
            status=models.PaymentStatus.PENDING.value
        )
        db.add(db_payment)
        await db.commit()
        await db.refresh(db_payment)
        logger.info(f"💳 Pago {payment_number} registrado ({db_payment.method}) para factura {invoice.invoice_number}")
        return db_payment

    @staticmethod
    async def list(db: AsyncSession):
        query = (
            select(models.Payment)
            .options(selectinload(models.Payment.invoice).selectinload(models.Invoice.customer))
            .order_by(models.Payment.created_at.desc(), models.Payment.id.desc())
        )
        result = await db.execute(query)
        return result.scalars().all()

    @staticmethod
    async def get(db: AsyncSession, payment_id: int) -> models.Payment:
        payment = await crud.get_payment(db, payment_id, with_invoice=True)
        if not payment:
            raise HTTPException(status_code=404, detail="Pago no encontrado")
        return payment

    @staticmethod
    async def get_by_invoice(db: AsyncSession, invoice_id: int):
        query = (
            select(models.Payment)
            .filter(models.Payment.invoice_id == invoice_id)
            .order_by(models.Payment.created_at.desc(), models.Payment.id.desc())
        )
        result = await db.execute(query)
        return result.scalars().all()

    @staticmethod
    async def confirm(db: AsyncSession, payment_id: int) -> models.Payment:
        """
        Completa un pago PENDING y abona su monto a la factura.
        Estado del pago y monto pagado se confirman en la misma transacción.
        """
        payment = await PaymentService.get(db, payment_id)
        _check_transition(payment, models.PaymentStatus.COMPLETED.value)

        payment.status = models.PaymentStatus.COMPLETED.value
        invoice_paid = apply_paid_amount(payment.invoice, payment.amount)

        db.add(payment)
        await db.commit()

        logger.info(f"✅ Pago {payment.payment_number} confirmado por {payment.amount}")
        if invoice_paid:
            logger.info(f"✅ Factura {payment.invoice.invoice_number} pagada por completo")
        return await PaymentService.get(db, payment_id)

    @staticmethod
    async def fail(db: AsyncSession, payment_id: int, reason: Optional[str] = None) -> models.Payment:
        payment = await PaymentService.get(db, payment_id)
        _check_transition(payment, models.PaymentStatus.FAILED.value)

        payment.status = models.PaymentStatus.FAILED.value
        if reason:
            payment.notes = reason

        db.add(payment)
        await db.commit()
        logger.info(f"❌ Pago {payment.payment_number} marcado como fallido: {reason or '-'}")
        return await PaymentService.get(db, payment_id)

    @staticmethod
    async def generate_qris_payment(db: AsyncSession, invoice_id: int):
        """Crea un pago QRIS por el saldo pendiente de la factura."""
        invoice = await InvoiceService.get(db, invoice_id)
        remaining = Decimal(invoice.amount) - Decimal(invoice.paid_amount or 0)
        if remaining <= 0:
            raise HTTPException(status_code=400, detail="La factura no tiene saldo pendiente")

        payment = await PaymentService.create(db, schemas.PaymentCreate(
            invoice_id=invoice_id,
            amount=remaining,
            method=models.PaymentMethod.QRIS
        ))
        return {"payment": payment, "qris_code": payment.qris_code}

    @staticmethod
    async def handle_qris_callback(db: AsyncSession, data: schemas.QrisCallback) -> models.Payment:
        """
        Aplica la notificación de la pasarela QRIS.

        El pago se busca por ID de transacción o por número de pago. Un reenvío con
        el mismo resultado ya aplicado no cambia nada; un resultado contradictorio
        lo rechazan las reglas de transición.
        """
        payment = await crud.get_payment_by_reference(db, data.transaction_id)
        if not payment:
            logger.warning(f"⚠️ [QRIS] Callback para transacción desconocida: {data.transaction_id}")
            raise HTTPException(status_code=404, detail="Pago no encontrado")

        target = CALLBACK_TARGETS[data.status]
        if payment.status == target:
            logger.info(f"[QRIS] Callback repetido para {payment.payment_number}, sin cambios")
            return await PaymentService.get(db, payment.id)

        if not models.can_transition_payment(payment.status, target):
            logger.warning(f"⚠️ [QRIS] Callback '{data.status}' rechazado: {payment.payment_number} ya está '{payment.status}'")
            _check_transition(payment, target)

        if data.status == "success":
            return await PaymentService.confirm(db, payment.id)
        return await PaymentService.fail(db, payment.id, "QRIS payment failed")

    @staticmethod
    async def payment_stats(db: AsyncSession):
        """Totales de pagos completados, desglosados por cada método (incluye los que están en cero)."""
        query = (
            select(
                models.Payment.method,
                func.count(models.Payment.id),
                func.sum(models.Payment.amount)
            )
            .filter(models.Payment.status == models.PaymentStatus.COMPLETED.value)
            .group_by(models.Payment.method)
        )
        rows = {method: (count, amount) for method, count, amount in (await db.execute(query)).all()}

        by_method = []
        for method in models.PaymentMethod:
            count, amount = rows.get(method.value, (0, 0))
            by_method.append({"method": method.value, "count": count or 0, "amount": float(amount or 0)})

        return {
            "total_payments": sum(item["count"] for item in by_method),
            "total_amount": sum(item["amount"] for item in by_method),
            "by_method": by_method
        }
