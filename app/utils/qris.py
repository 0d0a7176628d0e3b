import hashlib
import hmac
import os
from decimal import Decimal
from typing import Optional

# Código QRIS simplificado (no es un payload EMVCo real)
QRIS_HEADER = "00020101021226"
QRIS_MERCHANT_ID = os.getenv("QRIS_MERCHANT_ID", "1234567890123456")
QRIS_CALLBACK_SECRET = os.getenv("QRIS_CALLBACK_SECRET")


def build_qris_code(amount: Decimal, payment_number: str, merchant_id: Optional[str] = None) -> str:
    """
    Cabecera fija + ID de comercio + monto en centavos + número de pago.

    Ej: 150000.00 / PAY-20241019-0042 ->
        000201010212261234567890123456 15000000 PAY-20241019-0042 (sin espacios)
    """
    cents = f"{Decimal(amount):.2f}".replace(".", "")
    return f"{QRIS_HEADER}{merchant_id or QRIS_MERCHANT_ID}{cents}{payment_number}"


def sign_callback(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_callback_signature(body: bytes, signature: Optional[str], secret: Optional[str] = None) -> bool:
    """Sin secreto configurado no se exige firma."""
    secret = secret if secret is not None else QRIS_CALLBACK_SECRET
    if not secret:
        return True
    if not signature:
        return False
    return hmac.compare_digest(sign_callback(body, secret), signature)
