from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from datetime import datetime, timedelta, timezone
import os
from typing import Optional

# Configuración Criptográfica
# Los tokens los emite el servicio de identidad; aquí solo se verifican.
SECRET_KEY = os.getenv("JWT_SECRET_KEY")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

# --- UTILIDADES ---
def verify_password(plain_password, hashed_password):
    """Verifica si la contraseña plana coincide con el hash."""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password):
    """Genera el hash bcrypt de la contraseña."""
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    """
    Crea un JWT firmado con el secreto compartido.
    DATA debe incluir: 'sub' (id del usuario), 'email' y 'role'.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

def decode_token(token: str):
    """
    Decodifica el token. Retorna None si la firma o la expiración no son válidas.
    Sin JWT_SECRET_KEY configurado ningún token es válido.
    """
    if not SECRET_KEY:
        return None
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None

# --- PERMISOS ---
class Permissions:
    # CLIENTES
    CUSTOMER_READ = "customer:read"
    CUSTOMER_MANAGE = "customer:manage"

    # FACTURACIÓN
    INVOICE_READ = "invoice:read"
    INVOICE_CREATE = "invoice:create"
    INVOICE_UPDATE = "invoice:update"
    INVOICE_DELETE = "invoice:delete"
    INVOICE_GENERATE = "invoice:generate"

    # PAGOS
    PAYMENT_READ = "payment:read"
    PAYMENT_CREATE = "payment:create"
    PAYMENT_CONFIRM = "payment:confirm"

    # REPORTES
    REPORTS_VIEW = "reports:view"

ROLE_PERMISSIONS = {
    "admin": ["*"],

    "operator": [
        Permissions.CUSTOMER_READ,
        Permissions.CUSTOMER_MANAGE,
        Permissions.INVOICE_READ,
        Permissions.INVOICE_CREATE,
        Permissions.INVOICE_UPDATE,
        Permissions.PAYMENT_READ,
        Permissions.PAYMENT_CREATE,
        Permissions.PAYMENT_CONFIRM,
        Permissions.REPORTS_VIEW,
    ],
}

class UserPayload:
    def __init__(self, sub: str, email: str, role: str, user_id: int):
        self.sub = sub
        self.email = email
        self.role = role
        self.user_id = user_id
        self.permissions = ROLE_PERMISSIONS.get(role, [])

    def has_permission(self, required_perm: str) -> bool:
        if "*" in self.permissions: return True
        return required_perm in self.permissions
