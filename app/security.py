from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from netcharge_common.security import oauth2_scheme, decode_token, UserPayload
from . import crud
from .database import get_db


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db)
) -> UserPayload:
    """
    Valida el JWT y que el usuario siga existiendo y activo.
    El rol se toma de la base de datos, no del token.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Credenciales inválidas o expiradas",
        headers={"WWW-Authenticate": "Bearer"},
    )
    payload = decode_token(token)
    if payload is None or payload.get("type") != "access":
        raise credentials_exception

    sub = payload.get("sub")
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise credentials_exception

    user = await crud.get_user_by_id(db, user_id)
    if user is None or not user.is_active:
        raise credentials_exception

    return UserPayload(sub=sub, email=user.email, role=user.role, user_id=user.id)


class RequirePermission:
    def __init__(self, permission: str):
        self.permission = permission

    def __call__(self, user: UserPayload = Depends(get_current_user)):
        if not user.has_permission(self.permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Acceso denegado. Requieres permiso: {self.permission}"
            )
        return user
