from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .. import crud, schemas
from ..database import get_db
from ..security import get_current_user
from netcharge_common.security import UserPayload

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.get("/profile", response_model=schemas.UserResponse)
async def read_profile(
    user: UserPayload = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Usuario autenticado. Los tokens los emite el servicio de identidad externo."""
    return await crud.get_user_by_id(db, user.user_id)
