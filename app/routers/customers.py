from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from .. import schemas
from ..database import get_db
from ..models import CustomerStatus
from ..security import RequirePermission
from ..services.customers import CustomerService
from netcharge_common.security import Permissions, UserPayload

router = APIRouter(prefix="/customers", tags=["Customers"])


@router.post("", response_model=schemas.CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    data: schemas.CustomerCreate,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.CUSTOMER_MANAGE))
):
    return await CustomerService.create(db, data)


@router.get("", response_model=List[schemas.CustomerResponse])
async def list_customers(
    status: Optional[CustomerStatus] = None,     # Filtro opcional: active, inactive, suspended
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.CUSTOMER_READ))
):
    return await CustomerService.list(db, status.value if status else None)


@router.get("/by-phone/{phone}", response_model=schemas.CustomerResponse)
async def get_customer_by_phone(
    phone: str,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.CUSTOMER_READ))
):
    customer = await CustomerService.get_by_phone(db, phone)
    if not customer:
        raise HTTPException(status_code=404, detail="Cliente no encontrado")
    return customer


@router.get("/{customer_id}", response_model=schemas.CustomerResponse)
async def get_customer(
    customer_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.CUSTOMER_READ))
):
    return await CustomerService.get(db, customer_id)


@router.patch("/{customer_id}", response_model=schemas.CustomerResponse)
async def update_customer(
    customer_id: int,
    data: schemas.CustomerUpdate,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.CUSTOMER_MANAGE))
):
    return await CustomerService.update(db, customer_id, data)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(
    customer_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.CUSTOMER_MANAGE))
):
    await CustomerService.delete(db, customer_id)


@router.post("/{customer_id}/suspend", response_model=schemas.CustomerResponse)
async def suspend_customer(
    customer_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.CUSTOMER_MANAGE))
):
    return await CustomerService.suspend(db, customer_id)


@router.post("/{customer_id}/activate", response_model=schemas.CustomerResponse)
async def activate_customer(
    customer_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.CUSTOMER_MANAGE))
):
    return await CustomerService.activate(db, customer_id)
