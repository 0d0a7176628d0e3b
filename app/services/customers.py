import logging
from typing import Optional
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import delete

from .. import crud, models, schemas

logger = logging.getLogger(__name__)


class CustomerService:

    @staticmethod
    async def create(db: AsyncSession, data: schemas.CustomerCreate) -> models.Customer:
        # Email único a nivel global
        if await crud.get_customer_by_email(db, data.email):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Ya existe un cliente registrado con este email"
            )

        db_customer = models.Customer(**crud.to_column_values(data.model_dump()))
        db.add(db_customer)
        await db.commit()
        await db.refresh(db_customer)
        logger.info(f"👤 Cliente registrado: {db_customer.email} (id={db_customer.id})")
        return db_customer

    @staticmethod
    async def list(db: AsyncSession, customer_status: Optional[str] = None):
        query = select(models.Customer)
        if customer_status:
            query = query.filter(models.Customer.status == customer_status)
        result = await db.execute(query.order_by(models.Customer.name.asc()))
        return result.scalars().all()

    @staticmethod
    async def get(db: AsyncSession, customer_id: int) -> models.Customer:
        customer = await crud.get_customer(db, customer_id)
        if not customer:
            raise HTTPException(status_code=404, detail="Cliente no encontrado")
        return customer

    @staticmethod
    async def get_by_phone(db: AsyncSession, phone: str) -> Optional[models.Customer]:
        return await crud.get_customer_by_phone(db, phone)

    @staticmethod
    async def update(db: AsyncSession, customer_id: int, data: schemas.CustomerUpdate) -> models.Customer:
        customer = await CustomerService.get(db, customer_id)
        changes = data.model_dump(exclude_unset=True)

        new_email = changes.get("email")
        if new_email and new_email != customer.email:
            existing = await crud.get_customer_by_email(db, new_email)
            if existing and existing.id != customer.id:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Ya existe un cliente registrado con este email"
                )

        for field, value in crud.to_column_values(changes).items():
            setattr(customer, field, value)

        db.add(customer)
        await db.commit()
        await db.refresh(customer)
        return customer

    @staticmethod
    async def delete(db: AsyncSession, customer_id: int) -> None:
        """Elimina el cliente. Facturas y pagos caen por ON DELETE CASCADE."""
        customer = await CustomerService.get(db, customer_id)
        await db.execute(delete(models.Customer).where(models.Customer.id == customer.id))
        await db.commit()
        logger.info(f"🗑️ Cliente eliminado: id={customer_id}")

    @staticmethod
    async def set_status(db: AsyncSession, customer_id: int, new_status: models.CustomerStatus) -> models.Customer:
        customer = await CustomerService.get(db, customer_id)
        customer.status = new_status.value
        db.add(customer)
        await db.commit()
        await db.refresh(customer)
        logger.info(f"Cliente {customer_id} -> {new_status.value}")
        return customer

    @staticmethod
    async def suspend(db: AsyncSession, customer_id: int) -> models.Customer:
        return await CustomerService.set_status(db, customer_id, models.CustomerStatus.SUSPENDED)

    @staticmethod
    async def activate(db: AsyncSession, customer_id: int) -> models.Customer:
        return await CustomerService.set_status(db, customer_id, models.CustomerStatus.ACTIVE)

    @staticmethod
    async def list_active(db: AsyncSession):
        """Clientes activos; base de la generación mensual de facturas."""
        query = (
            select(models.Customer)
            .filter(models.Customer.status == models.CustomerStatus.ACTIVE.value)
            .order_by(models.Customer.id.asc())
        )
        result = await db.execute(query)
        return result.scalars().all()
