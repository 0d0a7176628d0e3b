import os
import tempfile

# La configuración se lee al importar la app: base SQLite temporal
_tmp_dir = tempfile.mkdtemp(prefix="netcharge-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_tmp_dir}/netcharge_test.db"
os.environ["ENV_MODE"] = "test"
os.environ["JWT_SECRET_KEY"] = "netcharge-test-signing-key"
os.environ.pop("QRIS_CALLBACK_SECRET", None)

from datetime import date, timedelta
from decimal import Decimal

import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from app import crud, models, schemas
from app.database import db_manager, AsyncSessionLocal
from app.main import app
from app.services.customers import CustomerService
from app.services.invoices import InvoiceService
from netcharge_common.security import create_access_token, get_password_hash


@pytest_asyncio.fixture
async def db():
    await db_manager.drop_tables()
    await db_manager.create_tables()
    async with AsyncSessionLocal() as session:
        yield session
    # Cada test corre en su propio event loop
    await db_manager.engine.dispose()


@pytest_asyncio.fixture
async def client(db):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _create_user(db, email, role):
    return await crud.create_user(db, {
        "email": email,
        "hashed_password": get_password_hash("secret123"),
        "name": email.split("@")[0],
        "role": role,
        "is_active": True
    })


def auth_headers(user):
    token = create_access_token({"sub": str(user.id), "email": user.email, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def admin_user(db):
    return await _create_user(db, "admin@netcharge.test", models.UserRole.ADMIN.value)


@pytest_asyncio.fixture
async def operator_user(db):
    return await _create_user(db, "operator@netcharge.test", models.UserRole.OPERATOR.value)


@pytest_asyncio.fixture
async def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest_asyncio.fixture
async def operator_headers(operator_user):
    return auth_headers(operator_user)


def customer_data(**overrides):
    data = {
        "name": "Budi Santoso",
        "email": "budi@example.com",
        "phone": "+6281234567890",
        "address": "Jl. Merdeka 1, Bandung",
        "package_type": "standard",
        "monthly_rate": Decimal("150000"),
    }
    data.update(overrides)
    return schemas.CustomerCreate(**data)


@pytest_asyncio.fixture
async def customer(db):
    return await CustomerService.create(db, customer_data())


async def make_invoice(db, customer_id, amount="100000", due_date=None, **overrides):
    today = date.today()
    data = {
        "customer_id": customer_id,
        "amount": Decimal(amount),
        "billing_period_start": today.replace(day=1),
        "billing_period_end": today.replace(day=28),
        "due_date": due_date or today + timedelta(days=10),
        "description": "Suscripción WiFi",
    }
    data.update(overrides)
    return await InvoiceService.create(db, schemas.InvoiceCreate(**data))


@pytest_asyncio.fixture
async def invoice(db, customer):
    return await make_invoice(db, customer.id)
