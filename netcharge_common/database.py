import os
from typing import Optional

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

# Metadata compartida: clientes, facturas, pagos y usuarios
Base = declarative_base()


class DatabaseManager:
    """
    Motor async y fábrica de sesiones de un servicio.

    ENV_MODE=dev activa el eco de SQL salvo que se indique `echo` explícitamente.
    """

    def __init__(self, database_url: str, echo: Optional[bool] = None):
        self.database_url = database_url
        self.debug = os.getenv("ENV_MODE", "dev") == "dev"

        engine_options = {"echo": self.debug if echo is None else echo}
        # aiosqlite no mantiene conexiones de red que validar
        if not database_url.startswith("sqlite"):
            engine_options["pool_pre_ping"] = True

        self.engine = create_async_engine(database_url, **engine_options)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

    async def create_tables(self):
        """Crea las tablas registradas en Base (solo dev / pruebas)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_tables(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def get_db(self):
        """Dependencia de FastAPI: una sesión por petición."""
        async with self.session_factory() as session:
            yield session
