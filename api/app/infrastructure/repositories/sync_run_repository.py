"""
Repositorio de corridas de sync (tabla sync_runs).
"""
from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.database.models import SyncRunModel


class SyncRunRepository:
    """Gestiona el estado persistido de las corridas, con caducidad por TTL."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, run: SyncRunModel) -> SyncRunModel:
        self.db.add(run)
        await self.db.flush()
        return run

    async def get_active(self, run_id: str, now: datetime) -> Optional[SyncRunModel]:
        """
        Obtiene una corrida no expirada.
        Una corrida expirada se reporta igual que una inexistente.
        """
        result = await self.db.execute(
            select(SyncRunModel).where(
                SyncRunModel.run_id == run_id,
                SyncRunModel.expires_at > now,
            )
        )
        return result.scalars().first()

    async def purge_expired(self, now: datetime) -> int:
        result = await self.db.execute(
            delete(SyncRunModel).where(SyncRunModel.expires_at <= now)
        )
        purged = result.rowcount or 0
        if purged:
            logger.info(f"Corridas expiradas eliminadas: {purged}")
        return purged
