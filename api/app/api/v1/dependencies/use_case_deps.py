"""
Dependencias para inyeccion de casos de uso.
"""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.use_cases.live_sync_use_cases import LiveSyncUseCases
from app.application.use_cases.reconciliation_use_cases import ReconciliationUseCases
from app.application.use_cases.sync_run_use_cases import SyncRunUseCases
from app.infrastructure.database.session import get_db


async def get_live_sync_use_cases(
    db: AsyncSession = Depends(get_db)
) -> LiveSyncUseCases:
    """
    Dependencia para obtener los casos de uso de ingesta.

    Args:
        db: Sesion de base de datos

    Returns:
        LiveSyncUseCases: Instancia de casos de uso de ingesta
    """
    return LiveSyncUseCases(db)


async def get_reconciliation_use_cases(
    db: AsyncSession = Depends(get_db)
) -> ReconciliationUseCases:
    return ReconciliationUseCases(db)


async def get_sync_run_use_cases(
    db: AsyncSession = Depends(get_db)
) -> SyncRunUseCases:
    """
    Dependencia para obtener los casos de uso de corridas de sync.

    Returns:
        SyncRunUseCases: Instancia de casos de uso de corridas
    """
    return SyncRunUseCases(db)
