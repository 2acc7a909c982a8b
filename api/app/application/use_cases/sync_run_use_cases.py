"""
Casos de uso del estado de corridas de sync.

El estado vive como filas con TTL en la base canonica, asi las consultas
de estado siguen siendo correctas despues de un reinicio del servicio.
"""
import uuid
from datetime import timedelta

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.dto.live_sync_dto import SyncRunDTO, SyncRunFinishDTO, SyncRunStartDTO
from app.core.config import settings
from app.infrastructure.database.models import SyncRunModel
from app.infrastructure.repositories.canonical_repository import utc_now
from app.infrastructure.repositories.sync_run_repository import SyncRunRepository
from app.shared.constants.live_sync_constants import SyncRunStatus
from app.shared.exceptions.domain import InvalidSyncRunStatusException, SyncRunNotFoundException


FINAL_STATUSES = [SyncRunStatus.SUCCESS.value, SyncRunStatus.PARTIAL.value, SyncRunStatus.FAILED.value]


class SyncRunUseCases:
    """Inicio, cierre y consulta de corridas."""

    def __init__(self, db: AsyncSession, ttl_hours: int = None):
        self.db = db
        self.repository = SyncRunRepository(db)
        self.ttl = timedelta(hours=ttl_hours if ttl_hours is not None else settings.SYNC_RUN_TTL_HOURS)

    async def start_run(self, dto: SyncRunStartDTO) -> SyncRunDTO:
        """
        Registra una corrida nueva en estado running.
        Antes purga las corridas expiradas.
        """
        now = utc_now()
        await self.repository.purge_expired(now)

        run = SyncRunModel(
            run_id=str(uuid.uuid4()),
            status=SyncRunStatus.RUNNING.value,
            source=dto.source,
            started_at=now,
            expires_at=now + self.ttl,
        )
        await self.repository.add(run)
        await self.db.commit()
        logger.info(f"Corrida de sync iniciada: {run.run_id} (origen={dto.source})")
        return SyncRunDTO.model_validate(run)

    async def finish_run(self, run_id: str, dto: SyncRunFinishDTO) -> SyncRunDTO:
        """
        Cierra una corrida con su estado final y resumen.

        Raises:
            InvalidSyncRunStatusException: Si el estado no es final
            SyncRunNotFoundException: Si la corrida no existe o expiro
        """
        if dto.status not in FINAL_STATUSES:
            raise InvalidSyncRunStatusException(dto.status, FINAL_STATUSES)

        now = utc_now()
        run = await self.repository.get_active(run_id, now)
        if run is None:
            raise SyncRunNotFoundException(run_id)

        run.status = dto.status
        run.summary = dto.summary
        run.error = dto.error
        run.finished_at = now
        await self.db.commit()

        if dto.status == SyncRunStatus.FAILED.value:
            logger.error(f"Corrida {run_id} finalizada con error: {dto.error}")
        else:
            logger.info(f"Corrida {run_id} finalizada: {dto.status}")
        return SyncRunDTO.model_validate(run)

    async def get_run(self, run_id: str) -> SyncRunDTO:
        """
        Raises:
            SyncRunNotFoundException: Si la corrida no existe o expiro
        """
        run = await self.repository.get_active(run_id, utc_now())
        if run is None:
            raise SyncRunNotFoundException(run_id)
        return SyncRunDTO.model_validate(run)
