"""
Partido en lotes y limite de concurrencia de envios.

Todas las colecciones comparten un unico semaforo: como maximo N lotes
en vuelo en toda la corrida, sin importar el tipo. Los lotes esperan en
orden de llegada y el cupo se libera siempre, falle o no el envio.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Sequence

from loguru import logger

from app.application.dto.live_sync_dto import LegacyRecord
from app.application.services.natural_keys import record_natural_key
from app.shared.constants.live_sync_constants import EntityType

from .change_cache import ChangeCache
from .transport import LiveSyncClient, TransmissionError


@dataclass
class CollectionResult:
    """Contadores de una coleccion en una corrida."""

    entity_type: str
    read: int = 0
    invalid: int = 0
    excluded: int = 0
    skipped_unchanged: int = 0
    sent: int = 0
    applied: int = 0
    chunks: int = 0
    failed_chunks: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed_chunks == 0 and not self.errors


class ChunkScheduler:
    """
    Filtra registros sin cambios, parte el resto en lotes y los envia
    respetando el limite global de concurrencia.
    """

    def __init__(
        self,
        client: LiveSyncClient,
        cache: ChangeCache,
        *,
        batch_size: int = 2000,
        concurrency: int = 10,
    ) -> None:
        self._client = client
        self._cache = cache
        self._batch_size = max(1, batch_size)
        self._semaphore = asyncio.Semaphore(max(1, concurrency))

    async def submit(
        self,
        entity_type: EntityType,
        records: Sequence[LegacyRecord],
        result: CollectionResult | None = None,
    ) -> CollectionResult:
        """
        Envia una coleccion ya proyectada a su esquema.

        Un lote fallido se cuenta y se registra; no afecta a los demas.
        Un lote aplicado solo en parte cuenta como fallido y no toca la cache.
        """
        result = result or CollectionResult(entity_type=entity_type.value)
        result.read = result.read or len(records)

        # una llave repetida en la misma lectura se envia una sola vez
        pending: dict[str, dict[str, Any]] = {}
        for record in records:
            payload = record.to_payload()
            key = record_natural_key(entity_type, payload)
            if self._cache.should_sync(entity_type.value, key, payload):
                pending[key] = payload
            else:
                result.skipped_unchanged += 1

        items = list(pending.items())
        chunks = [items[i:i + self._batch_size] for i in range(0, len(items), self._batch_size)]
        result.chunks += len(chunks)

        if not chunks:
            logger.info(f"{entity_type.value}: sin cambios ({result.skipped_unchanged} omitidos)")
            return result

        logger.info(
            f"{entity_type.value}: enviando {len(items)} registros en {len(chunks)} lotes "
            f"({result.skipped_unchanged} sin cambios)"
        )
        await asyncio.gather(
            *(self._send_chunk(entity_type, index, chunk, result) for index, chunk in enumerate(chunks))
        )
        return result

    async def _send_chunk(
        self,
        entity_type: EntityType,
        index: int,
        chunk: list[tuple[str, dict[str, Any]]],
        result: CollectionResult,
    ) -> None:
        async with self._semaphore:
            try:
                applied = await self._client.post_chunk(entity_type, [payload for _, payload in chunk])
            except TransmissionError as e:
                result.failed_chunks += 1
                result.errors.append(str(e))
                logger.error(f"{entity_type.value}: lote {index + 1} fallo: {e}")
                return

        result.sent += len(chunk)
        result.applied += applied
        if applied < len(chunk):
            # el servicio no dice cuales rechazo: ninguna llave del lote queda en cache
            result.failed_chunks += 1
            result.errors.append(f"lote {index + 1} aplicado parcialmente ({applied}/{len(chunk)})")
            logger.error(
                f"{entity_type.value}: lote {index + 1} aplicado parcialmente ({applied}/{len(chunk)}), "
                f"se reenviara completo"
            )
            return

        for key, payload in chunk:
            self._cache.commit(entity_type.value, key, payload)
