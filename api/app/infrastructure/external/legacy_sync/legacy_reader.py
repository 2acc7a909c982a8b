"""
Lector de solo lectura del POS legacy.

Requisitos cubiertos:
- SQLAlchemy (cualquier dialecto; en produccion mssql+pyodbc via DSN ODBC)
- cada consulta con timeout explicito
- listas de llaves partidas en bloques con parametros ligados
- tablas alternativas cuando la primera candidata falla
- un limite de consultas concurrentes compartido por todo el proceso

El driver DB-API es bloqueante: cada consulta corre en un thread
(asyncio.to_thread) con espera acotada. Un thread abandonado por timeout
conserva su cupo de concurrencia hasta terminar; con pyodbc el timeout
tambien se fija en el driver para que la consulta se corte del lado del
servidor.
"""

from __future__ import annotations

import asyncio
import math
from datetime import date
from typing import Any, Optional, Sequence

from loguru import logger
from sqlalchemy import bindparam, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .legacy_tables import LegacySource, TableCandidate


class LegacyQueryError(RuntimeError):
    """Error de una consulta al POS (driver, tabla inexistente, etc.)."""


class LegacyQueryTimeout(LegacyQueryError):
    """La consulta excedio LEGACY_QUERY_TIMEOUT_S."""


def set_driver_timeout(engine: Engine, timeout_s: float) -> None:
    """Timeout de consulta de pyodbc (Connection.timeout, en segundos enteros)."""
    seconds = max(1, int(math.ceil(timeout_s)))

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.timeout = seconds


def _chunks(values: Sequence[Any], size: int) -> list[list[Any]]:
    return [list(values[i:i + size]) for i in range(0, len(values), size)]


class LegacyReader:
    """
    Ejecuta consultas de extraccion. Nunca escribe en el origen.
    """

    def __init__(
        self,
        engine: Engine,
        *,
        timeout_s: float = 120.0,
        concurrency: int = 4,
        in_clause_size: int = 500,
    ) -> None:
        self._engine = engine
        self._timeout_s = timeout_s
        self._in_clause_size = max(1, in_clause_size)
        self._semaphore = asyncio.Semaphore(max(1, concurrency))

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "LegacyReader":
        engine = create_engine(url, pool_pre_ping=True)
        timeout_s = kwargs.get("timeout_s")
        if timeout_s and engine.dialect.driver == "pyodbc":
            set_driver_timeout(engine, timeout_s)
        return cls(engine, **kwargs)

    def dispose(self) -> None:
        self._engine.dispose()

    async def read(
        self,
        source: LegacySource,
        *,
        keys: Optional[Sequence[Any]] = None,
        since: Optional[date] = None,
    ) -> list[dict[str, Any]]:
        """
        Lee una coleccion completa, por lista de llaves o desde una fecha.

        Prueba las tablas candidatas en orden; devuelve el resultado de la
        primera que responde.

        Raises:
            LegacyQueryError: si ninguna candidata responde
        """
        if keys is not None and not keys:
            return []

        last_error: Optional[LegacyQueryError] = None
        for candidate in source.candidates:
            try:
                rows = await self._read_candidate(source, candidate, keys, since)
            except LegacyQueryError as e:
                logger.warning(f"No se pudo leer {source.name} desde {candidate.table}: {e}")
                last_error = e
                continue

            if candidate.row_mapper is not None:
                rows = [m for m in (candidate.row_mapper(r) for r in rows) if m is not None]
            logger.info(f"{source.name}: {len(rows)} filas leidas de {candidate.table}")
            return rows

        raise last_error or LegacyQueryError(f"{source.name} no tiene tablas candidatas")

    async def _read_candidate(
        self,
        source: LegacySource,
        candidate: TableCandidate,
        keys: Optional[Sequence[Any]],
        since: Optional[date],
    ) -> list[dict[str, Any]]:
        sql = f"SELECT {candidate.select} FROM {candidate.table}"
        conditions: list[str] = []
        params: dict[str, Any] = {}

        if since is not None and source.date_column:
            conditions.append(f"{source.date_column} >= :since")
            # el POS compara INVDATE contra literales ISO
            params["since"] = since.isoformat()

        if keys is None:
            if conditions:
                sql += " WHERE " + " AND ".join(conditions)
            return await self._execute(text(sql), params, candidate.table)

        if not source.key_column:
            raise LegacyQueryError(f"{source.name} no admite filtro por llaves")

        conditions.append(f"{source.key_column} IN :keys")
        stmt = text(sql + " WHERE " + " AND ".join(conditions)).bindparams(
            bindparam("keys", expanding=True)
        )
        parts = await asyncio.gather(
            *(
                self._execute(stmt, {**params, "keys": chunk}, candidate.table)
                for chunk in _chunks(list(keys), self._in_clause_size)
            )
        )
        return [row for part in parts for row in part]

    async def _execute(self, stmt, params: dict[str, Any], table: str) -> list[dict[str, Any]]:
        await self._semaphore.acquire()
        worker = asyncio.ensure_future(asyncio.to_thread(self._execute_blocking, stmt, params))
        try:
            done, _ = await asyncio.wait({worker}, timeout=self._timeout_s)
        except asyncio.CancelledError:
            worker.add_done_callback(self._release_slot)
            raise

        if not done:
            # el thread sigue vivo hasta que el driver corte: el cupo se libera al terminar
            worker.add_done_callback(self._release_slot)
            raise LegacyQueryTimeout(f"Consulta a {table} excedio {self._timeout_s}s")

        self._semaphore.release()
        try:
            return worker.result()
        except SQLAlchemyError as e:
            raise LegacyQueryError(f"Consulta a {table} fallo: {e}") from e

    def _release_slot(self, worker: "asyncio.Future[Any]") -> None:
        self._semaphore.release()
        if not worker.cancelled() and worker.exception() is not None:
            logger.debug(f"Consulta abandonada por timeout termino con error: {worker.exception()}")

    def _execute_blocking(self, stmt, params: dict[str, Any]) -> list[dict[str, Any]]:
        with self._engine.connect() as conn:
            result = conn.execute(stmt, params)
            return [dict(row._mapping) for row in result]
