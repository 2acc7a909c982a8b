"""
Orquestador del cliente de sync POS legacy -> servicio de ingesta.

Diseño (resumen):
- Carga el cache de cambios y registra la corrida en el servicio
- Fase 1: datos de referencia (empleados, categorias, marcas, roster de
  clientes para exclusiones)
- Fase 2: clientes, inventario, existencias, vehiculos y facturas en
  paralelo; cada lote pasa por el limite global de concurrencia
- Guarda el cache y cierra la corrida con su resumen

Manejo de fallos:
- Una consulta o coleccion que falla se registra y la corrida termina
  como "partial"; el resto de colecciones sigue
- Solo un error fuera de las colecciones (cache, configuracion) es fatal
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Iterable, Optional, Type

from loguru import logger
from pydantic import ValidationError

from app.application.dto.live_sync_dto import (
    BrandRecord,
    CategoryRecord,
    CustomerRecord,
    EmployeeRecord,
    InventoryQuantityRecord,
    InvoiceItemRecord,
    InvoiceRecord,
    LegacyRecord,
    ProductRecord,
    VehicleRecord,
)
from app.application.services.natural_keys import invoice_key
from app.core.config import Settings, parse_list_setting
from app.shared.constants.live_sync_constants import EntityType, SyncRunStatus

from . import legacy_tables
from .batcher import ChunkScheduler, CollectionResult
from .change_cache import ChangeCache
from .legacy_reader import LegacyQueryError, LegacyReader
from .transport import LiveSyncClient, TransmissionError


class SyncConfigError(RuntimeError):
    """Error de configuración del pipeline."""


def _as_int(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _row_invoice_key(row: dict[str, Any]) -> Optional[str]:
    """Llave "{SITENO}-{INVOICE}" de una fila cruda, o None si no se puede derivar."""
    try:
        return invoice_key(row.get("SITENO"), row["INVOICE"])
    except (KeyError, TypeError, ValueError):
        return None


@dataclass(frozen=True)
class ExclusionRules:
    """
    Reglas de exclusion del negocio.

    - clientes cuyo nombre empieza con ZZ o contiene un nombre excluido
    - facturas de esos clientes o de un vendedor excluido
    - facturas con lineas contables internas (y sus lineas)
    """

    excluded_names: tuple[str, ...] = ()
    internal_line_markers: tuple[str, ...] = ()

    def is_excluded_customer(self, name: Optional[str]) -> bool:
        upper = (name or "").upper().strip()
        if upper.startswith("ZZ"):
            return True
        return any(excluded in upper for excluded in self.excluded_names)

    def is_excluded_salesperson(self, name: Optional[str]) -> bool:
        upper = (name or "").upper()
        return bool(upper) and any(excluded in upper for excluded in self.excluded_names)

    def is_internal_line(self, description: Optional[str]) -> bool:
        upper = (description or "").upper()
        return bool(upper) and any(marker in upper for marker in self.internal_line_markers)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExclusionRules":
        return cls(
            excluded_names=tuple(n.upper() for n in parse_list_setting(settings.SYNC_EXCLUDED_NAMES)),
            internal_line_markers=tuple(
                m.upper() for m in parse_list_setting(settings.SYNC_INTERNAL_LINE_MARKERS)
            ),
        )


@dataclass
class SyncRunReport:
    """Resultado de una corrida del cliente."""

    run_id: Optional[str] = None
    results: dict[str, CollectionResult] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def status(self) -> SyncRunStatus:
        if self.errors or any(not r.ok for r in self.results.values()):
            return SyncRunStatus.PARTIAL
        return SyncRunStatus.SUCCESS

    @property
    def total_sent(self) -> int:
        return sum(r.sent for r in self.results.values())

    def summary(self) -> dict[str, Any]:
        return {
            "collections": {name: asdict(r) for name, r in self.results.items()},
            "errors": list(self.errors),
            "sent": self.total_sent,
        }


def project_records(
    schema: Type[LegacyRecord],
    rows: Iterable[dict[str, Any]],
    result: CollectionResult,
) -> list[LegacyRecord]:
    """
    Proyecta filas crudas al esquema de la coleccion.
    Una fila invalida se descarta y se cuenta, sin afectar a las demas.
    """
    records: list[LegacyRecord] = []
    for row in rows:
        try:
            records.append(schema.model_validate(row))
        except ValidationError as e:
            result.invalid += 1
            logger.warning(f"{result.entity_type}: fila invalida omitida: {e.errors()[:1]}")
    return records


class LegacySyncRunner:
    """
    Corrida completa del cliente de sync.
    """

    def __init__(
        self,
        *,
        reader: LegacyReader,
        client: LiveSyncClient,
        cache: ChangeCache,
        scheduler: ChunkScheduler,
        rules: ExclusionRules,
        start_date: Optional[date] = None,
        source_name: str = "legacy-sync-client",
    ) -> None:
        self._reader = reader
        self._client = client
        self._cache = cache
        self._scheduler = scheduler
        self._rules = rules
        self._start_date = start_date
        self._source_name = source_name

        self._employees: dict[int, str] = {}
        self._customer_rows: list[dict[str, Any]] = []
        self._excluded_customers: set[int] = set()

    async def run(self) -> SyncRunReport:
        """
        Ejecuta la corrida. Los fallos por coleccion terminan en "partial";
        un error fatal se propaga despues de cerrar la corrida como "failed".
        """
        report = SyncRunReport()
        self._cache.load()
        report.run_id = await self._start_run()

        try:
            await self._load_reference_data(report)

            outcomes = await asyncio.gather(
                self._sync_customers(),
                self._sync_simple(EntityType.INVENTORY, legacy_tables.INVENTORY, ProductRecord),
                self._sync_simple(
                    EntityType.INVENTORY_QUANTITIES,
                    legacy_tables.INVENTORY_QUANTITIES,
                    InventoryQuantityRecord,
                ),
                self._sync_simple(EntityType.VEHICLES, legacy_tables.VEHICLES, VehicleRecord),
                self._sync_invoices(),
                return_exceptions=True,
            )
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        raise outcome
                    report.errors.append(str(outcome))
                    logger.error(f"Coleccion fallida: {outcome}")
                    continue
                for result in outcome:
                    report.results[result.entity_type] = result

            self._cache.persist()
        except Exception as e:
            logger.exception(f"Error fatal en la corrida de sync: {e}")
            await self._finish_run(report, SyncRunStatus.FAILED, error=str(e))
            raise

        status = report.status
        await self._finish_run(report, status)
        self._log_report(report)
        return report

    # ------------------------------------------------------------------
    # Estado de la corrida (best-effort)
    # ------------------------------------------------------------------

    async def _start_run(self) -> Optional[str]:
        try:
            run_id = await self._client.start_run(self._source_name)
            logger.info(f"Corrida registrada en el servicio: {run_id}")
            return run_id
        except TransmissionError as e:
            logger.warning(f"No se pudo registrar la corrida (se continua sin run_id): {e}")
            return None

    async def _finish_run(
        self,
        report: SyncRunReport,
        status: SyncRunStatus,
        error: Optional[str] = None,
    ) -> None:
        if report.run_id is None:
            return
        try:
            await self._client.finish_run(
                report.run_id,
                status=status.value,
                summary=report.summary(),
                error=error or ("; ".join(report.errors)[:2000] or None),
            )
        except TransmissionError as e:
            logger.warning(f"No se pudo cerrar la corrida {report.run_id}: {e}")

    # ------------------------------------------------------------------
    # Fase 1: referencia
    # ------------------------------------------------------------------

    async def _load_reference_data(self, report: SyncRunReport) -> None:
        await self._load_employees()

        for entity_type, source, schema in (
            (EntityType.CATEGORIES, legacy_tables.CATEGORIES, CategoryRecord),
            (EntityType.BRANDS, legacy_tables.BRANDS, BrandRecord),
        ):
            try:
                for result in await self._sync_simple(entity_type, source, schema):
                    report.results[result.entity_type] = result
            except LegacyQueryError as e:
                report.errors.append(str(e))
                logger.error(f"No se pudo sincronizar {entity_type.value}: {e}")

        try:
            self._customer_rows = await self._reader.read(legacy_tables.CUSTOMERS)
        except LegacyQueryError as e:
            # sin roster no hay exclusiones por cliente
            self._customer_rows = []
            report.errors.append(str(e))
            logger.error(f"No se pudo leer el roster de clientes: {e}")
            return

        self._excluded_customers = {
            _as_int(row.get("CUCD"))
            for row in self._customer_rows
            if self._rules.is_excluded_customer(row.get("NAME"))
        }
        self._excluded_customers.discard(None)
        logger.info(f"Clientes ZZ/internos excluidos: {len(self._excluded_customers)}")

    async def _load_employees(self) -> None:
        """Mapa ECUCD -> NOMBRE. Si falla, las facturas se envian sin vendedor."""
        try:
            rows = await self._reader.read(legacy_tables.EMPLOYEES)
        except LegacyQueryError as e:
            logger.warning(f"No se pudo leer EMPLOYEE, se omite el mapeo de vendedores: {e}")
            return

        result = CollectionResult(entity_type="employees")
        for employee in project_records(EmployeeRecord, rows, result):
            if employee.NAME:
                self._employees[employee.ECUCD] = employee.NAME
        logger.info(f"Empleados cargados: {len(self._employees)}")

    # ------------------------------------------------------------------
    # Fase 2: colecciones
    # ------------------------------------------------------------------

    async def _sync_simple(
        self,
        entity_type: EntityType,
        source: legacy_tables.LegacySource,
        schema: Type[LegacyRecord],
    ) -> list[CollectionResult]:
        rows = await self._reader.read(source)
        result = CollectionResult(entity_type=entity_type.value, read=len(rows))
        records = project_records(schema, rows, result)
        return [await self._scheduler.submit(entity_type, records, result)]

    async def _sync_customers(self) -> list[CollectionResult]:
        rows = self._customer_rows
        result = CollectionResult(entity_type=EntityType.CUSTOMERS.value, read=len(rows))
        if not rows:
            return [result]

        kept = [row for row in rows if _as_int(row.get("CUCD")) not in self._excluded_customers]
        result.excluded = len(rows) - len(kept)
        records = project_records(CustomerRecord, kept, result)
        return [await self._scheduler.submit(EntityType.CUSTOMERS, records, result)]

    async def _sync_invoices(self) -> list[CollectionResult]:
        """
        Encabezados desde SYNC_START_DATE y sus lineas.

        Se excluyen facturas de clientes excluidos, de vendedores excluidos
        y las que contienen lineas contables internas (junto con sus lineas).
        """
        header_rows = await self._reader.read(legacy_tables.INVOICES, since=self._start_date)
        headers_result = CollectionResult(entity_type=EntityType.INVOICES.value, read=len(header_rows))

        headers: dict[str, dict[str, Any]] = {}
        for row in header_rows:
            key = _row_invoice_key(row)
            if key is None:
                headers_result.invalid += 1
                continue
            if _as_int(row.get("CUCD")) in self._excluded_customers:
                headers_result.excluded += 1
                continue
            row = dict(row)
            row["SALESMAN"] = self._employees.get(_as_int(row.pop("BSALES", None)))
            if self._rules.is_excluded_salesperson(row["SALESMAN"]):
                headers_result.excluded += 1
                continue
            headers[key] = row

        invoice_numbers = sorted({row["INVOICE"] for row in headers.values()})
        details_result = CollectionResult(entity_type=EntityType.DETAILS.value)
        try:
            detail_rows = await self._reader.read(legacy_tables.DETAILS, keys=invoice_numbers)
        except LegacyQueryError as e:
            # los encabezados se envian igual, sin el filtro de lineas contables
            detail_rows = []
            details_result.errors.append(str(e))
            logger.error(f"No se pudieron leer las lineas de factura: {e}")
            logger.warning("Encabezados enviados sin excluir facturas contables internas")
        details_result.read = len(detail_rows)

        internal = {
            _row_invoice_key(row)
            for row in detail_rows
            if self._rules.is_internal_line(row.get("DESCR"))
        }
        internal.discard(None)
        if internal:
            logger.info(f"Facturas internas/contables omitidas: {len(internal)}")

        kept_headers = [row for key, row in headers.items() if key not in internal]
        headers_result.excluded += len(headers) - len(kept_headers)

        kept_details = []
        for row in detail_rows:
            key = _row_invoice_key(row)
            # INVOICE solo es unico por sucursal: se descartan lineas de otras sucursales
            if key in headers and key not in internal:
                kept_details.append(row)
            else:
                details_result.excluded += 1

        header_records = project_records(InvoiceRecord, kept_headers, headers_result)
        detail_records = project_records(InvoiceItemRecord, kept_details, details_result)

        return list(
            await asyncio.gather(
                self._scheduler.submit(EntityType.INVOICES, header_records, headers_result),
                self._scheduler.submit(EntityType.DETAILS, detail_records, details_result),
            )
        )

    def _log_report(self, report: SyncRunReport) -> None:
        for name, r in report.results.items():
            logger.info(
                f"{name}: leidos={r.read} invalidos={r.invalid} excluidos={r.excluded} "
                f"sin_cambios={r.skipped_unchanged} enviados={r.sent} aplicados={r.applied} "
                f"lotes_fallidos={r.failed_chunks}"
            )
        if report.status == SyncRunStatus.SUCCESS:
            logger.success(f"Sync completado: {report.total_sent} registros enviados")
        else:
            logger.warning(f"Sync completado con errores ({report.status.value})")


def build_from_settings(
    settings: Settings,
    *,
    client: Optional[LiveSyncClient] = None,
    reader: Optional[LegacyReader] = None,
) -> tuple[LegacySyncRunner, LegacyReader, LiveSyncClient]:
    """
    Constructor “oficial” del cliente leyendo la configuracion.

    Requiere LEGACY_DATABASE_URL (salvo que se inyecte el lector).
    """
    try:
        start_date = date.fromisoformat(settings.SYNC_START_DATE) if settings.SYNC_START_DATE else None
    except ValueError as e:
        raise SyncConfigError(f"SYNC_START_DATE invalida: {settings.SYNC_START_DATE}") from e

    if reader is None:
        if not settings.LEGACY_DATABASE_URL:
            raise SyncConfigError("Falta variable de entorno obligatoria: LEGACY_DATABASE_URL")
        reader = LegacyReader.from_url(
            settings.LEGACY_DATABASE_URL,
            timeout_s=settings.LEGACY_QUERY_TIMEOUT_S,
            concurrency=settings.LEGACY_QUERY_CONCURRENCY,
            in_clause_size=settings.LEGACY_IN_CLAUSE_SIZE,
        )

    client = client or LiveSyncClient(settings.LIVE_SYNC_URL, timeout_s=settings.SYNC_HTTP_TIMEOUT_S)
    cache = ChangeCache(settings.SYNC_CACHE_FILE)
    scheduler = ChunkScheduler(
        client,
        cache,
        batch_size=settings.SYNC_BATCH_SIZE,
        concurrency=settings.SYNC_CONCURRENCY,
    )
    runner = LegacySyncRunner(
        reader=reader,
        client=client,
        cache=cache,
        scheduler=scheduler,
        rules=ExclusionRules.from_settings(settings),
        start_date=start_date,
    )
    return runner, reader, client
