"""
Corrida completa del cliente de sync contra un POS SQLite y el servicio
de ingesta servido por ASGITransport.

Verifica:
- exclusiones de clientes ZZ, vendedores internos y facturas contables
- encabezados y lineas reconciliados en la base canonica
- una segunda corrida sin cambios no envia nada
- estado de la corrida registrado en el servicio
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import create_engine, select, text

from app.core.config import Settings
from app.infrastructure.database.models import CustomerModel, InvoiceModel, SyncRunModel
from app.infrastructure.external.legacy_sync.batcher import ChunkScheduler
from app.infrastructure.external.legacy_sync.change_cache import ChangeCache
from app.infrastructure.external.legacy_sync.legacy_reader import LegacyReader
from app.infrastructure.external.legacy_sync.sync_service import (
    ExclusionRules,
    LegacySyncRunner,
    SyncConfigError,
    build_from_settings,
)
from app.infrastructure.external.legacy_sync.transport import LiveSyncClient
from app.shared.constants.live_sync_constants import SyncRunStatus


_POS_SCHEMA = [
    "CREATE TABLE EMPLOYEE (ECUCD INTEGER, NAME TEXT)",
    "CREATE TABLE INVCAT (CAT TEXT, NAME TEXT, CatType INTEGER)",
    "CREATE TABLE MFGCODE (Code TEXT, Descr TEXT)",
    "CREATE TABLE CUSTOMER (CUCD INTEGER, NAME TEXT, ADDRESS1 TEXT, ADDRESS2 TEXT, CITY TEXT, STATE TEXT, "
    "ZIP TEXT, BPHONE TEXT, EMail TEXT, CREDIT REAL, TERMS TEXT, ACTIVE INTEGER)",
    "CREATE TABLE INV (PARTNO INTEGER, INVNO TEXT, MFG TEXT, SIZE TEXT, CAT TEXT, NAME TEXT, WEIGHT REAL, "
    "ACTIVE INTEGER, VENDPARTNO TEXT)",
    "CREATE TABLE INVPRICE (PARTNO INTEGER, EFFSITENO INTEGER, QTYONHAND REAL, RESERVE REAL)",
    "CREATE TABLE VEHICLE (VHNO INTEGER, CUCD INTEGER, MAKE TEXT)",
    "CREATE TABLE HINVOICE (INVOICE INTEGER, CUCD INTEGER, INVDATE TEXT, TAX REAL, NOTAXABLE REAL, "
    "TAXABLE REAL, SITENO INTEGER, BSALES INTEGER)",
    "CREATE TABLE TRANS (INVOICE INTEGER, LINENUM INTEGER, SITENO INTEGER, PARTNO INTEGER, DESCR TEXT, "
    "QTY REAL, AMOUNT REAL, COST REAL, FETAX REAL, LABOR REAL)",
]

_POS_DATA = [
    "INSERT INTO EMPLOYEE VALUES (1, 'Bob'), (2, 'ACCOUNTING DEPT')",
    "INSERT INTO INVCAT VALUES ('TIRES', 'Tires', 1)",
    "INSERT INTO MFGCODE VALUES ('MICH', 'Michelin')",
    "INSERT INTO CUSTOMER (CUCD, NAME, CITY, ACTIVE) VALUES (500, 'ACME', 'Reno', 1), (501, 'ZZ Test', NULL, 1)",
    "INSERT INTO INV (PARTNO, INVNO, MFG, SIZE, CAT, NAME, ACTIVE) "
    "VALUES (10, 'T-1', 'MICH', '225/65R17', 'TIRES', 'Defender', 1)",
    "INSERT INTO INVPRICE VALUES (10, 1, 5, 1)",
    "INSERT INTO VEHICLE VALUES (77, 500, 'Ford')",
    # 1: valida | 2: cliente ZZ | 3: vendedor interno | 4: linea contable | 5: antes de la fecha minima
    "INSERT INTO HINVOICE VALUES "
    "(1, 500, '2025-03-01', 2, 0, 40, 1, 1), "
    "(2, 501, '2025-03-01', 0, 0, 10, 1, 1), "
    "(3, 500, '2025-03-02', 0, 0, 10, 1, 2), "
    "(4, 500, '2025-03-03', 0, 0, 10, 1, 1), "
    "(5, 500, '2024-06-01', 0, 0, 10, 1, 1)",
    "INSERT INTO TRANS VALUES "
    "(1, 1, 1, 10, 'Defender 225/65R17', 1, 100, 60, 0, 0), "
    "(1, 2, 1, NULL, 'Mount labor', 1, 0, 0, 0, 20), "
    "(1, 1, 2, NULL, 'Otra sucursal', 1, 5, 0, 0, 0), "
    "(4, 1, 1, NULL, 'INVENTORY COST ADJ', 1, 0, 0, 0, 0)",
]


@pytest.fixture
def legacy_reader(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'pos.db'}",
        connect_args={"check_same_thread": False},
    )
    with engine.begin() as conn:
        for statement in _POS_SCHEMA + _POS_DATA:
            conn.execute(text(statement))
    reader = LegacyReader(engine, timeout_s=10)
    yield reader
    reader.dispose()


@pytest_asyncio.fixture
async def live_sync_client(app):
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test/api/v1/live-sync/")
    client = LiveSyncClient("http://test/api/v1/live-sync", client=http)
    yield client
    await http.aclose()


def _runner(reader: LegacyReader, client: LiveSyncClient, cache_path) -> LegacySyncRunner:
    cache = ChangeCache(cache_path)
    # un lote en vuelo: la base de prueba comparte una sola conexion
    scheduler = ChunkScheduler(client, cache, batch_size=2, concurrency=1)
    rules = ExclusionRules(
        excluded_names=("INTERNAL", "ACCOUNTING"),
        internal_line_markers=("INVENTORY COST",),
    )
    return LegacySyncRunner(
        reader=reader,
        client=client,
        cache=cache,
        scheduler=scheduler,
        rules=rules,
        start_date=date(2025, 1, 1),
    )


@pytest.mark.asyncio
async def test_full_run_then_idempotent_rerun(legacy_reader, live_sync_client, db_session, tmp_path) -> None:
    cache_path = tmp_path / "sync_cache.json"

    report = await _runner(legacy_reader, live_sync_client, cache_path).run()

    assert report.status == SyncRunStatus.SUCCESS
    assert report.results["customers"].excluded == 1
    assert report.results["customers"].sent == 1
    assert report.results["invoices"].excluded == 3
    assert report.results["invoices"].sent == 1
    assert report.results["details"].sent == 2
    assert report.results["details"].excluded == 2

    invoices = (await db_session.execute(select(InvoiceModel))).scalars().all()
    assert [i.invoice_key for i in invoices] == ["1-1"]
    invoice = invoices[0]
    assert invoice.is_placeholder is False
    assert invoice.salesperson == "Bob"
    assert invoice.total_amount == Decimal("120.00")
    assert invoice.subtotal == Decimal("118.00")
    assert invoice.gross_profit == Decimal("60.00")

    customers = (await db_session.execute(select(CustomerModel))).scalars().all()
    assert [(c.legacy_code, c.company_name, c.is_placeholder) for c in customers] == [("500", "ACME", False)]

    run = await db_session.get(SyncRunModel, report.run_id)
    assert run.status == "success"

    # segunda corrida: todo sin cambios
    second = await _runner(legacy_reader, live_sync_client, cache_path).run()
    assert second.status == SyncRunStatus.SUCCESS
    assert second.total_sent == 0
    assert second.results["customers"].skipped_unchanged == 1
    assert second.results["details"].skipped_unchanged == 2


@pytest.mark.asyncio
async def test_missing_details_table_still_sends_headers(live_sync_client, db_session, tmp_path) -> None:
    engine = create_engine(
        f"sqlite:///{tmp_path / 'pos_sin_trans.db'}",
        connect_args={"check_same_thread": False},
    )
    with engine.begin() as conn:
        for statement in _POS_SCHEMA + _POS_DATA:
            if "TRANS" not in statement:
                conn.execute(text(statement))
    reader = LegacyReader(engine, timeout_s=10)

    try:
        report = await _runner(reader, live_sync_client, tmp_path / "cache.json").run()
    finally:
        reader.dispose()

    assert report.status == SyncRunStatus.PARTIAL
    assert report.results["details"].errors
    assert report.results["details"].sent == 0
    # sin lineas no se puede aplicar el filtro contable: la factura 4 tambien se envia
    assert report.results["invoices"].sent == 2
    assert report.results["invoices"].ok

    keys = (await db_session.execute(select(InvoiceModel.invoice_key))).scalars().all()
    assert sorted(keys) == ["1-1", "1-4"]


@pytest.mark.asyncio
async def test_rejected_chunks_make_run_partial(legacy_reader, tmp_path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/runs"):
            return httpx.Response(201, json={"run_id": "r-1"})
        if request.url.path.endswith("/vehicles"):
            return httpx.Response(500, text="boom")
        if request.url.path.endswith("/finish"):
            return httpx.Response(200, json={})
        body = request.read()
        return httpx.Response(200, json={"count": body.count(b"{") - 1})

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://svc/live-sync/")
    client = LiveSyncClient("http://svc/live-sync", client=http)
    cache_path = tmp_path / "sync_cache.json"

    report = await _runner(legacy_reader, client, cache_path).run()
    await http.aclose()

    assert report.status == SyncRunStatus.PARTIAL
    assert report.results["vehicles"].failed_chunks == 1
    assert report.results["customers"].ok

    reloaded = ChangeCache(cache_path)
    reloaded.load()
    assert reloaded.should_sync("vehicles", "77", {"VHNO": 77, "CUCD": 500, "MAKE": "Ford"}) is True
    assert reloaded.should_sync("customers", "500", {"CUCD": 500, "NAME": "ACME", "CITY": "Reno", "ACTIVE": 1}) is False


@pytest.mark.asyncio
async def test_unreachable_service_still_runs(legacy_reader, tmp_path) -> None:
    """Sin servicio la corrida termina parcial y sin run_id."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("sin conexion", request=request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://svc/")
    client = LiveSyncClient("http://svc", client=http)

    report = await _runner(legacy_reader, client, tmp_path / "cache.json").run()
    await http.aclose()

    assert report.run_id is None
    assert report.status == SyncRunStatus.PARTIAL
    assert report.total_sent == 0


def test_build_from_settings_requires_legacy_url() -> None:
    with pytest.raises(SyncConfigError):
        build_from_settings(Settings(LEGACY_DATABASE_URL=""))


def test_build_from_settings_rejects_bad_start_date() -> None:
    with pytest.raises(SyncConfigError):
        build_from_settings(Settings(LEGACY_DATABASE_URL="sqlite://", SYNC_START_DATE="01/02/2025"))


def test_exclusion_rules() -> None:
    rules = ExclusionRules.from_settings(Settings())

    assert rules.is_excluded_customer("zz old account")
    assert rules.is_excluded_customer("Visa Payments")
    assert not rules.is_excluded_customer("ACME")
    assert rules.is_excluded_salesperson("Internal User")
    assert not rules.is_excluded_salesperson(None)
    assert rules.is_internal_line("Payroll March")
    assert not rules.is_internal_line("Tire rotation")
