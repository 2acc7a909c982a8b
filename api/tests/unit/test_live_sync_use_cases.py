"""
Tests de los casos de uso de ingesta contra SQLite en memoria.

Verifica:
- upsert idempotente con diff a nivel de campo
- placeholders que conservan su identidad al llegar el registro real
- aislamiento de fallos por registro
- desambiguacion de SKU
"""
from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.application.use_cases.live_sync_use_cases import LiveSyncUseCases
from app.infrastructure.database.models import (
    CustomerModel,
    InventoryLevelModel,
    InvoiceModel,
    LocationModel,
    ProductModel,
    VehicleModel,
)


async def _customer(db_session, code: str) -> CustomerModel:
    result = await db_session.execute(select(CustomerModel).where(CustomerModel.legacy_code == code))
    return result.scalars().one()


@pytest.mark.asyncio
async def test_customer_created_then_unchanged_then_updated(db_session) -> None:
    use_cases = LiveSyncUseCases(db_session)
    record = {"CUCD": 500, "NAME": "ACME", "CITY": "Reno", "ACTIVE": 1}

    assert await use_cases.sync_customers([record]) == 1
    customer = await _customer(db_session, "500")
    assert customer.company_name == "ACME"
    assert customer.is_active is True
    first_synced = customer.last_synced_at

    # reenvio identico: sin escritura
    assert await use_cases.sync_customers([record]) == 1
    customer = await _customer(db_session, "500")
    assert customer.last_synced_at == first_synced

    # solo cambia el telefono
    assert await use_cases.sync_customers([{**record, "BPHONE": "775-555-0100"}]) == 1
    customer = await _customer(db_session, "500")
    assert customer.phone == "775-555-0100"
    assert customer.company_name == "ACME"
    assert customer.last_synced_at != first_synced

    count = await db_session.scalar(select(func.count()).select_from(CustomerModel))
    assert count == 1


@pytest.mark.asyncio
async def test_customer_name_fallbacks(db_session) -> None:
    use_cases = LiveSyncUseCases(db_session)

    await use_cases.sync_customers([
        {"CUCD": 1, "COMPANY": "Co", "NAME": "Name"},
        {"CUCD": 2, "CONTACT": "Contact"},
        {"CUCD": 3},
    ])

    assert (await _customer(db_session, "1")).company_name == "Co"
    assert (await _customer(db_session, "2")).company_name == "Contact"
    assert (await _customer(db_session, "3")).company_name == "Unknown Customer"


@pytest.mark.asyncio
async def test_invalid_record_does_not_block_siblings(db_session) -> None:
    use_cases = LiveSyncUseCases(db_session)

    applied = await use_cases.sync_customers([
        {"CUCD": 1, "NAME": "Uno"},
        {"NAME": "sin CUCD"},
        {"CUCD": "no-es-numero"},
        {"CUCD": 2, "NAME": "Dos"},
    ])

    assert applied == 2
    count = await db_session.scalar(select(func.count()).select_from(CustomerModel))
    assert count == 2


@pytest.mark.asyncio
async def test_vehicle_creates_customer_placeholder_that_keeps_identity(db_session) -> None:
    use_cases = LiveSyncUseCases(db_session)

    assert await use_cases.sync_vehicles([{"VHNO": 77, "CUCD": 900, "MAKE": "Ford"}]) == 1
    placeholder = await _customer(db_session, "900")
    assert placeholder.is_placeholder is True
    assert placeholder.company_name == "Unknown Customer (900)"
    placeholder_id = placeholder.id

    await use_cases.sync_customers([{"CUCD": 900, "NAME": "Real Name", "ACTIVE": 1}])

    customer = await _customer(db_session, "900")
    assert customer.id == placeholder_id
    assert customer.is_placeholder is False
    assert customer.company_name == "Real Name"

    vehicle = (await db_session.execute(select(VehicleModel))).scalars().one()
    assert vehicle.customer_id == placeholder_id


@pytest.mark.asyncio
async def test_inventory_uses_category_type_and_brand_name(db_session) -> None:
    use_cases = LiveSyncUseCases(db_session)
    await use_cases.sync_categories([{"CAT": "TIRES", "NAME": "Tires", "CatType": 1}])
    await use_cases.sync_brands([{"CODE": "MICH", "NAME": "Michelin"}])

    await use_cases.sync_inventory([
        {"PARTNO": 10, "INVNO": "M-1", "MFG": "MICH", "SIZE": "225/65R17", "CAT": "TIRES", "ACTIVE": 1},
    ])

    product = (await db_session.execute(select(ProductModel))).scalars().one()
    assert product.sku == "M-1"
    assert product.brand == "Michelin"
    assert product.is_tire is True
    assert product.quality == "premium"


@pytest.mark.asyncio
async def test_sku_collision_is_disambiguated(db_session) -> None:
    use_cases = LiveSyncUseCases(db_session)

    await use_cases.sync_inventory([
        {"PARTNO": 10, "INVNO": "ABC"},
        {"PARTNO": 11, "INVNO": "ABC"},
    ])
    # reenvio: el resultado es el mismo
    await use_cases.sync_inventory([{"PARTNO": 11, "INVNO": "ABC"}])

    products = (await db_session.execute(select(ProductModel).order_by(ProductModel.legacy_id))).scalars().all()
    assert [p.sku for p in products] == ["ABC", "ABC-11"]


@pytest.mark.asyncio
async def test_inventory_quantity_creates_placeholders(db_session) -> None:
    use_cases = LiveSyncUseCases(db_session)

    applied = await use_cases.sync_inventory_quantities([
        {"PARTNO": 10, "EFFSITENO": 2, "QTYONHAND": 8, "RESERVE": 3},
    ])

    assert applied == 1
    level = (await db_session.execute(select(InventoryLevelModel))).scalars().one()
    assert level.available_qty == Decimal("5.00")
    location = (await db_session.execute(select(LocationModel))).scalars().one()
    assert location.name == "Site 2"
    product = (await db_session.execute(select(ProductModel))).scalars().one()
    assert product.is_placeholder is True
    placeholder_id = product.id

    await use_cases.sync_inventory([{"PARTNO": 10, "INVNO": "REAL-10", "NAME": "Real"}])
    product = (await db_session.execute(select(ProductModel))).scalars().one()
    assert product.id == placeholder_id
    assert product.sku == "REAL-10"
    assert product.is_placeholder is False


@pytest.mark.asyncio
async def test_invoice_header_totals(db_session) -> None:
    use_cases = LiveSyncUseCases(db_session)

    await use_cases.sync_invoices([
        {"INVOICE": 1, "SITENO": 1, "CUCD": 500, "INVDATE": "2025-03-01T00:00:00",
         "TAXABLE": 100, "NOTAXABLE": 20, "TAX": 8.25, "SALESMAN": "Bob"},
    ])

    invoice = (await db_session.execute(select(InvoiceModel))).scalars().one()
    assert invoice.invoice_key == "1-1"
    assert invoice.subtotal == Decimal("120.00")
    assert invoice.total_amount == Decimal("128.25")
    assert invoice.salesperson == "Bob"
    assert str(invoice.invoice_date) == "2025-03-01"


@pytest.mark.asyncio
async def test_line_without_partno_or_description_is_rejected(db_session) -> None:
    use_cases = LiveSyncUseCases(db_session)

    applied = await use_cases.sync_invoice_items([
        {"INVOICE": 1, "SITENO": 1, "LINENUM": 1, "QTY": 1, "AMOUNT": 5},
        {"INVOICE": 1, "SITENO": 1, "LINENUM": 2, "DESCR": "Shop supplies", "QTY": 1, "AMOUNT": 5},
    ])

    assert applied == 1
    misc = (await db_session.execute(select(ProductModel))).scalars().one()
    assert misc.sku == "MISC"


def test_remote_log_reemits_with_prefix() -> None:
    from unittest.mock import MagicMock

    from loguru import logger

    from app.application.dto.live_sync_dto import RemoteLogDTO

    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    try:
        LiveSyncUseCases(MagicMock()).log_remote(RemoteLogDTO(level="warn", message="lote lento"))
    finally:
        logger.remove(handler_id)

    assert messages == ["[REMOTE] lote lento"]


@pytest.mark.asyncio
async def test_concurrent_requests_share_placeholders(tmp_path) -> None:
    """Peticiones simultaneas que crean el mismo cliente y sucursal no se pierden."""
    import asyncio

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

    from app.infrastructure.database.session import Base

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'canonical.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def send_invoice(number: int) -> int:
        async with factory() as session:
            return await LiveSyncUseCases(session).sync_invoices(
                [{"INVOICE": number, "SITENO": 7, "CUCD": 500, "TAXABLE": 10}]
            )

    async def send_customer() -> int:
        async with factory() as session:
            return await LiveSyncUseCases(session).sync_customers([{"CUCD": 500, "NAME": "ACME"}])

    try:
        counts = await asyncio.gather(send_customer(), *(send_invoice(n) for n in range(1, 7)))

        async with factory() as session:
            invoices = await session.scalar(select(func.count()).select_from(InvoiceModel))
            locations = (await session.execute(select(LocationModel))).scalars().all()
            customer = await _customer(session, "500")
    finally:
        await engine.dispose()

    assert counts == [1] * 7
    assert invoices == 6
    assert [loc.legacy_code for loc in locations] == ["7"]
    assert customer.company_name == "ACME"
    assert customer.is_placeholder is False


@pytest.mark.asyncio
async def test_existing_placeholder_is_reused_by_insert(db_session) -> None:
    from app.infrastructure.repositories.canonical_repository import CanonicalRepository

    repository = CanonicalRepository(db_session)
    first = await repository.get_or_create_product_placeholder(None, "Shop supplies")
    again = await repository._insert_placeholder(
        ProductModel,
        {"legacy_id": None, "sku": "MISC", "description": "otra", "is_placeholder": True},
        select(ProductModel).where(ProductModel.sku == "MISC"),
    )

    assert again.id == first.id
    assert again.description == "Shop supplies"
