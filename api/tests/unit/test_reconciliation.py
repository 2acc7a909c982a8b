"""
Tests de reconciliacion de totales de factura.

Verifica:
- encabezado placeholder creado por lineas y su reconciliacion
- convergencia sin importar el orden de llegada encabezado/lineas
- guarda de total en cero
- convergencia con lotes de lineas en cualquier permutacion
"""
from __future__ import annotations

from decimal import Decimal
from itertools import permutations

import pytest
from sqlalchemy import select

from app.application.use_cases.live_sync_use_cases import LiveSyncUseCases
from app.application.use_cases.reconciliation_use_cases import ReconciliationUseCases
from app.infrastructure.database.models import InvoiceModel


HEADER = {"INVOICE": 1, "SITENO": 1, "CUCD": 500, "INVDATE": "2025-03-01", "TAXABLE": 40, "TAX": 2}
LINES = [
    {"INVOICE": 1, "SITENO": 1, "LINENUM": 1, "PARTNO": 10, "DESCR": "Valve", "QTY": 2, "AMOUNT": 5, "COST": 4},
    {"INVOICE": 1, "SITENO": 1, "LINENUM": 2, "DESCR": "Labor", "QTY": 1, "LABOR": 20, "COST": 0},
    {"INVOICE": 1, "SITENO": 1, "LINENUM": 3, "DESCR": "Disposal fee", "QTY": 1, "AMOUNT": 3, "COST": 1},
]


async def _invoice(db_session, key: str = "1-1") -> InvoiceModel:
    result = await db_session.execute(select(InvoiceModel).where(InvoiceModel.invoice_key == key))
    return result.scalars().one()


@pytest.mark.asyncio
async def test_header_without_lines_then_two_lines(db_session) -> None:
    use_cases = LiveSyncUseCases(db_session)
    reconciliation = ReconciliationUseCases(db_session)
    await use_cases.sync_invoices([{"INVOICE": 1, "SITENO": 1, "CUCD": 500}])

    empty = await reconciliation.reconcile_totals("1-1")
    assert empty.found is True
    assert empty.line_count == 0
    assert empty.total_amount == 0

    await use_cases.sync_invoice_items([
        {"INVOICE": 1, "SITENO": 1, "LINENUM": 1, "DESCR": "Valve stem", "QTY": 2, "AMOUNT": 10},
        {"INVOICE": 1, "SITENO": 1, "LINENUM": 2, "DESCR": "Valve cap", "QTY": 1, "AMOUNT": 5},
    ])
    assert (await _invoice(db_session)).total_amount == Decimal("25.00")

    again = await reconciliation.reconcile_totals("1-1")
    assert again.updated is False
    assert again.total_amount == 25
    assert again.line_count == 2


@pytest.mark.asyncio
async def test_zero_quantity_line_reconciles_header_once(db_session) -> None:
    use_cases = LiveSyncUseCases(db_session)
    line = {"INVOICE": 1, "SITENO": 1, "LINENUM": 1, "DESCR": "Payment adj", "QTY": 0, "AMOUNT": 25}

    assert await use_cases.sync_invoice_items([line]) == 1
    invoice = await _invoice(db_session)
    assert invoice.is_placeholder is True
    assert invoice.total_amount == Decimal("25.00")

    # reenvio: nada que cambiar
    synced_at = invoice.last_synced_at
    result = await ReconciliationUseCases(db_session).reconcile_totals("1-1")
    assert result.updated is False
    assert (await _invoice(db_session)).last_synced_at == synced_at


@pytest.mark.asyncio
@pytest.mark.parametrize("header_first", [True, False])
async def test_header_and_lines_converge_in_any_order(db_session, header_first: bool) -> None:
    use_cases = LiveSyncUseCases(db_session)

    if header_first:
        await use_cases.sync_invoices([HEADER])
        await use_cases.sync_invoice_items(list(reversed(LINES)))
    else:
        await use_cases.sync_invoice_items(LINES)
        await use_cases.sync_invoices([HEADER])

    invoice = await _invoice(db_session)
    assert invoice.is_placeholder is False
    assert invoice.total_amount == Decimal("33.00")
    assert invoice.subtotal == Decimal("31.00")
    assert invoice.tax_amount == Decimal("2.00")
    assert invoice.gross_profit == Decimal("28.00")
    assert invoice.parts_cost == Decimal("5.00")
    assert invoice.labor_cost == Decimal("0.00")

    # reenviar el encabezado no pisa los agregados
    await use_cases.sync_invoices([HEADER])
    assert (await _invoice(db_session)).total_amount == Decimal("33.00")


@pytest.mark.asyncio
async def test_zero_guard_keeps_positive_total(db_session) -> None:
    use_cases = LiveSyncUseCases(db_session)
    await use_cases.sync_invoices([HEADER])
    await use_cases.sync_invoice_items([
        {"INVOICE": 1, "SITENO": 1, "LINENUM": 1, "DESCR": "Note", "QTY": 0, "AMOUNT": 0},
    ])

    invoice = await _invoice(db_session)
    assert invoice.total_amount == Decimal("42.00")

    result = await ReconciliationUseCases(db_session).reconcile_totals("1-1")
    assert result.skipped_by_zero_guard is True
    assert result.updated is False


@pytest.mark.asyncio
async def test_reconcile_missing_invoice(db_session) -> None:
    result = await ReconciliationUseCases(db_session).reconcile_totals("9-999")
    assert result.found is False


@pytest.mark.asyncio
async def test_reconcile_many_deduplicates(db_session) -> None:
    use_cases = LiveSyncUseCases(db_session)
    await use_cases.sync_invoice_items(LINES)

    results = await ReconciliationUseCases(db_session).reconcile_many(["1-1", "1-1", "2-5"])

    assert [r.invoice_key for r in results] == ["1-1", "2-5"]
    assert results[0].found is True
    assert results[1].found is False


_BATCHES = {
    "header": ("invoices", [HEADER]),
    "valve": ("details", LINES[:1]),
    "labor+fee": ("details", LINES[1:]),
}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "order",
    list(permutations(_BATCHES)),
    ids=lambda order: ">".join(order),
)
async def test_batches_converge_in_every_order(db_session, order) -> None:
    use_cases = LiveSyncUseCases(db_session)

    for name in order:
        collection, records = _BATCHES[name]
        if collection == "invoices":
            await use_cases.sync_invoices(records)
        else:
            await use_cases.sync_invoice_items(records)

    invoice = await _invoice(db_session)
    assert invoice.is_placeholder is False
    assert invoice.total_amount == Decimal("33.00")
    assert invoice.subtotal == Decimal("31.00")
    assert invoice.gross_profit == Decimal("28.00")
    assert invoice.parts_cost == Decimal("5.00")
