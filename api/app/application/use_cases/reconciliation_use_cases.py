"""
Casos de uso de reconciliacion de totales de factura.

Los agregados del encabezado se recalculan desde sus lineas actuales:
- total_amount = suma de line_total
- subtotal     = total_amount - tax_amount
- gross_profit, parts_cost, labor_cost = sumas de las lineas
"""
from decimal import Decimal
from typing import Iterable, List

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.dto.live_sync_dto import ReconciliationResultDTO
from app.application.services.line_item_pricing import money
from app.infrastructure.repositories.canonical_repository import (
    CanonicalRepository,
    apply_changes,
    utc_now,
)


class ReconciliationUseCases:
    """Recalcula los agregados de encabezados desde sus lineas."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = CanonicalRepository(db)

    async def reconcile_totals(self, invoice_key: str) -> ReconciliationResultDTO:
        """
        Reconcilia una factura y hace commit si hubo cambios.

        Si las lineas suman 0 pero el encabezado ya tiene un total positivo,
        no se sobrescribe (podria ser una lectura parcial de lineas) y se
        emite un warning.

        Args:
            invoice_key: Llave compuesta "{SITENO}-{INVOICE}"

        Returns:
            ReconciliationResultDTO: found=False si la factura no existe
        """
        invoice = await self.repository.get_invoice(invoice_key)
        if invoice is None:
            logger.warning(f"Reconciliacion: factura {invoice_key} no encontrada")
            return ReconciliationResultDTO(invoice_key=invoice_key, found=False, updated=False)

        items = await self.repository.list_line_items(invoice.id)
        total = money(sum((Decimal(i.line_total or 0) for i in items), Decimal("0")))
        stored_total = Decimal(invoice.total_amount or 0)

        if total == 0 and stored_total > 0:
            logger.warning(
                f"Reconciliacion omitida para {invoice_key}: las lineas suman 0 "
                f"pero el encabezado tiene total {stored_total}"
            )
            return ReconciliationResultDTO(
                invoice_key=invoice_key,
                found=True,
                updated=False,
                skipped_by_zero_guard=True,
                total_amount=float(stored_total),
                line_count=len(items),
            )

        tax = Decimal(invoice.tax_amount or 0)
        values = {
            "total_amount": total,
            "subtotal": money(total - tax),
            "gross_profit": money(sum((Decimal(i.gross_profit or 0) for i in items), Decimal("0"))),
            "parts_cost": money(sum((Decimal(i.parts_cost or 0) for i in items), Decimal("0"))),
            "labor_cost": money(sum((Decimal(i.labor_cost or 0) for i in items), Decimal("0"))),
        }
        changed = apply_changes(invoice, values)
        if changed:
            invoice.last_synced_at = utc_now()
            await self.db.commit()
            logger.debug(f"Factura {invoice_key} reconciliada: {sorted(changed)}")

        return ReconciliationResultDTO(
            invoice_key=invoice_key,
            found=True,
            updated=bool(changed),
            total_amount=float(total),
            line_count=len(items),
        )

    async def reconcile_many(self, invoice_keys: Iterable[str]) -> List[ReconciliationResultDTO]:
        """
        Reconcilia un conjunto de facturas (deduplicado).
        El fallo de una no detiene a las demas.
        """
        results: List[ReconciliationResultDTO] = []
        for key in sorted(set(invoice_keys)):
            try:
                results.append(await self.reconcile_totals(key))
            except Exception as e:
                await self.db.rollback()
                logger.error(f"Error reconciliando factura {key}: {e}")
        return results
