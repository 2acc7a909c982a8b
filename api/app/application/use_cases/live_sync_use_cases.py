"""
Casos de uso de ingesta del POS legacy.

Cada coleccion tiene un handler que procesa los registros de forma
secuencial e independiente:
1. Valida el registro contra su esquema
2. Resuelve referencias (creando placeholders si no existen)
3. Hace upsert por llave natural con diff a nivel de campo
4. Commit por registro; si falla, rollback y se sigue con el siguiente

El handler devuelve cuantos registros se aplicaron correctamente.
"""
from datetime import date
from decimal import Decimal
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Type

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.dto.live_sync_dto import (
    BrandRecord,
    CategoryRecord,
    CustomerRecord,
    InventoryQuantityRecord,
    InvoiceItemRecord,
    InvoiceRecord,
    LegacyRecord,
    ProductRecord,
    RemoteLogDTO,
    VehicleRecord,
)
from app.application.services.line_item_pricing import money, price_line, to_decimal
from app.application.services.natural_keys import (
    base_sku,
    customer_key,
    invoice_key as build_invoice_key,
    record_natural_key,
)
from app.application.services.product_classifier import classify_product
from app.application.use_cases.reconciliation_use_cases import ReconciliationUseCases
from app.infrastructure.database.models import (
    BrandModel,
    CategoryModel,
    CustomerModel,
    InventoryLevelModel,
    InvoiceLineItemModel,
    InvoiceModel,
    ProductModel,
    VehicleModel,
)
from app.infrastructure.repositories.canonical_repository import CanonicalRepository
from app.shared.constants.live_sync_constants import (
    EntityType,
    UNKNOWN_CUSTOMER_NAME,
    UNKNOWN_VALUE,
    UpsertOutcome,
)


RecordHandler = Callable[[Any], Awaitable[UpsertOutcome]]

_REMOTE_LEVELS = {
    "debug": "DEBUG",
    "info": "INFO",
    "log": "INFO",
    "success": "SUCCESS",
    "warn": "WARNING",
    "warning": "WARNING",
    "error": "ERROR",
}


def _money_or_none(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return money(to_decimal(value))


def _parse_legacy_date(value: Optional[str]) -> Optional[date]:
    """El POS entrega fechas como 'YYYY-MM-DD' o ISO con hora."""
    if not value:
        return None
    return date.fromisoformat(value[:10])


class LiveSyncUseCases:
    """
    Casos de uso de ingesta.
    Un registro invalido o que falla no detiene a sus hermanos.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = CanonicalRepository(db)
        self.reconciliation = ReconciliationUseCases(db)

    async def _ingest(
        self,
        entity_type: EntityType,
        raw_records: List[Dict[str, Any]],
        schema: Type[LegacyRecord],
        handler: RecordHandler,
    ) -> int:
        """
        Aplica el handler a cada registro, con commit individual.

        Returns:
            int: Registros aplicados (creados, actualizados o sin cambios)
        """
        logger.info(f"Sincronizando {len(raw_records)} registros de {entity_type.value}")
        applied = 0
        outcomes: Dict[UpsertOutcome, int] = {o: 0 for o in UpsertOutcome}

        for raw in raw_records:
            try:
                record = schema.model_validate(raw)
                try:
                    outcome = await handler(record)
                    await self.db.commit()
                except IntegrityError as e:
                    # otra peticion inserto la misma llave natural; al reintentar se actualiza
                    await self.db.rollback()
                    logger.warning(f"Conflicto de llave en {entity_type.value}, reintentando: {e.orig}")
                    outcome = await handler(record)
                    await self.db.commit()
                applied += 1
                outcomes[outcome] += 1
            except Exception as e:
                await self.db.rollback()
                try:
                    key = record_natural_key(entity_type, raw)
                except (KeyError, TypeError, ValueError):
                    key = "?"
                logger.error(f"Error sincronizando {entity_type.value} {key}: {e}")

        logger.info(
            f"{entity_type.value}: {applied}/{len(raw_records)} aplicados "
            f"(creados={outcomes[UpsertOutcome.CREATED]}, "
            f"actualizados={outcomes[UpsertOutcome.UPDATED]}, "
            f"sin cambios={outcomes[UpsertOutcome.UNCHANGED]})"
        )
        return applied

    # ------------------------------------------------------------------
    # Datos de referencia
    # ------------------------------------------------------------------

    async def sync_categories(self, categories: List[Dict[str, Any]]) -> int:
        return await self._ingest(EntityType.CATEGORIES, categories, CategoryRecord, self._apply_category)

    async def _apply_category(self, record: CategoryRecord) -> UpsertOutcome:
        existing = await self.repository.get_category(record.CAT)
        _, outcome, _ = await self.repository.upsert(
            CategoryModel,
            existing,
            {"code": record.CAT, "name": record.NAME, "cat_type": record.CatType},
        )
        return outcome

    async def sync_brands(self, brands: List[Dict[str, Any]]) -> int:
        return await self._ingest(EntityType.BRANDS, brands, BrandRecord, self._apply_brand)

    async def _apply_brand(self, record: BrandRecord) -> UpsertOutcome:
        existing = await self.repository.get_brand(record.CODE)
        _, outcome, _ = await self.repository.upsert(
            BrandModel, existing, {"code": record.CODE, "name": record.NAME}
        )
        return outcome

    # ------------------------------------------------------------------
    # Clientes
    # ------------------------------------------------------------------

    async def sync_customers(self, customers: List[Dict[str, Any]]) -> int:
        return await self._ingest(EntityType.CUSTOMERS, customers, CustomerRecord, self._apply_customer)

    async def _apply_customer(self, record: CustomerRecord) -> UpsertOutcome:
        code = customer_key(record.CUCD)
        existing = await self.repository.get_customer(code)
        address = " ".join(p for p in (record.ADDRESS1, record.ADDRESS2) if p) or None

        values = {
            "legacy_code": code,
            "company_name": record.COMPANY or record.NAME or record.CONTACT or UNKNOWN_CUSTOMER_NAME,
            "address": address,
            "city": record.CITY,
            "state": record.STATE,
            "zip_code": record.ZIP,
            "phone": record.BPHONE,
            "email": record.EMail,
            "credit_limit": _money_or_none(record.CREDIT),
            "payment_terms": record.TERMS,
            "is_active": record.ACTIVE == 1,
            "is_placeholder": False,
        }
        _, outcome, changed = await self.repository.upsert(CustomerModel, existing, values)
        if outcome == UpsertOutcome.UPDATED:
            logger.debug(f"Cliente {code} actualizado: {sorted(changed)}")
        return outcome

    # ------------------------------------------------------------------
    # Inventario
    # ------------------------------------------------------------------

    async def sync_inventory(self, inventory: List[Dict[str, Any]]) -> int:
        return await self._ingest(EntityType.INVENTORY, inventory, ProductRecord, self._apply_product)

    async def _apply_product(self, record: ProductRecord) -> UpsertOutcome:
        category_type = None
        if record.CAT:
            category = await self.repository.get_category(record.CAT)
            if category is not None:
                category_type = category.cat_type

        brand_name = record.MFG or UNKNOWN_VALUE
        if record.MFG:
            brand = await self.repository.get_brand(record.MFG)
            if brand is not None and brand.name:
                brand_name = brand.name

        classification = classify_product(
            record.CAT, record.SIZE, record.NAME, brand_name, category_type
        )
        sku = await self.repository.resolve_sku(base_sku(record.INVNO, record.PARTNO), record.PARTNO)
        existing = await self.repository.get_product(record.PARTNO)

        values = {
            "legacy_id": record.PARTNO,
            "sku": sku,
            "brand": brand_name,
            "size": record.SIZE or UNKNOWN_VALUE,
            "category_code": record.CAT,
            "product_type": classification.product_type.value,
            "quality": classification.quality.value,
            "description": record.NAME,
            "weight": _money_or_none(record.WEIGHT),
            "manufacturer_code": record.VENDPARTNO,
            "last_cost": _money_or_none(record.LASTCOST),
            "sale_price": _money_or_none(record.SALE_PRICE),
            "is_tire": classification.is_tire,
            "is_active": record.ACTIVE == 1,
            "is_placeholder": False,
        }
        _, outcome, _ = await self.repository.upsert(ProductModel, existing, values)
        return outcome

    async def sync_inventory_quantities(self, inventory_data: List[Dict[str, Any]]) -> int:
        return await self._ingest(
            EntityType.INVENTORY_QUANTITIES,
            inventory_data,
            InventoryQuantityRecord,
            self._apply_inventory_quantity,
        )

    async def _apply_inventory_quantity(self, record: InventoryQuantityRecord) -> UpsertOutcome:
        product = await self.repository.get_or_create_product_placeholder(record.PARTNO)
        location = await self.repository.get_or_create_location(record.EFFSITENO)
        existing = await self.repository.get_inventory_level(product.id, location.id)

        on_hand = to_decimal(record.QTYONHAND)
        reserved = to_decimal(record.RESERVE)
        values = {
            "product_id": product.id,
            "location_id": location.id,
            "quantity": money(on_hand),
            "reserved_qty": money(reserved),
            "available_qty": money(on_hand - reserved),
            "max_qty": _money_or_none(record.MAXQTY),
            "min_qty": _money_or_none(record.MINQTY),
        }
        _, outcome, _ = await self.repository.upsert(InventoryLevelModel, existing, values)
        return outcome

    # ------------------------------------------------------------------
    # Vehiculos
    # ------------------------------------------------------------------

    async def sync_vehicles(self, vehicles: List[Dict[str, Any]]) -> int:
        return await self._ingest(EntityType.VEHICLES, vehicles, VehicleRecord, self._apply_vehicle)

    async def _apply_vehicle(self, record: VehicleRecord) -> UpsertOutcome:
        customer_id = None
        if record.CUCD:
            customer = await self.repository.get_or_create_customer_placeholder(record.CUCD)
            customer_id = customer.id

        existing = await self.repository.get_vehicle(record.VHNO)
        values = {
            "legacy_id": record.VHNO,
            "customer_id": customer_id,
            "vin": record.VIN,
            "make": record.MAKE,
            "model": record.MODEL,
            "year": record.YEAR,
            "license_no": record.LICNO,
            "mileage": record.MILEAGE,
        }
        _, outcome, _ = await self.repository.upsert(VehicleModel, existing, values)
        return outcome

    # ------------------------------------------------------------------
    # Facturas
    # ------------------------------------------------------------------

    async def sync_invoices(self, invoices: List[Dict[str, Any]]) -> int:
        """
        Sincroniza encabezados y luego reconcilia los que ya tienen lineas,
        para que el orden de llegada encabezado/lineas no importe.
        """
        touched: Set[str] = set()
        count = await self._ingest(
            EntityType.INVOICES, invoices, InvoiceRecord, partial(self._apply_invoice, touched=touched)
        )
        with_children = await self.repository.keys_with_line_items(sorted(touched))
        await self.reconciliation.reconcile_many(with_children)
        return count

    async def _apply_invoice(self, record: InvoiceRecord, touched: Set[str]) -> UpsertOutcome:
        key = build_invoice_key(record.SITENO, record.INVOICE)

        customer_id = None
        if record.CUCD:
            customer = await self.repository.get_or_create_customer_placeholder(record.CUCD)
            customer_id = customer.id
        location = await self.repository.get_or_create_location(record.SITENO)
        existing = await self.repository.get_invoice(key)

        tax = to_decimal(record.TAX)
        subtotal = to_decimal(record.TAXABLE) + to_decimal(record.NOTAXABLE)
        values = {
            "invoice_key": key,
            "invoice_number": str(record.INVOICE),
            "site_no": record.SITENO,
            "location_id": location.id,
            "customer_id": customer_id,
            "invoice_date": _parse_legacy_date(record.INVDATE),
            "salesperson": record.SALESMAN,
            "tax_amount": money(tax),
            "is_placeholder": False,
        }
        # Con lineas existentes, los agregados los recalcula la reconciliacion
        if existing is None or not await self.repository.list_line_items(existing.id):
            values["subtotal"] = money(subtotal)
            values["total_amount"] = money(subtotal + tax)

        _, outcome, _ = await self.repository.upsert(InvoiceModel, existing, values)
        touched.add(key)
        return outcome

    async def sync_invoice_items(self, details: List[Dict[str, Any]]) -> int:
        """
        Sincroniza lineas de factura y reconcilia los encabezados tocados
        (cada llave una sola vez por lote).
        """
        touched: Set[str] = set()
        count = await self._ingest(
            EntityType.DETAILS, details, InvoiceItemRecord, partial(self._apply_invoice_item, touched=touched)
        )
        await self.reconciliation.reconcile_many(touched)
        return count

    async def _apply_invoice_item(self, record: InvoiceItemRecord, touched: Set[str]) -> UpsertOutcome:
        if not record.PARTNO and not record.DESCR:
            raise ValueError("linea sin PARTNO ni DESCR")

        invoice = await self.repository.get_or_create_invoice_placeholder(record.SITENO, record.INVOICE)
        product = await self.repository.get_or_create_product_placeholder(record.PARTNO, record.DESCR)

        pricing = price_line(
            record.QTY,
            record.AMOUNT,
            record.LABOR,
            record.FETAX,
            record.COST,
            record.DESCR,
            bool(product.is_tire),
        )
        existing = await self.repository.get_line_item(invoice.id, record.LINENUM)
        values = {
            "invoice_id": invoice.id,
            "line_number": record.LINENUM,
            "product_id": product.id,
            "product_code": product.sku,
            "description": record.DESCR or product.description or UNKNOWN_VALUE,
            "category": pricing.category.value,
            "quantity": pricing.quantity,
            "unit_price": pricing.unit_price,
            "line_total": pricing.line_total,
            "cost": pricing.cost,
            "unit_cost": pricing.unit_cost,
            "parts_cost": pricing.parts_cost,
            "labor_cost": pricing.labor_cost,
            "fet": pricing.fet,
            "gross_profit": pricing.gross_profit,
            "gross_profit_margin": pricing.gross_profit_margin,
        }
        _, outcome, _ = await self.repository.upsert(InvoiceLineItemModel, existing, values)
        touched.add(invoice.invoice_key)
        return outcome

    # ------------------------------------------------------------------
    # Logs remotos
    # ------------------------------------------------------------------

    def log_remote(self, entry: RemoteLogDTO) -> None:
        """Re-emite una entrada del cliente con prefijo [REMOTE] y su nivel."""
        level = _REMOTE_LEVELS.get(entry.level.lower(), "INFO")
        message = f"[REMOTE] {entry.message}"
        if entry.context is not None:
            message = f"{message} | context={entry.context}"
        logger.log(level, message)
