"""
Repositorio de la base canonica.

Agrupa las busquedas por llave natural, la creacion de placeholders y la
escritura con diff a nivel de campo. No hace commit: la transaccion la
controla el caso de uso (un commit por registro).
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple, Type

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.services.natural_keys import (
    base_sku,
    customer_key,
    disambiguated_sku,
    invoice_key as build_invoice_key,
    location_key,
)
from app.infrastructure.database.models import (
    BrandModel,
    CategoryModel,
    CustomerModel,
    InventoryLevelModel,
    InvoiceLineItemModel,
    InvoiceModel,
    LocationModel,
    ProductModel,
    VehicleModel,
)
from app.shared.constants.live_sync_constants import (
    MISC_SKU,
    UNKNOWN_CUSTOMER_NAME,
    UNKNOWN_ITEM_DESCRIPTION,
    UpsertOutcome,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _comparable(value: Any) -> Any:
    """Normaliza valores numericos para comparar columna vs registro."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, (int, Decimal)):
        return Decimal(value)
    return value


def apply_changes(instance: Any, values: Dict[str, Any]) -> Set[str]:
    """
    Asigna solo los campos cuyo valor difiere del actual.

    Returns:
        Nombres de los campos modificados (vacio si no hubo cambios)
    """
    changed: Set[str] = set()
    for field, new_value in values.items():
        if _comparable(getattr(instance, field)) != _comparable(new_value):
            setattr(instance, field, new_value)
            changed.add(field)
    return changed


class CanonicalRepository:
    """Acceso a las entidades canonicas sincronizadas desde el POS."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Escritura generica
    # ------------------------------------------------------------------

    async def upsert(
        self,
        model_cls: Type[Any],
        existing: Optional[Any],
        values: Dict[str, Any],
    ) -> Tuple[Any, UpsertOutcome, Set[str]]:
        """
        Crea la fila o actualiza solo los campos distintos.

        Un registro sin cambios no genera escritura (ni siquiera de
        last_synced_at). Si hubo cambios se actualiza tambien last_synced_at.
        """
        if existing is None:
            instance = model_cls(**values, last_synced_at=utc_now())
            self.db.add(instance)
            await self.db.flush()
            return instance, UpsertOutcome.CREATED, set(values)

        changed = apply_changes(existing, values)
        if not changed:
            return existing, UpsertOutcome.UNCHANGED, changed

        existing.last_synced_at = utc_now()
        await self.db.flush()
        return existing, UpsertOutcome.UPDATED, changed

    async def _first(self, stmt):
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def _insert_placeholder(self, model_cls: Type[Any], values: Dict[str, Any], lookup):
        """
        Inserta un placeholder ignorando el conflicto de llave unica y
        devuelve la fila vigente.

        Varias peticiones concurrentes pueden crear el mismo placeholder;
        la que pierde la carrera se queda con la fila de la que gano.
        """
        table = model_cls.__table__
        row = {**values, "last_synced_at": utc_now()}
        if self.db.get_bind().dialect.name == "postgresql":
            stmt = pg_insert(table).values(**row).on_conflict_do_nothing()
        else:
            stmt = sqlite_insert(table).values(**row).on_conflict_do_nothing()
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            logger.info(f"{model_cls.__name__} {values} ya creado por otra peticion")

        instance = await self._first(lookup)
        if instance is None:
            raise LookupError(f"{model_cls.__name__} {values} no se pudo crear ni encontrar")
        return instance

    # ------------------------------------------------------------------
    # Datos de referencia
    # ------------------------------------------------------------------

    async def get_category(self, code: str) -> Optional[CategoryModel]:
        return await self._first(select(CategoryModel).where(CategoryModel.code == code))

    async def get_brand(self, code: str) -> Optional[BrandModel]:
        return await self._first(select(BrandModel).where(BrandModel.code == code))

    # ------------------------------------------------------------------
    # Clientes
    # ------------------------------------------------------------------

    async def get_customer(self, legacy_code: str) -> Optional[CustomerModel]:
        return await self._first(
            select(CustomerModel).where(CustomerModel.legacy_code == legacy_code)
        )

    async def get_or_create_customer_placeholder(self, cucd: int) -> CustomerModel:
        """Cliente referenciado antes de llegar por su coleccion."""
        code = customer_key(cucd)
        customer = await self.get_customer(code)
        if customer:
            return customer

        logger.warning(f"Cliente {code} no encontrado, creando placeholder")
        return await self._insert_placeholder(
            CustomerModel,
            {
                "legacy_code": code,
                "company_name": f"{UNKNOWN_CUSTOMER_NAME} ({code})",
                "is_active": False,
                "is_placeholder": True,
            },
            select(CustomerModel).where(CustomerModel.legacy_code == code),
        )

    # ------------------------------------------------------------------
    # Sucursales
    # ------------------------------------------------------------------

    async def get_or_create_location(self, site_no: Optional[int]) -> LocationModel:
        code = location_key(site_no)
        lookup = select(LocationModel).where(LocationModel.legacy_code == code)
        location = await self._first(lookup)
        if location:
            return location

        logger.info(f"Creando sucursal placeholder Site {code}")
        return await self._insert_placeholder(
            LocationModel,
            {"legacy_code": code, "name": f"Site {code}", "is_active": True, "is_placeholder": True},
            lookup,
        )

    # ------------------------------------------------------------------
    # Productos
    # ------------------------------------------------------------------

    async def get_product(self, legacy_id: int) -> Optional[ProductModel]:
        return await self._first(
            select(ProductModel).where(ProductModel.legacy_id == legacy_id)
        )

    async def get_product_by_sku(self, sku: str) -> Optional[ProductModel]:
        return await self._first(select(ProductModel).where(ProductModel.sku == sku))

    async def resolve_sku(self, sku: str, legacy_id: int) -> str:
        """
        Devuelve el SKU a usar para el producto legacy_id.

        Si otro producto (distinto PARTNO) ya tiene ese SKU, se agrega el
        PARTNO para desambiguar. El resultado es deterministico.
        """
        holder = await self.get_product_by_sku(sku)
        if holder is None or holder.legacy_id == legacy_id:
            return sku

        mangled = disambiguated_sku(sku, legacy_id)
        logger.warning(
            f"SKU duplicado {sku} para PARTNO {legacy_id} "
            f"(ya usado por PARTNO {holder.legacy_id}), usando {mangled}"
        )
        return mangled

    async def get_or_create_product_placeholder(
        self,
        partno: Optional[int],
        description: Optional[str] = None,
    ) -> ProductModel:
        """
        Producto referenciado por una linea o existencia antes de llegar
        por la coleccion de inventario. Sin PARTNO se usa el producto MISC.
        """
        if partno:
            lookup = select(ProductModel).where(ProductModel.legacy_id == partno)
        else:
            lookup = select(ProductModel).where(ProductModel.sku == MISC_SKU)
        product = await self._first(lookup)
        if product:
            return product

        if partno:
            sku = await self.resolve_sku(base_sku(None, partno), partno)
        else:
            sku = MISC_SKU

        logger.warning(f"Producto {partno or MISC_SKU} no encontrado, creando placeholder (sku={sku})")
        return await self._insert_placeholder(
            ProductModel,
            {
                "legacy_id": partno or None,
                "sku": sku,
                "description": description or UNKNOWN_ITEM_DESCRIPTION,
                "is_placeholder": True,
            },
            lookup,
        )

    # ------------------------------------------------------------------
    # Existencias y vehiculos
    # ------------------------------------------------------------------

    async def get_inventory_level(
        self, product_id: int, location_id: int
    ) -> Optional[InventoryLevelModel]:
        return await self._first(
            select(InventoryLevelModel).where(
                InventoryLevelModel.product_id == product_id,
                InventoryLevelModel.location_id == location_id,
            )
        )

    async def get_vehicle(self, legacy_id: int) -> Optional[VehicleModel]:
        return await self._first(
            select(VehicleModel).where(VehicleModel.legacy_id == legacy_id)
        )

    # ------------------------------------------------------------------
    # Facturas
    # ------------------------------------------------------------------

    async def get_invoice(self, key: str) -> Optional[InvoiceModel]:
        return await self._first(select(InvoiceModel).where(InvoiceModel.invoice_key == key))

    async def get_or_create_invoice_placeholder(
        self, site_no: Optional[int], invoice_number: int
    ) -> InvoiceModel:
        """Encabezado referenciado por una linea antes de llegar el encabezado."""
        key = build_invoice_key(site_no, invoice_number)
        invoice = await self.get_invoice(key)
        if invoice:
            return invoice

        location = await self.get_or_create_location(site_no)
        logger.warning(f"Factura {key} no encontrada, creando encabezado placeholder")
        return await self._insert_placeholder(
            InvoiceModel,
            {
                "invoice_key": key,
                "invoice_number": str(invoice_number),
                "site_no": site_no,
                "location_id": location.id,
                "subtotal": 0,
                "tax_amount": 0,
                "total_amount": 0,
                "gross_profit": 0,
                "parts_cost": 0,
                "labor_cost": 0,
                "is_placeholder": True,
            },
            select(InvoiceModel).where(InvoiceModel.invoice_key == key),
        )

    async def get_line_item(
        self, invoice_id: int, line_number: int
    ) -> Optional[InvoiceLineItemModel]:
        return await self._first(
            select(InvoiceLineItemModel).where(
                InvoiceLineItemModel.invoice_id == invoice_id,
                InvoiceLineItemModel.line_number == line_number,
            )
        )

    async def list_line_items(self, invoice_id: int) -> List[InvoiceLineItemModel]:
        result = await self.db.execute(
            select(InvoiceLineItemModel)
            .where(InvoiceLineItemModel.invoice_id == invoice_id)
            .order_by(InvoiceLineItemModel.line_number)
        )
        return list(result.scalars().all())

    async def keys_with_line_items(self, keys: List[str]) -> List[str]:
        """De las llaves dadas, las facturas que ya tienen lineas."""
        if not keys:
            return []
        result = await self.db.execute(
            select(InvoiceModel.invoice_key)
            .join(InvoiceLineItemModel, InvoiceLineItemModel.invoice_id == InvoiceModel.id)
            .where(InvoiceModel.invoice_key.in_(keys))
            .group_by(InvoiceModel.invoice_key)
            .having(func.count(InvoiceLineItemModel.id) > 0)
        )
        return [row[0] for row in result.all()]
