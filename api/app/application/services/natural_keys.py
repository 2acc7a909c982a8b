"""
Derivacion de llaves naturales.

Este modulo es la UNICA fuente de las llaves que comparten el cliente de
sync y el servicio de ingesta. El camino temprano (placeholder creado por
una referencia) y el camino autoritativo (upsert de la entidad) deben
producir exactamente el mismo string, o los placeholders nunca convergen.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from app.shared.constants.live_sync_constants import EntityType, MISC_SKU


def customer_key(cucd: Any) -> str:
    """CUCD -> llave del cliente ("500")."""
    return str(int(cucd))


def location_key(site_no: Any) -> str:
    """SITENO -> llave de sucursal. Sin sitio se usa "0"."""
    return str(int(site_no or 0))


def invoice_key(site_no: Any, invoice: Any) -> str:
    """
    Llave compuesta de factura: "{SITENO}-{INVOICE}".

    El numero de factura solo es unico dentro de una sucursal.
    """
    return f"{location_key(site_no)}-{int(invoice)}"


def line_item_key(site_no: Any, invoice: Any, line_number: Any) -> str:
    """Llave de una linea: "{SITENO}-{INVOICE}-{LINENUM}"."""
    return f"{invoice_key(site_no, invoice)}-{int(line_number)}"


def base_sku(invno: Optional[str], partno: Optional[int]) -> str:
    """
    SKU antes de desambiguar: INVNO, o PARTNO si no hay INVNO,
    o "MISC" para lineas sin producto.
    """
    if invno and str(invno).strip():
        return str(invno).strip()
    if partno:
        return str(int(partno))
    return MISC_SKU


def disambiguated_sku(sku: str, partno: int) -> str:
    """SKU mangled cuando colisiona con otro producto: "{sku}-{PARTNO}"."""
    return f"{sku}-{int(partno)}"


def inventory_level_key(partno: Any, site_no: Any) -> str:
    return f"{int(partno)}@{location_key(site_no)}"


def record_natural_key(entity_type: EntityType, record: Mapping[str, Any]) -> str:
    """
    Llave natural de un registro del POS, usada por el cache de cambios.

    Raises:
        KeyError: si el registro no trae las columnas de su llave
    """
    if entity_type == EntityType.CATEGORIES:
        return str(record["CAT"])
    if entity_type == EntityType.BRANDS:
        return str(record["CODE"])
    if entity_type == EntityType.CUSTOMERS:
        return customer_key(record["CUCD"])
    if entity_type == EntityType.INVENTORY:
        return str(int(record["PARTNO"]))
    if entity_type == EntityType.INVENTORY_QUANTITIES:
        return inventory_level_key(record["PARTNO"], record["EFFSITENO"])
    if entity_type == EntityType.VEHICLES:
        return str(int(record["VHNO"]))
    if entity_type == EntityType.INVOICES:
        return invoice_key(record.get("SITENO"), record["INVOICE"])
    if entity_type == EntityType.DETAILS:
        return line_item_key(record.get("SITENO"), record["INVOICE"], record["LINENUM"])
    raise KeyError(f"Tipo de entidad sin llave natural: {entity_type}")
