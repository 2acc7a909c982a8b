"""
Definicion de las consultas al POS legacy (tabla origen por coleccion).

Este módulo no realiza I/O: solo define configuración.

Algunas instalaciones del POS tienen variantes de esquema; para esas
colecciones hay una lista ordenada de tablas candidatas y se usa la
primera que responde.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

RowMapper = Callable[[dict[str, Any]], Optional[dict[str, Any]]]


@dataclass(frozen=True)
class TableCandidate:
    """
    Una tabla posible para una coleccion.

    - select: lista de columnas (o "*")
    - row_mapper: normaliza columnas propias de esta variante al esquema
      de la coleccion; si devuelve None la fila se descarta
    """

    table: str
    select: str = "*"
    row_mapper: Optional[RowMapper] = None


@dataclass(frozen=True)
class LegacySource:
    """
    Coleccion del POS.

    - key_column: columna para filtrar por lista de llaves (IN)
    - date_column: columna para filtrar por fecha minima (>=)
    """

    name: str
    candidates: list[TableCandidate] = field(default_factory=list)
    key_column: Optional[str] = None
    date_column: Optional[str] = None


def _first(row: dict[str, Any], *names: str) -> Any:
    for name in names:
        value = row.get(name)
        if value not in (None, ""):
            return value
    return None


def _map_mfgcode(row: dict[str, Any]) -> Optional[dict[str, Any]]:
    code = _first(row, "Code", "CODE")
    if code is None:
        return None
    return {"CODE": code, "NAME": _first(row, "Descr", "DESCR", "Code", "CODE")}


def _map_generic_brand(row: dict[str, Any]) -> Optional[dict[str, Any]]:
    code = _first(row, "CODE", "MFG", "ID")
    if code is None:
        return None
    return {"CODE": code, "NAME": _first(row, "NAME", "DESCR", "DESCRIPTION", "MFG")}


CATEGORIES = LegacySource(
    name="categories",
    candidates=[TableCandidate("INVCAT")],
)

BRANDS = LegacySource(
    name="brands",
    candidates=[
        TableCandidate("MFGCODE", row_mapper=_map_mfgcode),
        TableCandidate("MFG", row_mapper=_map_generic_brand),
        TableCandidate("MANUFACTURER", row_mapper=_map_generic_brand),
        TableCandidate("BRAND", row_mapper=_map_generic_brand),
    ],
)

CUSTOMERS = LegacySource(
    name="customers",
    candidates=[
        TableCandidate(
            "CUSTOMER",
            "CUCD, NAME, ADDRESS1, ADDRESS2, CITY, STATE, ZIP, BPHONE, EMail, CREDIT, TERMS, ACTIVE",
        )
    ],
    key_column="CUCD",
)

INVENTORY = LegacySource(
    name="inventory",
    candidates=[
        TableCandidate("INV"),
    ],
    key_column="PARTNO",
)

INVENTORY_QUANTITIES = LegacySource(
    name="inventory-quantities",
    candidates=[
        TableCandidate("INVPRICE"),
        TableCandidate("INVLOC", "*, SITENO AS EFFSITENO"),
    ],
    key_column="PARTNO",
)

VEHICLES = LegacySource(
    name="vehicles",
    candidates=[TableCandidate("VEHICLE")],
    key_column="VHNO",
)

INVOICES = LegacySource(
    name="invoices",
    candidates=[
        TableCandidate("HINVOICE", "INVOICE, CUCD, INVDATE, TAX, NOTAXABLE, TAXABLE, SITENO, BSALES"),
    ],
    key_column="INVOICE",
    date_column="INVDATE",
)

DETAILS = LegacySource(
    name="details",
    candidates=[
        TableCandidate("TRANS", "INVOICE, LINENUM, SITENO, PARTNO, DESCR, QTY, AMOUNT, COST, FETAX, LABOR"),
    ],
    key_column="INVOICE",
)

EMPLOYEES = LegacySource(
    name="employees",
    candidates=[TableCandidate("EMPLOYEE", "ECUCD, NAME")],
)
