"""
Clasificador de productos.

Funcion pura que el pipeline invoca durante la ingesta de inventario:
(categoria, medida, nombre, tipo de categoria) -> tipo de producto,
y marca -> nivel de calidad. Las reglas son heuristicas del negocio;
la ingesta solo depende de la firma, no del detalle.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from app.shared.constants.live_sync_constants import ProductQuality, ProductType


@dataclass(frozen=True)
class ProductClassification:
    product_type: ProductType
    is_tire: bool
    quality: ProductQuality


_CATEGORY_MARKERS = [
    ("TIRE", ProductType.PASSENGER),
    ("PASS", ProductType.PASSENGER),
    ("LTR", ProductType.LIGHT_TRUCK),
    ("MTR", ProductType.MEDIUM_TRUCK),
    ("IND", ProductType.INDUSTRIAL),
    ("AGR", ProductType.AGRICULTURAL),
    ("OTR", ProductType.OTR),
    ("TRL", ProductType.TRAILER),
    ("ATV", ProductType.ATV_UTV),
    ("LAWN", ProductType.LAWN_GARDEN),
    ("COMM", ProductType.COMMERCIAL),
    ("SPEC", ProductType.SPECIALTY),
]

_SIZE_PATTERNS = [
    (re.compile(r"^P?\d{3}/\d{2}[RDB]\d{2}"), ProductType.PASSENGER),
    (re.compile(r"^LT\d{3}/\d{2}[RDB]\d{2}"), ProductType.LIGHT_TRUCK),
    (re.compile(r"^\d{2,3}[RDB]\d{2}\.?\d?"), ProductType.MEDIUM_TRUCK),
    (re.compile(r"^\d{2}X\d{2}\.?\d{0,2}[RDB]\d{2}"), ProductType.LIGHT_TRUCK),
]

PREMIUM_BRANDS = ("MICHELIN", "BRIDGESTONE", "GOODYEAR", "CONTINENTAL", "PIRELLI", "DUNLOP", "YOKOHAMA", "TOYO")
STANDARD_BRANDS = ("FIRESTONE", "BFGOODRICH", "COOPER", "HANKOOK", "FALKEN", "KUMHO", "NITTO", "GENERAL", "KELLY", "SUMITOMO", "NEXEN", "UNIROYAL", "MAXXIS")
ECONOMY_BRANDS = ("SAILUN", "WESTLAKE", "BLACKHAWK", "IRONMAN", "MASTERCRAFT", "STARFIRE", "LINGLONG", "DOUBLE COIN", "TRIANGLE", "FUZION")


def classify_type(
    category_code: Optional[str],
    size: Optional[str] = None,
    name: Optional[str] = None,
) -> ProductType:
    """Heuristica por categoria, luego por medida, luego por nombre."""
    if category_code:
        upper_cat = category_code.upper()
        for marker, product_type in _CATEGORY_MARKERS:
            if marker in upper_cat:
                return product_type

    if size:
        upper_size = size.upper().strip()
        for pattern, product_type in _SIZE_PATTERNS:
            if pattern.match(upper_size):
                return product_type

    if name and "TIRE" in name.upper():
        return ProductType.PASSENGER

    return ProductType.OTHER


def classify_quality(brand: Optional[str]) -> ProductQuality:
    if not brand:
        return ProductQuality.UNKNOWN
    upper_brand = brand.upper()
    if any(b in upper_brand for b in PREMIUM_BRANDS):
        return ProductQuality.PREMIUM
    if any(b in upper_brand for b in STANDARD_BRANDS):
        return ProductQuality.STANDARD
    if any(b in upper_brand for b in ECONOMY_BRANDS):
        return ProductQuality.ECONOMY
    return ProductQuality.UNKNOWN


def classify_product(
    category_code: Optional[str],
    size: Optional[str],
    name: Optional[str],
    brand: Optional[str],
    category_type: Optional[int] = None,
) -> ProductClassification:
    """
    Clasifica un producto.

    Si la categoria existe en la base canonica, su CatType manda
    (1 = llanta, cualquier otro = servicio/parte). Si no, se usa la
    heuristica sobre categoria/medida/nombre.
    """
    product_type = classify_type(category_code, size, name)

    if category_type is not None:
        is_tire = category_type == 1
        if not is_tire:
            product_type = ProductType.OTHER
        elif product_type == ProductType.OTHER:
            product_type = ProductType.PASSENGER
    else:
        is_tire = product_type != ProductType.OTHER

    return ProductClassification(
        product_type=product_type,
        is_tire=is_tire,
        quality=classify_quality(brand) if is_tire else ProductQuality.UNKNOWN,
    )
