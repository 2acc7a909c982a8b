"""
Calculo de importes de una linea de factura del POS.

En TRANS los precios son unitarios por componente:
- AMOUNT = precio unitario de partes
- LABOR  = precio unitario de mano de obra
- FETAX  = impuesto federal (FET) unitario
y COST es el costo extendido (total de la linea), no unitario.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from app.shared.constants.live_sync_constants import LineCategory


CENT = Decimal("0.01")
MARGIN_LIMIT = Decimal("999.99")
_SERVICE_MARKERS = ("labor", "service")


def to_decimal(value) -> Decimal:
    """None / vacio -> 0. Los floats pasan por str para no arrastrar ruido binario."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LinePricing:
    """Importes derivados de una linea, ya redondeados a centavos."""
    category: LineCategory
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    cost: Decimal
    unit_cost: Decimal
    parts_cost: Decimal
    labor_cost: Decimal
    fet: Decimal
    gross_profit: Decimal
    gross_profit_margin: Decimal


def categorize_line(description: Optional[str], is_tire: bool) -> LineCategory:
    """TIRES si el producto es llanta, SERVICES si la descripcion menciona labor/service, si no PARTS."""
    if is_tire:
        return LineCategory.TIRES
    text = (description or "").lower()
    if any(marker in text for marker in _SERVICE_MARKERS):
        return LineCategory.SERVICES
    return LineCategory.PARTS


def price_line(
    qty,
    amount,
    labor,
    fetax,
    cost,
    description: Optional[str],
    is_tire: bool,
) -> LinePricing:
    """
    Calcula los importes de una linea.

    Reglas:
    - precio unitario = AMOUNT + LABOR + FETAX
    - si QTY es 0 y el precio no es 0 (pagos, ajustes) se factura como 1,
      pero la cantidad guardada sigue siendo la original
    - total = precio unitario * cantidad efectiva
    - utilidad = total - costo; margen en % acotado a +-999.99
    - el costo va a mano de obra para SERVICES y a partes para el resto
    """
    quantity = to_decimal(qty)
    unit_price = to_decimal(amount) + to_decimal(labor) + to_decimal(fetax)
    effective_qty = Decimal("1") if quantity == 0 and unit_price != 0 else quantity
    line_total = unit_price * effective_qty

    total_cost = to_decimal(cost)
    unit_cost = total_cost / quantity if quantity != 0 else Decimal("0")

    gross_profit = line_total - total_cost
    margin = (gross_profit / line_total * 100) if line_total != 0 else Decimal("0")
    margin = max(-MARGIN_LIMIT, min(MARGIN_LIMIT, margin))

    category = categorize_line(description, is_tire)
    if category == LineCategory.SERVICES:
        parts_cost, labor_cost = Decimal("0"), total_cost
    else:
        parts_cost, labor_cost = total_cost, Decimal("0")

    return LinePricing(
        category=category,
        quantity=money(quantity),
        unit_price=money(unit_price),
        line_total=money(line_total),
        cost=money(total_cost),
        unit_cost=money(unit_cost),
        parts_cost=money(parts_cost),
        labor_cost=money(labor_cost),
        fet=money(to_decimal(fetax) * quantity),
        gross_profit=money(gross_profit),
        gross_profit_margin=money(margin),
    )
