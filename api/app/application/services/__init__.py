"""
Servicios de aplicacion.

Contiene la logica de negocio reutilizable que no pertenece
a un caso de uso especifico.
"""
from app.application.services.line_item_pricing import LinePricing, price_line
from app.application.services.product_classifier import ProductClassification, classify_product

__all__ = [
    # Importes de lineas de factura
    "LinePricing",
    "price_line",
    # Clasificacion de productos
    "ProductClassification",
    "classify_product",
]
