"""
Constantes del pipeline de sincronizacion con el POS legacy.
"""
from enum import Enum


class EntityType(str, Enum):
    """
    Colecciones sincronizadas.

    El valor es el nombre del endpoint de ingesta y tambien la llave
    de primer nivel en el archivo de cache.
    """
    CATEGORIES = "categories"
    BRANDS = "brands"
    CUSTOMERS = "customers"
    INVENTORY = "inventory"
    INVENTORY_QUANTITIES = "inventory-quantities"
    VEHICLES = "vehicles"
    INVOICES = "invoices"
    DETAILS = "details"


# Nombre del arreglo dentro del body de cada endpoint: { <payload_key>: [...] }
PAYLOAD_KEYS: dict[EntityType, str] = {
    EntityType.CATEGORIES: "categories",
    EntityType.BRANDS: "brands",
    EntityType.CUSTOMERS: "customers",
    EntityType.INVENTORY: "inventory",
    EntityType.INVENTORY_QUANTITIES: "inventoryData",
    EntityType.VEHICLES: "vehicles",
    EntityType.INVOICES: "invoices",
    EntityType.DETAILS: "details",
}


class ProductType(str, Enum):
    """Tipo de producto resultante de la clasificacion."""
    PASSENGER = "passenger"
    LIGHT_TRUCK = "light_truck"
    MEDIUM_TRUCK = "medium_truck"
    INDUSTRIAL = "industrial"
    AGRICULTURAL = "agricultural"
    OTR = "otr"
    TRAILER = "trailer"
    ATV_UTV = "atv_utv"
    LAWN_GARDEN = "lawn_garden"
    COMMERCIAL = "commercial"
    SPECIALTY = "specialty"
    OTHER = "other"


class ProductQuality(str, Enum):
    """Nivel de calidad de la marca."""
    PREMIUM = "premium"
    STANDARD = "standard"
    ECONOMY = "economy"
    UNKNOWN = "unknown"


class LineCategory(str, Enum):
    """Categoria de una linea de factura."""
    TIRES = "tires"
    SERVICES = "services"
    PARTS = "parts"
    OTHER = "other"


class SyncRunStatus(str, Enum):
    """Estados de una corrida de sincronizacion."""
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class UpsertOutcome(str, Enum):
    """Resultado de escribir un registro en la base canonica."""
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


# Valores centinela de placeholders
UNKNOWN_CUSTOMER_NAME = "Unknown Customer"
UNKNOWN_ITEM_DESCRIPTION = "Unknown Item"
UNKNOWN_VALUE = "Unknown"
MISC_SKU = "MISC"
