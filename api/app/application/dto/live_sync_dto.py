"""
DTOs del pipeline de sincronizacion con el POS legacy.

Los registros usan los nombres de columna del POS tal cual (CUCD, PARTNO,
INVOICE, ...): son un contrato con el sistema legacy y no se renombran.

Cada coleccion tiene un esquema explicito. El cliente lo usa para proyectar
las filas antes de hashear/enviar, y el servicio para validar cada registro
de forma individual (un registro invalido no invalida el lote completo).
"""
from datetime import date, datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, Field


def _as_text(value: Any) -> Any:
    """Convierte numeros y fechas a string (ZIP, telefonos, fechas del POS)."""
    if value is None:
        return value
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


LegacyText = Annotated[Optional[str], BeforeValidator(_as_text)]
RequiredText = Annotated[str, BeforeValidator(_as_text)]


class LegacyRecord(BaseModel):
    """Base de los registros del POS."""

    class Config:
        extra = "ignore"

    def to_payload(self) -> Dict[str, Any]:
        """Forma normalizada del registro: sin nulos y serializable a JSON."""
        return self.model_dump(mode="json", exclude_none=True)


class CategoryRecord(LegacyRecord):
    """Categoria de inventario (INVCAT)."""
    CAT: RequiredText
    NAME: LegacyText = None
    CatType: Optional[int] = None


class BrandRecord(LegacyRecord):
    """Marca (MFGCODE o tabla alternativa)."""
    CODE: RequiredText
    NAME: LegacyText = None


class CustomerRecord(LegacyRecord):
    """Cliente (CUSTOMER)."""
    CUCD: int
    NAME: LegacyText = None
    CONTACT: LegacyText = None
    COMPANY: LegacyText = None
    ADDRESS1: LegacyText = None
    ADDRESS2: LegacyText = None
    CITY: LegacyText = None
    STATE: LegacyText = None
    ZIP: LegacyText = None
    BPHONE: LegacyText = None
    EMail: LegacyText = None
    CREDIT: Optional[float] = None
    TERMS: LegacyText = None
    ACTIVE: Optional[int] = None
    lastsync: LegacyText = None


class ProductRecord(LegacyRecord):
    """Producto (INV)."""
    PARTNO: int
    INVNO: LegacyText = None
    MFG: LegacyText = None
    SIZE: LegacyText = None
    CAT: LegacyText = None
    NAME: LegacyText = None
    WEIGHT: Optional[float] = None
    ACTIVE: Optional[int] = None
    VENDPARTNO: LegacyText = None
    NEXTCOST: Optional[float] = None
    LASTCOST: Optional[float] = None
    EDL: Optional[float] = None
    DBILL: Optional[float] = None
    SALE_PRICE: Optional[float] = None
    lastsync: LegacyText = None


class InventoryQuantityRecord(LegacyRecord):
    """Existencias por sucursal (INVPRICE, o INVLOC como alternativa)."""
    PARTNO: int
    EFFSITENO: int
    QTYONHAND: Optional[float] = None
    RESERVE: Optional[float] = None
    MAXQTY: Optional[float] = None
    MINQTY: Optional[float] = None
    lastsync: LegacyText = None


class VehicleRecord(LegacyRecord):
    """Vehiculo (VEHICLE)."""
    VHNO: int
    CUCD: Optional[int] = None
    VIN: LegacyText = None
    MAKE: LegacyText = None
    MODEL: LegacyText = None
    YEAR: LegacyText = None
    LICNO: LegacyText = None
    MILEAGE: Optional[int] = None
    lastsync: LegacyText = None


class InvoiceRecord(LegacyRecord):
    """Encabezado de factura (HINVOICE), con SALESMAN ya resuelto por el cliente."""
    INVOICE: int
    CUCD: Optional[int] = None
    INVDATE: LegacyText = None
    TAX: Optional[float] = None
    NOTAXABLE: Optional[float] = None
    TAXABLE: Optional[float] = None
    SITENO: Optional[int] = None
    SALESMAN: LegacyText = None
    lastsync: LegacyText = None


class InvoiceItemRecord(LegacyRecord):
    """Linea de factura (TRANS)."""
    INVOICE: int
    LINENUM: int
    SITENO: Optional[int] = None
    PARTNO: Optional[int] = None
    DESCR: LegacyText = None
    QTY: Optional[float] = None
    AMOUNT: Optional[float] = None
    COST: Optional[float] = None
    FETAX: Optional[float] = None
    LABOR: Optional[float] = None
    lastsync: LegacyText = None


class EmployeeRecord(LegacyRecord):
    """Empleado (EMPLOYEE). Solo se usa en el cliente para mapear vendedores."""
    ECUCD: int
    NAME: LegacyText = None


# =============================================================================
# Requests / responses de los endpoints de ingesta
# =============================================================================
#
# Los arreglos se reciben como dicts crudos: cada registro se valida contra
# su esquema dentro del handler, para que un registro malformado se omita
# sin rechazar el lote completo.

RawRecords = List[Dict[str, Any]]


class SyncCategoriesDTO(BaseModel):
    categories: RawRecords


class SyncBrandsDTO(BaseModel):
    brands: RawRecords


class SyncCustomersDTO(BaseModel):
    customers: RawRecords


class SyncInventoryDTO(BaseModel):
    inventory: RawRecords


class SyncInventoryDataDTO(BaseModel):
    inventoryData: RawRecords


class SyncVehiclesDTO(BaseModel):
    vehicles: RawRecords


class SyncInvoicesDTO(BaseModel):
    invoices: RawRecords


class SyncInvoiceItemsDTO(BaseModel):
    details: RawRecords


class SyncCountDTO(BaseModel):
    """Respuesta de los endpoints de ingesta."""
    count: int = Field(..., description="Registros aplicados correctamente")


class RemoteLogDTO(BaseModel):
    """Entrada de log enviada por el cliente de sync."""
    level: str = Field(default="info")
    message: str
    timestamp: Optional[str] = None
    context: Optional[Any] = None


class RemoteLogAckDTO(BaseModel):
    success: bool = True


class ReconciliationResultDTO(BaseModel):
    """Resultado de reconciliar los totales de una factura."""
    invoice_key: str
    found: bool
    updated: bool
    skipped_by_zero_guard: bool = False
    total_amount: Optional[float] = None
    line_count: int = 0


class SyncRunStartDTO(BaseModel):
    source: Optional[str] = Field(default=None, description="Identificador del cliente/origen")


class SyncRunFinishDTO(BaseModel):
    status: str = Field(..., description="success, partial o failed")
    summary: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class SyncRunDTO(BaseModel):
    """Estado de una corrida de sync."""
    run_id: str
    status: str
    source: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None
    expires_at: datetime
    summary: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    class Config:
        from_attributes = True
