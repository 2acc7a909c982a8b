"""
Modelos de base de datos (ORM) de la base canonica.

Cada entidad sincronizada tiene:
- id interno (autoincremental)
- llave natural del POS legacy, unica dentro del tipo
- last_synced_at: ultima vez que el pipeline escribio la fila
- is_placeholder (solo entidades que pueden referenciarse antes de existir)

El pipeline nunca borra filas: solo crea una vez y actualiza despues.
"""
from sqlalchemy import (
    Column,
    String,
    Integer,
    DateTime,
    Date,
    Text,
    Numeric,
    Boolean,
    ForeignKey,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from app.infrastructure.database.session import Base


MONEY = Numeric(12, 2)


class CategoryModel(Base):
    """Categoria de inventario del POS (INVCAT)."""

    __tablename__ = "product_categories"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=True)
    cat_type = Column(Integer, nullable=True)  # 1 = llanta, 0 = servicio/parte
    last_synced_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Category(code={self.code}, name={self.name})>"


class BrandModel(Base):
    """Marca / fabricante (MFGCODE)."""

    __tablename__ = "brands"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Brand(code={self.code}, name={self.name})>"


class CustomerModel(Base):
    """
    Cliente canonico.

    Llave natural: legacy_code (CUCD como string).
    Puede nacer como placeholder cuando llega una factura o vehiculo
    que lo referencia antes que el roster de clientes.
    """

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    legacy_code = Column(String(50), nullable=False, unique=True, index=True)
    company_name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(50), nullable=True)
    zip_code = Column(String(20), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    credit_limit = Column(MONEY, nullable=True)
    payment_terms = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True)
    is_placeholder = Column(Boolean, default=False, nullable=False)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Customer(id={self.id}, code={self.legacy_code}, name={self.company_name})>"


class ProductModel(Base):
    """
    Producto canonico (INV).

    Llave natural: legacy_id (PARTNO). El SKU (INVNO o PARTNO) es unico,
    y si colisiona con otro producto se desambigua agregando el PARTNO.
    El producto "MISC" (lineas sin PARTNO) no tiene legacy_id.
    """

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    legacy_id = Column(Integer, nullable=True, unique=True, index=True)
    sku = Column(String(100), nullable=False, unique=True, index=True)
    brand = Column(String(255), nullable=False, default="Unknown")
    size = Column(String(100), nullable=False, default="Unknown")
    category_code = Column(String(50), nullable=True)
    product_type = Column(String(50), nullable=False, default="other")
    quality = Column(String(50), nullable=False, default="unknown")
    description = Column(String(500), nullable=True)
    weight = Column(Numeric(10, 2), nullable=True)
    manufacturer_code = Column(String(100), nullable=True)
    last_cost = Column(MONEY, nullable=True)
    sale_price = Column(MONEY, nullable=True)
    is_tire = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True)
    is_placeholder = Column(Boolean, default=False, nullable=False)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Product(id={self.id}, legacy_id={self.legacy_id}, sku={self.sku})>"


class LocationModel(Base):
    """
    Sucursal / sitio del POS (SITENO).

    No existe un roster autoritativo de sitios en el origen: las
    sucursales se crean siempre desde una referencia (factura o inventario).
    """

    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    legacy_code = Column(String(50), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True)
    is_placeholder = Column(Boolean, default=True, nullable=False)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Location(code={self.legacy_code}, name={self.name})>"


class InventoryLevelModel(Base):
    """Existencias de un producto en una sucursal."""

    __tablename__ = "inventory_levels"
    __table_args__ = (
        UniqueConstraint("product_id", "location_id", name="uq_inventory_product_location"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False, index=True)
    quantity = Column(Numeric(12, 2), nullable=False, default=0)
    reserved_qty = Column(Numeric(12, 2), nullable=False, default=0)
    available_qty = Column(Numeric(12, 2), nullable=False, default=0)
    max_qty = Column(Numeric(12, 2), nullable=True)
    min_qty = Column(Numeric(12, 2), nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)


class VehicleModel(Base):
    """Vehiculo de un cliente (VEHICLE). Llave natural: legacy_id (VHNO)."""

    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True)
    legacy_id = Column(Integer, nullable=False, unique=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    vin = Column(String(50), nullable=True)
    make = Column(String(100), nullable=True)
    model = Column(String(100), nullable=True)
    year = Column(String(10), nullable=True)
    license_no = Column(String(50), nullable=True)
    mileage = Column(Integer, nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)


class InvoiceModel(Base):
    """
    Encabezado de factura (HINVOICE).

    Llave natural compuesta: invoice_key = "{SITENO}-{INVOICE}", porque el
    numero de factura solo es unico dentro de una sucursal.
    Los agregados (total, subtotal, utilidad, costos) se reconcilian desde
    las lineas despues de cada lote de lineas.
    """

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_key = Column(String(100), nullable=False, unique=True, index=True)
    invoice_number = Column(String(50), nullable=False, index=True)
    site_no = Column(Integer, nullable=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    invoice_date = Column(Date, nullable=True, index=True)
    salesperson = Column(String(255), nullable=True)
    subtotal = Column(MONEY, nullable=False, default=0)
    tax_amount = Column(MONEY, nullable=False, default=0)
    total_amount = Column(MONEY, nullable=False, default=0)
    gross_profit = Column(MONEY, nullable=False, default=0)
    parts_cost = Column(MONEY, nullable=False, default=0)
    labor_cost = Column(MONEY, nullable=False, default=0)
    is_placeholder = Column(Boolean, default=False, nullable=False)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Invoice(id={self.id}, key={self.invoice_key}, total={self.total_amount})>"


class InvoiceLineItemModel(Base):
    """Linea de factura (TRANS). Llave natural: (invoice_id, line_number)."""

    __tablename__ = "invoice_line_items"
    __table_args__ = (
        UniqueConstraint("invoice_id", "line_number", name="uq_line_item_invoice_line"),
    )

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    line_number = Column(Integer, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True, index=True)
    product_code = Column(String(100), nullable=True)
    description = Column(String(500), nullable=True)
    category = Column(String(50), nullable=False, default="other")
    quantity = Column(Numeric(12, 2), nullable=False, default=0)
    unit_price = Column(MONEY, nullable=False, default=0)
    line_total = Column(MONEY, nullable=False, default=0)
    cost = Column(MONEY, nullable=False, default=0)
    unit_cost = Column(MONEY, nullable=False, default=0)
    parts_cost = Column(MONEY, nullable=False, default=0)
    labor_cost = Column(MONEY, nullable=False, default=0)
    fet = Column(MONEY, nullable=False, default=0)
    gross_profit = Column(MONEY, nullable=False, default=0)
    gross_profit_margin = Column(Numeric(5, 2), nullable=False, default=0)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)


class SyncRunModel(Base):
    """
    Estado explicito de una corrida de sync.

    Reemplaza el estado en memoria: sobrevive reinicios del proceso y
    caduca por TTL (expires_at).
    """

    __tablename__ = "sync_runs"

    run_id = Column(String(36), primary_key=True)
    status = Column(String(20), nullable=False, default="running", index=True)
    source = Column(String(100), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    summary = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)

    def __repr__(self):
        return f"<SyncRun(run_id={self.run_id}, status={self.status})>"
