"""
Endpoints de ingesta del POS legacy.

El cliente de sync envia cada lote como { <coleccion>: [registros] } y
recibe { count } con los registros aplicados.
"""
from fastapi import APIRouter, Depends, status

from app.api.v1.dependencies.use_case_deps import (
    get_live_sync_use_cases,
    get_reconciliation_use_cases,
    get_sync_run_use_cases,
)
from app.application.dto.live_sync_dto import (
    ReconciliationResultDTO,
    RemoteLogAckDTO,
    RemoteLogDTO,
    SyncBrandsDTO,
    SyncCategoriesDTO,
    SyncCountDTO,
    SyncCustomersDTO,
    SyncInventoryDataDTO,
    SyncInventoryDTO,
    SyncInvoiceItemsDTO,
    SyncInvoicesDTO,
    SyncRunDTO,
    SyncRunFinishDTO,
    SyncRunStartDTO,
    SyncVehiclesDTO,
)
from app.application.use_cases.live_sync_use_cases import LiveSyncUseCases
from app.application.use_cases.reconciliation_use_cases import ReconciliationUseCases
from app.application.use_cases.sync_run_use_cases import SyncRunUseCases
from app.shared.exceptions.domain import InvoiceNotFoundException


router = APIRouter(prefix="/live-sync", tags=["Live Sync"])


@router.post("/categories", response_model=SyncCountDTO)
async def sync_categories(
    dto: SyncCategoriesDTO,
    use_cases: LiveSyncUseCases = Depends(get_live_sync_use_cases)
):
    """Sincroniza categorias de inventario (INVCAT)."""
    return SyncCountDTO(count=await use_cases.sync_categories(dto.categories))


@router.post("/brands", response_model=SyncCountDTO)
async def sync_brands(
    dto: SyncBrandsDTO,
    use_cases: LiveSyncUseCases = Depends(get_live_sync_use_cases)
):
    """Sincroniza marcas."""
    return SyncCountDTO(count=await use_cases.sync_brands(dto.brands))


@router.post("/customers", response_model=SyncCountDTO)
async def sync_customers(
    dto: SyncCustomersDTO,
    use_cases: LiveSyncUseCases = Depends(get_live_sync_use_cases)
):
    """Sincroniza clientes. Reemplaza placeholders creados por referencias."""
    return SyncCountDTO(count=await use_cases.sync_customers(dto.customers))


@router.post("/inventory", response_model=SyncCountDTO)
async def sync_inventory(
    dto: SyncInventoryDTO,
    use_cases: LiveSyncUseCases = Depends(get_live_sync_use_cases)
):
    """Sincroniza productos, con clasificacion y desambiguacion de SKU."""
    return SyncCountDTO(count=await use_cases.sync_inventory(dto.inventory))


@router.post("/inventory-quantities", response_model=SyncCountDTO)
async def sync_inventory_quantities(
    dto: SyncInventoryDataDTO,
    use_cases: LiveSyncUseCases = Depends(get_live_sync_use_cases)
):
    """Sincroniza existencias por producto y sucursal."""
    return SyncCountDTO(count=await use_cases.sync_inventory_quantities(dto.inventoryData))


@router.post("/vehicles", response_model=SyncCountDTO)
async def sync_vehicles(
    dto: SyncVehiclesDTO,
    use_cases: LiveSyncUseCases = Depends(get_live_sync_use_cases)
):
    return SyncCountDTO(count=await use_cases.sync_vehicles(dto.vehicles))


@router.post("/invoices", response_model=SyncCountDTO)
async def sync_invoices(
    dto: SyncInvoicesDTO,
    use_cases: LiveSyncUseCases = Depends(get_live_sync_use_cases)
):
    """Sincroniza encabezados de factura (HINVOICE)."""
    return SyncCountDTO(count=await use_cases.sync_invoices(dto.invoices))


@router.post("/details", response_model=SyncCountDTO)
async def sync_invoice_items(
    dto: SyncInvoiceItemsDTO,
    use_cases: LiveSyncUseCases = Depends(get_live_sync_use_cases)
):
    """
    Sincroniza lineas de factura (TRANS).
    Al terminar el lote se reconcilian los encabezados tocados.
    """
    return SyncCountDTO(count=await use_cases.sync_invoice_items(dto.details))


@router.post(
    "/invoices/{invoice_key}/reconcile",
    response_model=ReconciliationResultDTO,
    summary="Reconciliar totales de una factura"
)
async def reconcile_invoice(
    invoice_key: str,
    use_cases: ReconciliationUseCases = Depends(get_reconciliation_use_cases)
):
    """
    Recalcula los agregados del encabezado desde sus lineas.

    Raises:
        InvoiceNotFoundException: Si la llave no existe
    """
    result = await use_cases.reconcile_totals(invoice_key)
    if not result.found:
        raise InvoiceNotFoundException(invoice_key)
    return result


@router.post("/logs", response_model=RemoteLogAckDTO)
async def remote_log(
    dto: RemoteLogDTO,
    use_cases: LiveSyncUseCases = Depends(get_live_sync_use_cases)
):
    """Recibe logs del cliente de sync y los re-emite en el log del servicio."""
    use_cases.log_remote(dto)
    return RemoteLogAckDTO(success=True)


@router.post("/runs", response_model=SyncRunDTO, status_code=status.HTTP_201_CREATED)
async def start_run(
    dto: SyncRunStartDTO,
    use_cases: SyncRunUseCases = Depends(get_sync_run_use_cases)
):
    """Registra el inicio de una corrida de sync."""
    return await use_cases.start_run(dto)


@router.post("/runs/{run_id}/finish", response_model=SyncRunDTO)
async def finish_run(
    run_id: str,
    dto: SyncRunFinishDTO,
    use_cases: SyncRunUseCases = Depends(get_sync_run_use_cases)
):
    """Cierra una corrida con su estado final (success, partial o failed)."""
    return await use_cases.finish_run(run_id, dto)


@router.get("/runs/{run_id}", response_model=SyncRunDTO)
async def get_run(
    run_id: str,
    use_cases: SyncRunUseCases = Depends(get_sync_run_use_cases)
):
    """Consulta el estado de una corrida. Las expiradas responden 404."""
    return await use_cases.get_run(run_id)
