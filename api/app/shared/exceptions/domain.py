"""
Excepciones relacionadas con la lógica de dominio.
"""
from app.shared.exceptions.base import AppException


class DomainException(AppException):
    """Excepción base para errores de dominio."""

    def __init__(self, message: str, error_code: str = "DOMAIN_ERROR", details=None):
        super().__init__(
            message=message,
            status_code=400,
            error_code=error_code,
            details=details
        )


class SyncRunNotFoundException(DomainException):
    """Excepcion cuando la corrida no existe o ya expiro."""

    def __init__(self, run_id: str):
        super().__init__(
            message=f"Corrida de sync '{run_id}' no encontrada o expirada",
            error_code="SYNC_RUN_NOT_FOUND",
            details={"run_id": run_id}
        )
        self.status_code = 404


class InvalidSyncRunStatusException(DomainException):
    """Excepcion cuando se intenta cerrar una corrida con un estado no valido."""

    def __init__(self, status: str, valid_statuses: list[str]):
        super().__init__(
            message=f"Estado de corrida '{status}' no valido",
            error_code="INVALID_SYNC_RUN_STATUS",
            details={
                "status_provided": status,
                "valid_statuses": valid_statuses
            }
        )


class InvoiceNotFoundException(DomainException):
    """Excepcion cuando no se encuentra una factura por su llave compuesta."""

    def __init__(self, invoice_key: str):
        super().__init__(
            message=f"Factura '{invoice_key}' no encontrada",
            error_code="INVOICE_NOT_FOUND",
            details={"invoice_key": invoice_key}
        )
        self.status_code = 404
