"""
Casos de uso de la aplicacion.
"""
from .live_sync_use_cases import LiveSyncUseCases
from .reconciliation_use_cases import ReconciliationUseCases
from .sync_run_use_cases import SyncRunUseCases

__all__ = ["LiveSyncUseCases", "ReconciliationUseCases", "SyncRunUseCases"]
