"""
Data Transfer Objects (DTOs) para la capa de aplicacion.
"""
from .live_sync_dto import (
    SyncCountDTO,
    RemoteLogDTO,
    RemoteLogAckDTO,
    ReconciliationResultDTO,
    SyncRunStartDTO,
    SyncRunFinishDTO,
    SyncRunDTO,
)

__all__ = [
    "SyncCountDTO",
    "RemoteLogDTO",
    "RemoteLogAckDTO",
    "ReconciliationResultDTO",
    "SyncRunStartDTO",
    "SyncRunFinishDTO",
    "SyncRunDTO",
]
