"""
Cache de deteccion de cambios del cliente de sync.

Archivo JSON { entityType: { naturalKey: sha256 } }. Un registro se envia
solo si su hash difiere del guardado; la entrada se escribe unicamente
despues de que el lote que lo contenia fue aceptado por el servicio.

Persistencia:
- se vuelve a leer el archivo y se mezclan las llaves escritas por otra
  corrida concurrente (la ultima escritura por llave gana)
- se escribe a un archivo temporal y se renombra de forma atomica
"""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping

from loguru import logger

CacheEntries = dict[str, dict[str, str]]


def hash_record(payload: Mapping[str, Any]) -> str:
    """SHA-256 estable sobre el JSON del registro con llaves ordenadas."""
    raw = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _read_entries(path: Path) -> CacheEntries:
    """Lee el archivo; si falta o esta corrupto devuelve un cache vacio."""
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Cache de sync ilegible ({path}), se inicia vacio: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Cache de sync con formato inesperado ({path}), se inicia vacio")
        return {}
    return {
        str(entity): {str(k): str(v) for k, v in keys.items()}
        for entity, keys in data.items()
        if isinstance(keys, dict)
    }


class ChangeCache:
    """(entityType, naturalKey) -> hash del contenido."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)
        self._entries: CacheEntries = {}
        self._committed: CacheEntries = {}

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> None:
        self._entries = _read_entries(self._path)
        self._committed = {}
        total = sum(len(v) for v in self._entries.values())
        logger.info(f"Cache de sync cargado: {total} entradas ({self._path})")

    def should_sync(self, entity_type: str, natural_key: str, payload: Mapping[str, Any]) -> bool:
        return self._entries.get(entity_type, {}).get(natural_key) != hash_record(payload)

    def commit(self, entity_type: str, natural_key: str, payload: Mapping[str, Any]) -> None:
        digest = hash_record(payload)
        self._entries.setdefault(entity_type, {})[natural_key] = digest
        self._committed.setdefault(entity_type, {})[natural_key] = digest

    def committed_count(self) -> int:
        return sum(len(v) for v in self._committed.values())

    def persist(self) -> None:
        """
        Mezcla con el archivo actual y lo reemplaza atomicamente.

        Solo las llaves confirmadas en esta corrida pisan a las del disco.
        """
        merged = _read_entries(self._path)
        for entity, keys in self._committed.items():
            merged.setdefault(entity, {}).update(keys)

        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(merged, fh, sort_keys=True)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        self._entries = merged
        self._committed = {}
        total = sum(len(v) for v in merged.values())
        logger.info(f"Cache de sync guardado: {total} entradas ({self._path})")
