"""
CLI: POS legacy -> servicio de ingesta (one-way sync).

Uso recomendado:
  - Ejecutar como job (cron/systemd timer) en la maquina con acceso al POS.
  - El servicio de ingesta debe estar levantado (LIVE_SYNC_URL).

Variables de entorno requeridas:
  - LEGACY_DATABASE_URL (p.ej. mssql+pyodbc://user:pass@MI_DSN)
  - LIVE_SYNC_URL

Ejecución:
  python scripts/legacy_sync.py
  python scripts/legacy_sync.py --start-date 2025-06-01 --concurrency 4
  python scripts/legacy_sync.py --no-remote-log

Código de salida: 0 si la corrida termina (aunque sea parcial), 1 si hay
un error fatal.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from loguru import logger
from dotenv import load_dotenv

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
# La carpeta "api" contiene el paquete raíz `app/`.
_API_ROOT = Path(__file__).resolve().parents[1]
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))

# Cargar variables desde .env si existe (api/.env o raiz del repo).
load_dotenv(_API_ROOT / ".env", override=False)
load_dotenv(_API_ROOT.parent / ".env", override=False)

from app.core.config import Settings
from app.infrastructure.external.legacy_sync.remote_log import add_remote_sink
from app.infrastructure.external.legacy_sync.sync_service import SyncConfigError, build_from_settings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sincroniza el POS legacy con el servicio de ingesta.")
    parser.add_argument("--start-date", help="Fecha minima de facturas (YYYY-MM-DD). Default: SYNC_START_DATE")
    parser.add_argument("--batch-size", type=int, help="Registros por lote. Default: SYNC_BATCH_SIZE")
    parser.add_argument("--concurrency", type=int, help="Lotes en vuelo. Default: SYNC_CONCURRENCY")
    parser.add_argument("--cache-file", help="Archivo de cache de cambios. Default: SYNC_CACHE_FILE")
    parser.add_argument(
        "--no-remote-log",
        action="store_true",
        help="No reenviar los logs al servicio de ingesta.",
    )
    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    overrides = {
        "SYNC_START_DATE": args.start_date,
        "SYNC_BATCH_SIZE": args.batch_size,
        "SYNC_CONCURRENCY": args.concurrency,
        "SYNC_CACHE_FILE": args.cache_file,
    }
    return Settings(**{k: v for k, v in overrides.items() if v is not None})


async def run(settings: Settings, *, remote_log: bool = True) -> int:
    try:
        runner, reader, client = build_from_settings(settings)
    except SyncConfigError as e:
        logger.error(f"Configuracion invalida: {e}")
        return 1

    sink_id = add_remote_sink(client) if remote_log else None
    try:
        logger.info(f"Iniciando sync POS legacy -> {settings.LIVE_SYNC_URL}")
        report = await runner.run()
        logger.info(f"Sync terminado: estado={report.status.value}, enviados={report.total_sent}")
        return 0
    except Exception as e:
        logger.error(f"Sync abortado: {e}")
        return 1
    finally:
        if sink_id is not None:
            await logger.complete()
            logger.remove(sink_id)
        await client.aclose()
        reader.dispose()


def main() -> int:
    args = _build_parser().parse_args()
    settings = _settings_from_args(args)
    return asyncio.run(run(settings, remote_log=not args.no_remote_log))


if __name__ == "__main__":
    raise SystemExit(main())
