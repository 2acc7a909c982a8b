"""
Sink de loguru que reenvia los logs del cliente al servicio de ingesta.

La entrega es best-effort: si el servicio no responde, el log se pierde
en el lado remoto pero sigue en los sinks locales, y la corrida continua.
"""

from __future__ import annotations

from typing import Any, Callable, Coroutine

from loguru import logger

from .transport import LiveSyncClient, TransmissionError

RemoteSink = Callable[[Any], Coroutine[Any, Any, None]]


def make_remote_sink(client: LiveSyncClient) -> RemoteSink:
    """Construye un sink async para logger.add()."""

    async def sink(message: Any) -> None:
        record = message.record
        context = {k: str(v) for k, v in record["extra"].items() if k != "remote"} or None
        try:
            await client.send_log(
                level=record["level"].name.lower(),
                message=record["message"],
                timestamp=record["time"].isoformat(),
                context=context,
            )
        except TransmissionError:
            # sin log: volveria a entrar a este mismo sink
            pass

    return sink


def add_remote_sink(client: LiveSyncClient, level: str = "INFO") -> int:
    """
    Registra el sink remoto.

    Los registros con extra remote=False (p.ej. los del propio envio) no
    se reenvian.

    Returns:
        int: id del handler, para logger.remove()
    """
    return logger.add(
        make_remote_sink(client),
        level=level,
        filter=lambda record: record["extra"].get("remote", True),
        enqueue=False,
    )
