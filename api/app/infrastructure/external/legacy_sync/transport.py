"""
Cliente HTTP del servicio de ingesta (httpx async).

Un POST por lote: { <coleccion>: [registros] } -> { count }.
No reintenta dentro de la corrida: un lote fallido queda sin confirmar en
el cache y se reenvia en la siguiente corrida.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from app.shared.constants.live_sync_constants import PAYLOAD_KEYS, EntityType


class TransmissionError(RuntimeError):
    """Error enviando datos al servicio de ingesta."""


class LiveSyncClient:
    """
    Cliente de los endpoints /live-sync.

    Se puede inyectar un httpx.AsyncClient ya construido (p.ej. con
    ASGITransport en tests).
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 300.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            timeout=timeout_s,
            headers={"Content-Type": "application/json"},
        )

    async def __aenter__(self) -> "LiveSyncClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await self._client.post(path, json=payload)
        except httpx.HTTPError as e:
            raise TransmissionError(f"POST {path} fallo: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise TransmissionError(
                f"POST {path} respondio {resp.status_code}: {resp.text[:500]}"
            )
        try:
            return resp.json()
        except ValueError as e:
            raise TransmissionError(f"POST {path} devolvio una respuesta no JSON") from e

    async def post_chunk(self, entity_type: EntityType, records: list[dict[str, Any]]) -> int:
        """
        Envia un lote de una coleccion.

        Returns:
            int: registros aplicados segun el servicio
        """
        data = await self._post(entity_type.value, {PAYLOAD_KEYS[entity_type]: records})
        try:
            return int(data["count"])
        except (KeyError, TypeError, ValueError) as e:
            raise TransmissionError(f"Respuesta sin 'count' para {entity_type.value}: {data}") from e

    async def start_run(self, source: Optional[str]) -> str:
        data = await self._post("runs", {"source": source})
        run_id = data.get("run_id")
        if not run_id:
            raise TransmissionError(f"Respuesta sin run_id: {data}")
        return str(run_id)

    async def finish_run(
        self,
        run_id: str,
        *,
        status: str,
        summary: Optional[dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> None:
        await self._post(f"runs/{run_id}/finish", {"status": status, "summary": summary, "error": error})

    async def send_log(
        self,
        level: str,
        message: str,
        timestamp: Optional[str] = None,
        context: Any = None,
    ) -> None:
        await self._post(
            "logs",
            {"level": level, "message": message, "timestamp": timestamp, "context": context},
        )
