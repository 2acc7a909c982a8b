"""
Tests del cliente HTTP de ingesta y del sink de logs remotos.
"""
from __future__ import annotations

import json

import httpx
import pytest
from loguru import logger

from app.infrastructure.external.legacy_sync.remote_log import add_remote_sink
from app.infrastructure.external.legacy_sync.transport import LiveSyncClient, TransmissionError
from app.shared.constants.live_sync_constants import EntityType


def _client(handler) -> tuple[LiveSyncClient, httpx.AsyncClient]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://svc/live-sync/")
    return LiveSyncClient("http://svc/live-sync", client=http), http


@pytest.mark.asyncio
async def test_post_chunk_wraps_records_under_collection_key() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.read())
        return httpx.Response(200, json={"count": 1})

    client, http = _client(handler)
    async with http:
        applied = await client.post_chunk(EntityType.INVENTORY_QUANTITIES, [{"PARTNO": 1, "EFFSITENO": 2}])

    assert applied == 1
    assert seen["path"] == "/live-sync/inventory-quantities"
    assert seen["body"] == {"inventoryData": [{"PARTNO": 1, "EFFSITENO": 2}]}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, text="<html>"),
        httpx.Response(200, json={"ok": True}),
    ],
)
async def test_post_chunk_failures_raise_transmission_error(response: httpx.Response) -> None:
    client, http = _client(lambda request: response)
    async with http:
        with pytest.raises(TransmissionError):
            await client.post_chunk(EntityType.CUSTOMERS, [{"CUCD": 1}])


@pytest.mark.asyncio
async def test_network_error_raises_transmission_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("sin conexion", request=request)

    client, http = _client(handler)
    async with http:
        with pytest.raises(TransmissionError):
            await client.send_log("info", "hola")


@pytest.mark.asyncio
async def test_start_run_requires_run_id() -> None:
    client, http = _client(lambda request: httpx.Response(201, json={}))
    async with http:
        with pytest.raises(TransmissionError):
            await client.start_run("test")


class _RecordingClient:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[dict] = []

    async def send_log(self, level, message, timestamp=None, context=None) -> None:
        if self.fail:
            raise TransmissionError("servicio caido")
        self.sent.append({"level": level, "message": message, "context": context})


@pytest.mark.asyncio
async def test_remote_sink_forwards_logs() -> None:
    client = _RecordingClient()
    handler_id = add_remote_sink(client)
    try:
        logger.bind(collection="customers").info("lote enviado")
        logger.bind(remote=False).info("solo local")
        logger.debug("debajo del nivel")
        await logger.complete()
    finally:
        logger.remove(handler_id)

    assert client.sent == [
        {"level": "info", "message": "lote enviado", "context": {"collection": "customers"}},
    ]


@pytest.mark.asyncio
async def test_remote_sink_swallows_transmission_errors() -> None:
    client = _RecordingClient(fail=True)
    handler_id = add_remote_sink(client)
    try:
        logger.error("algo fallo")
        await logger.complete()
    finally:
        logger.remove(handler_id)

    assert client.sent == []
