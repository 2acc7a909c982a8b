"""
Cliente de sincronizacion one-way: POS legacy -> servicio de ingesta.

Este paquete está diseñado para ejecutarse como job (cron / task scheduler),
no como parte del request/response del API.

Objetivos de diseño:
- Idempotencia: se puede ejecutar N veces sin duplicar datos.
- Barato en corridas repetidas: un cache de hashes descarta lo que no cambió.
- Tolerante a fallos: un lote, consulta o coleccion que falla no detiene al resto.
- Esquema explícito por coleccion (ver app.application.dto.live_sync_dto).
"""
