"""
Middleware para manejo centralizado de errores.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from loguru import logger

from app.shared.exceptions.base import AppException


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Captura errores no manejados de los endpoints.

    El cliente de sync trata cualquier respuesta no 2xx como lote fallido,
    asi que el cuerpo siempre tiene la forma { error, message, details }.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            # escapar llaves para evitar error de formato en loguru
            error_msg = str(exc).replace("{", "{{").replace("}", "}}")
            logger.error(
                f"Error no manejado en {request.method} {request.url.path}: {error_msg}",
                exc_info=True,
            )

            error = AppException(
                message="Ha ocurrido un error interno del servidor",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                error_code="INTERNAL_SERVER_ERROR",
            )
            return JSONResponse(status_code=error.status_code, content=error.to_response())
