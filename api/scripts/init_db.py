"""
Script para inicializar la base de datos canonica.
"""
import asyncio
from loguru import logger

from app.infrastructure.database.session import init_db, close_db


async def main():
    """Crea las tablas de la base canonica si no existen."""
    logger.info("Inicializando base de datos...")

    try:
        await init_db()
        logger.success("Base de datos inicializada correctamente")
    except Exception as e:
        logger.error(f"Error al inicializar base de datos: {e}")
        raise
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
