import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str | None = None) -> None:
    """Configura el logger raíz del paquete una sola vez (se llama en el lifespan)."""
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logger = logging.getLogger("contenedores")
    logger.setLevel(getattr(logging, level, logging.INFO))

    # Evitamos handlers duplicados si se llama varias veces (tests, recargas)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
