from dotenv import (
    load_dotenv,
)  # Para cargar variables de entorno desde un archivo .env.
import os  # Para acceder a variables de entorno.

load_dotenv()


def get_required_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise Exception(f"Env var {name} is required but not found.")
    return value


def get_bool_env(name: str, default: bool) -> bool:
    """Lee una variable booleana ('1', 'true', 'si', 'yes' se consideran True)."""
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in {"1", "true", "si", "sí", "yes"}


def get_list_env(name: str, default: list[str]) -> list[str]:
    """Lee una lista separada por comas."""
    value = os.getenv(name)
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]
