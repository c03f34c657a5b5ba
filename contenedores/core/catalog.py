"""Datos de referencia: fracciones de residuo, capacidades y estados de solicitud."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple


class FractionEnum(str, Enum):
    RESTA = "RESTA"
    ENVASES = "ENVASES"
    PAPEL_CARTON = "PAPEL_CARTON"
    ORGANICA = "ORGANICA"
    VIDRIO = "VIDRIO"


class StatusEnum(str, Enum):
    """Estados de una solicitud. REALIZADO es terminal."""

    REALIZADO = "REALIZADO"
    SIN_STOCK = "SIN_STOCK"
    EN_PREPARACION = "EN_PREPARACION"


class RequestTypeEnum(str, Enum):
    """ADD: el establecimiento recibe un contenedor (consume inventario).
    REMOVE: el establecimiento devuelve un contenedor (repone inventario)."""

    ADD = "ADD"
    REMOVE = "REMOVE"


CAPACIDADES: Tuple[int, ...] = (40, 120, 240, 1100)


@dataclass(frozen=True)
class Fraction:
    id: FractionEnum
    nombre: str
    capacidades: Tuple[int, ...]


@dataclass(frozen=True)
class Status:
    id: StatusEnum
    nombre: str


FRACCIONES: Tuple[Fraction, ...] = (
    Fraction(FractionEnum.RESTA, "Resta", (40, 120, 240, 1100)),
    Fraction(FractionEnum.ENVASES, "Envases", (40, 120, 240, 1100)),
    Fraction(FractionEnum.PAPEL_CARTON, "Papel y Cartón", (40, 120, 240, 1100)),
    Fraction(FractionEnum.ORGANICA, "Orgánica", (40, 120, 240)),
    Fraction(FractionEnum.VIDRIO, "Vidrio", (40, 120, 240)),
)

ESTADOS: Tuple[Status, ...] = (
    Status(StatusEnum.REALIZADO, "Cambio realizado"),
    Status(StatusEnum.SIN_STOCK, "No hay stock disponible"),
    Status(StatusEnum.EN_PREPARACION, "Hay stock y está en preparación"),
)

_FRACCIONES_POR_ID: Dict[str, Fraction] = {f.id.value: f for f in FRACCIONES}


def get_fraction(id_fraccion) -> Optional[Fraction]:
    return _FRACCIONES_POR_ID.get(_raw(id_fraccion))


def fraction_name(id_fraccion) -> str:
    """Nombre visible de la fracción; si no existe en el catálogo se muestra el id tal cual."""
    fraction = get_fraction(id_fraccion)
    return fraction.nombre if fraction else _raw(id_fraccion)


def is_capacity_allowed(id_fraccion, capacidad: int) -> bool:
    fraction = get_fraction(id_fraccion)
    return fraction is not None and capacidad in fraction.capacidades


def inventory_key(id_fraccion, capacidad) -> str:
    """Clave legible de una posición de inventario, p. ej. 'PAPEL_CARTON-240'."""
    return f"{_raw(id_fraccion)}-{capacidad}"


def _raw(value) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def status_name(estado) -> str:
    raw = _raw(estado)
    for status in ESTADOS:
        if status.id.value == raw:
            return status.nombre
    return raw
