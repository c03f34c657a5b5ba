"""Instantáneas inmutables de solicitudes e inventario.

El motor de asignación trabaja solo con estos tipos: no conoce la sesión de
base de datos ni los esquemas de la API.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple


@dataclass(frozen=True)
class RequestLineSnapshot:
    id_fraccion: Optional[str]
    capacidad: Optional[int]
    tipo: Optional[str]

    @property
    def is_complete(self) -> bool:
        return bool(self.id_fraccion) and self.capacidad is not None and bool(self.tipo)


@dataclass(frozen=True)
class RequestSnapshot:
    id: int
    establecimiento: str
    estado: str
    fecha: datetime
    lineas: Tuple[RequestLineSnapshot, ...] = field(default_factory=tuple)
    detalle_estado: Optional[str] = None
    observaciones: Optional[str] = None


@dataclass(frozen=True)
class StockSnapshot:
    id_fraccion: str
    capacidad: int
    cantidad: int


def as_utc(value: datetime) -> datetime:
    """Normaliza una fecha a UTC con zona horaria.

    Las fechas sin zona se interpretan como UTC: así se guardan siempre, aunque
    algunos motores (SQLite) devuelvan la zona al leerlas.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
