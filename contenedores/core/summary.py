"""Vistas derivadas de las solicitudes pendientes (resumen y disponibilidad)."""

from dataclasses import dataclass
from typing import Dict, List, Sequence

from contenedores.core.catalog import (
    FRACCIONES,
    RequestTypeEnum,
    StatusEnum,
    get_fraction,
)
from contenedores.core.snapshots import RequestSnapshot, StockSnapshot


@dataclass
class PendingSummaryRow:
    id_fraccion: str
    nombre_fraccion: str
    capacidad: int
    en_preparacion: int = 0
    sin_stock: int = 0


@dataclass(frozen=True)
class AvailabilityRow:
    id_fraccion: str
    nombre_fraccion: str
    capacidad: int
    disponible: int

    @property
    def disponible_real(self) -> int:
        return max(0, self.disponible)


def pending_summary(requests: Sequence[RequestSnapshot]) -> List[PendingSummaryRow]:
    """Cuenta los contenedores a entregar por fracción y capacidad, según estado.

    Solo se consideran fracciones del catálogo; se ordena por nombre y capacidad.
    """
    summary: Dict[tuple, PendingSummaryRow] = {}

    for request in requests:
        if request.estado not in (StatusEnum.EN_PREPARACION, StatusEnum.SIN_STOCK):
            continue
        for line in request.lineas:
            if line.tipo != RequestTypeEnum.ADD or line.capacidad is None:
                continue
            fraction = get_fraction(line.id_fraccion)
            if fraction is None:
                continue
            key = (fraction.id.value, line.capacidad)
            row = summary.get(key)
            if row is None:
                row = PendingSummaryRow(
                    id_fraccion=fraction.id.value,
                    nombre_fraccion=fraction.nombre,
                    capacidad=line.capacidad,
                )
                summary[key] = row
            if request.estado == StatusEnum.EN_PREPARACION:
                row.en_preparacion += 1
            else:
                row.sin_stock += 1

    return sorted(summary.values(), key=lambda r: (r.nombre_fraccion, r.capacidad))


def realtime_availability(
    requests: Sequence[RequestSnapshot], inventory: Sequence[StockSnapshot]
) -> List[AvailabilityRow]:
    """Stock menos una unidad por cada línea ADD de las solicitudes pendientes.

    Se devuelve una fila por cada combinación permitida del catálogo; puede
    quedar en negativo si hay más demanda que existencias.
    """
    availability: Dict[tuple, int] = {
        (item.id_fraccion, item.capacidad): item.cantidad for item in inventory
    }

    for request in requests:
        if request.estado == StatusEnum.REALIZADO:
            continue
        for line in request.lineas:
            if line.tipo != RequestTypeEnum.ADD or not line.is_complete:
                continue
            key = (line.id_fraccion, line.capacidad)
            availability[key] = availability.get(key, 0) - 1

    return [
        AvailabilityRow(
            id_fraccion=fraction.id.value,
            nombre_fraccion=fraction.nombre,
            capacidad=capacidad,
            disponible=availability.get((fraction.id.value, capacidad), 0),
        )
        for fraction in FRACCIONES
        for capacidad in fraction.capacidades
    ]
