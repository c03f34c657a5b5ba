"""Motor de asignación: recalcula el estado de las solicitudes pendientes.

Invariantes:
    - Función pura: no modifica las instantáneas recibidas ni hace E/S.
    - Las solicitudes REALIZADO se devuelven intactas y primero.
    - Las pendientes se atienden por fecha ascendente (orden estable en empates).
    - Una solicitud se satisface completa o no reserva nada.
"""

from dataclasses import replace
from typing import Dict, Iterable, List, Sequence, Tuple

from contenedores.core.catalog import RequestTypeEnum, StatusEnum, fraction_name
from contenedores.core.snapshots import RequestSnapshot, StockSnapshot, as_utc

StockKey = Tuple[str, int]

DETAIL_SEPARATOR = " | "


def recalculate_statuses(
    requests: Sequence[RequestSnapshot], inventory: Sequence[StockSnapshot]
) -> List[RequestSnapshot]:
    """Devuelve las solicitudes con `estado` y `detalle_estado` recalculados."""
    working_stock = build_working_stock(inventory)

    delivered = [r for r in requests if r.estado == StatusEnum.REALIZADO]
    pending = [r for r in requests if r.estado != StatusEnum.REALIZADO]

    # sorted() es estable: los empates conservan el orden de entrada
    pending = sorted(pending, key=lambda r: as_utc(r.fecha))

    return delivered + [_allocate(request, working_stock) for request in pending]


def build_working_stock(inventory: Iterable[StockSnapshot]) -> Dict[StockKey, int]:
    """Copia de trabajo del inventario indexada por (fracción, capacidad)."""
    return {(item.id_fraccion, item.capacidad): item.cantidad for item in inventory}


def aggregate_add_lines(request: RequestSnapshot) -> Dict[StockKey, int]:
    """Cuenta las líneas ADD por (fracción, capacidad), en orden de aparición.

    Las líneas repetidas suman una unidad cada una; las REMOVE no cuentan.
    """
    demand: Dict[StockKey, int] = {}
    for line in request.lineas:
        if line.tipo != RequestTypeEnum.ADD or not line.is_complete:
            continue
        key = (line.id_fraccion, line.capacidad)
        demand[key] = demand.get(key, 0) + 1
    return demand


def _allocate(
    request: RequestSnapshot, working_stock: Dict[StockKey, int]
) -> RequestSnapshot:
    demand = aggregate_add_lines(request)

    if not demand:
        return replace(request, estado=StatusEnum.EN_PREPARACION.value, detalle_estado=None)

    satisfiable = all(
        working_stock.get(key, 0) >= count for key, count in demand.items()
    )

    if satisfiable:
        for key, count in demand.items():
            working_stock[key] = working_stock.get(key, 0) - count
        return replace(request, estado=StatusEnum.EN_PREPARACION.value, detalle_estado=None)

    return replace(
        request,
        estado=StatusEnum.SIN_STOCK.value,
        detalle_estado=build_stock_detail(demand, working_stock),
    )


def build_stock_detail(
    demand: Dict[StockKey, int], working_stock: Dict[StockKey, int]
) -> str:
    """Una línea por artículo: cuáles bloquean la solicitud y cuáles estarían disponibles."""
    lines = []
    for (id_fraccion, capacidad), requested in demand.items():
        available = working_stock.get((id_fraccion, capacidad), 0)
        prefix = "No hay stock" if available < requested else "Disponible"
        lines.append(
            f"{prefix}: {fraction_name(id_fraccion)} {capacidad}L "
            f"(sol: {requested}, disp: {available})"
        )
    return DETAIL_SEPARATOR.join(lines)
