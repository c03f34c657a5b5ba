"""Puente entre la base de datos y el motor de asignación.

Lee una instantánea completa de solicitudes e inventario, ejecuta
`recalculate_statuses` y guarda solo los estados que han cambiado.
Se llama al final de toda mutación (alta o baja de solicitud, edición de
inventario, entrega).
"""

import logging
from collections import defaultdict
from typing import Dict, List, Tuple

from sqlmodel import Session, select

from contenedores.core.allocation import recalculate_statuses
from contenedores.core.catalog import StatusEnum
from contenedores.core.snapshots import (
    RequestLineSnapshot,
    RequestSnapshot,
    StockSnapshot,
    as_utc,
)
from contenedores.models.inventory import InventoryItem
from contenedores.models.request import ContainerRequest
from contenedores.models.request_line import RequestLine

logger = logging.getLogger(__name__)


def load_request_snapshots(db: Session) -> List[RequestSnapshot]:
    requests = db.exec(select(ContainerRequest).order_by(ContainerRequest.id)).all()
    lines = db.exec(
        select(RequestLine).order_by(RequestLine.id_solicitud, RequestLine.id_linea)
    ).all()

    lines_by_request: Dict[int, List[RequestLineSnapshot]] = defaultdict(list)
    for line in lines:
        lines_by_request[line.id_solicitud].append(
            RequestLineSnapshot(
                id_fraccion=line.id_fraccion,
                capacidad=line.capacidad,
                tipo=line.tipo,
            )
        )

    return [
        RequestSnapshot(
            id=request.id,
            establecimiento=request.establecimiento,
            estado=request.estado,
            fecha=as_utc(request.fecha),
            lineas=tuple(lines_by_request.get(request.id, [])),
            detalle_estado=request.detalle_estado,
            observaciones=request.observaciones,
        )
        for request in requests
    ]


def load_inventory_snapshots(db: Session) -> List[StockSnapshot]:
    items = db.exec(select(InventoryItem)).all()
    return [
        StockSnapshot(
            id_fraccion=item.id_fraccion,
            capacidad=item.capacidad,
            cantidad=item.cantidad,
        )
        for item in items
    ]


def load_snapshots(db: Session) -> Tuple[List[RequestSnapshot], List[StockSnapshot]]:
    return load_request_snapshots(db), load_inventory_snapshots(db)


def sync_request_statuses(db: Session) -> List[RequestSnapshot]:
    """Recalcula y persiste el estado de todas las solicitudes no entregadas.

    Devuelve el resultado del motor (entregadas primero, pendientes por fecha).
    Los errores de base de datos se propagan tras hacer rollback.
    """
    requests, inventory = load_snapshots(db)
    recalculated = recalculate_statuses(requests, inventory)

    previous = {request.id: request for request in requests}
    changed = 0

    try:
        for snapshot in recalculated:
            if snapshot.estado == StatusEnum.REALIZADO:
                continue
            before = previous[snapshot.id]
            if (
                before.estado == snapshot.estado
                and before.detalle_estado == snapshot.detalle_estado
            ):
                continue

            row = db.get(ContainerRequest, snapshot.id)
            if row is None:
                # Borrada entre la lectura y la escritura: la próxima pasada la ignora
                continue
            # Nunca pisamos una entrega confirmada por otra transacción
            if row.estado == StatusEnum.REALIZADO:
                continue
            row.estado = snapshot.estado
            row.detalle_estado = snapshot.detalle_estado
            db.add(row)
            changed += 1

        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Estados recalculados: %d solicitudes, %d cambios", len(recalculated), changed
    )
    return recalculated
