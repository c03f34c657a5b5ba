"""Conciliación de entregas: aplica al inventario el efecto de una solicitud.

Invariantes:
    - Todo o nada: los cambios de inventario y el paso a REALIZADO se confirman
      en un único commit; ante cualquier fallo se hace rollback completo.
    - Todas las lecturas (solicitud y filas de inventario, con FOR UPDATE) se
      hacen antes de la primera escritura.
    - Idempotente: entregar una solicitud ya REALIZADO no cambia nada.
    - El inventario nunca queda en negativo (se recorta a 0).
    - Las líneas incompletas se omiten y se registran, sin bloquear la entrega.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import Session, select

from contenedores.core.catalog import RequestTypeEnum, StatusEnum, inventory_key
from contenedores.core.errors import (
    ContenedoresError,
    DeliveryConflictError,
    DeliveryError,
    RequestNotFoundError,
)
from contenedores.models.inventory import InventoryItem
from contenedores.models.request import ContainerRequest
from contenedores.models.request_line import RequestLine

logger = logging.getLogger(__name__)

StockKey = Tuple[str, int]

# Serializa la lectura-modificación-escritura dentro del proceso.
# Entre procesos, la exclusión la dan los FOR UPDATE de la base de datos.
_delivery_lock = threading.Lock()


@dataclass(frozen=True)
class DeliveryResult:
    id_solicitud: int
    ya_realizada: bool = False
    cambios_inventario: Dict[str, int] = field(default_factory=dict)
    lineas_omitidas: Tuple[int, ...] = ()


def line_delta(tipo: Optional[str]) -> Optional[int]:
    """Variación de stock de una línea: ADD consume uno, REMOVE repone uno."""
    if tipo == RequestTypeEnum.ADD:
        return -1
    if tipo == RequestTypeEnum.REMOVE:
        return 1
    return None


def compute_inventory_deltas(
    lines: Iterable[RequestLine],
) -> Tuple[Dict[StockKey, int], List[int]]:
    """Acumula la variación por (fracción, capacidad).

    Devuelve también los `id_linea` omitidos por estar incompletos o tener un
    tipo desconocido.
    """
    deltas: Dict[StockKey, int] = {}
    skipped: List[int] = []

    for line in lines:
        delta = line_delta(line.tipo)
        if not line.id_fraccion or line.capacidad is None or delta is None:
            skipped.append(line.id_linea)
            continue
        key = (line.id_fraccion, line.capacidad)
        deltas[key] = deltas.get(key, 0) + delta

    return deltas, skipped


def deliver_request(db: Session, id_solicitud: int) -> DeliveryResult:
    """Marca la solicitud como entregada y aplica su efecto al inventario.

    Tras un resultado correcto el llamador debe recalcular los estados de todas
    las solicitudes (`sync_request_statuses`).

    Raises:
        RequestNotFoundError: la solicitud no existe.
        DeliveryConflictError: colisión con otra transacción; reintentable.
        DeliveryError: cualquier otro fallo de base de datos.
    """
    with _delivery_lock:
        try:
            result = _apply_delivery(db, id_solicitud)
            db.commit()
        except ContenedoresError:
            db.rollback()
            raise
        except (IntegrityError, OperationalError, StaleDataError) as e:
            db.rollback()
            logger.warning(
                "Conflicto al entregar la solicitud %s: %s", id_solicitud, e
            )
            raise DeliveryConflictError(id_solicitud) from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Error al entregar la solicitud %s", id_solicitud)
            raise DeliveryError(id_solicitud, str(e).split("\n")[0]) from e

    if result.ya_realizada:
        logger.info("La solicitud %s ya había sido marcada como realizada", id_solicitud)
    else:
        logger.info(
            "Solicitud %s entregada. Inventario: %s",
            id_solicitud,
            result.cambios_inventario,
        )
    return result


def _apply_delivery(db: Session, id_solicitud: int) -> DeliveryResult:
    request = db.exec(
        select(ContainerRequest)
        .where(ContainerRequest.id == id_solicitud)
        .with_for_update()
    ).first()

    if request is None:
        raise RequestNotFoundError(id_solicitud)

    if request.estado == StatusEnum.REALIZADO:
        return DeliveryResult(id_solicitud=id_solicitud, ya_realizada=True)

    lines = db.exec(
        select(RequestLine)
        .where(RequestLine.id_solicitud == id_solicitud)
        .order_by(RequestLine.id_linea)
    ).all()

    deltas, skipped = compute_inventory_deltas(lines)
    for id_linea in skipped:
        logger.warning(
            "Línea %s de la solicitud %s incompleta, se omite", id_linea, id_solicitud
        )

    keys = [key for key, delta in deltas.items() if delta != 0]

    # Primero todas las lecturas...
    current: Dict[StockKey, Optional[InventoryItem]] = {}
    for id_fraccion, capacidad in keys:
        current[(id_fraccion, capacidad)] = db.exec(
            select(InventoryItem)
            .where(
                InventoryItem.id_fraccion == id_fraccion,
                InventoryItem.capacidad == capacidad,
            )
            .with_for_update()
        ).first()

    # ...después todas las escrituras
    now = datetime.now(timezone.utc)
    cambios: Dict[str, int] = {}
    for key in keys:
        item = current[key]
        if item is None:
            item = InventoryItem(id_fraccion=key[0], capacidad=key[1], cantidad=0)
        item.cantidad = max(0, item.cantidad + deltas[key])
        item.ultima_actualizacion = now
        db.add(item)
        cambios[inventory_key(*key)] = item.cantidad

    request.estado = StatusEnum.REALIZADO.value
    request.detalle_estado = None
    db.add(request)
    db.flush()

    return DeliveryResult(
        id_solicitud=id_solicitud,
        cambios_inventario=cambios,
        lineas_omitidas=tuple(skipped),
    )
