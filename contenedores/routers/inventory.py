import logging
from datetime import datetime, timezone
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select
from sqlalchemy.exc import SQLAlchemyError
from contenedores.core.catalog import (
    FRACCIONES,
    FractionEnum,
    fraction_name,
    is_capacity_allowed,
)
from contenedores.core.snapshots import as_utc
from contenedores.models.database import get_db
from contenedores.models.inventory import InventoryItem
from contenedores.routers.common import recalculate_statuses_or_500
from contenedores.routers.websocket import notify_change
from contenedores.schemas.inventory import InventoryResponse, InventoryUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inventario", tags=["Inventario"])


def _to_response(item: InventoryItem) -> InventoryResponse:
    return InventoryResponse(
        id_fraccion=item.id_fraccion,
        nombre_fraccion=fraction_name(item.id_fraccion),
        capacidad=item.capacidad,
        cantidad=item.cantidad,
        ultima_actualizacion=as_utc(item.ultima_actualizacion),
    )


@router.get("/", response_model=List[InventoryResponse])
def get_inventory(db: Session = Depends(get_db)):
    """Inventario completo: una fila por cada fracción y capacidad permitida.
    - Las posiciones nunca registradas aparecen con cantidad 0.
    """
    try:
        items = db.exec(select(InventoryItem)).all()
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error de conexión con la base de datos",
        )

    registered = {(item.id_fraccion, item.capacidad): item for item in items}
    response = []

    for fraction in FRACCIONES:
        for capacidad in fraction.capacidades:
            item = registered.pop((fraction.id.value, capacidad), None)
            if item:
                response.append(_to_response(item))
            else:
                response.append(
                    InventoryResponse(
                        id_fraccion=fraction.id.value,
                        nombre_fraccion=fraction.nombre,
                        capacidad=capacidad,
                        cantidad=0,
                    )
                )

    # Posiciones fuera del catálogo (p. ej. creadas por entregas de datos antiguos)
    for key in sorted(registered):
        response.append(_to_response(registered[key]))

    return response


@router.put("/{id_fraccion}/{capacidad}", response_model=InventoryResponse)
def update_inventory(
    id_fraccion: FractionEnum,
    capacidad: int,
    inventory_update: InventoryUpdate,
    db: Session = Depends(get_db),
):
    """Fija la cantidad disponible de una fracción y capacidad, y recalcula los estados."""
    if not is_capacity_allowed(id_fraccion, capacidad):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"La fracción {fraction_name(id_fraccion)} no admite "
                f"contenedores de {capacidad}L."
            ),
        )

    try:
        item = db.get(InventoryItem, (id_fraccion.value, capacidad))
        if not item:
            item = InventoryItem(id_fraccion=id_fraccion.value, capacidad=capacidad)

        item.cantidad = inventory_update.cantidad
        item.ultima_actualizacion = datetime.now(timezone.utc)
        db.add(item)
        db.commit()
        db.refresh(item)
    except SQLAlchemyError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error al actualizar el inventario.",
        )

    logger.info(
        "Inventario %s-%s fijado a %s", id_fraccion.value, capacidad, item.cantidad
    )
    response = _to_response(item)

    recalculate_statuses_or_500(db)
    notify_change(f"Inventario actualizado: {id_fraccion.value}-{capacidad}")

    return response
