import logging
from typing import Iterable, List, Optional
from fastapi import HTTPException, status
from sqlmodel import Session
from sqlalchemy.exc import SQLAlchemyError
from contenedores.core.catalog import fraction_name, status_name
from contenedores.core.snapshots import RequestSnapshot, as_utc
from contenedores.core.status_sync import sync_request_statuses
from contenedores.models.request import ContainerRequest
from contenedores.models.request_line import RequestLine
from contenedores.schemas.request import RequestLineResponse, RequestResponse

logger = logging.getLogger(__name__)


def recalculate_statuses_or_500(db: Session) -> List[RequestSnapshot]:
    """Recalcula los estados tras una mutación; si falla, error 500."""
    try:
        return sync_request_statuses(db)
    except SQLAlchemyError:
        logger.exception("Error al recalcular los estados de las solicitudes")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error al recalcular los estados de las solicitudes",
        )


def build_request_response(
    request: ContainerRequest, lines: Optional[Iterable[RequestLine]] = None
) -> RequestResponse:
    return RequestResponse(
        id=request.id,
        establecimiento=request.establecimiento,
        estado=request.estado,
        nombre_estado=status_name(request.estado),
        detalle_estado=request.detalle_estado,
        fecha=as_utc(request.fecha),
        observaciones=request.observaciones,
        lineas=[
            RequestLineResponse(
                id_linea=line.id_linea,
                id_fraccion=line.id_fraccion,
                nombre_fraccion=fraction_name(line.id_fraccion)
                if line.id_fraccion
                else None,
                capacidad=line.capacidad,
                tipo=line.tipo,
            )
            for line in lines or []
        ],
    )
