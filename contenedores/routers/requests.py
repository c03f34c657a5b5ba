import logging
from collections import Counter, defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session, func, select
from sqlalchemy.exc import SQLAlchemyError
from contenedores.core.catalog import (
    FractionEnum,
    RequestTypeEnum,
    StatusEnum,
    fraction_name,
    is_capacity_allowed,
)
from contenedores.core.delivery import deliver_request
from contenedores.core.errors import ContenedoresError
from contenedores.core.snapshots import as_utc
from contenedores.core.status_sync import load_snapshots
from contenedores.core.summary import pending_summary, realtime_availability
from contenedores.models.database import get_db
from contenedores.models.establishment import Establishment
from contenedores.models.request import ContainerRequest
from contenedores.models.request_line import RequestLine
from contenedores.routers.common import (
    build_request_response,
    recalculate_statuses_or_500,
)
from contenedores.routers.websocket import notify_change
from contenedores.schemas.request import (
    AvailabilityResponse,
    DeliveryResponse,
    PaginatedRequestResponse,
    PendingSummaryResponse,
    RequestCreate,
    RequestResponse,
)
from contenedores.utils.getenv import get_bool_env

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/solicitudes", tags=["Solicitudes"])

# Si es False, una solicitud no puede pedir dos veces la misma fracción y capacidad
PERMITIR_LINEAS_DUPLICADAS = get_bool_env("PERMITIR_LINEAS_DUPLICADAS", True)

MAX_LINEAS = 100


def _lines_by_request(db: Session, ids: List[int]) -> Dict[int, List[RequestLine]]:
    grouped: Dict[int, List[RequestLine]] = defaultdict(list)
    if not ids:
        return grouped
    lines = db.exec(
        select(RequestLine)
        .where(RequestLine.id_solicitud.in_(ids))
        .order_by(RequestLine.id_solicitud, RequestLine.id_linea)
    ).all()
    for line in lines:
        grouped[line.id_solicitud].append(line)
    return grouped


@router.get("/", response_model=PaginatedRequestResponse)
def get_requests(
    db: Session = Depends(get_db),
    limit: int = Query(10, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    establecimiento: Optional[str] = Query(None),
    estado: Optional[StatusEnum] = Query(None),
    id_fraccion: Optional[FractionEnum] = Query(None),
    capacidad: Optional[int] = Query(None),
):
    """Lista las solicitudes, de la más reciente a la más antigua.
    - Los filtros de fracción y capacidad aceptan la solicitud si alguna de sus líneas coincide.
    """
    try:
        statement = select(ContainerRequest)

        if establecimiento:
            statement = statement.where(
                ContainerRequest.establecimiento == establecimiento
            )

        if estado:
            statement = statement.where(ContainerRequest.estado == estado.value)

        if id_fraccion:
            statement = statement.where(
                ContainerRequest.id.in_(
                    select(RequestLine.id_solicitud).where(
                        RequestLine.id_fraccion == id_fraccion.value
                    )
                )
            )

        if capacidad:
            statement = statement.where(
                ContainerRequest.id.in_(
                    select(RequestLine.id_solicitud).where(
                        RequestLine.capacidad == capacidad
                    )
                )
            )

        results = db.exec(
            statement.order_by(ContainerRequest.fecha.desc(), ContainerRequest.id.desc())
            .limit(limit)
            .offset(offset)
        ).all()

        total_records = (
            db.exec(select(func.count()).select_from(statement.subquery())).first() or 0
        )

        lines = _lines_by_request(db, [request.id for request in results])

    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error de conexión con la base de datos",
        )

    return {
        "data": [
            build_request_response(request, lines.get(request.id, []))
            for request in results
        ],
        "total": total_records,
        "limit": limit,
        "offset": offset,
    }


@router.get("/pendientes/resumen", response_model=List[PendingSummaryResponse])
def get_pending_summary(db: Session = Depends(get_db)):
    """Contenedores pendientes de entrega por fracción y capacidad, según estado."""
    try:
        requests, _ = load_snapshots(db)
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error de conexión con la base de datos",
        )

    return [
        PendingSummaryResponse(
            id_fraccion=row.id_fraccion,
            nombre_fraccion=row.nombre_fraccion,
            capacidad=row.capacidad,
            en_preparacion=row.en_preparacion,
            sin_stock=row.sin_stock,
        )
        for row in pending_summary(requests)
    ]


@router.get("/disponibilidad", response_model=List[AvailabilityResponse])
def get_availability(db: Session = Depends(get_db)):
    """Disponibilidad real: stock menos lo ya comprometido por solicitudes pendientes."""
    try:
        requests, inventory = load_snapshots(db)
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error de conexión con la base de datos",
        )

    return [
        AvailabilityResponse(
            id_fraccion=row.id_fraccion,
            nombre_fraccion=row.nombre_fraccion,
            capacidad=row.capacidad,
            disponible=row.disponible,
            disponible_real=row.disponible_real,
        )
        for row in realtime_availability(requests, inventory)
    ]


@router.get("/{id}", response_model=RequestResponse)
def get_request(id: int, db: Session = Depends(get_db)):
    """Obtiene una solicitud con sus líneas."""
    try:
        request = db.get(ContainerRequest, id)
        lines = _lines_by_request(db, [id])
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error de conexión con la base de datos",
        )

    if not request:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Solicitud no encontrada"
        )

    return build_request_response(request, lines.get(id, []))


@router.post("/", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
def create_request(request_data: RequestCreate, db: Session = Depends(get_db)):
    """
    Registra una solicitud con todas sus líneas.

    - Debe contener al menos una línea.
    - El establecimiento debe existir.
    - La capacidad debe estar permitida para la fracción.
    - Se crea EN_PREPARACION y a continuación se recalculan todos los estados.
    """
    if not request_data.lineas:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="La solicitud debe contener al menos un contenedor.",
        )

    if len(request_data.lineas) > MAX_LINEAS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"El número máximo de líneas permitidas es {MAX_LINEAS}.",
        )

    for linea in request_data.lineas:
        if not is_capacity_allowed(linea.id_fraccion, linea.capacidad):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=(
                    f"La fracción {fraction_name(linea.id_fraccion)} no admite "
                    f"contenedores de {linea.capacidad}L."
                ),
            )

    if not PERMITIR_LINEAS_DUPLICADAS:
        repetidas = [
            key
            for key, count in Counter(
                (linea.id_fraccion.value, linea.capacidad)
                for linea in request_data.lineas
                if linea.tipo == RequestTypeEnum.ADD
            ).items()
            if count > 1
        ]
        if repetidas:
            id_fraccion, capacidad = repetidas[0]
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=(
                    f"La solicitud repite el contenedor {fraction_name(id_fraccion)} "
                    f"{capacidad}L."
                ),
            )

    nombre = request_data.establecimiento.strip()

    try:
        establecimiento = db.exec(
            select(Establishment).where(Establishment.nombre == nombre)
        ).first()
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error de conexión con la base de datos",
        )

    if not establecimiento:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"El establecimiento '{nombre}' no existe.",
        )

    # Estado provisional: el motor de asignación lo sustituye a continuación
    new_request = ContainerRequest(
        establecimiento=nombre,
        estado=StatusEnum.EN_PREPARACION.value,
        fecha=(
            as_utc(request_data.fecha)
            if request_data.fecha
            else datetime.now(timezone.utc)
        ),
        observaciones=request_data.observaciones,
    )

    try:
        db.add(new_request)
        db.flush()

        for i, line_data in enumerate(request_data.lineas, 1):
            db.add(
                RequestLine(
                    id_solicitud=new_request.id,
                    id_linea=i,
                    id_fraccion=line_data.id_fraccion.value,
                    capacidad=line_data.capacidad,
                    tipo=line_data.tipo.value,
                )
            )

        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        msg_error = (str(e.orig) if hasattr(e, "orig") else str(e)).split("\n")[0]
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Error de integridad: {msg_error}",
        )

    id_solicitud = new_request.id
    logger.info("Solicitud %s registrada para '%s'", id_solicitud, nombre)

    recalculate_statuses_or_500(db)
    notify_change(f"Nueva solicitud registrada: {id_solicitud}")

    return get_request(id_solicitud, db)


@router.delete("/{id}", response_model=RequestResponse)
def delete_request(id: int, db: Session = Depends(get_db)):
    """Elimina una solicitud y recalcula el estado del resto."""
    try:
        request = db.get(ContainerRequest, id)
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error de conexión con la base de datos",
        )

    if not request:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Solicitud no encontrada"
        )

    try:
        lines = _lines_by_request(db, [id]).get(id, [])
        deleted = build_request_response(request, lines)

        for line in lines:
            db.delete(line)
        db.flush()
        db.delete(request)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error al eliminar la solicitud.",
        )

    logger.info("Solicitud %s eliminada", id)

    recalculate_statuses_or_500(db)
    notify_change(f"Solicitud eliminada: {id}")

    return deleted


@router.post("/{id}/entregar", response_model=DeliveryResponse)
def mark_request_as_delivered(id: int, db: Session = Depends(get_db)):
    """
    Marca la solicitud como entregada (REALIZADO) y actualiza el inventario.

    - ADD descuenta un contenedor; REMOVE lo repone. Nunca por debajo de 0.
    - Si ya estaba entregada no se modifica el inventario; solo se recalculan los estados.
    - Si hay un conflicto de concurrencia se devuelve 409 y puede reintentarse.
    """
    try:
        result = deliver_request(db, id)
    except ContenedoresError as e:
        # 404 si no existe, 409 si hubo conflicto (reintentable), 500 en otro caso
        raise HTTPException(status_code=e.http_status, detail=e.message)

    # Se recalcula siempre, también si la solicitud ya estaba entregada
    recalculate_statuses_or_500(db)
    if not result.ya_realizada:
        notify_change(f"Solicitud entregada: {id}")

    return DeliveryResponse(
        solicitud=get_request(id, db),
        ya_realizada=result.ya_realizada,
        cambios_inventario=result.cambios_inventario,
        lineas_omitidas=list(result.lineas_omitidas),
    )
