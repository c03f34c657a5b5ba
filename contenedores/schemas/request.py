from pydantic import BaseModel, Field
from datetime import datetime
from typing import Dict, List, Literal, Optional
from contenedores.core.catalog import FractionEnum, RequestTypeEnum


class RequestLineCreate(BaseModel):
    """Línea de una solicitud: fracción, capacidad y sentido (recibir o devolver)."""

    id_fraccion: FractionEnum = Field(..., description="Fracción de residuo")
    capacidad: Literal[40, 120, 240, 1100] = Field(
        ..., description="Capacidad del contenedor en litros"
    )
    tipo: RequestTypeEnum = Field(
        ..., description="'ADD' (recibir contenedor) o 'REMOVE' (devolver contenedor)"
    )


class RequestCreate(BaseModel):
    """Esquema para la creación de solicitudes.
    - `fecha` es opcional; si no se indica se usa la fecha actual.
    - El estado no se envía: lo calcula el motor de asignación."""

    establecimiento: str = Field(..., min_length=1, max_length=255)
    fecha: Optional[datetime] = Field(
        default=None, description="Fecha de la solicitud (define la prioridad)"
    )
    observaciones: Optional[str] = Field(default=None, max_length=1000)
    lineas: List[RequestLineCreate] = Field(
        ..., description="Contenedores a recibir o devolver"
    )


class RequestLineResponse(BaseModel):
    id_linea: int
    id_fraccion: Optional[str]
    nombre_fraccion: Optional[str]
    capacidad: Optional[int]
    tipo: Optional[str]


class RequestResponse(BaseModel):
    """Esquema para responder con los datos de una solicitud."""

    id: int
    establecimiento: str
    estado: str
    nombre_estado: str
    detalle_estado: Optional[str] = None
    fecha: datetime
    observaciones: Optional[str] = None
    lineas: List[RequestLineResponse] = Field(default=[])

    class Config:
        from_attributes = True


class PaginatedRequestResponse(BaseModel):
    data: List[RequestResponse]
    total: int
    limit: int
    offset: int


class DeliveryResponse(BaseModel):
    """Resultado de marcar una solicitud como entregada."""

    solicitud: RequestResponse
    ya_realizada: bool = Field(
        ..., description="True si la solicitud ya estaba entregada (no se cambió nada)"
    )
    cambios_inventario: Dict[str, int] = Field(
        default={}, description="Nueva cantidad por posición de inventario"
    )
    lineas_omitidas: List[int] = Field(
        default=[], description="Líneas incompletas que no se aplicaron"
    )


class PendingSummaryResponse(BaseModel):
    id_fraccion: str
    nombre_fraccion: str
    capacidad: int
    en_preparacion: int = Field(..., ge=0)
    sin_stock: int = Field(..., ge=0)


class AvailabilityResponse(BaseModel):
    id_fraccion: str
    nombre_fraccion: str
    capacidad: int
    disponible: int = Field(..., description="Stock menos demanda pendiente (puede ser negativo)")
    disponible_real: int = Field(..., ge=0)
