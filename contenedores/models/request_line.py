from sqlmodel import SQLModel, Field
from typing import Optional


class RequestLine(SQLModel, table=True):
    __tablename__ = "solicitudes_lineas"

    id_solicitud: int = Field(foreign_key="solicitudes.id", primary_key=True)
    id_linea: int = Field(primary_key=True, ge=1)
    # Columnas opcionales: los datos importados pueden venir incompletos.
    # Las restricciones las ponemos en el esquema de creación.
    id_fraccion: Optional[str] = Field(default=None, max_length=50)
    capacidad: Optional[int] = Field(default=None)
    tipo: Optional[str] = Field(default=None, max_length=10)
