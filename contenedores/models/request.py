from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime, timezone
from sqlalchemy import DateTime


class ContainerRequest(SQLModel, table=True):
    __tablename__ = "solicitudes"

    id: int = Field(default=None, primary_key=True, nullable=False)
    establecimiento: str = Field(nullable=False, index=True)
    estado: str = Field(
        nullable=False, index=True
    )  # Estado como `str`, lo calcula el motor de asignación
    detalle_estado: Optional[str] = Field(default=None)
    fecha: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),
        index=True,
    )
    observaciones: Optional[str] = Field(default=None)
