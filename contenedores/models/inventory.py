from datetime import datetime, timezone
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


class InventoryItem(SQLModel, table=True):
    """Existencias de contenedores de una fracción y capacidad."""

    __tablename__ = "inventario"

    id_fraccion: str = Field(
        primary_key=True, max_length=50, description="Fracción de residuo"
    )
    capacidad: int = Field(primary_key=True, description="Capacidad en litros")
    cantidad: int = Field(
        default=0, nullable=False, ge=0, description="Contenedores disponibles (mínimo 0)"
    )
    ultima_actualizacion: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),
    )
