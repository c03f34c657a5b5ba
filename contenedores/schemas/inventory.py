from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class InventoryResponse(BaseModel):
    """Existencias de una fracción y capacidad.
    - `ultima_actualizacion` es nula si la posición nunca se ha registrado."""

    id_fraccion: str
    nombre_fraccion: str
    capacidad: int
    cantidad: int = Field(..., ge=0)
    ultima_actualizacion: Optional[datetime] = None


class InventoryUpdate(BaseModel):
    cantidad: int = Field(..., ge=0, description="Nueva cantidad disponible (mínimo 0)")
