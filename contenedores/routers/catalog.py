from typing import List
from fastapi import APIRouter
from contenedores.core.catalog import ESTADOS, FRACCIONES
from contenedores.schemas.catalog import FractionResponse, StatusResponse

router = APIRouter(tags=["Catálogo"])


@router.get("/fracciones", response_model=List[FractionResponse])
def get_fractions():
    """Fracciones de residuo y las capacidades que admite cada una."""
    return [
        FractionResponse(
            id=fraction.id.value,
            nombre=fraction.nombre,
            capacidades=list(fraction.capacidades),
        )
        for fraction in FRACCIONES
    ]


@router.get("/estados", response_model=List[StatusResponse])
def get_statuses():
    return [StatusResponse(id=s.id.value, nombre=s.nombre) for s in ESTADOS]
