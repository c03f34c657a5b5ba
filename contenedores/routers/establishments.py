from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from contenedores.models.database import get_db
from contenedores.models.establishment import Establishment
from contenedores.models.request import ContainerRequest
from contenedores.schemas.establishment import (
    EstablishmentCreate,
    EstablishmentResponse,
)

router = APIRouter(prefix="/establecimientos", tags=["Establecimientos"])


@router.get("/", response_model=List[EstablishmentResponse])
def get_establishments(db: Session = Depends(get_db)):
    """Lista todos los establecimientos por orden alfabético."""
    try:
        return db.exec(select(Establishment).order_by(Establishment.nombre)).all()
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error de conexión con la base de datos",
        )


@router.post(
    "/", response_model=EstablishmentResponse, status_code=status.HTTP_201_CREATED
)
def create_establishment(data: EstablishmentCreate, db: Session = Depends(get_db)):
    """Crea un establecimiento. El nombre no distingue mayúsculas de minúsculas."""
    nombre = data.nombre.strip()
    if not nombre:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="El nombre no puede estar vacío.",
        )

    try:
        existing = db.exec(
            select(Establishment).where(
                func.lower(Establishment.nombre) == nombre.lower()
            )
        ).first()
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error de conexión con la base de datos",
        )

    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="El establecimiento ya existe.",
        )

    establecimiento = Establishment(nombre=nombre)

    try:
        db.add(establecimiento)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="El establecimiento ya existe.",
        )
    except SQLAlchemyError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error interno al crear el establecimiento.",
        )

    db.refresh(establecimiento)
    return establecimiento


@router.delete("/{id}", response_model=EstablishmentResponse)
def delete_establishment(id: int, db: Session = Depends(get_db)):
    """Elimina un establecimiento solo si ninguna solicitud lo utiliza."""
    try:
        establecimiento = db.get(Establishment, id)
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error de conexión con la base de datos",
        )

    if not establecimiento:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Establecimiento no encontrado",
        )

    try:
        in_use = db.exec(
            select(ContainerRequest).where(
                ContainerRequest.establecimiento == establecimiento.nombre
            )
        ).first()
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error de conexión con la base de datos",
        )

    if in_use:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f'No se puede eliminar "{establecimiento.nombre}" porque está siendo '
                "utilizado en una o más solicitudes. Primero debe eliminar o "
                "modificar dichas solicitudes."
            ),
        )

    deleted = EstablishmentResponse.model_validate(establecimiento)

    try:
        db.delete(establecimiento)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error interno al eliminar el establecimiento.",
        )

    return deleted
