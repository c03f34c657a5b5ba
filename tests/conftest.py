"""Configuración común de tests: SQLite en memoria y cliente de la API."""

import os
from datetime import datetime

# Antes de importar la aplicación: el motor global exige DATABASE_URL
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from contenedores.core.catalog import StatusEnum
from contenedores.main import app
from contenedores.models.database import get_db
from contenedores.models.inventory import InventoryItem
from contenedores.models.request import ContainerRequest
from contenedores.models.request_line import RequestLine


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def override_get_db():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def add_stock(db):
    """Registra existencias directamente en la base de datos."""

    def _add_stock(id_fraccion: str, capacidad: int, cantidad: int) -> InventoryItem:
        item = InventoryItem(id_fraccion=id_fraccion, capacidad=capacidad, cantidad=cantidad)
        db.add(item)
        db.commit()
        db.refresh(item)
        return item

    return _add_stock


@pytest.fixture
def add_request(db):
    """Registra una solicitud con sus líneas; cada línea es (fracción, capacidad, tipo)."""

    def _add_request(
        lineas,
        fecha: datetime,
        establecimiento: str = "Establecimiento A",
        estado: str = StatusEnum.EN_PREPARACION.value,
    ) -> int:
        request = ContainerRequest(
            establecimiento=establecimiento, estado=estado, fecha=fecha
        )
        db.add(request)
        db.flush()
        for i, (id_fraccion, capacidad, tipo) in enumerate(lineas, 1):
            db.add(
                RequestLine(
                    id_solicitud=request.id,
                    id_linea=i,
                    id_fraccion=id_fraccion,
                    capacidad=capacidad,
                    tipo=tipo,
                )
            )
        db.commit()
        return request.id

    return _add_request


