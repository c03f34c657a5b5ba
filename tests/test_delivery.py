"""Conciliación de entregas: tests contra una base SQLite en memoria.

Cubre:
    - Efecto en inventario (ADD descuenta, REMOVE repone, recorte a 0)
    - Idempotencia y solicitud inexistente
    - Líneas incompletas omitidas
    - Rollback completo ante conflicto
    - Recalculo posterior de las solicitudes pendientes
"""

from datetime import datetime, timedelta, timezone

import threading

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, SQLModel, create_engine, select

from contenedores.core.catalog import StatusEnum
from contenedores.core.delivery import compute_inventory_deltas, deliver_request
from contenedores.core.errors import DeliveryConflictError, RequestNotFoundError
from contenedores.core.status_sync import sync_request_statuses
from contenedores.models.inventory import InventoryItem
from contenedores.models.request import ContainerRequest
from contenedores.models.request_line import RequestLine

T1 = datetime(2024, 7, 22, 9, 0, tzinfo=timezone.utc)
T2 = T1 + timedelta(hours=3)


def quantity(engine, id_fraccion, capacidad):
    with Session(engine) as session:
        item = session.get(InventoryItem, (id_fraccion, capacidad))
        return None if item is None else item.cantidad


def request_row(engine, id_solicitud):
    with Session(engine) as session:
        return session.get(ContainerRequest, id_solicitud)


def test_scenario_deliver_oldest_request(db, engine, add_stock, add_request):
    add_stock("PAPEL_CARTON", 240, 1)
    first = add_request([("PAPEL_CARTON", 240, "ADD")], fecha=T1)
    second = add_request([("PAPEL_CARTON", 240, "ADD")], fecha=T2)

    sync_request_statuses(db)
    assert request_row(engine, first).estado == StatusEnum.EN_PREPARACION
    assert request_row(engine, second).estado == StatusEnum.SIN_STOCK
    assert "No hay stock: Papel y Cartón 240L (sol: 1, disp: 0)" in (
        request_row(engine, second).detalle_estado
    )

    result = deliver_request(db, first)
    sync_request_statuses(db)

    assert result.ya_realizada is False
    assert result.cambios_inventario == {"PAPEL_CARTON-240": 0}
    assert quantity(engine, "PAPEL_CARTON", 240) == 0
    delivered = request_row(engine, first)
    assert delivered.estado == StatusEnum.REALIZADO
    assert delivered.detalle_estado is None
    assert request_row(engine, second).estado == StatusEnum.SIN_STOCK


def test_delivery_is_idempotent(db, engine, add_stock, add_request):
    add_stock("RESTA", 120, 10)
    id_solicitud = add_request(
        [("RESTA", 120, "ADD"), ("RESTA", 120, "ADD")], fecha=T1
    )

    deliver_request(db, id_solicitud)
    second = deliver_request(db, id_solicitud)

    assert second.ya_realizada is True
    assert second.cambios_inventario == {}
    assert quantity(engine, "RESTA", 120) == 8


def test_remove_only_creates_missing_inventory_row(db, engine, add_request):
    id_solicitud = add_request([("VIDRIO", 40, "REMOVE")], fecha=T1)

    deliver_request(db, id_solicitud)

    assert quantity(engine, "VIDRIO", 40) == 1


def test_add_against_empty_stock_is_clamped_to_zero(db, engine, add_stock, add_request):
    add_stock("RESTA", 1100, 0)
    id_solicitud = add_request([("RESTA", 1100, "ADD")], fecha=T1)

    deliver_request(db, id_solicitud)

    assert quantity(engine, "RESTA", 1100) == 0
    assert request_row(engine, id_solicitud).estado == StatusEnum.REALIZADO


def test_add_and_remove_on_same_key_cancel_out(db, engine, add_stock, add_request):
    item = add_stock("ENVASES", 120, 5)
    antes = item.ultima_actualizacion
    id_solicitud = add_request(
        [("ENVASES", 120, "ADD"), ("ENVASES", 120, "REMOVE")], fecha=T1
    )

    result = deliver_request(db, id_solicitud)

    assert result.cambios_inventario == {}
    with Session(engine) as session:
        item = session.get(InventoryItem, ("ENVASES", 120))
        assert item.cantidad == 5
        assert item.ultima_actualizacion == antes


def test_delivery_of_sin_stock_request(db, engine, add_request):
    id_solicitud = add_request(
        [("ORGANICA", 240, "ADD")], fecha=T1, estado=StatusEnum.SIN_STOCK.value
    )

    deliver_request(db, id_solicitud)

    assert request_row(engine, id_solicitud).estado == StatusEnum.REALIZADO
    assert quantity(engine, "ORGANICA", 240) == 0


def test_missing_request_raises_not_found(db):
    with pytest.raises(RequestNotFoundError):
        deliver_request(db, 999)


def test_malformed_lines_are_skipped(db, engine, add_stock, add_request):
    add_stock("VIDRIO", 240, 2)
    id_solicitud = add_request(
        [
            ("VIDRIO", 240, "ADD"),
            (None, 240, "ADD"),
            ("VIDRIO", None, "REMOVE"),
            ("VIDRIO", 240, None),
            ("VIDRIO", 240, "SWAP"),
        ],
        fecha=T1,
    )

    result = deliver_request(db, id_solicitud)

    assert result.lineas_omitidas == (2, 3, 4, 5)
    assert quantity(engine, "VIDRIO", 240) == 1
    assert request_row(engine, id_solicitud).estado == StatusEnum.REALIZADO


def test_conflict_rolls_back_everything(db, engine, add_stock, add_request, monkeypatch):
    add_stock("RESTA", 240, 3)
    id_solicitud = add_request([("RESTA", 240, "ADD"), ("ENVASES", 40, "REMOVE")], fecha=T1)

    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", failing_commit)

    with pytest.raises(DeliveryConflictError) as exc_info:
        deliver_request(db, id_solicitud)

    assert exc_info.value.reintentable is True
    monkeypatch.undo()

    assert quantity(engine, "RESTA", 240) == 3
    assert quantity(engine, "ENVASES", 40) is None
    assert request_row(engine, id_solicitud).estado == StatusEnum.EN_PREPARACION


def test_delivery_can_be_retried_after_conflict(db, engine, add_stock, add_request, monkeypatch):
    add_stock("RESTA", 240, 3)
    id_solicitud = add_request([("RESTA", 240, "ADD")], fecha=T1)

    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", failing_commit)
    with pytest.raises(DeliveryConflictError):
        deliver_request(db, id_solicitud)
    monkeypatch.undo()

    deliver_request(db, id_solicitud)

    assert quantity(engine, "RESTA", 240) == 2


def test_delivery_unblocks_other_requests_after_recalculation(db, engine, add_request):
    returns = add_request([("VIDRIO", 240, "REMOVE")], fecha=T1)
    waiting = add_request([("VIDRIO", 240, "ADD")], fecha=T2)

    sync_request_statuses(db)
    assert request_row(engine, waiting).estado == StatusEnum.SIN_STOCK

    deliver_request(db, returns)
    sync_request_statuses(db)

    assert request_row(engine, waiting).estado == StatusEnum.EN_PREPARACION
    assert request_row(engine, waiting).detalle_estado is None


def test_compute_inventory_deltas_accumulates_per_key():
    lines = [
        RequestLine(id_solicitud=1, id_linea=1, id_fraccion="RESTA", capacidad=40, tipo="ADD"),
        RequestLine(id_solicitud=1, id_linea=2, id_fraccion="RESTA", capacidad=40, tipo="ADD"),
        RequestLine(id_solicitud=1, id_linea=3, id_fraccion="VIDRIO", capacidad=40, tipo="REMOVE"),
        RequestLine(id_solicitud=1, id_linea=4, id_fraccion="", capacidad=40, tipo="ADD"),
    ]

    deltas, skipped = compute_inventory_deltas(lines)

    assert deltas == {("RESTA", 40): -2, ("VIDRIO", 40): 1}
    assert skipped == [4]


def test_sync_never_overwrites_delivered_requests(db, engine, add_request):
    delivered = add_request(
        [("RESTA", 40, "ADD")], fecha=T1, estado=StatusEnum.REALIZADO.value
    )

    results = sync_request_statuses(db)

    assert [r.id for r in results] == [delivered]
    assert request_row(engine, delivered).estado == StatusEnum.REALIZADO
    rows = db.exec(select(ContainerRequest)).all()
    assert len(rows) == 1


def test_concurrent_deliveries_apply_stock_once(tmp_path):
    # Cada hilo con su propia sesión sobre una base en fichero
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'entregas.db'}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(file_engine)

    with Session(file_engine) as session:
        session.add(InventoryItem(id_fraccion="RESTA", capacidad=240, cantidad=5))
        request = ContainerRequest(
            establecimiento="Establecimiento A",
            estado=StatusEnum.EN_PREPARACION.value,
            fecha=T1,
        )
        session.add(request)
        session.flush()
        session.add(
            RequestLine(
                id_solicitud=request.id,
                id_linea=1,
                id_fraccion="RESTA",
                capacidad=240,
                tipo="ADD",
            )
        )
        session.commit()
        id_solicitud = request.id

    results = []
    errors = []
    barrier = threading.Barrier(8)

    def deliver():
        barrier.wait()
        try:
            with Session(file_engine) as session:
                results.append(deliver_request(session, id_solicitud))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=deliver) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(results) == 8
    assert [r.ya_realizada for r in results].count(False) == 1
    assert quantity(file_engine, "RESTA", 240) == 4
    assert request_row(file_engine, id_solicitud).estado == StatusEnum.REALIZADO

    file_engine.dispose()
