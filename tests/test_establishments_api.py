"""Rutas /establecimientos."""


def test_create_and_list_sorted(client):
    client.post("/establecimientos/", json={"nombre": "Zeta"})
    response = client.post("/establecimientos/", json={"nombre": "  Alfa  "})

    assert response.status_code == 201
    assert response.json()["nombre"] == "Alfa"
    assert [e["nombre"] for e in client.get("/establecimientos/").json()] == [
        "Alfa",
        "Zeta",
    ]


def test_duplicate_name_is_rejected_case_insensitive(client):
    client.post("/establecimientos/", json={"nombre": "Colegio Norte"})

    response = client.post("/establecimientos/", json={"nombre": "colegio norte"})

    assert response.status_code == 400
    assert response.json()["detail"] == "El establecimiento ya existe."


def test_blank_name_is_rejected(client):
    response = client.post("/establecimientos/", json={"nombre": "   "})

    assert response.status_code == 400


def test_delete_unused_establishment(client):
    created = client.post("/establecimientos/", json={"nombre": "Mercado"}).json()

    response = client.delete(f"/establecimientos/{created['id']}")

    assert response.status_code == 200
    assert client.get("/establecimientos/").json() == []


def test_delete_establishment_in_use_is_rejected(client):
    created = client.post("/establecimientos/", json={"nombre": "Mercado"}).json()
    client.post(
        "/solicitudes/",
        json={
            "establecimiento": "Mercado",
            "lineas": [{"id_fraccion": "RESTA", "capacidad": 120, "tipo": "REMOVE"}],
        },
    )

    response = client.delete(f"/establecimientos/{created['id']}")

    assert response.status_code == 400
    assert "Mercado" in response.json()["detail"]


def test_delete_missing_establishment(client):
    assert client.delete("/establecimientos/99").status_code == 404
