from fastapi.testclient import TestClient


def test_inventory_flow(client: TestClient) -> None:
    response = client.post("/wines", json={"name": "Chablis Premier Cru", "producer": "Domaine Laroche", "year": 2020})
    assert response.status_code == 201, response.text
    wine_id = response.json()["id"]

    response = client.get(f"/wines/{wine_id}/inventory")
    assert response.status_code == 200
    assert response.json() == {
        "wine_id": wine_id,
        "current_stock": 0,
        "total_acquired": 0,
        "total_consumed": 0,
        "last_event_at": None,
    }

    response = client.post(
        f"/wines/{wine_id}/inventory/add",
        json={"quantity": 12, "acquisition_type": "purchase", "price": 31.9, "bought_at": "Vinothek"},
    )
    assert response.status_code == 201, response.text
    assert response.json()["current_stock"] == 12

    response = client.post(f"/wines/{wine_id}/inventory/drink", json={"quantity": 5})
    assert response.status_code == 201, response.text
    assert response.json()["current_stock"] == 7

    response = client.post(f"/wines/{wine_id}/inventory/drink", json={"quantity": 10})
    assert response.status_code == 409
    body = response.json()
    assert (body["requested"], body["available"], body["wine_id"]) == (10, 7, wine_id)

    events = client.get(f"/wines/{wine_id}/inventory/events").json()
    assert [e["event_type"] for e in events] == ["add", "drink"]
    drink_id = events[1]["id"]

    response = client.post(
        f"/wines/{wine_id}/inventory/correct",
        json={"original_drink_event_id": drink_id, "error_quantity": 2},
    )
    assert response.status_code == 201, response.text
    summary = response.json()
    assert summary["current_stock"] == 9
    assert summary["total_consumed"] == 5

    history = client.get(f"/wines/{wine_id}/inventory/history").json()
    assert [point["balance"] for point in history] == [12, 7, 9]

    inventory = client.get("/inventory").json()
    assert inventory == [
        {
            "wine_id": wine_id,
            "name": "Chablis Premier Cru",
            "producer": "Domaine Laroche",
            "year": 2020,
            "type": None,
            "current_stock": 9,
            "last_event_at": summary["last_event_at"],
        }
    ]

    cellar = client.get("/inventory/history", params={"limit": 2}).json()
    assert [e["error_quantity"] for e in cellar] == [2, None]


def test_error_responses(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/wines/77").status_code == 404
    assert client.get("/wines/77/inventory").status_code == 404
    assert client.post("/wines/77/inventory/add", json={"quantity": 1}).status_code == 404

    wine_id = client.post("/wines", json={"name": "Trollinger"}).json()["id"]
    assert client.post(f"/wines/{wine_id}/inventory/add", json={"quantity": 0}).status_code == 400
    assert client.post(f"/wines/{wine_id}/inventory/drink", json={"quantity": -1}).status_code == 400
    assert client.post(f"/wines/{wine_id}/inventory/drink", json={}).status_code == 422
    response = client.post(
        f"/wines/{wine_id}/inventory/correct", json={"original_drink_event_id": 5, "error_quantity": 1}
    )
    assert response.status_code == 404
    assert client.get(f"/wines/{wine_id}/inventory/events").json() == []


def test_wine_listing(client: TestClient) -> None:
    for name in ("Müller-Thurgau", "Dornfelder"):
        client.post("/wines", json={"name": name})

    names = [wine["name"] for wine in client.get("/wines").json()]

    assert names == ["Müller-Thurgau", "Dornfelder"]


def test_out_of_range_input_is_rejected(client: TestClient) -> None:
    wine_id = client.post("/wines", json={"name": "Schwarzriesling"}).json()["id"]
    client.post(f"/wines/{wine_id}/inventory/add", json={"quantity": 2})

    assert client.post(f"/wines/{wine_id}/inventory/add", json={"quantity": 10**20}).status_code == 422
    assert client.post(f"/wines/{wine_id}/inventory/drink", json={"quantity": 10**20}).status_code == 422
    response = client.post(
        f"/wines/{wine_id}/inventory/correct", json={"original_drink_event_id": 1, "error_quantity": -(10**20)}
    )
    assert response.status_code == 422
    for params in ({"limit": -1}, {"limit": 0}, {"limit": 5000}, {"offset": -1}):
        assert client.get("/inventory/history", params=params).status_code == 422
    assert client.get("/wines", params={"limit": -1}).status_code == 422

    assert client.get(f"/wines/{wine_id}/inventory").json()["current_stock"] == 2


def test_export_and_import(client: TestClient) -> None:
    wine_id = client.post("/wines", json={"name": "Kerner"}).json()["id"]
    client.post(
        f"/wines/{wine_id}/inventory/add",
        json={"quantity": 4, "acquisition_type": "purchase", "event_date": "2024-05-01T12:00:00"},
    )

    exported = client.get("/inventory/export").json()
    assert exported["inventory"] == [{"wine_id": wine_id, "name": "Kerner", "inventory": 4}]
    [record] = exported["events"]
    assert (record["event_type"], record["quantity"], record["acquisition_type"]) == ("add", 4, "purchase")
    assert record["event_date"] == "2024-05-01T12:00:00"

    response = client.post("/inventory/import", json={"inventory": [{"wine_id": wine_id, "inventory": 2}]})
    assert response.status_code == 200, response.text
    assert response.json() == {"created": 1, "errors": []}
    assert client.get(f"/wines/{wine_id}/inventory").json()["current_stock"] == 6

    response = client.post(
        "/inventory/import", json={"events": [{"wine_id": wine_id, "event_type": "drink", "quantity": 99}]}
    )
    body = response.json()
    assert body["created"] == 0
    assert "requested 99, available 6" in body["errors"][0]
    response = client.post("/inventory/import", json={"events": [{"wine_id": wine_id, "event_type": "spill"}]})
    assert response.status_code == 422
