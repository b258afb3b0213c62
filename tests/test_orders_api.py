"""
HTTP tests: order board router.

The router is mounted on a bare FastAPI app whose state carries an index
subscribed to an in-memory store, so writes re-emit like the real feed.
"""

from __future__ import annotations

import asyncio

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.routers.orders import router as orders_router
from app.services.order_index import LiveOrderIndex
from app.services.transition_engine import (
    MSG_ALREADY_INITIAL,
    MSG_UPDATE_FAILED,
    StatusTransitionEngine,
)
from fakes import InMemoryOrderStore

T0 = 1_741_208_820_000  # 2025-03-05 21:07 UTC


@pytest.fixture
def store() -> InMemoryOrderStore:
    return InMemoryOrderStore(
        {
            "A1": {
                "criadoEm": T0,
                "status": "Pendente",
                "nome": "Ana",
                "total": 50,
                "itens": [{"nome": "X", "quantidade": 2, "preco": 10}],
            },
            "B2": {"criadoEm": T0 + 60_000, "status": "Entregue", "total": "30"},
            "C3": {"criadoEm": T0 - 60_000, "status": "Cancelado"},
        }
    )


@pytest.fixture
def client(store: InMemoryOrderStore) -> TestClient:
    index = LiveOrderIndex(store)
    asyncio.run(index.start())

    app = FastAPI()
    app.include_router(orders_router, prefix="/api/v1")
    app.state.order_index = index
    app.state.transition_engine = StatusTransitionEngine(store)
    return TestClient(app)


def test_list_orders_newest_first_with_display_fields(client: TestClient) -> None:
    res = client.get("/api/v1/orders")

    assert res.status_code == 200
    body = res.json()
    assert [o["id"] for o in body] == ["B2", "A1", "C3"]

    a1 = body[1]
    assert a1["date"] == "05/03/2025"
    assert a1["time"] == "18:07"
    assert a1["status"] == "Pendente"
    assert a1["customer"]["name"] == "Ana"
    assert a1["payment_method"] == "Não informado"
    assert a1["subtotal"] == 50
    assert a1["delivery_fee"] == 0
    assert a1["total"] == 50
    assert a1["items"] == [{"name": "X", "quantity": 2, "unit_price": 10}]
    assert [(a["action"], a["target"]) for a in a1["actions"]] == [
        ("forward", "Em Preparo"),
        ("cancel", "Cancelado"),
    ]


def test_filter_by_status_label(client: TestClient) -> None:
    res = client.get("/api/v1/orders", params={"status": "Entregue"})

    assert res.status_code == 200
    assert [o["id"] for o in res.json()] == ["B2"]


def test_unknown_filter_label_is_422(client: TestClient) -> None:
    assert client.get("/api/v1/orders", params={"status": "Perdido"}).status_code == 422


def test_counts(client: TestClient) -> None:
    res = client.get("/api/v1/orders/counts")

    assert res.json() == {
        "Todos": 3,
        "Pendente": 1,
        "Em Preparo": 0,
        "Em Entrega": 0,
        "Entregue": 1,
        "Cancelado": 1,
    }


def test_board_combines_counts_and_filter(client: TestClient) -> None:
    res = client.get("/api/v1/orders/board", params={"status": "Cancelado"})

    body = res.json()
    assert body["filter"] == "Cancelado"
    assert body["version"] == 1
    assert body["counts"]["Todos"] == 3
    assert [o["id"] for o in body["orders"]] == ["C3"]


def test_get_unknown_order_is_404(client: TestClient) -> None:
    assert client.get("/api/v1/orders/nope").status_code == 404


def test_patch_status_advances_and_feed_reflects_it(client: TestClient, store: InMemoryOrderStore) -> None:
    res = client.patch("/api/v1/orders/A1/status", json={"status": "Em Preparo"})

    assert res.status_code == 202
    assert res.json() == {"order_id": "A1", "target": "Em Preparo", "written": True, "notice": None}
    assert store.writes == [("A1", "Em Preparo", "Pendente")]
    assert client.get("/api/v1/orders/A1").json()["status"] == "Em Preparo"
    assert client.get("/api/v1/orders/counts").json()["Pendente"] == 0


def test_patch_status_outside_table_is_409(client: TestClient, store: InMemoryOrderStore) -> None:
    res = client.patch("/api/v1/orders/A1/status", json={"status": "Entregue"})

    assert res.status_code == 409
    assert res.json()["detail"]["kind"] == "illegal_transition"
    assert store.writes == []


def test_patch_status_to_back_target_steps_back(client: TestClient, store: InMemoryOrderStore) -> None:
    res = client.patch("/api/v1/orders/B2/status", json={"status": "Em Entrega"})

    assert res.status_code == 202
    assert store.writes == [("B2", "Em Entrega", "Entregue")]


def test_patch_rejects_unknown_fields(client: TestClient) -> None:
    res = client.patch("/api/v1/orders/A1/status", json={"status": "Em Preparo", "force": True})
    assert res.status_code == 422


def test_back_from_pending_is_409_with_notice(client: TestClient, store: InMemoryOrderStore) -> None:
    res = client.post("/api/v1/orders/A1/back")

    assert res.status_code == 409
    assert res.json()["detail"] == {"kind": "illegal_transition", "message": MSG_ALREADY_INITIAL}
    assert store.writes == []


def test_reopen_canceled(client: TestClient) -> None:
    res = client.post("/api/v1/orders/C3/reopen")

    assert res.status_code == 202
    assert client.get("/api/v1/orders/C3").json()["status"] == "Pendente"


def test_cancel_delivered_is_409(client: TestClient, store: InMemoryOrderStore) -> None:
    res = client.post("/api/v1/orders/B2/cancel")

    assert res.status_code == 409
    assert store.writes == []


def test_write_failure_is_502_and_board_unchanged(client: TestClient, store: InMemoryOrderStore) -> None:
    store.fail_writes = PermissionError("rls")

    res = client.post("/api/v1/orders/A1/cancel")

    assert res.status_code == 502
    assert res.json()["detail"] == {"kind": "write_failure", "message": MSG_UPDATE_FAILED}
    assert client.get("/api/v1/orders/A1").json()["status"] == "Pendente"


def test_missing_index_is_503() -> None:
    app = FastAPI()
    app.include_router(orders_router)

    assert TestClient(app).get("/orders").status_code == 503
