"""
Semantic tests: end-to-end board scenarios.

Operator action -> engine write -> store re-emits -> index reflects the
new status in both filters and counts.
"""

from __future__ import annotations

import asyncio

from app.schemas.order import ALL_LABEL, OrderStatus
from app.services.order_index import LiveOrderIndex
from app.services.transition_engine import StatusTransitionEngine
from fakes import InMemoryOrderStore

T0 = 1_741_208_820_000


def open_board(docs: dict[str, dict]) -> tuple[InMemoryOrderStore, LiveOrderIndex, StatusTransitionEngine]:
    store = InMemoryOrderStore(docs)
    index = LiveOrderIndex(store)
    asyncio.run(index.start())
    return store, index, StatusTransitionEngine(store)


def ids(orders) -> list[str]:
    return [o.id for o in orders]


def test_advance_pending_order_to_preparing() -> None:
    store, index, engine = open_board(
        {
            "A1": {
                "criadoEm": T0,
                "status": "Pendente",
                "total": 50,
                "itens": [{"nome": "X", "quantidade": 2, "preco": 10}],
            }
        }
    )
    order = index.get("A1")
    assert order.subtotal == 50
    assert order.status == OrderStatus.PENDING

    outcome = asyncio.run(engine.advance(order, OrderStatus.PREPARING))

    assert outcome.ok
    assert store.writes == [("A1", "Em Preparo", "Pendente")]
    assert "A1" in ids(index.filter("Em Preparo"))
    assert "A1" not in ids(index.filter("Pendente"))
    assert index.counts() == {
        ALL_LABEL: 1,
        "Pendente": 0,
        "Em Preparo": 1,
        "Em Entrega": 0,
        "Entregue": 0,
        "Cancelado": 0,
    }


def test_step_back_delivered_order() -> None:
    store, index, engine = open_board({"B": {"criadoEm": T0, "status": "Entregue"}})

    asyncio.run(engine.step_back(index.get("B")))

    assert store.writes == [("B", "Em Entrega", "Entregue")]
    assert "B" in ids(index.filter("Em Entrega"))
    assert "B" not in ids(index.filter("Entregue"))


def test_reopen_canceled_order() -> None:
    store, index, engine = open_board({"C": {"criadoEm": T0, "status": "Cancelado"}})

    asyncio.run(engine.reopen(index.get("C")))

    assert store.writes == [("C", "Pendente", "Cancelado")]
    assert "C" in ids(index.filter("Pendente"))
    assert index.counts()["Cancelado"] == 0


def test_full_delivery_flow_walks_forward_sequence() -> None:
    store, index, engine = open_board({"D": {"criadoEm": T0}})

    for target in (
        OrderStatus.PREPARING,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.DELIVERED,
    ):
        outcome = asyncio.run(engine.advance(index.get("D"), target))
        assert outcome.ok
        assert index.get("D").status == target

    assert [w[1] for w in store.writes] == ["Em Preparo", "Em Entrega", "Entregue"]


def test_external_change_between_reads_is_picked_up() -> None:
    store, index, _ = open_board(
        {
            "E1": {"criadoEm": T0, "status": "Pendente"},
            "E2": {"criadoEm": T0 + 1, "status": "Pendente"},
        }
    )

    store.set_status("E2", "Em Entrega")

    assert ids(index.filter("Pendente")) == ["E1"]
    assert ids(index.filter("Em Entrega")) == ["E2"]
    assert index.counts()[ALL_LABEL] == 2
