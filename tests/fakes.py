"""
In-memory stand-ins for the order store ports.

`InMemoryOrderStore` is both the feed and the status writer, like the real
table: a successful write updates the document and (by default) re-emits
the full collection to every open subscription.
"""

from __future__ import annotations

import copy
from typing import Any

from app.core.errors import StatusPreconditionFailed
from app.repositories.ports import ErrorHandler, RawOrderDocument, SnapshotHandler
from app.schemas.order import OrderStatus


class InMemorySubscription:
    def __init__(self, store: InMemoryOrderStore, on_snapshot: SnapshotHandler, on_error: ErrorHandler) -> None:
        self.store = store
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.closed = False

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.store.subscriptions.remove(self)


class InMemoryOrderStore:
    def __init__(self, docs: dict[str, dict[str, Any]] | None = None, *, auto_emit: bool = True) -> None:
        self.docs: dict[str, dict[str, Any]] = copy.deepcopy(docs or {})
        self.auto_emit = auto_emit
        self.subscriptions: list[InMemorySubscription] = []
        self.opened = 0
        # (order_id, requested, expected) for every attempted write
        self.writes: list[tuple[str, str, str]] = []
        self.fail_writes: Exception | None = None

    # ---- feed ----

    def snapshot(self) -> list[RawOrderDocument]:
        ordered = sorted(
            self.docs.items(),
            key=lambda kv: kv[1].get("criadoEm") or 0,
            reverse=True,
        )
        return [RawOrderDocument(id=doc_id, data=copy.deepcopy(data)) for doc_id, data in ordered]

    def emit(self) -> None:
        docs = self.snapshot()
        for sub in list(self.subscriptions):
            sub.on_snapshot(docs)

    def fail_feed(self, exc: Exception) -> None:
        for sub in list(self.subscriptions):
            sub.on_error(exc)

    async def open(self, on_snapshot: SnapshotHandler, on_error: ErrorHandler) -> InMemorySubscription:
        sub = InMemorySubscription(self, on_snapshot, on_error)
        self.subscriptions.append(sub)
        self.opened += 1
        on_snapshot(self.snapshot())
        return sub

    # ---- writer ----

    async def update_status(self, order_id: str, status: OrderStatus, *, expected: OrderStatus) -> None:
        self.writes.append((order_id, status.value, expected.value))
        if self.fail_writes is not None:
            raise self.fail_writes

        doc = self.docs.get(order_id)
        current = None if doc is None else doc.get("status")
        if expected == OrderStatus.PENDING:
            # Same rule as the table filter: anything not a known later label
            matches = current not in [s.value for s in OrderStatus if s != OrderStatus.PENDING]
        else:
            matches = current == expected.value
        if doc is None or not matches:
            raise StatusPreconditionFailed(order_id, expected.value, status.value)

        doc["status"] = status.value
        if self.auto_emit:
            self.emit()

    # ---- external edits (another operator / the shop front) ----

    def set_status(self, order_id: str, status: str) -> None:
        self.docs[order_id]["status"] = status
        if self.auto_emit:
            self.emit()
