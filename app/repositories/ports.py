# app/repositories/ports.py
"""
Narrow contract the order board needs from the external store.

The board only reads full-collection snapshots and requests status changes;
it never creates or deletes documents. Concrete implementations adapt a
specific store (Supabase in production, in-memory in tests).
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol, Sequence

from app.schemas.order import OrderStatus


@dataclass(frozen=True, slots=True)
class RawOrderDocument:
    """One feed item: opaque id plus untyped document fields."""

    id: str
    data: Mapping[str, Any] = field(default_factory=dict)


SnapshotHandler = Callable[[Sequence[RawOrderDocument]], None]
ErrorHandler = Callable[[Exception], None]


class FeedSubscription(Protocol):
    """Owned handle of one live feed subscription."""

    async def close(self) -> None:
        """Stop delivering snapshots. Safe to call more than once."""


class OrderFeed(Protocol):
    """
    Push-based stream of full-collection snapshots, newest order first.
    """

    async def open(
        self,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler,
    ) -> FeedSubscription:
        """
        Start delivering snapshots to `on_snapshot`, in emission order.

        Feed-level failures after opening are reported to `on_error`.
        """


class OrderStatusWriter(Protocol):
    """Partial update of one document's `status` field."""

    async def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        *,
        expected: OrderStatus,
    ) -> None:
        """
        Set `status` on `order_id` if its stored status is still `expected`.

        Raises:
            ExternalWriteFailure: transport/permission/not-found failures.
            StatusPreconditionFailed: stored status already diverged.
        """
