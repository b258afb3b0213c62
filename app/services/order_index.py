# app/services/order_index.py
"""
Live in-memory index of orders, kept current by the store's feed.

Every feed emission is a full snapshot: it is normalized and swapped in as
one immutable `OrderSnapshot`. Status counts and per-status views are
computed once when the snapshot is built, so any read that takes the
snapshot once sees counts and filters from the same emission.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Sequence

from app.core.errors import SubscriptionFailure
from app.repositories.ports import (
    FeedSubscription,
    OrderFeed,
    RawOrderDocument,
)
from app.schemas.order import ALL_LABEL, FILTER_LABELS, Order, OrderStatus
from app.services.normalizer import decode_order

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OrderSnapshot:
    """
    Immutable image of the order collection at one feed emission.

    Build with `OrderSnapshot.build()`; the derived views are filled there.
    """

    orders: tuple[Order, ...]
    version: int
    counts: Mapping[str, int]
    by_status: Mapping[OrderStatus, tuple[Order, ...]]
    by_id: Mapping[str, Order]

    @classmethod
    def build(cls, orders: Iterable[Order], version: int = 0) -> "OrderSnapshot":
        ordered = tuple(orders)

        grouped: dict[OrderStatus, list[Order]] = {s: [] for s in OrderStatus}
        for order in ordered:
            grouped[order.status].append(order)

        counts: dict[str, int] = {label: 0 for label in FILTER_LABELS}
        counts[ALL_LABEL] = len(ordered)
        for status, members in grouped.items():
            counts[status.value] = len(members)

        return cls(
            orders=ordered,
            version=version,
            counts=MappingProxyType(counts),
            by_status=MappingProxyType({s: tuple(m) for s, m in grouped.items()}),
            by_id=MappingProxyType({o.id: o for o in ordered}),
        )

    def filter(self, label: str | OrderStatus) -> tuple[Order, ...]:
        """
        Orders matching `label`, in snapshot order. "Todos" returns all.

        Raises:
            ValueError: label is neither "Todos" nor a known status.
        """
        if label == ALL_LABEL:
            return self.orders
        return self.by_status[OrderStatus(label)]

    def get(self, order_id: str) -> Order | None:
        return self.by_id.get(order_id)


@dataclass(frozen=True, slots=True)
class BoardView:
    """Counts and filtered orders read from a single snapshot."""

    filter: str
    version: int
    counts: Mapping[str, int]
    orders: tuple[Order, ...]


class LiveOrderIndex:
    """
    Authoritative collection of current orders.

    Responsibilities:
      - Own at most one feed subscription (start/stop, or `async with`)
      - Replace the collection on every snapshot
      - Serve count-by-status and filtered views

    The index has no insert/delete of its own; an order disappears only when
    a later snapshot no longer contains it.
    """

    def __init__(
        self,
        feed: OrderFeed,
        on_error: Callable[[SubscriptionFailure], None] | None = None,
        now: Callable[[], datetime] | None = None,
    ):
        self.feed = feed
        self.on_error = on_error
        self._now = now
        self._snapshot = OrderSnapshot.build((), version=0)
        self._subscription: FeedSubscription | None = None
        # Snapshots and errors from any other generation are stale
        self._generation = 0
        self._active_generation: int | None = None
        self.last_error: Exception | None = None

    # -------- Subscription lifecycle --------

    @property
    def is_active(self) -> bool:
        return self._active_generation is not None

    @property
    def feed_state(self) -> str:
        if self.last_error is not None:
            return "error"
        return "active" if self.is_active else "stopped"

    async def start(self) -> None:
        """
        Open the feed subscription.

        Raises:
            RuntimeError: a subscription is already active.
            SubscriptionFailure: the feed could not be opened.
        """
        if self.is_active:
            raise RuntimeError("Order index already has an active subscription")

        self._generation += 1
        generation = self._generation
        self._active_generation = generation
        self.last_error = None

        try:
            subscription = await self.feed.open(
                lambda docs: self._on_snapshot(generation, docs),
                lambda exc: self._on_feed_error(generation, exc),
            )
        except Exception as exc:
            self._active_generation = None
            logger.error("Order feed subscription failed to open: %s", exc)
            raise SubscriptionFailure(f"Could not open order feed: {exc}") from exc

        if self._active_generation != generation:
            # stop() ran while the feed was opening
            await subscription.close()
            return

        self._subscription = subscription
        logger.info("Order feed subscription started (generation %s)", generation)

    async def stop(self) -> None:
        """Release the subscription. No snapshot is processed afterwards."""
        generation = self._active_generation
        subscription = self._subscription
        self._active_generation = None
        self._subscription = None

        if subscription is not None:
            await subscription.close()
        if generation is not None:
            logger.info("Order feed subscription stopped (generation %s)", generation)

    async def __aenter__(self) -> "LiveOrderIndex":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def _on_snapshot(self, generation: int, docs: Sequence[RawOrderDocument]) -> None:
        if generation != self._active_generation:
            logger.debug("Dropping snapshot from stale subscription %s", generation)
            return
        # A delivery means the feed is healthy again
        self.last_error = None
        self.apply_snapshot(docs)

    def _on_feed_error(self, generation: int, exc: Exception) -> None:
        if generation != self._active_generation:
            return

        self.last_error = exc
        logger.error("Order feed subscription error: %s", exc)

        if self.on_error is not None:
            failure = SubscriptionFailure(str(exc))
            failure.__cause__ = exc
            self.on_error(failure)

    # -------- Snapshot replacement --------

    @property
    def snapshot(self) -> OrderSnapshot:
        return self._snapshot

    def apply_snapshot(self, docs: Iterable[RawOrderDocument]) -> OrderSnapshot:
        """
        Normalize a full snapshot and make it the current collection.

        Duplicate ids keep their first occurrence. A snapshot equal to the
        current one is a no-op (same object, same version).
        """
        orders: list[Order] = []
        seen: set[str] = set()
        current = self._snapshot
        for doc in docs:
            decoded = decode_order(doc.id, doc.data, self._now)
            order = decoded.order
            if order.id in seen:
                logger.warning("Duplicate order id %s in snapshot; keeping first", order.id)
                continue
            seen.add(order.id)

            previous = current.get(order.id)
            if previous is not None and "created_at" in decoded.defaulted:
                # Keep the instant assigned on first sight
                order = order.model_copy(update={"created_at": previous.created_at})
            orders.append(order)

        if tuple(orders) == current.orders:
            return current

        self._snapshot = OrderSnapshot.build(orders, version=current.version + 1)
        logger.debug(
            "Order snapshot v%s applied (%s orders)",
            self._snapshot.version,
            len(orders),
        )
        return self._snapshot

    # -------- Read views --------

    def counts(self) -> dict[str, int]:
        """Number of orders per label; "Todos" is the total."""
        return dict(self._snapshot.counts)

    def filter(self, label: str | OrderStatus = ALL_LABEL) -> list[Order]:
        return list(self._snapshot.filter(label))

    def get(self, order_id: str) -> Order | None:
        return self._snapshot.get(order_id)

    def board(self, label: str | OrderStatus = ALL_LABEL) -> BoardView:
        snapshot = self._snapshot
        return BoardView(
            filter=label.value if isinstance(label, OrderStatus) else label,
            version=snapshot.version,
            counts=dict(snapshot.counts),
            orders=snapshot.filter(label),
        )
