# app/repositories/order_feed.py
"""
Live order feed over Supabase Realtime.

Realtime delivers row-level change events, while the board works with full
snapshots. Every change therefore triggers a re-read of the whole table. A
single drain task performs the re-reads, so snapshots reach the handler in
the order they were read and a burst of changes collapses into one re-read.
"""
import asyncio
import contextlib
import logging
from typing import Any

from realtime import RealtimeSubscribeStates
from supabase import AsyncClient

from app.core.errors import SubscriptionFailure
from app.repositories.order_repo import OrderRepository
from app.repositories.ports import ErrorHandler, SnapshotHandler

logger = logging.getLogger(__name__)


class SupabaseFeedSubscription:
    """One realtime channel plus its snapshot re-read loop."""

    def __init__(
        self,
        client: AsyncClient,
        repo: OrderRepository,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler,
    ):
        self.client = client
        self.repo = repo
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._channel = None
        self._dirty = False
        self._drain_task: asyncio.Task | None = None
        self._closed = False

    async def start(self, schema: str) -> None:
        channel = self.client.channel(f"{self.repo.table}-feed")
        channel.on_postgres_changes(
            "*",
            callback=self._on_change,
            table=self.repo.table,
            schema=schema,
        )
        await channel.subscribe(self._on_channel_state)
        self._channel = channel
        # Initial snapshot; later ones follow change events
        self.request_refresh()

    def request_refresh(self) -> None:
        if self._closed:
            return
        self._dirty = True
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    def _on_change(self, payload: dict[str, Any]) -> None:
        logger.debug("Order change event: %s", payload.get("data", {}).get("type"))
        self.request_refresh()

    def _on_channel_state(
        self,
        state: RealtimeSubscribeStates,
        err: Exception | None = None,
    ) -> None:
        if self._closed:
            return
        if state == RealtimeSubscribeStates.SUBSCRIBED:
            # Catch up on anything written before the channel was live
            self.request_refresh()
        elif state in (
            RealtimeSubscribeStates.CHANNEL_ERROR,
            RealtimeSubscribeStates.TIMED_OUT,
        ):
            self._on_error(err or SubscriptionFailure(f"Realtime channel {state.value}"))

    async def _drain(self) -> None:
        while self._dirty and not self._closed:
            self._dirty = False
            try:
                docs = await self.repo.list_all()
            except Exception as exc:
                if not self._closed:
                    self._on_error(exc)
                return
            if self._closed:
                return
            try:
                self._on_snapshot(docs)
            except Exception as exc:
                logger.exception("Order snapshot handler failed")
                self._on_error(exc)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self._drain_task is not None and not self._drain_task.done():
            self._drain_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._drain_task

        if self._channel is not None:
            await self.client.remove_channel(self._channel)
            self._channel = None


class SupabaseOrderFeed:
    """
    `OrderFeed` over a Supabase table, ordered by creation instant (desc).
    """

    def __init__(
        self,
        client: AsyncClient,
        repo: OrderRepository,
        schema: str = "public",
    ):
        self.client = client
        self.repo = repo
        self.schema = schema

    async def open(
        self,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler,
    ) -> SupabaseFeedSubscription:
        subscription = SupabaseFeedSubscription(
            self.client, self.repo, on_snapshot, on_error
        )
        await subscription.start(self.schema)
        return subscription
