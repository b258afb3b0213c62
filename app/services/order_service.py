# app/services/order_service.py
from fastapi import HTTPException, status

from app.schemas.order import (
    ALL_LABEL,
    NoticeRead,
    Order,
    OrderActionRead,
    OrderBoardRead,
    OrderRead,
    OrderStatus,
    OrderStatusUpdate,
    TransitionOutcomeRead,
)
from app.services.normalizer import display_date, display_time
from app.services.order_index import LiveOrderIndex
from app.services.transition_engine import (
    StatusTransitionEngine,
    TransitionOutcome,
    available_actions,
    find_action,
)

# HTTP status per notice kind
NOTICE_HTTP_STATUS = {
    "illegal_transition": status.HTTP_409_CONFLICT,
    "write_failure": status.HTTP_502_BAD_GATEWAY,
}


class OrderService:
    """
    Operator-facing order board operations.

    Responsibilities:
      - Read filtered orders and status counts from the live index
      - Offer only the transitions of the table for the current status
      - Forward status changes to the transition engine and map notices
        to HTTP errors
    """

    def __init__(self, index: LiveOrderIndex, engine: StatusTransitionEngine):
        self.index = index
        self.engine = engine

    # -------- Reads --------

    def list_orders(self, label: str = ALL_LABEL) -> list[OrderRead]:
        return [self._build_order_dto(o) for o in self.index.filter(label)]

    def get_counts(self) -> dict[str, int]:
        return self.index.counts()

    def get_board(self, label: str = ALL_LABEL) -> OrderBoardRead:
        """
        Counts and filtered orders taken from one snapshot.
        """
        view = self.index.board(label)
        return OrderBoardRead(
            filter=view.filter,
            version=view.version,
            counts=dict(view.counts),
            orders=[self._build_order_dto(o) for o in view.orders],
        )

    def get_order(self, order_id: str) -> OrderRead:
        return self._build_order_dto(self._get_or_404(order_id))

    # -------- Transitions --------

    async def update_status(
        self,
        order_id: str,
        payload: OrderStatusUpdate,
    ) -> TransitionOutcomeRead:
        """
        Move an order to `payload.status` following the transition table:

          Pendente   -> Em Preparo, Cancelado
          Em Preparo -> Em Entrega, Pendente (back), Cancelado
          Em Entrega -> Entregue, Em Preparo (back), Cancelado
          Entregue   -> Em Entrega (back)
          Cancelado  -> Pendente (reopen)

        Any other target raises 409.
        """
        order = self._get_or_404(order_id)
        target = payload.status

        spec = find_action(order.status, target)
        if spec is None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=NoticeRead(
                    kind="illegal_transition",
                    message=f"Invalid status transition: {order.status.value} -> {target.value}",
                ).model_dump(),
            )

        if spec.action == "back":
            outcome = await self.engine.step_back(order)
        elif spec.action == "reopen":
            outcome = await self.engine.reopen(order)
        else:
            outcome = await self.engine.advance(order, target)

        return self._to_outcome_dto(outcome)

    async def step_back(self, order_id: str) -> TransitionOutcomeRead:
        outcome = await self.engine.step_back(self._get_or_404(order_id))
        return self._to_outcome_dto(outcome)

    async def reopen(self, order_id: str) -> TransitionOutcomeRead:
        outcome = await self.engine.reopen(self._get_or_404(order_id))
        return self._to_outcome_dto(outcome)

    async def cancel(self, order_id: str) -> TransitionOutcomeRead:
        order = self._get_or_404(order_id)
        if find_action(order.status, OrderStatus.CANCELED) is None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=NoticeRead(
                    kind="illegal_transition",
                    message=f"Order in status {order.status.value} cannot be canceled",
                ).model_dump(),
            )
        outcome = await self.engine.cancel(order)
        return self._to_outcome_dto(outcome)

    # -------- Helpers --------

    def _get_or_404(self, order_id: str) -> Order:
        order = self.index.get(order_id)
        if order is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        return order

    def _to_outcome_dto(self, outcome: TransitionOutcome) -> TransitionOutcomeRead:
        """
        Successful writes are returned; notices become HTTP errors whose
        detail carries the user-visible message.
        """
        if outcome.notice is not None:
            raise HTTPException(
                status_code=NOTICE_HTTP_STATUS[outcome.notice.kind],
                detail=NoticeRead(
                    kind=outcome.notice.kind,
                    message=outcome.notice.message,
                ).model_dump(),
            )

        return TransitionOutcomeRead(
            order_id=outcome.order_id,
            target=outcome.target,
            written=outcome.written,
            notice=None,
        )

    def _build_order_dto(self, order: Order) -> OrderRead:
        """
        Compose OrderRead with display date/time, total and action buttons.
        """
        return OrderRead(
            id=order.id,
            created_at=order.created_at,
            date=display_date(order.created_at),
            time=display_time(order.created_at),
            status=order.status,
            customer=order.customer,
            payment_method=order.payment_method,
            items=order.items,
            subtotal=order.subtotal,
            delivery_fee=order.delivery_fee,
            total=order.total,
            actions=[
                OrderActionRead(action=spec.action, target=spec.target, label=spec.label)
                for spec in available_actions(order.status)
            ],
        )
