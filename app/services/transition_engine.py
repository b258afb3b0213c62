# app/services/transition_engine.py
import logging
from dataclasses import dataclass
from typing import Literal

from app.core.errors import StatusPreconditionFailed
from app.repositories.ports import OrderStatusWriter
from app.schemas.order import FORWARD_SEQUENCE, Order, OrderStatus

logger = logging.getLogger(__name__)

ActionName = Literal["forward", "back", "cancel", "reopen"]
NoticeKind = Literal["illegal_transition", "write_failure"]

# User-facing notices (shown as-is by the board)
MSG_ALREADY_INITIAL = "Este pedido já está no status inicial."
MSG_CANCELED_NO_BACK = "Pedidos cancelados não voltam de status; reabra o pedido."
MSG_REOPEN_ONLY_CANCELED = "Apenas pedidos cancelados podem ser reabertos."
MSG_UPDATE_FAILED = "Erro ao atualizar status do pedido."
MSG_BACK_FAILED = "Erro ao voltar status do pedido."
MSG_STATUS_CHANGED = (
    "O status deste pedido foi alterado em outro lugar. "
    "Aguarde a atualização da lista e tente novamente."
)


@dataclass(frozen=True, slots=True)
class ActionSpec:
    """One operator action: what it is called and where it leads."""

    action: ActionName
    target: OrderStatus
    label: str


_CANCEL = ActionSpec("cancel", OrderStatus.CANCELED, "Cancelar Pedido")

# current status -> actions offered, in button order
TRANSITIONS: dict[OrderStatus, tuple[ActionSpec, ...]] = {
    OrderStatus.PENDING: (
        ActionSpec("forward", OrderStatus.PREPARING, "Iniciar Preparo"),
        _CANCEL,
    ),
    OrderStatus.PREPARING: (
        ActionSpec("forward", OrderStatus.OUT_FOR_DELIVERY, "Enviar para Entrega"),
        ActionSpec("back", OrderStatus.PENDING, "← Voltar"),
        _CANCEL,
    ),
    OrderStatus.OUT_FOR_DELIVERY: (
        ActionSpec("forward", OrderStatus.DELIVERED, "Marcar Entregue"),
        ActionSpec("back", OrderStatus.PREPARING, "← Voltar"),
        _CANCEL,
    ),
    OrderStatus.DELIVERED: (
        ActionSpec("back", OrderStatus.OUT_FOR_DELIVERY, "← Voltar"),
    ),
    OrderStatus.CANCELED: (
        ActionSpec("reopen", OrderStatus.PENDING, "Reabrir Pedido"),
    ),
}


def available_actions(status: OrderStatus) -> tuple[ActionSpec, ...]:
    return TRANSITIONS[status]


def allowed_targets(status: OrderStatus) -> frozenset[OrderStatus]:
    return frozenset(spec.target for spec in TRANSITIONS[status])


def find_action(status: OrderStatus, target: OrderStatus) -> ActionSpec | None:
    """The action leading from `status` to `target`, if the table has one."""
    for spec in TRANSITIONS[status]:
        if spec.target == target:
            return spec
    return None


def predecessor(status: OrderStatus) -> OrderStatus | None:
    """
    Previous status in the forward sequence.

    None for the first status and for statuses outside the sequence
    (Cancelado).
    """
    if status not in FORWARD_SEQUENCE:
        return None
    idx = FORWARD_SEQUENCE.index(status)
    return FORWARD_SEQUENCE[idx - 1] if idx > 0 else None


@dataclass(frozen=True, slots=True)
class Notice:
    kind: NoticeKind
    message: str


@dataclass(frozen=True, slots=True)
class TransitionOutcome:
    """
    What happened to a transition request.

    `written=True` only says the store accepted the write; the index shows
    the new status once the feed re-emits the order.
    """

    order_id: str
    target: OrderStatus | None
    written: bool
    notice: Notice | None = None

    @property
    def ok(self) -> bool:
        return self.written and self.notice is None


class StatusTransitionEngine:
    """
    Business logic for order status changes.

    Responsibilities:
      - Compute step-back predecessors and the reopen rule
      - Issue the status write with the order's current status as precondition
      - Turn refusals and store failures into user-visible notices

    The engine never touches the index: local state only changes when the
    feed delivers the updated order.
    """

    def __init__(self, writer: OrderStatusWriter):
        self.writer = writer

    async def advance(self, order: Order, target: OrderStatus) -> TransitionOutcome:
        """
        Set `order` to `target`.

        Legality is not re-checked here; callers offer only the targets of
        `available_actions(order.status)`.
        """
        return await self._write(order, target, MSG_UPDATE_FAILED)

    async def cancel(self, order: Order) -> TransitionOutcome:
        return await self.advance(order, OrderStatus.CANCELED)

    async def step_back(self, order: Order) -> TransitionOutcome:
        """
        Move `order` one position back in the forward sequence.

        Pendente has nowhere to go and Cancelado is outside the sequence;
        both are refused without any write.
        """
        previous = predecessor(order.status)
        if previous is None:
            message = (
                MSG_CANCELED_NO_BACK
                if order.status == OrderStatus.CANCELED
                else MSG_ALREADY_INITIAL
            )
            logger.info("Order %s cannot step back from %s", order.id, order.status.value)
            return TransitionOutcome(
                order_id=order.id,
                target=None,
                written=False,
                notice=Notice("illegal_transition", message),
            )

        return await self._write(order, previous, MSG_BACK_FAILED)

    async def reopen(self, order: Order) -> TransitionOutcome:
        """Cancelado -> Pendente. Any other status is refused."""
        if order.status != OrderStatus.CANCELED:
            return TransitionOutcome(
                order_id=order.id,
                target=None,
                written=False,
                notice=Notice("illegal_transition", MSG_REOPEN_ONLY_CANCELED),
            )

        return await self._write(order, OrderStatus.PENDING, MSG_UPDATE_FAILED)

    async def _write(
        self,
        order: Order,
        target: OrderStatus,
        failure_message: str,
    ) -> TransitionOutcome:
        try:
            await self.writer.update_status(order.id, target, expected=order.status)
        except StatusPreconditionFailed as exc:
            logger.warning("Status write for order %s rejected: %s", order.id, exc)
            return TransitionOutcome(
                order_id=order.id,
                target=target,
                written=False,
                notice=Notice("write_failure", MSG_STATUS_CHANGED),
            )
        except Exception as exc:
            # Store failures are not interpreted further; report and move on
            logger.error(
                "Failed to set order %s to %s: %s",
                order.id,
                target.value,
                exc,
            )
            return TransitionOutcome(
                order_id=order.id,
                target=target,
                written=False,
                notice=Notice("write_failure", failure_message),
            )

        logger.info(
            "Order %s status %s -> %s",
            order.id,
            order.status.value,
            target.value,
        )
        return TransitionOutcome(order_id=order.id, target=target, written=True)
