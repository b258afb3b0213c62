# app/routers/orders.py
from fastapi import APIRouter, Depends, status

from app.core.deps import get_order_index, get_transition_engine
from app.schemas.order import (
    FilterLabel,
    OrderBoardRead,
    OrderRead,
    OrderStatusUpdate,
    TransitionOutcomeRead,
)
from app.services.order_index import LiveOrderIndex
from app.services.order_service import OrderService
from app.services.transition_engine import StatusTransitionEngine

router = APIRouter(prefix="/orders", tags=["Orders"])


def get_order_service(
    index: LiveOrderIndex = Depends(get_order_index),
    engine: StatusTransitionEngine = Depends(get_transition_engine),
) -> OrderService:
    return OrderService(index, engine)


# -------- Board reads --------


@router.get(
    "",
    response_model=list[OrderRead],
)
def list_orders(
    status: FilterLabel = "Todos",
    service: OrderService = Depends(get_order_service),
):
    """
    List current orders, newest first, filtered by status label.

    `Todos` (default) returns every order.
    """
    return service.list_orders(status)


@router.get(
    "/counts",
    response_model=dict[str, int],
)
def get_counts(service: OrderService = Depends(get_order_service)):
    """
    Number of orders per status label; `Todos` is the total.
    """
    return service.get_counts()


@router.get(
    "/board",
    response_model=OrderBoardRead,
)
def get_board(
    status: FilterLabel = "Todos",
    service: OrderService = Depends(get_order_service),
):
    """
    Counts and filtered orders read from the same snapshot.
    """
    return service.get_board(status)


@router.get(
    "/{order_id}",
    response_model=OrderRead,
)
def get_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
):
    """
    Get a single order with its available actions.
    """
    return service.get_order(order_id)


# -------- Status changes --------
#
# Writes are accepted (202) once the store applies them; the board shows the
# new status when the feed delivers it.


@router.patch(
    "/{order_id}/status",
    response_model=TransitionOutcomeRead,
    status_code=status.HTTP_202_ACCEPTED,
)
async def update_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    service: OrderService = Depends(get_order_service),
):
    """
    Move an order to another status allowed by its current one.

    Errors:
      - 404 order not on the board
      - 409 transition not allowed
      - 502 the store rejected or failed the write
    """
    return await service.update_status(order_id, payload)


@router.post(
    "/{order_id}/back",
    response_model=TransitionOutcomeRead,
    status_code=status.HTTP_202_ACCEPTED,
)
async def step_back_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
):
    """
    Return an order to the previous status of the delivery flow.
    """
    return await service.step_back(order_id)


@router.post(
    "/{order_id}/reopen",
    response_model=TransitionOutcomeRead,
    status_code=status.HTTP_202_ACCEPTED,
)
async def reopen_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
):
    """
    Reopen a canceled order (back to Pendente).
    """
    return await service.reopen(order_id)


@router.post(
    "/{order_id}/cancel",
    response_model=TransitionOutcomeRead,
    status_code=status.HTTP_202_ACCEPTED,
)
async def cancel_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
):
    """
    Cancel an order that has not been delivered.
    """
    return await service.cancel(order_id)
