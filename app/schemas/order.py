# app/schemas/order.py
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field


class OrderStatus(str, Enum):
    """
    Closed set of order statuses.

    Values are the labels stored in the order documents, so a status can be
    written back to the store as-is.
    """

    PENDING = "Pendente"
    PREPARING = "Em Preparo"
    OUT_FOR_DELIVERY = "Em Entrega"
    DELIVERED = "Entregue"
    CANCELED = "Cancelado"


# Pseudo-label selecting every order
ALL_LABEL = "Todos"

FilterLabel = Literal[
    "Todos",
    "Pendente",
    "Em Preparo",
    "Em Entrega",
    "Entregue",
    "Cancelado",
]

# Tab order of the board: "Todos" first, then the lifecycle
FILTER_LABELS: tuple[str, ...] = (ALL_LABEL, *(s.value for s in OrderStatus))

# Natural progression used to compute step-back predecessors (no Cancelado)
FORWARD_SEQUENCE: tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.PREPARING,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)

PAYMENT_NOT_INFORMED = "Não informado"


class Customer(SQLModel):
    """
    Contact snapshot taken when the order was placed.
    """

    name: str = ""
    phone: str = ""
    address: str = ""
    neighborhood: str = ""
    city: str = ""
    postal_code: str = ""


class OrderItem(SQLModel):
    """
    Line item inside an order.
    """

    name: str = ""
    quantity: int = Field(default=1, ge=1, description="Quantity ordered (>=1)")
    unit_price: float = Field(default=0.0, ge=0, description="Unit price at order time")


class Order(SQLModel):
    """
    Canonical in-memory order.

    Built only by the normalizer from a feed document; the core never
    creates or deletes orders, it only requests status changes.
    """

    id: str
    created_at: datetime = Field(description="Creation instant (timezone-aware)")
    status: OrderStatus = OrderStatus.PENDING
    customer: Customer = Field(default_factory=Customer)
    payment_method: str = PAYMENT_NOT_INFORMED
    subtotal: float = Field(default=0.0, ge=0)
    # Placeholder fee model: always zero for now
    delivery_fee: float = Field(default=0.0, ge=0)
    items: list[OrderItem] = Field(default_factory=list)

    @property
    def total(self) -> float:
        return self.subtotal + self.delivery_fee


# -------- API representations --------


class OrderActionRead(SQLModel):
    """
    One action button available for an order in its current status.
    """

    action: Literal["forward", "back", "cancel", "reopen"]
    target: OrderStatus
    label: str


class OrderRead(SQLModel):
    """
    Order as shown on the board, with derived display fields.
    """

    id: str
    created_at: datetime
    date: str
    time: str
    status: OrderStatus
    customer: Customer
    payment_method: str
    items: list[OrderItem]
    subtotal: float
    delivery_fee: float
    total: float
    actions: list[OrderActionRead]


class OrderBoardRead(SQLModel):
    """
    Filtered orders and status counts read from the same snapshot.
    """

    filter: FilterLabel
    version: int
    counts: dict[str, int]
    orders: list[OrderRead]


class OrderStatusUpdate(SQLModel):
    """
    Operator payload to move an order to another status.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus

    @field_validator("status", mode="before")
    @classmethod
    def strip_label(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class NoticeRead(SQLModel):
    """
    User-visible, non-fatal message attached to a transition.
    """

    kind: Literal["illegal_transition", "write_failure"]
    message: str


class TransitionOutcomeRead(SQLModel):
    """
    Result of a transition request.

    `written` means the store accepted the write; the board reflects it
    once the feed re-emits the order.
    """

    order_id: str
    target: OrderStatus | None
    written: bool
    notice: NoticeRead | None = None
