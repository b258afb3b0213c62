# app/services/normalizer.py
"""
Order document normalization.

Turns one loosely-typed document from the order feed into a canonical
`Order`. The feed is not schema-enforced, so decoding is total: every field
has a defined default and nothing here raises. Fields that fell back to a
default are reported on the `DecodedOrder` and logged, so data problems stay
observable without breaking the board.

Document fields (all optional):
    criadoEm, status, nome, telefone, endereco, bairro, cidade, cep,
    metodoPagamento, total, itens[{nome, quantidade, preco}]
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Generic, Mapping, TypeVar
from zoneinfo import ZoneInfo

from app.schemas.order import (
    Customer,
    Order,
    OrderItem,
    OrderStatus,
    PAYMENT_NOT_INFORMED,
)

logger = logging.getLogger(__name__)

# Display convention of the board (pt-BR, local to the shop)
DISPLAY_TZ = ZoneInfo("America/Sao_Paulo")

T = TypeVar("T")

_STATUS_BY_LABEL: dict[str, OrderStatus] = {s.value: s for s in OrderStatus}


@dataclass(frozen=True, slots=True)
class Decoded(Generic[T]):
    """Decoded value tagged with where it came from."""

    value: T
    defaulted: bool = False


@dataclass(frozen=True, slots=True)
class DecodedOrder:
    """Normalized order plus the dotted names of defaulted fields."""

    order: Order
    defaulted: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Field decoders
# ---------------------------------------------------------------------------


def _to_number(value: Any) -> float:
    """
    Loose numeric conversion; NaN when the value has no numeric reading.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text.replace(",", "."))
        except ValueError:
            return math.nan
    return math.nan


def decode_amount(value: Any, default: float = 0.0) -> Decoded[float]:
    """
    `Number(x) || default`, clamped: zero, NaN, infinite, negative and
    missing all take the default.
    """
    number = _to_number(value)
    if number == 0 or not math.isfinite(number) or number < 0:
        return Decoded(default, defaulted=True)
    return Decoded(number)


def decode_quantity(value: Any, default: int = 1) -> Decoded[int]:
    """
    Positive integer quantity. A zero quantity counts as absent.
    """
    amount = decode_amount(value)
    if amount.defaulted or int(amount.value) < 1:
        return Decoded(default, defaulted=True)
    return Decoded(int(amount.value))


def decode_text(value: Any, default: str = "") -> Decoded[str]:
    if isinstance(value, str):
        return Decoded(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return Decoded(str(value))
    return Decoded(default, defaulted=True)


def decode_status(value: Any) -> Decoded[OrderStatus]:
    if isinstance(value, str) and value in _STATUS_BY_LABEL:
        return Decoded(_STATUS_BY_LABEL[value])
    return Decoded(OrderStatus.PENDING, defaulted=True)


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # epoch milliseconds
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text)
    if isinstance(value, Mapping):
        # Firestore-style {seconds, nanoseconds}
        seconds = value.get("seconds", value.get("_seconds"))
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0))
        if not isinstance(nanos, (int, float)) or isinstance(nanos, bool):
            nanos = 0
        if isinstance(seconds, (int, float)) and not isinstance(seconds, bool):
            return datetime.fromtimestamp(seconds + nanos / 1e9, tz=timezone.utc)
    return None


def decode_created_at(
    value: Any,
    now: Callable[[], datetime] | None = None,
) -> Decoded[datetime]:
    """
    Creation instant; falls back to "now" when absent or unparseable.
    """
    parsed: datetime | None = None
    if value:
        try:
            parsed = _parse_timestamp(value)
        except (TypeError, ValueError, OverflowError, OSError):
            parsed = None

    if parsed is None:
        current = now() if now is not None else datetime.now(timezone.utc)
        return Decoded(current, defaulted=True)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return Decoded(parsed)


# ---------------------------------------------------------------------------
# Document decoding
# ---------------------------------------------------------------------------


def decode_order(
    doc_id: str,
    raw: Mapping[str, Any] | None,
    now: Callable[[], datetime] | None = None,
) -> DecodedOrder:
    """
    Decode one feed document into an Order, recording every default used.

    Args:
        doc_id: store-assigned document id.
        raw: document fields (any shape; non-mappings count as empty).
        now: clock used when the creation instant is missing.

    Returns:
        DecodedOrder with the order and the defaulted field names.
    """
    data: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}
    defaulted: list[str] = []

    def take(name: str, field: Decoded[T]) -> T:
        if field.defaulted:
            defaulted.append(name)
        return field.value

    raw_status = data.get("status")
    status_field = decode_status(raw_status)
    status = take("status", status_field)
    if status_field.defaulted and raw_status is not None:
        logger.warning(
            "Order %s has unrecognized status %r; treating it as %s",
            doc_id,
            raw_status,
            status.value,
        )

    customer = Customer(
        name=take("customer.name", decode_text(data.get("nome"))),
        phone=take("customer.phone", decode_text(data.get("telefone"))),
        address=take("customer.address", decode_text(data.get("endereco"))),
        neighborhood=take("customer.neighborhood", decode_text(data.get("bairro"))),
        city=take("customer.city", decode_text(data.get("cidade"))),
        postal_code=take("customer.postal_code", decode_text(data.get("cep"))),
    )

    raw_items = data.get("itens")
    if not isinstance(raw_items, (list, tuple)):
        if raw_items is not None:
            defaulted.append("items")
        raw_items = []

    items: list[OrderItem] = []
    for idx, it in enumerate(raw_items):
        it = it if isinstance(it, Mapping) else {}
        items.append(
            OrderItem(
                name=take(f"items[{idx}].name", decode_text(it.get("nome"))),
                quantity=take(f"items[{idx}].quantity", decode_quantity(it.get("quantidade"))),
                unit_price=take(f"items[{idx}].unit_price", decode_amount(it.get("preco"))),
            )
        )

    order = Order(
        id=str(doc_id),
        created_at=take("created_at", decode_created_at(data.get("criadoEm"), now)),
        status=status,
        customer=customer,
        payment_method=take(
            "payment_method",
            decode_text(data.get("metodoPagamento") or None, PAYMENT_NOT_INFORMED),
        ),
        subtotal=take("subtotal", decode_amount(data.get("total"))),
        delivery_fee=0.0,
        items=items,
    )

    if defaulted:
        logger.debug("Order %s normalized with defaults: %s", doc_id, ", ".join(defaulted))

    return DecodedOrder(order=order, defaulted=tuple(defaulted))


def normalize_order(
    doc_id: str,
    raw: Mapping[str, Any] | None,
    now: Callable[[], datetime] | None = None,
) -> Order:
    """Plain `Order` view of `decode_order`."""
    return decode_order(doc_id, raw, now).order


# ---------------------------------------------------------------------------
# Display derivation
# ---------------------------------------------------------------------------


def display_date(created_at: datetime, tz: ZoneInfo = DISPLAY_TZ) -> str:
    """Day/month/year, e.g. '05/03/2025'."""
    return created_at.astimezone(tz).strftime("%d/%m/%Y")


def display_time(created_at: datetime, tz: ZoneInfo = DISPLAY_TZ) -> str:
    """24-hour clock, e.g. '18:07'."""
    return created_at.astimezone(tz).strftime("%H:%M")
