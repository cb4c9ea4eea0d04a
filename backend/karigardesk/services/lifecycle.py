"""Order status lifecycle.

    Pending --mark_ready / supply--> Ready --send_to_hallmark--> Hallmark
    Hallmark --return_from_hallmark--> ReturnFromHallmark
    Ready --move_back_to_pending--> Pending

ReturnFromHallmark orders are back in the karigar work queue, so they accept
the same "from Pending" transitions as Pending orders (except karigar
reassignment, which is strictly for Pending orders).

Every function here checks its guard before touching the order; a failed guard
raises ``IllegalTransitionError`` and leaves the order exactly as it was.
Splits conserve quantity: the parts always sum to the original quantity.
"""
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from karigardesk.errors import IllegalTransitionError
from karigardesk.models.order import ACTIVE_STATUSES, OrderBase, OrderStatus, OrderType, as_utc, utcnow

logger = logging.getLogger(__name__)

RESETTABLE_STATUSES = frozenset(ACTIVE_STATUSES)


class Transition(str, Enum):
    MARK_READY = "mark_ready"
    SUPPLY = "supply"
    SEND_TO_HALLMARK = "send_to_hallmark"
    RETURN_FROM_HALLMARK = "return_from_hallmark"
    MOVE_BACK_TO_PENDING = "move_back_to_pending"
    REASSIGN_KARIGAR = "reassign_karigar"


@dataclass
class TransitionResult:
    updated: List[OrderBase] = field(default_factory=list)
    created: List[OrderBase] = field(default_factory=list)

    @property
    def orders(self) -> List[OrderBase]:
        return self.updated + self.created


def new_order_id(order_no: str) -> str:
    return f"{order_no}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def _require_status(order: OrderBase, allowed, action: str) -> None:
    if order.status not in allowed:
        allowed_names = ", ".join(s.value for s in allowed)
        raise IllegalTransitionError(
            f"Cannot {action} order {order.order_id}: status is {order.status.value}, expected {allowed_names}"
        )


def _require_quantity(order: OrderBase, qty: Any, action: str) -> int:
    if isinstance(qty, bool) or not isinstance(qty, int):
        raise IllegalTransitionError(f"Cannot {action} order {order.order_id}: quantity must be a whole number")
    if qty <= 0 or qty > order.quantity:
        raise IllegalTransitionError(
            f"Cannot {action} order {order.order_id}: quantity {qty} must be between 1 and {order.quantity}"
        )
    return qty


def _split_off(order: OrderBase, quantity: int, status: OrderStatus, id_factory: Callable[[str], str]) -> OrderBase:
    """Build a sibling of ``order`` carrying ``quantity`` units in ``status``."""
    now = utcnow()
    data = order.model_dump()
    data.update(
        order_id=id_factory(order.order_no),
        quantity=quantity,
        status=status,
        original_order_id=order.order_id,
        order_date=as_utc(order.order_date),
        ready_date=now if status == OrderStatus.READY else None,
        created_at=now,
        updated_at=now,
    )
    return type(order)(**data)


def _touch(order: OrderBase, status: Optional[OrderStatus] = None) -> None:
    if status is not None:
        order.status = status
    order.updated_at = utcnow()


def mark_ready(order: OrderBase, supplied_qty: Optional[int] = None) -> TransitionResult:
    _require_status(order, ACTIVE_STATUSES, "mark ready")
    if order.order_type == OrderType.RB and supplied_qty != order.quantity:
        raise IllegalTransitionError(
            f"Cannot mark RB order {order.order_id} ready without supplying its full quantity ({order.quantity}); use supply"
        )
    _touch(order, OrderStatus.READY)
    order.ready_date = order.updated_at
    return TransitionResult(updated=[order])


def supply(order: OrderBase, supplied_qty: int, id_factory: Callable[[str], str] = new_order_id) -> TransitionResult:
    """Supply part or all of an RB order.

    A full supply just marks the order Ready. A partial supply keeps the
    supplied quantity on the original order (now Ready) and moves the rest to
    a new Pending order.
    """
    _require_status(order, ACTIVE_STATUSES, "supply")
    if order.order_type != OrderType.RB:
        raise IllegalTransitionError(f"Cannot supply order {order.order_id}: only RB orders are supplied in parts")
    qty = _require_quantity(order, supplied_qty, "supply")

    remaining = order.quantity - qty
    created = []
    if remaining:
        created.append(_split_off(order, remaining, OrderStatus.PENDING, id_factory))
        order.quantity = qty
    _touch(order, OrderStatus.READY)
    order.ready_date = order.updated_at
    if created:
        logger.info("Split order %s: %s ready, %s pending as %s", order.order_id, qty, remaining, created[0].order_id)
    return TransitionResult(updated=[order], created=created)


def send_to_hallmark(order: OrderBase) -> TransitionResult:
    _require_status(order, (OrderStatus.READY,), "send to hallmark")
    _touch(order, OrderStatus.HALLMARK)
    return TransitionResult(updated=[order])


def return_from_hallmark(order: OrderBase) -> TransitionResult:
    _require_status(order, (OrderStatus.HALLMARK,), "return from hallmark")
    _touch(order, OrderStatus.RETURN_FROM_HALLMARK)
    return TransitionResult(updated=[order])


def move_back_to_pending(
    order: OrderBase,
    returned_qty: Optional[int] = None,
    id_factory: Callable[[str], str] = new_order_id,
) -> TransitionResult:
    """Undo a Ready marking, for the whole order or only ``returned_qty`` units."""
    _require_status(order, (OrderStatus.READY,), "move back to pending")
    if returned_qty is None or returned_qty == order.quantity:
        _touch(order, OrderStatus.PENDING)
        order.ready_date = None
        return TransitionResult(updated=[order])

    qty = _require_quantity(order, returned_qty, "move back to pending")
    returned = _split_off(order, qty, OrderStatus.PENDING, id_factory)
    order.quantity -= qty
    _touch(order)
    return TransitionResult(updated=[order], created=[returned])


def reassign_karigar(order: OrderBase, karigar_name: str) -> TransitionResult:
    _require_status(order, (OrderStatus.PENDING,), "reassign karigar of")
    name = (karigar_name or "").strip()
    if not name:
        raise IllegalTransitionError(f"Cannot reassign order {order.order_id}: karigar name is empty")
    order.karigar_name = name
    _touch(order)
    return TransitionResult(updated=[order])


_HANDLERS: Dict[Transition, Callable[..., TransitionResult]] = {
    Transition.MARK_READY: mark_ready,
    Transition.SUPPLY: supply,
    Transition.SEND_TO_HALLMARK: send_to_hallmark,
    Transition.RETURN_FROM_HALLMARK: return_from_hallmark,
    Transition.MOVE_BACK_TO_PENDING: move_back_to_pending,
    Transition.REASSIGN_KARIGAR: reassign_karigar,
}


def apply_transition(order: OrderBase, transition: Transition, **params: Any) -> TransitionResult:
    """Dispatch ``transition`` with its keyword parameters."""
    handler = _HANDLERS[Transition(transition)]
    try:
        return handler(order, **params)
    except TypeError as e:
        raise IllegalTransitionError(f"Bad parameters for {Transition(transition).value}: {e}") from e


def check_resettable(statuses) -> List[OrderStatus]:
    """Validate the statuses a bulk reset may delete."""
    wanted = [OrderStatus(s) for s in statuses]
    if not wanted:
        raise IllegalTransitionError("Bulk reset needs at least one status")
    illegal = [s.value for s in wanted if s not in RESETTABLE_STATUSES]
    if illegal:
        raise IllegalTransitionError(f"Bulk reset may only delete Pending or ReturnFromHallmark orders, not {', '.join(illegal)}")
    return wanted
