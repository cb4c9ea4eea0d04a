import pytest

from conftest import make_order
from karigardesk.errors import IllegalTransitionError
from karigardesk.models.order import OrderStatus, OrderType
from karigardesk.services.lifecycle import (
    Transition,
    apply_transition,
    check_resettable,
    mark_ready,
    move_back_to_pending,
    reassign_karigar,
    return_from_hallmark,
    send_to_hallmark,
    supply,
)


def _ids(prefix="NEW"):
    counter = iter(range(100))
    return lambda order_no: f"{order_no}-{prefix}-{next(counter)}"


def test_partial_supply_splits_and_conserves_quantity():
    order = make_order(quantity=10)
    result = supply(order, 4, id_factory=_ids())

    assert order.status == OrderStatus.READY
    assert order.quantity == 4
    assert order.ready_date is not None
    assert len(result.created) == 1
    rest = result.created[0]
    assert rest.order_id == "ORD1-NEW-0"
    assert rest.status == OrderStatus.PENDING
    assert rest.quantity == 6
    assert rest.original_order_id == order.order_id
    assert rest.design == order.design
    assert rest.ready_date is None
    assert sum(o.quantity for o in result.orders) == 10


def test_full_supply_does_not_split():
    order = make_order(quantity=3)
    result = supply(order, 3)
    assert result.created == []
    assert order.status == OrderStatus.READY
    assert order.quantity == 3


@pytest.mark.parametrize("qty", [0, -1, 11, 2.5, True, None])
def test_supply_rejects_bad_quantities(qty):
    order = make_order(quantity=10)
    with pytest.raises(IllegalTransitionError):
        supply(order, qty)
    assert order.status == OrderStatus.PENDING
    assert order.quantity == 10


def test_supply_is_for_rb_only():
    order = make_order(order_type=OrderType.CO)
    with pytest.raises(IllegalTransitionError):
        supply(order, 1)


def test_mark_ready_co_and_so():
    for order_type in (OrderType.CO, OrderType.SO):
        order = make_order(order_type=order_type)
        mark_ready(order)
        assert order.status == OrderStatus.READY
        assert order.ready_date == order.updated_at


def test_mark_ready_rb_needs_full_quantity():
    order = make_order(order_type=OrderType.RB, quantity=5)
    with pytest.raises(IllegalTransitionError):
        mark_ready(order)
    with pytest.raises(IllegalTransitionError):
        mark_ready(order, supplied_qty=4)
    assert order.status == OrderStatus.PENDING

    mark_ready(order, supplied_qty=5)
    assert order.status == OrderStatus.READY


def test_mark_ready_rejected_outside_work_queue():
    order = make_order(order_type=OrderType.CO, status=OrderStatus.HALLMARK)
    with pytest.raises(IllegalTransitionError):
        mark_ready(order)
    assert order.status == OrderStatus.HALLMARK


def test_hallmark_round_trip_returns_to_work_queue():
    order = make_order(order_type=OrderType.CO)
    mark_ready(order)
    send_to_hallmark(order)
    assert order.status == OrderStatus.HALLMARK
    return_from_hallmark(order)
    assert order.status == OrderStatus.RETURN_FROM_HALLMARK

    mark_ready(order)
    assert order.status == OrderStatus.READY


def test_hallmark_guards():
    pending = make_order()
    with pytest.raises(IllegalTransitionError):
        send_to_hallmark(pending)
    with pytest.raises(IllegalTransitionError):
        return_from_hallmark(pending)


def test_move_back_whole_order():
    order = make_order(order_type=OrderType.CO, status=OrderStatus.READY)
    result = move_back_to_pending(order)
    assert result.created == []
    assert order.status == OrderStatus.PENDING
    assert order.ready_date is None


def test_move_back_part_of_order():
    order = make_order(quantity=8, status=OrderStatus.READY)
    result = move_back_to_pending(order, returned_qty=3, id_factory=_ids("BACK"))

    assert order.status == OrderStatus.READY
    assert order.quantity == 5
    returned = result.created[0]
    assert returned.status == OrderStatus.PENDING
    assert returned.quantity == 3
    assert returned.original_order_id == order.order_id
    assert sum(o.quantity for o in result.orders) == 8


def test_move_back_requires_ready():
    order = make_order()
    with pytest.raises(IllegalTransitionError):
        move_back_to_pending(order)


def test_reassign_only_pending():
    order = make_order()
    reassign_karigar(order, "  Suresh ")
    assert order.karigar_name == "Suresh"

    returned = make_order(status=OrderStatus.RETURN_FROM_HALLMARK, karigar_name="Ramesh")
    with pytest.raises(IllegalTransitionError):
        reassign_karigar(returned, "Suresh")
    assert returned.karigar_name == "Ramesh"

    with pytest.raises(IllegalTransitionError):
        reassign_karigar(order, "   ")
    assert order.karigar_name == "Suresh"


def test_apply_transition_dispatches_by_name():
    order = make_order(quantity=6)
    result = apply_transition(order, "supply", supplied_qty=2, id_factory=_ids())
    assert [o.quantity for o in result.orders] == [2, 4]

    other = make_order(order_type=OrderType.SO)
    apply_transition(other, Transition.MARK_READY)
    assert other.status == OrderStatus.READY


def test_apply_transition_with_wrong_params():
    with pytest.raises(IllegalTransitionError):
        apply_transition(make_order(), Transition.SEND_TO_HALLMARK, colour="red")


def test_check_resettable():
    assert check_resettable(["Pending", "ReturnFromHallmark"]) == [
        OrderStatus.PENDING,
        OrderStatus.RETURN_FROM_HALLMARK,
    ]
    with pytest.raises(IllegalTransitionError):
        check_resettable(["Pending", "Ready"])
    with pytest.raises(IllegalTransitionError):
        check_resettable([])
