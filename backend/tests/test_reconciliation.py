from unittest import mock

from conftest import make_order
from karigardesk.models.order import OrderStatus, OrderType
from karigardesk.services.reconciliation import MasterDataRow, parse_master_file_rows, persist_master_rows, reconcile


def test_parse_master_file_rows_uses_header_aliases():
    rows = [
        {"ORDER NO": "A1", "Design Code": " ds1 ", "Karigar Name": "Ramesh", "Wt": "3.25", "Qty": "2"},
        {"Order Number": "A2", "design": "ds2"},
        {"Order No": "", "Design": "ds3"},
        {"Order No": "A4", "Design": "  "},
    ]
    parsed = parse_master_file_rows(rows)

    assert [(r.order_no, r.design_code) for r in parsed] == [("A1", "DS1"), ("A2", "DS2")]
    assert parsed[0].karigar == "Ramesh"
    assert parsed[0].weight == 3.25
    assert parsed[0].quantity == 2
    assert parsed[1].quantity == 0


def test_reconcile_counts_new_existing_and_missing():
    orders = [
        make_order("A1-1-0", design="DS1"),
        make_order("B1-1-0", design="DS9"),
        make_order("Z1-1-0", design="DS5", status=OrderStatus.READY),
    ]
    master = [
        MasterDataRow(order_no="A1", design_code="ds1"),
        MasterDataRow(order_no="C1", design_code="DS2"),
        MasterDataRow(order_no="C1", design_code="DS2"),
    ]

    result = reconcile(master, orders)

    assert result.total_uploaded_rows == 3
    assert result.already_existing_rows == 1
    assert [(r.order_no, r.design_code) for r in result.new_lines] == [("C1", "DS2")]
    assert [o.order_id for o in result.missing_in_master] == ["B1-1-0"]


def test_persist_master_rows(store):
    rows = [
        MasterDataRow(order_no="C1", design_code="DS2", karigar="Suresh", weight=2.0, quantity=3),
        MasterDataRow(order_no="C2", design_code="DS3", quantity=0),
    ]
    result = persist_master_rows(store, rows)

    assert result.succeeded == 1
    assert result.failed == 1
    assert result.failures[0].key == "C2/DS3"
    order = store.list_orders()[0]
    assert order.order_type == OrderType.RB
    assert order.karigar_name == "Suresh"
    assert order.status == OrderStatus.PENDING


def test_persisting_the_same_line_twice_creates_two_orders(store):
    row = MasterDataRow(order_no="C1", design_code="DS2", quantity=1)
    with mock.patch("karigardesk.services.lifecycle.time") as clock:
        clock.time.return_value = 1700000000.0
        first = persist_master_rows(store, [row])
        second = persist_master_rows(store, [row])

    assert first.order_ids != second.order_ids
    assert len(store.list_orders()) == 2
