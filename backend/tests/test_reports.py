import csv
import io
from datetime import datetime, timedelta

import pytest
from openpyxl import load_workbook

from conftest import make_order
from karigardesk.models.order import OrderStatus, OrderType
from karigardesk.services import reports

NOW = datetime(2026, 3, 1, 9, 0)


@pytest.fixture
def orders():
    return [
        make_order("C1-1-0", order_type=OrderType.CO, quantity=2, weight=5.0, karigar_name="Ramesh"),
        make_order("R1-1-0", order_type=OrderType.RB, quantity=4, weight=2.5, karigar_name="Ramesh"),
        make_order("R1-2-x", order_type=OrderType.RB, quantity=6, weight=2.5, original_order_id="R1-1-0"),
        make_order("S1-1-0", order_type=OrderType.SO, quantity=1, status=OrderStatus.READY),
        make_order("H1-1-0", order_type=OrderType.CO, quantity=1, status=OrderStatus.HALLMARK),
        make_order("F1-1-0", order_type=OrderType.CO, quantity=3, status=OrderStatus.RETURN_FROM_HALLMARK),
    ]


def test_tab_summaries(orders):
    summary = reports.summarize(orders)

    total = summary["total"]
    assert total.total_orders == 4
    assert total.total_quantity == 15
    assert total.partial_rb_pending_qty == 6
    assert summary["ready"].total_orders == 1
    assert summary["hallmark"].total_orders == 1
    assert summary["customer"].total_orders == 1
    assert summary["customer"].total_weight == 10.0


def test_unknown_tab(orders):
    with pytest.raises(ValueError):
        reports.filter_tab(orders, "archive")


def test_group_by_karigar(orders):
    groups = reports.group_by_karigar(orders)
    assert [g.karigar_name for g in groups] == ["Ramesh", "Unassigned"]
    ramesh = groups[0]
    assert ramesh.order_count == 2
    assert ramesh.total_quantity == 6
    assert ramesh.total_weight == 20.0
    assert ramesh.design_codes == ["DS100"]


def test_pending_age_and_overdue():
    old = make_order("O1-1-0", created_at=NOW - timedelta(days=10))
    fresh = make_order("N1-1-0", created_at=NOW - timedelta(hours=5))
    done = make_order("D1-1-0", status=OrderStatus.READY, created_at=NOW - timedelta(days=30))

    assert reports.pending_age_days(old, NOW) == 10
    assert reports.pending_age_days(fresh, NOW) == 0
    assert reports.pending_age_days(done, NOW) == 0
    assert [o.order_id for o in reports.overdue_orders([old, fresh, done], 7, NOW)] == ["O1-1-0"]


def test_ageing_tiers_per_design():
    aged = [make_order(f"T{i}-1-0", created_at=NOW - timedelta(days=i)) for i in range(1, 7)]
    lone = make_order("L1-1-0", design="OTHER", created_at=NOW - timedelta(days=40))

    tiers = reports.ageing_tiers(aged + [lone], NOW)

    assert tiers["T6-1-0"] == "oldest"
    assert tiers["T5-1-0"] == "oldest"
    assert tiers["T4-1-0"] == "middle"
    assert tiers["T3-1-0"] == "middle"
    assert tiers["T1-1-0"] == "newest"
    assert tiers["L1-1-0"] == "newest"


def test_export_xlsx(orders):
    content = reports.export_xlsx(orders[:2])
    ws = load_workbook(io.BytesIO(content)).active
    rows = list(ws.iter_rows(values_only=True))
    assert rows[0] == reports.EXPORT_COLUMNS
    assert rows[1][0] == "C1"
    assert rows[2][9] == "Pending"


def test_export_csv(orders):
    rows = list(csv.reader(io.StringIO(reports.export_csv(orders[:1]))))
    assert rows[0] == list(reports.EXPORT_COLUMNS)
    assert rows[1][:5] == ["C1", "CO", "DS100", "Ring", "2"]


def test_design_report_escapes_html():
    order = make_order("X1-1-0", remarks="<b>rush</b>", design="A&B")
    page = reports.render_design_report([order], title="Pending")
    assert "&lt;b&gt;rush&lt;/b&gt;" in page
    assert "A&amp;B" in page
    assert "<b>rush</b>" not in page


def test_design_report_embeds_pictures_for_known_designs():
    orders = [make_order("A1-1-0", design="DS1"), make_order("B1-1-0", design="DS2")]
    page = reports.render_design_report(orders, title="Pending", images={"DS1": "data:image/png;base64,AQI="})

    assert page.count("<img ") == 1
    assert 'src="data:image/png;base64,AQI="' in page
    assert 'alt="DS1"' in page
