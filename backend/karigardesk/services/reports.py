import csv
import html
import io
import logging
from collections import OrderedDict
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from pydantic import BaseModel

from karigardesk.models.order import ACTIVE_STATUSES, OrderBase, OrderStatus, OrderType, as_utc, utcnow
from karigardesk.services.normalizer import normalize_design_code

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = (
    "Order No", "Type", "Design", "Product", "Qty", "Weight", "Size",
    "Generic Name", "Karigar", "Status", "Remarks",
)

TABS = ("total", "ready", "hallmark", "customer", "karigars")


class TabSummary(BaseModel):
    tab: str
    total_orders: int
    total_weight: float
    total_quantity: int
    partial_rb_pending_qty: int = 0


class KarigarGroup(BaseModel):
    karigar_name: str
    order_count: int
    total_quantity: int
    total_weight: float
    design_codes: List[str]


def filter_tab(orders: Iterable[OrderBase], tab: str) -> List[OrderBase]:
    if tab in ("total", "karigars"):
        return [o for o in orders if o.status in ACTIVE_STATUSES]
    if tab == "ready":
        return [o for o in orders if o.status == OrderStatus.READY]
    if tab == "hallmark":
        return [o for o in orders if o.status == OrderStatus.HALLMARK]
    if tab == "customer":
        return [o for o in orders if o.order_type == OrderType.CO and o.status == OrderStatus.PENDING]
    raise ValueError(f"Unknown tab {tab!r}; expected one of {', '.join(TABS)}")


def summarize_tab(orders: Sequence[OrderBase], tab: str) -> TabSummary:
    rows = filter_tab(orders, tab)
    partial = 0
    if tab in ("total", "karigars"):
        # remainders left behind by a partial RB supply
        partial = sum(
            o.quantity for o in rows
            if o.order_type == OrderType.RB and o.status == OrderStatus.PENDING and o.original_order_id
        )
    return TabSummary(
        tab=tab,
        total_orders=len(rows),
        total_weight=round(sum((o.weight or 0) * o.quantity for o in rows), 2),
        total_quantity=sum(o.quantity for o in rows),
        partial_rb_pending_qty=partial,
    )


def summarize(orders: Sequence[OrderBase]) -> Dict[str, TabSummary]:
    return {tab: summarize_tab(orders, tab) for tab in TABS}


def group_by_karigar(orders: Iterable[OrderBase]) -> List[KarigarGroup]:
    """Pending work per karigar; orders without a karigar are grouped as "Unassigned"."""
    groups: Dict[str, List[OrderBase]] = {}
    for o in orders:
        if o.status not in ACTIVE_STATUSES:
            continue
        groups.setdefault((o.karigar_name or "").strip() or "Unassigned", []).append(o)
    return [
        KarigarGroup(
            karigar_name=name,
            order_count=len(rows),
            total_quantity=sum(o.quantity for o in rows),
            total_weight=round(sum((o.weight or 0) * o.quantity for o in rows), 2),
            design_codes=sorted({o.design for o in rows}),
        )
        for name, rows in sorted(groups.items())
    ]


# --- ageing -----------------------------------------------------------------

def pending_age_days(order: OrderBase, now: Optional[datetime] = None) -> int:
    """Whole days since the order last changed; 0 once it has left the work queue."""
    if order.status not in ACTIVE_STATUSES:
        return 0
    reference = max(as_utc(order.created_at), as_utc(order.updated_at))
    delta = as_utc(now or utcnow()) - reference
    return max(0, delta.days)


def overdue_orders(orders: Iterable[OrderBase], min_days: int, now: Optional[datetime] = None) -> List[OrderBase]:
    now = now or utcnow()
    return [o for o in orders if o.status in ACTIVE_STATUSES and pending_age_days(o, now) >= min_days]


def ageing_tiers(orders: Iterable[OrderBase], now: Optional[datetime] = None) -> Dict[str, str]:
    """Split the pending orders of each design into oldest/middle/newest thirds."""
    now = now or utcnow()
    by_design: Dict[str, List[OrderBase]] = {}
    for o in orders:
        if o.status in ACTIVE_STATUSES:
            by_design.setdefault(normalize_design_code(o.design), []).append(o)

    tiers: Dict[str, str] = {}
    for group in by_design.values():
        ranked = sorted(group, key=lambda o: pending_age_days(o, now), reverse=True)
        count = len(ranked)
        if count == 1:
            tiers[ranked[0].order_id] = "newest"
            continue
        if count == 2:
            tiers[ranked[0].order_id] = "oldest"
            tiers[ranked[1].order_id] = "newest"
            continue
        third = count / 3
        for idx, o in enumerate(ranked):
            if idx < third:
                tiers[o.order_id] = "oldest"
            elif idx < third * 2:
                tiers[o.order_id] = "middle"
            else:
                tiers[o.order_id] = "newest"
    return tiers


# --- exports ----------------------------------------------------------------

def export_row(o: OrderBase) -> List:
    return [
        o.order_no,
        o.order_type.value,
        o.design,
        o.product,
        o.quantity,
        round(o.weight or 0, 2),
        o.size if o.size and o.size > 0 else "",
        o.generic_name or "",
        o.karigar_name or "",
        o.status.value,
        o.remarks or "",
    ]


def export_xlsx(orders: Iterable[OrderBase], sheet_title: str = "Orders") -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]
    ws.append(list(EXPORT_COLUMNS))
    header_fill = PatternFill(start_color="F5F5F5", end_color="F5F5F5", fill_type="solid")
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.fill = header_fill
    count = 0
    for o in orders:
        ws.append(export_row(o))
        count += 1
    for idx, name in enumerate(EXPORT_COLUMNS, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = max(10, len(name) + 4)
    ws.freeze_panes = "A2"

    buffer = io.BytesIO()
    wb.save(buffer)
    logger.info("Exported %s orders to xlsx", count)
    return buffer.getvalue()


def export_csv(orders: Iterable[OrderBase]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_COLUMNS)
    for o in orders:
        writer.writerow(export_row(o))
    return buffer.getvalue()


def render_design_report(
    orders: Sequence[OrderBase],
    title: str = "Orders",
    images: Optional[Mapping[str, str]] = None,
) -> str:
    """Printable HTML report, one table section per design code.

    ``images`` maps design codes to data URIs; a design with a picture gets
    it next to its heading.
    """
    images = images or {}
    groups: "OrderedDict[str, List[OrderBase]]" = OrderedDict()
    for o in sorted(orders, key=lambda o: (normalize_design_code(o.design), o.order_no)):
        groups.setdefault(normalize_design_code(o.design), []).append(o)

    header = "".join(f"<th>{c}</th>" for c in EXPORT_COLUMNS)
    sections = []
    for code, rows in groups.items():
        first = rows[0]
        heading = html.escape(code or "(no design)")
        names = html.escape(f"{first.generic_name or ''} / {first.karigar_name or 'Unassigned'}")
        picture = f'<img class="design" src="{images[code]}" alt="{heading}" />' if code in images else ""
        body = "".join(
            "<tr>" + "".join(f"<td>{html.escape(str(v))}</td>" for v in export_row(o)) + "</tr>"
            for o in rows
        )
        qty = sum(o.quantity for o in rows)
        weight = sum((o.weight or 0) * o.quantity for o in rows)
        sections.append(f"""
    <section>
      <h2>{picture}{heading} <small>{names}</small></h2>
      <table>
        <thead><tr>{header}</tr></thead>
        <tbody>{body}</tbody>
        <tfoot><tr><td colspan="4">{len(rows)} orders</td><td>{qty}</td><td>{weight:.2f}g</td><td colspan="5"></td></tr></tfoot>
      </table>
    </section>""")

    total_qty = sum(o.quantity for o in orders)
    total_weight = sum((o.weight or 0) * o.quantity for o in orders)
    sections_html = "".join(sections)
    return f"""<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>{html.escape(title)}</title>
  <style>
    body {{ font-family: Arial, sans-serif; font-size: 10px; }}
    table {{ width: 100%; border-collapse: collapse; margin-bottom: 12px; }}
    th, td {{ border: 1px solid #ccc; padding: 4px 6px; text-align: left; }}
    th {{ background: #f5f5f5; font-weight: bold; }}
    h1 {{ font-size: 14px; margin-bottom: 8px; }}
    h2 {{ font-size: 12px; margin: 12px 0 4px; }}
    h2 small {{ color: #6b7280; font-weight: normal; }}
    img.design {{ height: 48px; vertical-align: middle; margin-right: 8px; }}
    section {{ page-break-inside: avoid; }}
  </style>
</head>
<body>
  <h1>{html.escape(title)}</h1>
  <p>{len(orders)} orders, {len(groups)} designs, quantity {total_qty}, weight {total_weight:.2f}g</p>{sections_html}
</body>
</html>
"""
