import logging
from datetime import date
from html import escape
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, Response

from karigardesk.models.order import OrderRead
from karigardesk.services import images, reports
from karigardesk.services.mapping import enrich_orders
from karigardesk.services.store import get_store

logger = logging.getLogger(__name__)
router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _render_summary_html(summaries: Dict[str, reports.TabSummary]) -> str:
    rows = "".join(
        f"<tr><td><a href=\"/dashboard/report?tab={escape(s.tab)}\">{escape(s.tab.title())}</a></td>"
        f"<td>{s.total_orders}</td><td>{s.total_quantity}</td><td>{s.total_weight:.2f}</td></tr>"
        for s in summaries.values()
    )
    return (
        "<!doctype html><html><head><meta charset=\"utf-8\" /><title>Karigar Desk</title>"
        "<style>table { border-collapse: collapse; } th, td { padding: 4px 12px; text-align: right; }"
        " td:first-child, th:first-child { text-align: left; }</style></head><body>"
        "<h1>Dashboard Summary</h1>"
        "<table><thead><tr><th>Tab</th><th>Orders</th><th>Pieces</th><th>Weight (g)</th></tr></thead>"
        f"<tbody>{rows}</tbody></table>"
        "<p><a href=\"/dashboard/export.xlsx\">Export all orders</a></p>"
        "</body></html>"
    )


def _select(
    store,
    tab: Optional[str],
    karigar: Optional[str],
    ready_from: Optional[date] = None,
    ready_to: Optional[date] = None,
) -> List[OrderRead]:
    orders = store.list_orders(ready_from=ready_from, ready_to=ready_to)
    orders = enrich_orders(orders, store.list_design_mappings())
    if tab:
        try:
            orders = reports.filter_tab(orders, tab)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
    if karigar:
        wanted = karigar.strip().lower()
        orders = [o for o in orders if (o.karigar_name or "").strip().lower() == wanted]
    return orders


@router.get("/summary")
def summary(request: Request, store=Depends(get_store)) -> Any:
    orders = store.list_orders()
    summaries = reports.summarize(orders)
    if "text/html" in request.headers.get("accept", ""):
        return HTMLResponse(content=_render_summary_html(summaries))
    return summaries


@router.get("/karigars", response_model=List[reports.KarigarGroup])
def karigars(store=Depends(get_store)):
    orders = enrich_orders(store.list_orders(), store.list_design_mappings())
    return reports.group_by_karigar(orders)


@router.get("/overdue", response_model=List[OrderRead])
def overdue(days: int = Query(7, ge=0), store=Depends(get_store)):
    orders = enrich_orders(store.list_orders(), store.list_design_mappings())
    return reports.overdue_orders(orders, days)


@router.get("/ageing")
def ageing(store=Depends(get_store)) -> Dict[str, str]:
    return reports.ageing_tiers(store.list_orders())


@router.get("/export.xlsx")
def export_xlsx(
    tab: Optional[str] = None,
    karigar: Optional[str] = None,
    ready_from: Optional[date] = None,
    ready_to: Optional[date] = None,
    store=Depends(get_store),
):
    orders = _select(store, tab, karigar, ready_from, ready_to)
    filename = f"karigar_{karigar}" if karigar else (tab or "orders")
    return Response(
        content=reports.export_xlsx(orders),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}.xlsx"'},
    )


@router.get("/export.csv")
def export_csv(
    tab: Optional[str] = None,
    karigar: Optional[str] = None,
    ready_from: Optional[date] = None,
    ready_to: Optional[date] = None,
    store=Depends(get_store),
):
    orders = _select(store, tab, karigar, ready_from, ready_to)
    filename = f"karigar_{karigar}" if karigar else (tab or "orders")
    return Response(
        content=reports.export_csv(orders),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}.csv"'},
    )


@router.get("/report", response_class=HTMLResponse)
def report(
    tab: Optional[str] = None,
    karigar: Optional[str] = None,
    ready_from: Optional[date] = None,
    ready_to: Optional[date] = None,
    with_images: bool = Query(False, alias="images"),
    store=Depends(get_store),
):
    orders = _select(store, tab, karigar, ready_from, ready_to)
    title = f"{karigar} - Pending Orders" if karigar else f"{(tab or 'all').title()} Orders"
    uris = images.load_report_images(store, [o.design for o in orders]) if with_images else None
    return HTMLResponse(content=reports.render_design_report(orders, title=title, images=uris))
