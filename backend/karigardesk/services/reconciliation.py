"""Reconcile a master order file against the orders already in storage.

Rows and orders are matched on (order number, normalized design code).
"""
import logging
from typing import Any, Iterable, List, Mapping, Sequence, Tuple

from pydantic import BaseModel, Field

from karigardesk.errors import OrderDeskError
from karigardesk.models.order import ACTIVE_STATUSES, OrderRead, OrderStatus, OrderType, utcnow
from karigardesk.models.parsing import BatchResult
from karigardesk.services.columns import RECONCILE_COLUMN_ALIASES, alias_values, index_row
from karigardesk.services.excel_parser import parse_number
from karigardesk.services.lifecycle import new_order_id
from karigardesk.services.normalizer import normalize_design_code

logger = logging.getLogger(__name__)


class MasterDataRow(BaseModel):
    order_no: str
    design_code: str
    karigar: str = ""
    weight: float = 0.0
    quantity: int = 0


class ReconciliationResult(BaseModel):
    total_uploaded_rows: int = 0
    already_existing_rows: int = 0
    new_lines: List[MasterDataRow] = Field(default_factory=list)
    missing_in_master: List[OrderRead] = Field(default_factory=list)


def _first_text(indexed: Mapping[str, Any], field: str) -> str:
    for value in alias_values(indexed, RECONCILE_COLUMN_ALIASES[field]):
        return str(value).strip()
    return ""


def _first_number(indexed: Mapping[str, Any], field: str) -> float:
    for value in alias_values(indexed, RECONCILE_COLUMN_ALIASES[field]):
        number = parse_number(value)
        if number is not None:
            return number
    return 0


def parse_master_file_rows(rows: Iterable[Mapping[Any, Any]]) -> List[MasterDataRow]:
    """Rows without both an order number and a design code are skipped."""
    parsed: List[MasterDataRow] = []
    for row in rows:
        indexed = index_row(row)
        order_no = _first_text(indexed, "order_no")
        design_code = normalize_design_code(_first_text(indexed, "design"))
        if not (order_no and design_code):
            continue
        parsed.append(MasterDataRow(
            order_no=order_no,
            design_code=design_code,
            karigar=_first_text(indexed, "karigar"),
            weight=_first_number(indexed, "weight"),
            quantity=int(round(_first_number(indexed, "quantity"))),
        ))
    return parsed


def _key(order_no: str, design: str) -> Tuple[str, str]:
    return order_no.strip(), normalize_design_code(design)


def reconcile(master_rows: Sequence[MasterDataRow], orders: Iterable[OrderRead]) -> ReconciliationResult:
    orders = list(orders)
    known = {_key(o.order_no, o.design) for o in orders}
    master_keys = {_key(r.order_no, r.design_code) for r in master_rows}

    result = ReconciliationResult(total_uploaded_rows=len(master_rows))
    seen = set()
    for r in master_rows:
        key = _key(r.order_no, r.design_code)
        if key in known:
            result.already_existing_rows += 1
        elif key not in seen:
            result.new_lines.append(r)
        seen.add(key)
    result.missing_in_master = [
        o for o in orders
        if o.status in ACTIVE_STATUSES and _key(o.order_no, o.design) not in master_keys
    ]
    logger.info(
        "Reconciled master rows=%s existing=%s new=%s missing=%s",
        result.total_uploaded_rows, result.already_existing_rows, len(result.new_lines), len(result.missing_in_master),
    )
    return result


def persist_master_rows(store, rows: Sequence[MasterDataRow], order_type: OrderType = OrderType.RB) -> BatchResult:
    """Create Pending orders for selected new lines of a master file."""
    result = BatchResult()
    for r in rows:
        now = utcnow()
        try:
            order = OrderRead(
                order_id=new_order_id(r.order_no),
                order_no=r.order_no,
                order_type=order_type,
                design=r.design_code,
                weight=r.weight,
                quantity=r.quantity,
                karigar_name=r.karigar or None,
                status=OrderStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            order_id = store.create_or_update_order(order)
        except (OrderDeskError, ValueError) as e:
            logger.warning("Master row %s/%s not persisted: %s", r.order_no, r.design_code, e)
            result.record_failure(f"{r.order_no}/{r.design_code}", str(e))
            continue
        result.record_success(order_id)
    return result
