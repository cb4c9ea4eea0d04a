import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from karigardesk.models.order import OrderCreate, OrderRead, OrderStatus, OrderType, utcnow
from karigardesk.models.parsing import BatchResult
from karigardesk.services import ingestion
from karigardesk.services.lifecycle import RESETTABLE_STATUSES, Transition, new_order_id
from karigardesk.services.mapping import enrich_orders
from karigardesk.services.normalizer import normalize_design_code
from karigardesk.services.store import get_store

logger = logging.getLogger(__name__)
router = APIRouter()


class TransitionRequest(BaseModel):
    transition: Transition
    params: Dict[str, Any] = Field(default_factory=dict)


class BulkTransitionRequest(TransitionRequest):
    order_ids: List[str]


class SupplyLine(BaseModel):
    order_id: str
    supplied_qty: int


class BulkSupplyRequest(BaseModel):
    lines: List[SupplyLine]


class ResetRequest(BaseModel):
    statuses: List[OrderStatus] = Field(default_factory=lambda: sorted(RESETTABLE_STATUSES, key=lambda s: s.value))


class BatchResponse(BatchResult):
    invalidates: List[Tuple[str, str]] = Field(default_factory=list)


def order_keys(order_ids) -> List[Tuple[str, str]]:
    """Cache keys touched by a mutation, one per order."""
    return [("order", oid) for oid in dict.fromkeys(order_ids)]


def _batch_response(result: BatchResult, extra_keys=()) -> BatchResponse:
    return BatchResponse(**result.model_dump(), invalidates=order_keys(result.order_ids) + list(extra_keys))


@router.get("/orders", response_model=List[OrderRead])
def list_orders(
    status: Optional[OrderStatus] = None,
    order_type: Optional[OrderType] = None,
    search: Optional[str] = None,
    ready_from: Optional[date] = None,
    ready_to: Optional[date] = None,
    enrich: bool = False,
    store=Depends(get_store),
):
    orders = store.list_orders(
        status=status, order_type=order_type, search=search, ready_from=ready_from, ready_to=ready_to,
    )
    if enrich:
        orders = enrich_orders(orders, store.list_design_mappings())
    return orders


@router.post("/orders", status_code=201)
def create_order(payload: OrderCreate, store=Depends(get_store)):
    """Manual order entry."""
    design = normalize_design_code(payload.design)
    if not payload.order_no.strip() or not payload.product.strip() or not design:
        raise HTTPException(status_code=400, detail="order_no, product and design are required")
    now = utcnow()
    order = OrderRead(
        order_id=payload.order_id or new_order_id(payload.order_no.strip()),
        order_no=payload.order_no.strip(),
        order_type=payload.order_type,
        product=payload.product.strip(),
        design=design,
        weight=payload.weight,
        size=payload.size,
        quantity=payload.quantity,
        remarks=payload.remarks,
        order_date=payload.order_date,
        status=OrderStatus.PENDING,
        created_at=now,
        updated_at=now,
    )
    order_id = store.create_or_update_order(order)
    return {"order_id": order_id, "invalidates": order_keys([order_id])}


@router.get("/orders/{order_id}", response_model=OrderRead)
def get_order(order_id: str, store=Depends(get_store)):
    return store.get_order(order_id)


@router.put("/orders/{order_id}")
def put_order(order_id: str, order: OrderRead, store=Depends(get_store)):
    """Create or refresh an order under a caller-chosen id (idempotent)."""
    if order.order_id != order_id:
        raise HTTPException(status_code=400, detail="order_id in path and body differ")
    saved = store.create_or_update_order(order)
    return {"order_id": saved, "invalidates": order_keys([saved])}


@router.post("/orders/{order_id}/transitions")
def transition_order(order_id: str, req: TransitionRequest, store=Depends(get_store)):
    touched = store.apply_status_transition(order_id, req.transition, **req.params)
    keys = order_keys(o.order_id for o in touched)
    if req.transition == Transition.REASSIGN_KARIGAR:
        keys += [("karigar", o.karigar_name) for o in touched if o.karigar_name]
    return {"orders": touched, "invalidates": keys}


@router.post("/orders/bulk-transition", response_model=BatchResponse)
def bulk_transition(req: BulkTransitionRequest, store=Depends(get_store)):
    result = ingestion.apply_bulk_transition(store, req.order_ids, req.transition, **req.params)
    return _batch_response(result)


@router.post("/orders/bulk-supply", response_model=BatchResponse)
def bulk_supply(req: BulkSupplyRequest, store=Depends(get_store)):
    result = ingestion.apply_bulk_supply(store, [(line.order_id, line.supplied_qty) for line in req.lines])
    return _batch_response(result)


@router.post("/orders/mark-all-ready", response_model=BatchResponse)
def mark_all_ready(order_type: Optional[OrderType] = None, store=Depends(get_store)):
    return _batch_response(ingestion.mark_all_ready(store, order_type=order_type))


@router.post("/orders/reset")
def reset_orders(req: ResetRequest, store=Depends(get_store)):
    deleted = store.bulk_delete_by_status(req.statuses)
    logger.warning("Operator reset removed %s orders", deleted)
    return {"deleted": deleted, "invalidates": [("orders", s.value) for s in req.statuses]}
