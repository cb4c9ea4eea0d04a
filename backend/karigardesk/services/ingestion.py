"""Submission of parsed rows and bulk status changes to the storage collaborator.

Every unit of work (one order, one mapping) is sent on its own. A failing unit
is logged and tallied with its reason; the rest of the batch carries on and
nothing already applied is rolled back.
"""
import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from karigardesk.errors import NotFoundError, OrderDeskError
from karigardesk.models.order import OrderRead, OrderStatus, OrderType, utcnow
from karigardesk.models.parsing import BatchResult, ParsedMapping, ParsedOrder
from karigardesk.services.images import design_code_from_filename
from karigardesk.services.lifecycle import Transition
from karigardesk.services.mapping import index_mappings

logger = logging.getLogger(__name__)


def build_order(parsed: ParsedOrder) -> OrderRead:
    """Turn a parsed row into a Pending order; quantity must be positive by now."""
    if parsed.quantity <= 0:
        raise ValueError(f"Quantity must be greater than 0 (got {parsed.quantity})")
    now = utcnow()
    return OrderRead(
        order_id=parsed.order_id,
        order_no=parsed.order_no,
        order_type=parsed.order_type,
        product=parsed.product,
        design=parsed.design,
        weight=parsed.weight,
        size=parsed.size,
        quantity=parsed.quantity,
        remarks=parsed.remarks,
        order_date=parsed.order_date,
        status=OrderStatus.PENDING,
        created_at=now,
        updated_at=now,
    )


def submit_orders(store, parsed_orders: Sequence[ParsedOrder], strict: bool = False) -> BatchResult:
    """Save parsed orders one by one.

    In strict mode an order whose design has no mapping fails with
    ``NotFoundError``; only that order is skipped.
    """
    result = BatchResult()
    mappings = index_mappings(store.list_design_mappings()) if strict else {}

    for parsed in parsed_orders:
        key = f"row {parsed.row} ({parsed.order_no})"
        try:
            if strict and parsed.design not in mappings:
                raise NotFoundError(f"Design {parsed.design} has no master mapping")
            order = build_order(parsed)
            order_id = store.create_or_update_order(order)
        except (OrderDeskError, ValueError, ValidationError) as e:
            logger.warning("Order %s not ingested: %s", key, e)
            result.record_failure(key, str(e))
            continue
        result.record_success(order_id)

    logger.info("Submitted orders succeeded=%s failed=%s strict=%s", result.succeeded, result.failed, strict)
    return result


def save_mappings(store, mappings: Iterable[ParsedMapping]) -> BatchResult:
    """Upsert master design mappings; the last row for a code wins."""
    result = BatchResult()
    for m in mappings:
        try:
            store.upsert_design_mapping(m.design_code, m.generic_name, m.karigar_name)
        except (OrderDeskError, ValueError) as e:
            logger.warning("Mapping %s not saved: %s", m.design_code, e)
            result.record_failure(m.design_code, str(e))
            continue
        result.succeeded += 1
    logger.info("Saved design mappings succeeded=%s failed=%s", result.succeeded, result.failed)
    return result


def save_design_images(store, uploads: Iterable[Tuple[str, bytes]]) -> BatchResult:
    """Store one picture per upload, using the file name as the design code."""
    result = BatchResult()
    for filename, content in uploads:
        code = design_code_from_filename(filename)
        try:
            if not code:
                raise ValueError("file name does not give a design code")
            store.save_design_image(code, content, filename)
        except (OrderDeskError, ValueError) as e:
            logger.warning("Design image %s not saved: %s", filename, e)
            result.record_failure(filename, str(e))
            continue
        result.succeeded += 1
    logger.info("Saved design images succeeded=%s failed=%s", result.succeeded, result.failed)
    return result


def apply_bulk_transition(store, order_ids: Iterable[str], transition: Transition, **params) -> BatchResult:
    """Apply the same transition to each order independently."""
    result = BatchResult()
    for order_id in order_ids:
        try:
            touched = store.apply_status_transition(order_id, transition, **params)
        except (OrderDeskError, ValueError) as e:
            logger.warning("Transition %s failed for order_id=%s: %s", Transition(transition).value, order_id, e)
            result.record_failure(order_id, str(e))
            continue
        result.record_success(*[o.order_id for o in touched])
    logger.info(
        "Bulk %s succeeded=%s failed=%s", Transition(transition).value, result.succeeded, result.failed,
    )
    return result


def apply_bulk_supply(store, quantities: Iterable[Tuple[str, int]]) -> BatchResult:
    """Supply RB orders, each with its own quantity."""
    result = BatchResult()
    for order_id, qty in quantities:
        try:
            touched = store.apply_status_transition(order_id, Transition.SUPPLY, supplied_qty=qty)
        except (OrderDeskError, ValueError) as e:
            logger.warning("Supply failed for order_id=%s qty=%s: %s", order_id, qty, e)
            result.record_failure(order_id, str(e))
            continue
        result.record_success(*[o.order_id for o in touched])
    logger.info("Bulk supply succeeded=%s failed=%s", result.succeeded, result.failed)
    return result


def mark_all_ready(store, order_type: Optional[str] = None) -> BatchResult:
    """Mark every Pending CO/SO order ready (RB orders need a supplied quantity)."""
    pending: List[OrderRead] = store.list_orders(status=OrderStatus.PENDING, order_type=order_type)
    ids = [o.order_id for o in pending if o.order_type != OrderType.RB]
    return apply_bulk_transition(store, ids, Transition.MARK_READY)
