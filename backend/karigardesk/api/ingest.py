import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel

from karigardesk.errors import SpreadsheetReadError
from karigardesk.models.order import OrderType
from karigardesk.models.parsing import BatchResult, ParsedMapping, ParsedOrder, ParseError
from karigardesk.services import ingestion
from karigardesk.services.excel_parser import parse_master_design_rows, parse_order_rows, read_sheet_rows, read_sheet_values
from karigardesk.services.reconciliation import MasterDataRow, ReconciliationResult, parse_master_file_rows, persist_master_rows, reconcile
from karigardesk.services.store import get_store

logger = logging.getLogger(__name__)
router = APIRouter()

SUPPORTED_SUFFIXES = (".xlsx", ".xlsm", ".csv")


class OrderIngestResponse(BaseModel):
    total_rows: int
    orders: List[ParsedOrder]
    errors: List[ParseError]
    submission: Optional[BatchResult] = None


class DesignIngestResponse(BaseModel):
    mappings: List[ParsedMapping]
    errors: List[ParseError]
    submission: BatchResult


class PersistRequest(BaseModel):
    rows: List[MasterDataRow]
    order_type: OrderType = OrderType.RB


async def _read_upload(file: UploadFile) -> bytes:
    name = (file.filename or "").lower()
    if not name.endswith(SUPPORTED_SUFFIXES):
        logger.error("Unsupported upload: %s", file.filename)
        raise HTTPException(status_code=400, detail=f"Unsupported file type: {file.filename}")
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    logger.debug("Upload %s size=%s", file.filename, len(content))
    return content


@router.post("/orders", response_model=OrderIngestResponse)
async def ingest_orders(
    file: UploadFile = File(...),
    strict: bool = Form(False),
    submit: bool = Form(True),
    unknown_type_policy: Optional[str] = Form(None),
    store=Depends(get_store),
):
    """Parse an order sheet and (by default) save the valid rows as Pending orders."""
    content = await _read_upload(file)
    try:
        rows = read_sheet_rows(content, file.filename)
    except SpreadsheetReadError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        parsed = await parse_order_rows(rows, strict=strict, unknown_type_policy=unknown_type_policy)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    submission = ingestion.submit_orders(store, parsed.orders, strict=strict) if submit else None
    logger.info(
        "Ingested %s: rows=%s parsed=%s errors=%s submitted=%s",
        file.filename, parsed.total_rows, len(parsed.orders), len(parsed.errors),
        submission.succeeded if submission else 0,
    )
    return OrderIngestResponse(
        total_rows=parsed.total_rows,
        orders=parsed.orders,
        errors=parsed.errors,
        submission=submission,
    )


@router.post("/designs", response_model=DesignIngestResponse)
async def ingest_designs(file: UploadFile = File(...), store=Depends(get_store)):
    """Upload a master design sheet: column A design code, B generic name, C karigar."""
    content = await _read_upload(file)
    try:
        values = read_sheet_values(content, file.filename)
    except SpreadsheetReadError as e:
        raise HTTPException(status_code=400, detail=str(e))

    parsed = await parse_master_design_rows(values)
    submission = ingestion.save_mappings(store, parsed.mappings)
    return DesignIngestResponse(mappings=parsed.mappings, errors=parsed.errors, submission=submission)


@router.post("/reconcile", response_model=ReconciliationResult)
async def reconcile_master(file: UploadFile = File(...), store=Depends(get_store)):
    content = await _read_upload(file)
    try:
        rows = read_sheet_rows(content, file.filename)
    except SpreadsheetReadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return reconcile(parse_master_file_rows(rows), store.list_orders())


@router.post("/reconcile/persist", response_model=BatchResult)
def persist_reconciled(req: PersistRequest, store=Depends(get_store)):
    return persist_master_rows(store, req.rows, order_type=req.order_type)
