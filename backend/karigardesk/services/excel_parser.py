import asyncio
import csv
import io
import logging
import math
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from karigardesk import config
from karigardesk.errors import SpreadsheetReadError
from karigardesk.models.order import OrderType
from karigardesk.models.parsing import MappingParseResult, ParsedMapping, ParsedOrder, ParseError, ParseResult
from karigardesk.services.columns import ORDER_COLUMN_ALIASES, alias_values, index_row, is_blank
from karigardesk.services.dates import resolve_order_date
from karigardesk.services.normalizer import normalize_design_code

logger = logging.getLogger(__name__)

VALID_ORDER_TYPES = {t.value for t in OrderType}
UNKNOWN_TYPE_POLICIES = ("reject", "default_rb")
# header row plus 1-based numbering
ROW_OFFSET = 2

ProgressCallback = Callable[[int, int], None]


# --- workbook reading -------------------------------------------------------

def read_sheet_values(content: bytes, filename: str = "") -> List[Tuple[Any, ...]]:
    """Return the non-blank rows of the first sheet as tuples, header included."""
    name = (filename or "").lower()
    try:
        if name.endswith(".csv"):
            text = content.decode("utf-8-sig")
            raw_rows = [tuple(r) for r in csv.reader(io.StringIO(text))]
        else:
            wb = load_workbook(filename=io.BytesIO(content), read_only=True, data_only=True)
            try:
                sheet = wb.worksheets[0]
                raw_rows = [tuple(r) for r in sheet.iter_rows(values_only=True)]
            finally:
                wb.close()
    except (InvalidFileException, BadZipFile, KeyError, IndexError, UnicodeDecodeError, csv.Error, OSError) as e:
        logger.warning("Could not read spreadsheet %s: %s", filename, e)
        raise SpreadsheetReadError(f"Could not read spreadsheet {filename or ''}: {e}".strip()) from e

    return [r for r in raw_rows if not all(is_blank(v) for v in r)]


def read_sheet_rows(content: bytes, filename: str = "") -> List[Dict[str, Any]]:
    """Return the first sheet as header-keyed dicts (the first non-blank row is the header)."""
    values = read_sheet_values(content, filename)
    if not values:
        return []
    header = [("" if h is None else str(h).strip()) for h in values[0]]
    rows: List[Dict[str, Any]] = []
    for raw in values[1:]:
        row: Dict[str, Any] = {}
        for idx, key in enumerate(header):
            if not key:
                continue
            row[key] = raw[idx] if idx < len(raw) else None
        rows.append(row)
    return rows


# --- cell extraction --------------------------------------------------------

def parse_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    text = str(value).strip().replace(",", "")
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def extract_string(indexed: Mapping[str, Any], field: str) -> str:
    for value in alias_values(indexed, ORDER_COLUMN_ALIASES[field]):
        text = str(value).strip()
        if text:
            return text
    return ""


def extract_number(indexed: Mapping[str, Any], field: str) -> float:
    for value in alias_values(indexed, ORDER_COLUMN_ALIASES[field]):
        number = parse_number(value)
        if number is not None:
            return number
    return 0


def _as_quantity(number: float) -> int:
    if isinstance(number, int):
        return number
    return int(round(number))


# --- order sheets -----------------------------------------------------------

class OrderSheetParser:
    """Turn loosely typed order rows into ``ParsedOrder`` records.

    Lenient mode (the quick ingest) only insists on the identifying fields and
    keeps weight/size/quantity at 0 when they are missing. Strict mode (batch
    upload) also rejects non-positive weight, size and quantity, and drops any
    row that produced an error.

    ``unknown_type_policy`` decides what happens to a row whose order type is
    not CO/RB/SO: ``reject`` drops it, ``default_rb`` keeps it as an RB order.
    The error is reported either way.
    """

    def __init__(
        self,
        strict: bool = False,
        unknown_type_policy: Optional[str] = None,
        chunk_size: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.strict = strict
        self.unknown_type_policy = unknown_type_policy or config.UNKNOWN_ORDER_TYPE_POLICY
        if self.unknown_type_policy not in UNKNOWN_TYPE_POLICIES:
            raise ValueError(f"unknown_type_policy must be one of {UNKNOWN_TYPE_POLICIES}, got {self.unknown_type_policy!r}")
        self.chunk_size = max(1, chunk_size or config.INGEST_CHUNK_SIZE)
        self.clock = clock

    def _order_id(self, order_no: str, index: int) -> str:
        return f"{order_no}-{int(self.clock() * 1000)}-{index}"

    def parse_row(self, row: Mapping[Any, Any], index: int, errors: List[ParseError]) -> Optional[ParsedOrder]:
        row_number = index + ROW_OFFSET
        indexed = index_row(row)
        row_errors: List[ParseError] = []

        def fail(field: str, message: str) -> None:
            row_errors.append(ParseError(row=row_number, field=field, message=message))

        order_no = extract_string(indexed, "order_no")
        order_type_raw = extract_string(indexed, "order_type").upper()
        product = extract_string(indexed, "product")
        design = normalize_design_code(extract_string(indexed, "design"))
        weight = extract_number(indexed, "weight")
        size = extract_number(indexed, "size")
        quantity = _as_quantity(extract_number(indexed, "quantity"))
        remarks = extract_string(indexed, "remarks")
        order_date = resolve_order_date(row)

        if not order_no:
            fail("Order No", "Order No is required")
        type_valid = order_type_raw in VALID_ORDER_TYPES
        if not type_valid:
            fail("Order Type", "Order Type must be CO, RB, or SO")
        if not product:
            fail("Product", "Product is required")
        if not design:
            fail("Design", "Design is required")
        if self.strict:
            if weight <= 0:
                fail("Weight", "Weight must be greater than 0")
            if size <= 0:
                fail("Size", "Size must be greater than 0")
            if quantity <= 0:
                fail("Quantity", "Quantity must be greater than 0")

        errors.extend(row_errors)

        if not order_no:
            return None
        if self.strict and row_errors:
            return None
        if not type_valid:
            if self.unknown_type_policy == "reject":
                return None
            order_type = OrderType.RB
        else:
            order_type = OrderType(order_type_raw)

        return ParsedOrder(
            order_id=self._order_id(order_no, index),
            order_no=order_no,
            order_type=order_type,
            product=product,
            design=design,
            weight=weight,
            size=size,
            quantity=quantity,
            remarks=remarks,
            order_date=order_date,
            row=row_number,
        )

    async def parse(self, rows: Sequence[Mapping[Any, Any]], progress: Optional[ProgressCallback] = None) -> ParseResult:
        result = ParseResult(total_rows=len(rows))
        total = len(rows)
        for start in range(0, total, self.chunk_size):
            for index in range(start, min(start + self.chunk_size, total)):
                parsed = self.parse_row(rows[index], index, result.errors)
                if parsed is not None:
                    result.orders.append(parsed)
            done = min(start + self.chunk_size, total)
            if progress is not None:
                progress(done, total)
            if done < total:
                # let the event loop breathe between chunks
                await asyncio.sleep(0)

        logger.info(
            "Parsed order sheet rows=%s orders=%s errors=%s strict=%s",
            total, len(result.orders), len(result.errors), self.strict,
        )
        return result


async def parse_order_rows(
    rows: Sequence[Mapping[Any, Any]],
    strict: bool = False,
    unknown_type_policy: Optional[str] = None,
    chunk_size: Optional[int] = None,
    progress: Optional[ProgressCallback] = None,
) -> ParseResult:
    parser = OrderSheetParser(strict=strict, unknown_type_policy=unknown_type_policy, chunk_size=chunk_size)
    return await parser.parse(rows, progress=progress)


# --- master design sheets ---------------------------------------------------

def _cell_text(values: Sequence[Any], idx: int) -> str:
    if idx >= len(values) or values[idx] is None:
        return ""
    return str(values[idx]).strip()


async def parse_master_design_rows(
    values: Iterable[Sequence[Any]],
    chunk_size: Optional[int] = None,
) -> MappingParseResult:
    """Parse a master design sheet by position.

    Column A is the design code, B the generic name, C the karigar name; the
    first row is a header and is skipped. Headers are never consulted.
    """
    rows = list(values)[1:]
    chunk = max(1, chunk_size or config.INGEST_CHUNK_SIZE)
    result = MappingParseResult()

    for start in range(0, len(rows), chunk):
        for offset, raw in enumerate(rows[start:start + chunk]):
            row_number = start + offset + ROW_OFFSET
            design_code = normalize_design_code(_cell_text(raw, 0))
            generic_name = _cell_text(raw, 1)
            karigar_name = _cell_text(raw, 2)

            if not (design_code or generic_name or karigar_name):
                continue
            if not design_code:
                result.errors.append(ParseError(row=row_number, field="Column A (DESIGN CODE)", message="Design Code is required"))
            if not generic_name:
                result.errors.append(ParseError(row=row_number, field="Column B (GENERIC NAME)", message="Generic Name is required"))
            if not karigar_name:
                result.errors.append(ParseError(row=row_number, field="Column C (KARIGAR NAME)", message="Karigar Name is required"))

            if design_code and generic_name and karigar_name:
                result.mappings.append(ParsedMapping(design_code=design_code, generic_name=generic_name, karigar_name=karigar_name))
        if start + chunk < len(rows):
            await asyncio.sleep(0)

    logger.info("Parsed master design sheet mappings=%s errors=%s", len(result.mappings), len(result.errors))
    return result
