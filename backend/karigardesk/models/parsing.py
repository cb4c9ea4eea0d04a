from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from karigardesk.models.order import OrderType


class ParseError(BaseModel):
    row: int
    field: str
    message: str


class ParsedOrder(BaseModel):
    """A typed order candidate produced from one spreadsheet row."""
    order_id: str
    order_no: str
    order_type: OrderType
    product: str = ""
    design: str = ""
    weight: float = 0.0
    size: float = 0.0
    quantity: int = 0
    remarks: str = ""
    order_date: Optional[datetime] = None
    row: int


class ParsedMapping(BaseModel):
    design_code: str
    generic_name: str
    karigar_name: str


class ParseResult(BaseModel):
    orders: List[ParsedOrder] = Field(default_factory=list)
    errors: List[ParseError] = Field(default_factory=list)
    total_rows: int = 0


class MappingParseResult(BaseModel):
    mappings: List[ParsedMapping] = Field(default_factory=list)
    errors: List[ParseError] = Field(default_factory=list)


class BatchFailure(BaseModel):
    key: str
    reason: str


class BatchResult(BaseModel):
    """Tally of a batch of independent storage operations."""
    succeeded: int = 0
    failed: int = 0
    failures: List[BatchFailure] = Field(default_factory=list)
    order_ids: List[str] = Field(default_factory=list)

    def record_success(self, *order_ids: str) -> None:
        self.succeeded += 1
        self.order_ids.extend(order_ids)

    def record_failure(self, key: str, reason: str) -> None:
        self.failed += 1
        self.failures.append(BatchFailure(key=key, reason=reason))
