from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import field_validator
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Aware UTC copy of ``value``; naive values are taken to be UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class OrderType(str, Enum):
    CO = "CO"
    RB = "RB"
    SO = "SO"


class OrderStatus(str, Enum):
    PENDING = "Pending"
    READY = "Ready"
    HALLMARK = "Hallmark"
    RETURN_FROM_HALLMARK = "ReturnFromHallmark"


# Statuses that sit in the karigar work queue
ACTIVE_STATUSES = (OrderStatus.PENDING, OrderStatus.RETURN_FROM_HALLMARK)


class OrderBase(SQLModel):
    order_id: str = Field(primary_key=True)
    order_no: str = Field(index=True)
    order_type: OrderType
    product: str = ""
    design: str = Field(default="", index=True)
    weight: float = 0.0
    size: float = 0.0
    quantity: int = Field(gt=0)
    remarks: str = ""
    status: OrderStatus = Field(default=OrderStatus.PENDING, index=True)
    generic_name: Optional[str] = None
    karigar_name: Optional[str] = None
    order_date: Optional[datetime] = None
    ready_date: Optional[datetime] = None
    # set on the remainder created when an order is split
    original_order_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("order_date", "ready_date", "created_at", "updated_at")
    @classmethod
    def _utc(cls, value):
        return as_utc(value)


class Order(OrderBase, table=True):
    pass


class OrderRead(OrderBase):
    pass


class OrderCreate(SQLModel):
    """Manual order entry."""
    order_no: str
    order_type: OrderType
    product: str
    design: str
    weight: float = 0.0
    size: float = 0.0
    quantity: int = Field(gt=0)
    remarks: str = ""
    order_date: Optional[datetime] = None
    order_id: Optional[str] = None
