from datetime import datetime
from typing import Optional

from pydantic import field_validator
from sqlmodel import SQLModel, Field

from karigardesk.models.order import as_utc, utcnow


class DesignMapping(SQLModel, table=True):
    design_code: str = Field(primary_key=True)
    generic_name: str
    karigar_name: str = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class DesignMappingIn(SQLModel):
    generic_name: str
    karigar_name: str


class DesignMappingRead(SQLModel):
    design_code: str
    generic_name: str
    karigar_name: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _utc(cls, value):
        return as_utc(value)


class Karigar(SQLModel, table=True):
    name: str = Field(primary_key=True)
    created_at: datetime = Field(default_factory=utcnow)


class DesignImage(SQLModel, table=True):
    design_code: str = Field(primary_key=True)
    filename: str = ""
    content_type: str
    width: int = 0
    height: int = 0
    data: bytes
    uploaded_at: datetime = Field(default_factory=utcnow)


class DesignImageInfo(SQLModel):
    design_code: str
    filename: str = ""
    content_type: str
    width: int = 0
    height: int = 0
    size: int = 0
    uploaded_at: Optional[datetime] = None

    @field_validator("uploaded_at")
    @classmethod
    def _utc(cls, value):
        return as_utc(value)


class DesignImageBlob(SQLModel):
    design_code: str
    content_type: str
    data: bytes
