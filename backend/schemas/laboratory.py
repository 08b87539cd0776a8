# backend/schemas/laboratory.py
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from schemas.common import CamelModel
from schemas.user import LAB_CODE_PATTERN


# Input schema for registering a laboratory
class LabCreate(CamelModel):
    code: str = Field(..., pattern=LAB_CODE_PATTERN)
    name: str = Field(..., min_length=1, max_length=150)
    address: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)
    supported_tests: List[str] = Field(default_factory=list)


# Partial update of a laboratory
class LabUpdate(CamelModel):
    code: Optional[str] = Field(None, pattern=LAB_CODE_PATTERN)
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    address: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)
    active: Optional[bool] = None
    supported_tests: Optional[List[str]] = None


class LabResponse(CamelModel):
    id: int
    external_id: str
    code: str
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    active: bool
    supported_tests: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LabsPage(CamelModel):
    items: List[LabResponse]
    total: int
    page: int
    page_size: int
