# backend/schemas/order.py
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from models.order import OrderStatus
from schemas.common import CamelModel


# Input schema for a new order; a lab code sends it straight to ASSIGNED
class OrderCreate(CamelModel):
    patient_id: str = Field(..., min_length=1, max_length=100)
    requested_test: str = Field(..., min_length=1, max_length=100)
    lab_code: Optional[str] = None


# Body of POST /orders/{id}/assign
class OrderAssign(CamelModel):
    lab_code: str = Field(..., min_length=1)


# Short laboratory summary embedded in order responses
class LabMini(CamelModel):
    id: int
    code: str
    name: str


class OrderResponse(CamelModel):
    id: int
    external_id: str
    patient_id: str
    requested_test: str
    status: OrderStatus
    lab: Optional[LabMini] = None
    assigned_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Schema for paginated order lists
class OrdersPage(CamelModel):
    items: List[OrderResponse]
    total: int
    page: int
    page_size: int
