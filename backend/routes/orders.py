# backend/routes/orders.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from models.order import OrderStatus
from models.users import RoleName
from schemas.common import PROTECTED_RESPONSES
from schemas.order import OrderAssign, OrderCreate, OrderResponse, OrdersPage
from services import orders as order_service
from utils.security import Principal, role_required

router = APIRouter(prefix="/orders", tags=["Orders"], responses=PROTECTED_RESPONSES)

admin_only = role_required(RoleName.ADMIN)
staff = role_required(RoleName.ADMIN, RoleName.LAB_TECH)


# Create an order; with a labCode it starts out ASSIGNED
@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(payload: OrderCreate, db: Session = Depends(get_db), _: Principal = Depends(admin_only)):
    return order_service.order_to_response(order_service.create_order(db, payload))


@router.post("/{order_id}/assign", response_model=OrderResponse)
def assign_order(order_id: int, payload: OrderAssign, db: Session = Depends(get_db), _: Principal = Depends(admin_only)):
    return order_service.order_to_response(order_service.assign(db, order_id, payload))


# ASSIGNED -> IN_PROGRESS
@router.post("/{order_id}/start", response_model=OrderResponse)
def start_order(order_id: int, db: Session = Depends(get_db), _: Principal = Depends(admin_only)):
    return order_service.order_to_response(order_service.advance_to_in_progress(db, order_id))


# IN_PROGRESS -> FINISHED
@router.post("/{order_id}/finish", response_model=OrderResponse)
def finish_order(order_id: int, db: Session = Depends(get_db), _: Principal = Depends(admin_only)):
    return order_service.order_to_response(order_service.finish(db, order_id))


# LAB_TECH callers only get orders of their own lab
@router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: int, db: Session = Depends(get_db), principal: Principal = Depends(staff)):
    return order_service.order_to_response(order_service.get_order(db, order_id, principal))


@router.get("", response_model=OrdersPage)
def list_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    lab_code: Optional[str] = Query(None, alias="labCode"),
    patient_id: Optional[str] = Query(None, alias="patientId"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(staff),
):
    orders, total = order_service.list_orders(
        db,
        principal,
        status=status_filter,
        lab_code=lab_code,
        patient_id=patient_id,
        page=page,
        page_size=page_size,
    )
    return OrdersPage(
        items=[order_service.order_to_response(o) for o in orders],
        total=total,
        page=page,
        page_size=page_size,
    )
