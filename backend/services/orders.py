# backend/services/orders.py
"""
Order lifecycle and lab-scoped visibility.

    CREATED --assign--> ASSIGNED --start--> IN_PROGRESS --finish--> FINISHED

Creating an order with a lab code lands it directly in ASSIGNED. assign is
accepted from every state except FINISHED, so an order can be re-targeted to
another lab while ASSIGNED or IN_PROGRESS.

ADMIN callers see every order. LAB_TECH callers are pinned to the labCode
carried in their token, whatever filters they send.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from models.laboratory import Laboratory
from models.order import Order, OrderStatus
from schemas.order import LabMini, OrderAssign, OrderCreate, OrderResponse
from services.labs import find_by_code
from utils.errors import BadRequestError, ForbiddenError, NotFoundError
from utils.security import Principal

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def order_to_response(order: Order) -> OrderResponse:
    lab = order.laboratory
    return OrderResponse(
        id=order.id,
        external_id=str(order.external_id),
        patient_id=order.patient_id,
        requested_test=order.requested_test,
        status=order.status,
        lab=LabMini(id=lab.id, code=lab.code, name=lab.name) if lab else None,
        assigned_at=order.assigned_at,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def _load_order(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError(f"Order not found id={order_id}")
    return order


def _resolve_lab(db: Session, code: str) -> Laboratory:
    lab = find_by_code(db, code)
    if not lab:
        raise NotFoundError(f"Lab not found code={code}")
    return lab


def lab_scope(principal: Principal) -> Optional[str]:
    """Lab code the caller is restricted to, or None for unrestricted access."""
    if principal.is_admin:
        return None
    lab_code = (principal.lab_code or "").strip()
    if not lab_code:
        raise ForbiddenError("Missing labCode in token")
    return lab_code


def _save_transition(db: Session, order: Order, previous: OrderStatus) -> Order:
    # Version check on flush: a concurrent writer makes this raise StaleDataError
    db.commit()
    db.refresh(order)
    logger.info(f"Order {order.id} moved {previous.value} -> {order.status.value}")
    return order


# --- transitions -----------------------------------------------------------

def create_order(db: Session, payload: OrderCreate) -> Order:
    order = Order(
        patient_id=payload.patient_id,
        requested_test=payload.requested_test,
        status=OrderStatus.CREATED,
    )
    # A lab code at creation time skips straight to ASSIGNED
    if payload.lab_code and payload.lab_code.strip():
        order.laboratory = _resolve_lab(db, payload.lab_code.strip())
        order.status = OrderStatus.ASSIGNED
        order.assigned_at = _now()

    db.add(order)
    db.commit()
    db.refresh(order)
    logger.info(f"Order {order.id} created in state {order.status.value}")
    return order


def assign(db: Session, order_id: int, payload: OrderAssign) -> Order:
    order = _load_order(db, order_id)
    if order.status == OrderStatus.FINISHED:
        raise BadRequestError("Cannot assign a FINISHED order")

    previous = order.status
    order.laboratory = _resolve_lab(db, payload.lab_code.strip())
    order.status = OrderStatus.ASSIGNED
    order.assigned_at = _now()
    return _save_transition(db, order, previous)


def advance_to_in_progress(db: Session, order_id: int) -> Order:
    order = _load_order(db, order_id)
    if order.status != OrderStatus.ASSIGNED:
        raise BadRequestError("Only ASSIGNED orders can move to IN_PROGRESS")

    order.status = OrderStatus.IN_PROGRESS
    return _save_transition(db, order, OrderStatus.ASSIGNED)


def finish(db: Session, order_id: int) -> Order:
    order = _load_order(db, order_id)
    if order.status != OrderStatus.IN_PROGRESS:
        raise BadRequestError("Only IN_PROGRESS orders can move to FINISHED")

    order.status = OrderStatus.FINISHED
    return _save_transition(db, order, OrderStatus.IN_PROGRESS)


# --- reads -----------------------------------------------------------------

def get_order(db: Session, order_id: int, principal: Principal) -> Order:
    scope = lab_scope(principal)
    order = _load_order(db, order_id)
    if scope is not None:
        order_lab = order.laboratory.code if order.laboratory else None
        if order_lab != scope:
            raise ForbiddenError("Order does not belong to your lab")
    return order


def list_orders(
    db: Session,
    principal: Principal,
    status: Optional[OrderStatus] = None,
    lab_code: Optional[str] = None,
    patient_id: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
):
    scope = lab_scope(principal)
    # LAB_TECH: the token's lab replaces whatever labCode was requested
    if scope is not None:
        lab_code = scope

    query = db.query(Order)
    if lab_code and lab_code.strip():
        # Unknown codes simply match nothing
        query = query.filter(Order.laboratory.has(Laboratory.code == lab_code.strip()))
    if status is not None:
        query = query.filter(Order.status == status)
    if patient_id and patient_id.strip():
        query = query.filter(Order.patient_id == patient_id.strip())

    total = query.count()
    orders = query.order_by(Order.created_at.asc(), Order.id.asc()).offset((page - 1) * page_size).limit(page_size).all()
    return orders, total
