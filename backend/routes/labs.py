# backend/routes/labs.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from models.users import RoleName
from schemas.common import PROTECTED_RESPONSES
from schemas.laboratory import LabCreate, LabResponse, LabsPage, LabUpdate
from services import labs as lab_service
from utils.security import Principal, role_required

router = APIRouter(prefix="/labs", tags=["Laboratories"], responses=PROTECTED_RESPONSES)

admin_only = role_required(RoleName.ADMIN)
staff = role_required(RoleName.ADMIN, RoleName.LAB_TECH)


@router.post("", response_model=LabResponse, status_code=status.HTTP_201_CREATED)
def create_lab(payload: LabCreate, db: Session = Depends(get_db), _: Principal = Depends(admin_only)):
    return lab_service.lab_to_response(lab_service.create_lab(db, payload))


@router.put("/{lab_id}", response_model=LabResponse)
def update_lab(lab_id: int, payload: LabUpdate, db: Session = Depends(get_db), _: Principal = Depends(admin_only)):
    return lab_service.lab_to_response(lab_service.update_lab(db, lab_id, payload))


@router.get("/{lab_id}", response_model=LabResponse)
def get_lab(lab_id: int, db: Session = Depends(get_db), _: Principal = Depends(staff)):
    return lab_service.lab_to_response(lab_service.get_lab(db, lab_id))


# List laboratories, optionally only active or inactive ones
@router.get("", response_model=LabsPage)
def list_labs(
    active: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    db: Session = Depends(get_db),
    _: Principal = Depends(staff),
):
    labs, total = lab_service.list_labs(db, active=active, page=page, page_size=page_size)
    return LabsPage(
        items=[lab_service.lab_to_response(lab) for lab in labs],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/{lab_id}/activate", response_model=LabResponse)
def activate_lab(lab_id: int, db: Session = Depends(get_db), _: Principal = Depends(admin_only)):
    return lab_service.lab_to_response(lab_service.set_active(db, lab_id, True))


@router.post("/{lab_id}/deactivate", response_model=LabResponse)
def deactivate_lab(lab_id: int, db: Session = Depends(get_db), _: Principal = Depends(admin_only)):
    return lab_service.lab_to_response(lab_service.set_active(db, lab_id, False))
