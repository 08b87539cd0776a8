# backend/services/labs.py
import logging
from typing import Optional

from sqlalchemy.orm import Session

from models.laboratory import Laboratory
from schemas.laboratory import LabCreate, LabResponse, LabUpdate
from utils.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


def lab_to_response(lab: Laboratory) -> LabResponse:
    return LabResponse(
        id=lab.id,
        external_id=str(lab.external_id),
        code=lab.code,
        name=lab.name,
        address=lab.address,
        phone=lab.phone,
        active=bool(lab.active),
        supported_tests=list(lab.supported_tests or []),
        created_at=lab.created_at,
        updated_at=lab.updated_at,
    )


def _get_lab(db: Session, lab_id: int) -> Laboratory:
    lab = db.query(Laboratory).filter(Laboratory.id == lab_id).first()
    if not lab:
        raise NotFoundError(f"Laboratory not found id={lab_id}")
    return lab


def _ensure_unique(db: Session, code: Optional[str] = None, name: Optional[str] = None, exclude_id: Optional[int] = None):
    if code is not None:
        query = db.query(Laboratory.id).filter(Laboratory.code == code)
        if exclude_id is not None:
            query = query.filter(Laboratory.id != exclude_id)
        if query.first():
            raise ConflictError(f"Laboratory code already exists: {code}")
    if name is not None:
        query = db.query(Laboratory.id).filter(Laboratory.name == name)
        if exclude_id is not None:
            query = query.filter(Laboratory.id != exclude_id)
        if query.first():
            raise ConflictError(f"Laboratory name already exists: {name}")


def find_by_code(db: Session, code: str) -> Optional[Laboratory]:
    return db.query(Laboratory).filter(Laboratory.code == code).first()


def create_lab(db: Session, payload: LabCreate) -> Laboratory:
    _ensure_unique(db, code=payload.code, name=payload.name)
    lab = Laboratory(
        code=payload.code,
        name=payload.name,
        address=payload.address,
        phone=payload.phone,
        active=True,
        supported_tests=list(payload.supported_tests),
    )
    db.add(lab)
    db.commit()
    db.refresh(lab)
    logger.info(f"Registered laboratory {lab.code}")
    return lab


def update_lab(db: Session, lab_id: int, payload: LabUpdate) -> Laboratory:
    lab = _get_lab(db, lab_id)
    changes = payload.model_dump(exclude_unset=True)

    _ensure_unique(
        db,
        code=changes.get("code") if changes.get("code") != lab.code else None,
        name=changes.get("name") if changes.get("name") != lab.name else None,
        exclude_id=lab.id,
    )

    for field_name, value in changes.items():
        if field_name in ("code", "name", "active") and value is None:
            continue
        if field_name == "supported_tests":
            value = list(value or [])
        setattr(lab, field_name, value)

    db.commit()
    db.refresh(lab)
    return lab


def get_lab(db: Session, lab_id: int) -> Laboratory:
    return _get_lab(db, lab_id)


def list_labs(db: Session, active: Optional[bool] = None, page: int = 1, page_size: int = 20):
    query = db.query(Laboratory)
    if active is not None:
        query = query.filter(Laboratory.active == active)

    total = query.count()
    labs = query.order_by(Laboratory.created_at.asc(), Laboratory.id.asc()).offset((page - 1) * page_size).limit(page_size).all()
    return labs, total


def set_active(db: Session, lab_id: int, active: bool) -> Laboratory:
    lab = _get_lab(db, lab_id)
    lab.active = active
    db.commit()
    db.refresh(lab)
    logger.info(f"Laboratory {lab.code} {'activated' if active else 'deactivated'}")
    return lab
