# backend/routes/roles.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from models.users import RoleName
from schemas.common import PROTECTED_RESPONSES
from schemas.user import RoleResponse
from services import users as user_service
from utils.security import role_required

router = APIRouter(
    prefix="/roles",
    tags=["Roles"],
    responses=PROTECTED_RESPONSES,
    dependencies=[Depends(role_required(RoleName.ADMIN))],
)


# Reference roles a user can be given
@router.get("", response_model=List[RoleResponse])
def list_roles(db: Session = Depends(get_db)):
    return [user_service.role_to_response(r) for r in user_service.list_roles(db)]
