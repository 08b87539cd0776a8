# backend/routes/users.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from database import get_db
from models.users import RoleName
from schemas.common import PROTECTED_RESPONSES
from schemas.user import UserCreate, UserResponse, UsersPage, UserUpdate
from services import users as user_service
from utils.security import Principal, get_current_principal, role_required

router = APIRouter(prefix="/users", tags=["Users"], responses=PROTECTED_RESPONSES)

admin_only = role_required(RoleName.ADMIN)


# Current caller's own account; declared before /{user_id} so "me" is not parsed as an id
@router.get("/me", response_model=UserResponse)
def me(db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    return user_service.user_to_response(user_service.get_user_by_username(db, principal.username))


# Retrieve users with filtering and pagination (Admin only)
@router.get("", response_model=UsersPage)
def list_users(
    q: Optional[str] = Query(None, description="Search by username"),
    role: Optional[str] = Query(None, description="Filter by role name"),
    active: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    db: Session = Depends(get_db),
    _: Principal = Depends(admin_only),
):
    users, total = user_service.list_users(db, q=q, role=role, active=active, page=page, page_size=page_size)
    return UsersPage(
        items=[user_service.user_to_response(u) for u in users],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, db: Session = Depends(get_db), _: Principal = Depends(admin_only)):
    return user_service.user_to_response(user_service.create_user(db, payload))


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: int, db: Session = Depends(get_db), _: Principal = Depends(admin_only)):
    return user_service.user_to_response(user_service.get_user(db, user_id))


@router.put("/{user_id}", response_model=UserResponse)
def update_user(user_id: int, payload: UserUpdate, db: Session = Depends(get_db), _: Principal = Depends(admin_only)):
    return user_service.user_to_response(user_service.update_user(db, user_id, payload))


# Delete a user account (Admin only, never your own)
@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: int, db: Session = Depends(get_db), current: Principal = Depends(admin_only)):
    user_service.delete_user(db, user_id, current.username)
