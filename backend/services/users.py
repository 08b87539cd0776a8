# backend/services/users.py
import logging
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.users import Role, RoleName, User
from schemas.user import RoleResponse, UserCreate, UserResponse, UserUpdate
from utils.errors import BadRequestError, ConflictError, NotFoundError
from utils.hashing import get_password_hash

logger = logging.getLogger(__name__)


# Map a User row to its public representation
def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        external_id=str(user.external_id),
        username=user.username,
        email=user.email,
        roles=user.role_names,
        lab_code=user.lab_code,
        active=bool(user.active),
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def role_to_response(role: Role) -> RoleResponse:
    return RoleResponse(id=role.id, name=role.name, description=role.description)


def resolve_roles(db: Session, names: Iterable[str]) -> List[Role]:
    """Look roles up by upper-cased name; unknown names are a client error."""
    resolved = {}
    for raw in names:
        name = raw.upper()
        role = db.query(Role).filter(Role.name == name).first()
        if role is None:
            raise BadRequestError(f"Invalid role: {raw}")
        resolved[role.name] = role
    if not resolved:
        raise BadRequestError("At least one role is required")
    return list(resolved.values())


def _require_lab_code(roles: List[Role], lab_code: Optional[str]) -> None:
    # LAB_TECH users always carry a lab code
    if any(r.name == RoleName.LAB_TECH.value for r in roles) and not (lab_code and lab_code.strip()):
        raise BadRequestError("labCode is required for LAB_TECH users")


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User not found id={user_id}")
    return user


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except IntegrityError:
        # Lost a race against another writer on a unique column
        db.rollback()
        raise ConflictError(f"{what} conflicts with an existing user")


def create_user(db: Session, payload: UserCreate) -> User:
    if db.query(User.id).filter(User.username == payload.username).first():
        raise ConflictError("Username already in use")
    if db.query(User.id).filter(User.email == payload.email).first():
        raise ConflictError("Email already in use")

    roles = resolve_roles(db, payload.roles)
    _require_lab_code(roles, payload.lab_code)

    user = User(
        username=payload.username,
        email=payload.email,
        password_hash=get_password_hash(payload.password),
        lab_code=payload.lab_code,
        active=payload.active,
        roles=roles,
    )
    db.add(user)
    _commit(db, "User")
    db.refresh(user)
    logger.info(f"Created user {user.username} with roles {user.role_names}")
    return user


def update_user(db: Session, user_id: int, payload: UserUpdate) -> User:
    user = _get_user(db, user_id)
    fields = payload.model_fields_set

    roles = resolve_roles(db, payload.roles) if payload.roles is not None else list(user.roles)
    lab_code = payload.lab_code if "lab_code" in fields else user.lab_code
    # Checked against the resulting state, before anything is written
    _require_lab_code(roles, lab_code)

    if payload.email is not None and payload.email != user.email:
        if db.query(User.id).filter(User.email == payload.email, User.id != user.id).first():
            raise ConflictError("Email already in use")
        user.email = payload.email
    if payload.password is not None:
        user.password_hash = get_password_hash(payload.password)
    if payload.active is not None:
        user.active = payload.active
    user.lab_code = lab_code
    user.roles = roles

    _commit(db, "User")
    db.refresh(user)
    logger.info(f"Updated user {user.username}")
    return user


def delete_user(db: Session, user_id: int, current_username: str) -> None:
    user = _get_user(db, user_id)
    # Prevent self-deletion
    if user.username == current_username:
        raise BadRequestError("You cannot delete your own account")
    db.delete(user)
    db.commit()
    logger.info(f"Deleted user {user.username}")


def get_user(db: Session, user_id: int) -> User:
    return _get_user(db, user_id)


def get_user_by_username(db: Session, username: str) -> User:
    user = db.query(User).filter(User.username == username).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def list_users(
    db: Session,
    q: Optional[str] = None,
    role: Optional[str] = None,
    active: Optional[bool] = None,
    page: int = 1,
    page_size: int = 20,
):
    query = db.query(User)

    # Filter by username fragment
    if q:
        query = query.filter(User.username.ilike(f"%{q}%"))

    # Filter by role membership
    if role:
        query = query.filter(User.roles.any(Role.name == role.upper()))

    if active is not None:
        query = query.filter(User.active == active)

    total = query.count()
    users = query.order_by(User.id.asc()).offset((page - 1) * page_size).limit(page_size).all()
    return users, total


def list_roles(db: Session) -> List[Role]:
    return db.query(Role).order_by(Role.name.asc()).all()


def ensure_bootstrap_admin(db: Session, username: str, email: str, password: str) -> Optional[User]:
    """Create the first ADMIN account if it does not exist yet. Returns the new user, if any."""
    if db.query(User.id).filter(User.username == username).first():
        return None
    if not email or not password:
        raise ValueError("BOOTSTRAP_ADMIN_EMAIL and BOOTSTRAP_ADMIN_PASSWORD are required to seed an admin")

    user = User(
        username=username,
        email=email,
        password_hash=get_password_hash(password),
        active=True,
        roles=resolve_roles(db, [RoleName.ADMIN.value]),
    )
    db.add(user)
    db.commit()
    logger.info(f"Seeded bootstrap admin {username}")
    return user
