# backend/models/users.py
import enum
import uuid

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Table, Uuid, func
from sqlalchemy.orm import relationship

from database import Base
from models.types import YesNoBoolean


# Role names known to the domain; tokens carry them as plain strings
class RoleName(str, enum.Enum):
    ADMIN = "ADMIN"
    LAB_TECH = "LAB_TECH"


# Many-to-many link between users and roles, owned by the user
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


# Reference data: ADMIN, LAB_TECH
class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


# Represents a user account with credentials, lab assignment and roles
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4)
    username = Column(String(150), unique=True, nullable=False, index=True)
    email = Column(String(200), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    lab_code = Column(String(50), nullable=True)  # mandatory only for LAB_TECH
    active = Column(YesNoBoolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    roles = relationship("Role", secondary=user_roles, lazy="selectin")

    @property
    def role_names(self):
        return sorted(r.name for r in self.roles)

    def has_role(self, role: RoleName) -> bool:
        return role.value in self.role_names
