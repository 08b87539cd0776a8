# backend/database.py
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from config import settings

logger = logging.getLogger(__name__)

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

# Managed Postgres providers hand out postgres:// URLs, SQLAlchemy wants postgresql://
if SQLALCHEMY_DATABASE_URL.startswith("postgres://"):
    SQLALCHEMY_DATABASE_URL = SQLALCHEMY_DATABASE_URL.replace("postgres://", "postgresql://", 1)

if "sqlite" in SQLALCHEMY_DATABASE_URL:
    connect_args = {"check_same_thread": False}  # SQLite only
else:
    connect_args = {}

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

# Reference roles, resolved by name and never created through the API
DEFAULT_ROLES = {
    "ADMIN": "Full access to users, laboratories and orders",
    "LAB_TECH": "Laboratory technician, sees only orders of their own lab",
}


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def seed_roles(db) -> None:
    from models.users import Role

    existing = {name for (name,) in db.query(Role.name).all()}
    for name, description in DEFAULT_ROLES.items():
        if name not in existing:
            db.add(Role(name=name, description=description))
    db.commit()


def init_db():
    # Register every model on Base.metadata before creating tables
    import models.users  # noqa: F401
    import models.laboratory  # noqa: F401
    import models.order  # noqa: F401

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_roles(db)
    finally:
        db.close()
