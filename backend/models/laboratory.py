# backend/models/laboratory.py
import uuid

from sqlalchemy import Column, Integer, String, DateTime, JSON, Uuid, func

from database import Base
from models.types import YesNoBoolean


# Represents a laboratory that can receive test orders
class Laboratory(Base):
    __tablename__ = "laboratories"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4)
    code = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(150), unique=True, nullable=False)
    address = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    active = Column(YesNoBoolean, nullable=False, default=True, index=True)
    supported_tests = Column(JSON, nullable=True)  # ordered list of test names
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
