# backend/models/order.py
import enum
import uuid

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, Uuid, func
from sqlalchemy.orm import relationship

from database import Base


# Lifecycle of a laboratory order: CREATED -> ASSIGNED -> IN_PROGRESS -> FINISHED
class OrderStatus(str, enum.Enum):
    CREATED = "CREATED"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    FINISHED = "FINISHED"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4)
    patient_id = Column(String(100), nullable=False, index=True)
    requested_test = Column(String(100), nullable=False)
    lab_id = Column(Integer, ForeignKey("laboratories.id"), nullable=True, index=True)  # null until assigned
    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.CREATED, index=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)  # stamped on every assignment
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Optimistic concurrency: concurrent transitions on the same row fail instead of overwriting
    version = Column(Integer, nullable=False, default=1)

    laboratory = relationship("Laboratory", lazy="joined")

    __mapper_args__ = {"version_id_col": version}
