from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=True)
    ext = Column(String(10), nullable=True)  # Phone extension
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Status(Base):
    __tablename__ = "statuses"

    id = Column(Integer, primary_key=True, index=True)
    label = Column(Text, unique=True, nullable=False)
    color = Column(String(20), nullable=True)  # e.g., #RRGGBB
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)
    color = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class ScheduleType(Base):
    __tablename__ = "schedule_types"

    id = Column(Integer, primary_key=True, index=True)
    type_name = Column(String(100), unique=True, nullable=False)  # e.g., Installation, Service
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ScheduleState(Base):
    __tablename__ = "schedule_states"

    id = Column(Integer, primary_key=True, index=True)
    state_name = Column(String(100), unique=True, nullable=False)  # completed, cancelled, postponed
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class CancellationReason(Base):
    __tablename__ = "cancellation_reasons"

    id = Column(Integer, primary_key=True, index=True)
    reason = Column(Text, nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())  # cancelledAt


class EmployeeSchedule(Base):
    """One row per marker assigned to an employee on a date"""

    __tablename__ = "employee_schedule"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), index=True)
    date = Column(Date, nullable=False, index=True)
    status_id = Column(Integer, ForeignKey("statuses.id", ondelete="SET NULL"), nullable=True)
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="SET NULL"), nullable=True)
    schedule_type_id = Column(
        Integer, ForeignKey("schedule_types.id", ondelete="SET NULL"), nullable=True
    )
    with_employee_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)

    # Lifecycle state
    schedule_state_id = Column(
        Integer, ForeignKey("schedule_states.id", ondelete="SET NULL"), nullable=True
    )
    cancellation_reason_id = Column(
        Integer, ForeignKey("cancellation_reasons.id", ondelete="SET NULL"), nullable=True
    )
    postponed_date = Column(Date, nullable=True)  # Date the marker was postponed from
    is_tba = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    employee = relationship("Employee", foreign_keys=[employee_id])
    with_employee = relationship("Employee", foreign_keys=[with_employee_id])
    status = relationship("Status")
    client = relationship("Client")
    schedule_type = relationship("ScheduleType")
    schedule_state = relationship("ScheduleState")
    cancellation_reason = relationship("CancellationReason")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=True)
    user_email = Column(String(255), nullable=True)
    action = Column(String(20), nullable=False)  # CREATE, UPDATE, DELETE
    table_name = Column(String(100), nullable=False)
    record_id = Column(String(100), nullable=True)
    before = Column(JSON, nullable=True)
    after = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
