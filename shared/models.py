from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String, Boolean, Integer, Numeric, Text, Date, DateTime, ForeignKey, Index, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.database import Base


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    pin_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    attendance: Mapped[list["AttendanceLog"]] = relationship(
        back_populates="employee", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_employees_role", "role"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == "active"


class Batch(Base):
    __tablename__ = "water_bag_batches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    batch_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    loader_id: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False)
    bags_received: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="received", nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    loader: Mapped["Employee"] = relationship(foreign_keys=[loader_id])
    assignments: Mapped[list["Assignment"]] = relationship(
        back_populates="batch", order_by="Assignment.created_at"
    )

    @property
    def loader_name(self) -> str | None:
        return self.loader.name if self.loader else None

    @property
    def bags_allocated(self) -> int:
        return sum(a.bags_assigned for a in self.assignments if a.status != "rejected")

    @property
    def remaining_capacity(self) -> int:
        return self.bags_received - self.bags_allocated


class Assignment(Base):
    __tablename__ = "water_bag_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    batch_id: Mapped[int] = mapped_column(ForeignKey("water_bag_batches.id"), nullable=False)
    packer_id: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False)
    storekeeper_id: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False)
    bags_assigned: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending_review", nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    review_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[int | None] = mapped_column(ForeignKey("employees.id"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    batch: Mapped["Batch"] = relationship(back_populates="assignments")
    packer: Mapped["Employee"] = relationship(foreign_keys=[packer_id])
    storekeeper: Mapped["Employee"] = relationship(foreign_keys=[storekeeper_id])

    __table_args__ = (
        Index("idx_assignments_status", "status"),
        Index("idx_assignments_batch", "batch_id"),
    )

    @property
    def submitter_id(self) -> int:
        return self.storekeeper_id

    @property
    def batch_number(self) -> str | None:
        return self.batch.batch_number if self.batch else None

    @property
    def packer_name(self) -> str | None:
        return self.packer.name if self.packer else None

    @property
    def loader_name(self) -> str | None:
        return self.batch.loader_name if self.batch else None


class WorkLog(Base):
    __tablename__ = "packer_work_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    assignment_id: Mapped[int] = mapped_column(
        ForeignKey("water_bag_assignments.id"), nullable=False
    )
    packer_id: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False)
    bags_assigned: Mapped[int] = mapped_column(Integer, nullable=False)
    bags_packed: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    modification_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[int | None] = mapped_column(ForeignKey("employees.id"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    assignment: Mapped["Assignment"] = relationship()
    packer: Mapped["Employee"] = relationship(foreign_keys=[packer_id])

    __table_args__ = (
        Index("idx_work_logs_packer_status", "packer_id", "status"),
    )

    @property
    def submitter_id(self) -> int:
        return self.packer_id

    @property
    def packer_name(self) -> str | None:
        return self.packer.name if self.packer else None

    @property
    def batch_number(self) -> str | None:
        return self.assignment.batch_number if self.assignment else None


class PackingLog(Base):
    __tablename__ = "packing_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    packer_id: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False)
    storekeeper_id: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False)
    manager_id: Mapped[int | None] = mapped_column(ForeignKey("employees.id"), nullable=True)
    assignment_id: Mapped[int | None] = mapped_column(
        ForeignKey("water_bag_assignments.id"), nullable=True
    )
    bags_packed: Mapped[int] = mapped_column(Integer, nullable=False)
    packing_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    disputed_bags: Mapped[int | None] = mapped_column(Integer, nullable=True)
    dispute_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    packer_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    storekeeper_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    manager_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    modification_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    packer: Mapped["Employee"] = relationship(foreign_keys=[packer_id])
    storekeeper: Mapped["Employee"] = relationship(foreign_keys=[storekeeper_id])
    manager: Mapped[Optional["Employee"]] = relationship(foreign_keys=[manager_id])
    assignment: Mapped[Optional["Assignment"]] = relationship()

    __table_args__ = (
        Index("idx_packing_logs_packer_date", "packer_id", "packing_date"),
        Index("idx_packing_logs_status", "status"),
    )

    @property
    def submitter_id(self) -> int:
        return self.storekeeper_id

    @property
    def packer_name(self) -> str | None:
        return self.packer.name if self.packer else None

    @property
    def storekeeper_name(self) -> str | None:
        return self.storekeeper.name if self.storekeeper else None

    @property
    def manager_name(self) -> str | None:
        return self.manager.name if self.manager else None


class DriverSalesLog(Base):
    __tablename__ = "driver_sales_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    driver_id: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False)
    driver_assistant_id: Mapped[int | None] = mapped_column(
        ForeignKey("employees.id"), nullable=True
    )
    receptionist_id: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False)
    bags_dispatched: Mapped[int] = mapped_column(Integer, nullable=False)
    bags_sold_270: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    bags_sold_250: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    bags_returned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    expected_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    revenue_discrepancy: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    delivery_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="dispatched", nullable=False)
    driver_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    receptionist_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    dispatched_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    accounted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    driver: Mapped["Employee"] = relationship(foreign_keys=[driver_id])
    assistant: Mapped[Optional["Employee"]] = relationship(foreign_keys=[driver_assistant_id])
    receptionist: Mapped["Employee"] = relationship(foreign_keys=[receptionist_id])

    __table_args__ = (
        Index("idx_driver_sales_driver_date", "driver_id", "delivery_date"),
        Index("idx_driver_sales_assistant_date", "driver_assistant_id", "delivery_date"),
    )

    @property
    def driver_name(self) -> str | None:
        return self.driver.name if self.driver else None

    @property
    def assistant_name(self) -> str | None:
        return self.assistant.name if self.assistant else None

    @property
    def receptionist_name(self) -> str | None:
        return self.receptionist.name if self.receptionist else None


class SalaryRate(Base):
    __tablename__ = "salary_rates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False)
    rate_type: Mapped[str] = mapped_column(String(30), default="per_bag", nullable=False)
    rate_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        Index("idx_salary_rates_employee_active", "employee_id", "rate_type", "is_active"),
    )


class Bonus(Base):
    __tablename__ = "bonuses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    bonus_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    created_by: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False)
    approved_by: Mapped[int | None] = mapped_column(ForeignKey("employees.id"), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    review_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    employee: Mapped["Employee"] = relationship(foreign_keys=[employee_id])
    creator: Mapped["Employee"] = relationship(foreign_keys=[created_by])
    approver: Mapped[Optional["Employee"]] = relationship(foreign_keys=[approved_by])

    __table_args__ = (
        Index("idx_bonuses_employee_date", "employee_id", "bonus_date"),
        Index("idx_bonuses_status", "status"),
    )

    @property
    def submitter_id(self) -> int:
        return self.created_by

    @property
    def employee_name(self) -> str | None:
        return self.employee.name if self.employee else None

    @property
    def created_by_name(self) -> str | None:
        return self.creator.name if self.creator else None

    @property
    def approved_by_name(self) -> str | None:
        return self.approver.name if self.approver else None


class InventoryLog(Base):
    __tablename__ = "inventory_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_name: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity_change: Mapped[int] = mapped_column(Integer, nullable=False)
    operation_type: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    source_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    employee_id: Mapped[int | None] = mapped_column(ForeignKey("employees.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    employee: Mapped[Optional["Employee"]] = relationship()

    __table_args__ = (
        Index("idx_inventory_logs_product", "product_name"),
        Index("idx_inventory_logs_created", "created_at"),
    )

    @property
    def performed_by_name(self) -> str | None:
        return self.employee.name if self.employee else None


class SystemActivity(Base):
    __tablename__ = "system_activity"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int | None] = mapped_column(ForeignKey("employees.id"), nullable=True)
    activity_type: Mapped[str] = mapped_column(String(60), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        Index("idx_system_activity_type", "activity_type"),
    )


class AttendanceLog(Base):
    __tablename__ = "attendance_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    attendance_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    clock_in_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    clock_out_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    total_hours: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="present", nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    employee: Mapped["Employee"] = relationship(back_populates="attendance")

    __table_args__ = (
        Index("idx_attendance_employee_date", "employee_id", "date"),
        Index("idx_attendance_open_sessions", "clock_out_time"),
        Index(
            "idx_attendance_one_open_session",
            "employee_id",
            "date",
            unique=True,
            postgresql_where=text("clock_out_time IS NULL"),
            sqlite_where=text("clock_out_time IS NULL"),
        ),
    )
