# app/db/models.py
from sqlmodel import SQLModel, Field, Relationship, JSON
from sqlalchemy import Column
from typing import Any, Dict, Optional, List
from datetime import datetime, timezone
from enum import Enum


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    admin = "admin"
    manager = "manager"
    staff = "staff"


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    hashed_password: str
    name: str
    role: Role = Field(default=Role.staff)
    phone: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)


class WorkOrderStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class WorkOrder(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    work_order_number: str = Field(unique=True, index=True)
    details: str
    address: str
    work_type: str
    schedule_date: datetime
    due_date: datetime
    client_name: str
    company_name: str
    nte: float = 0.0  # Not To Exceed
    status: WorkOrderStatus = Field(default=WorkOrderStatus.pending)
    notes: Optional[str] = None

    # Historique de progression : [{"message": ..., "timestamp": ..., "user_id": ...}]
    activities: List[Dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    assigned_staff_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    created_by_id: int = Field(foreign_key="user.id")
    updated_by_id: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    invoices: List["Invoice"] = Relationship(back_populates="work_order")


class InvoiceStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    paid = "paid"
    overdue = "overdue"


class Invoice(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    invoice_number: str = Field(unique=True, index=True)
    work_order_id: int = Field(foreign_key="workorder.id", index=True)

    # [{"amount": 100.0, "payment_method": "cash", "payment_date": "..."}]
    client_payments: List[Dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    # [{"type": "material" | "labor" | "utility", "amount": 10.0, "status": "unpaid"}]
    expenses: List[Dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    total_client_payment: float = 0.0
    total_material_cost: float = 0.0
    total_labor_cost: float = 0.0
    total_utility_cost: float = 0.0
    revenue: float = 0.0
    issue_date: datetime = Field(default_factory=_utcnow)
    due_date: Optional[datetime] = None
    status: InvoiceStatus = Field(default=InvoiceStatus.draft)
    notes: Optional[str] = None

    created_by_id: int = Field(foreign_key="user.id")
    updated_by_id: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    work_order: WorkOrder = Relationship(back_populates="invoices")

    def calculate_revenue(self) -> float:
        """Recalcule les totaux à partir des paiements et des dépenses."""
        self.total_client_payment = sum(float(p.get("amount", 0)) for p in self.client_payments)
        totals = {"material": 0.0, "labor": 0.0, "utility": 0.0}
        for expense in self.expenses:
            kind = expense.get("type")
            if kind in totals:
                totals[kind] += float(expense.get("amount", 0))
        self.total_material_cost = totals["material"]
        self.total_labor_cost = totals["labor"]
        self.total_utility_cost = totals["utility"]
        self.revenue = self.total_client_payment - sum(totals.values())
        return self.revenue


class ActivityAction(str, Enum):
    create = "create"
    update = "update"
    delete = "delete"
    status_change = "status_change"
    assign = "assign"
    login = "login"
    logout = "logout"


class ActivityLog(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    action: ActivityAction
    entity_type: str  # "WorkOrder", "Invoice" ou "User"
    entity_id: int
    description: str
    old_values: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    new_values: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)
