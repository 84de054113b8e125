# app/services/backup/collections.py
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlmodel import Session, SQLModel, select

from app.db.models import ActivityLog, Invoice, User, WorkOrder

Fetcher = Callable[[Session], List[Dict[str, Any]]]


@dataclass(frozen=True)
class CollectionSpec:
    name: str     # utilisé dans les noms de fichiers
    label: str    # libellé lisible (résumé, placeholders)
    model: type
    fetch: Fetcher

    def empty_message(self) -> str:
        return f"No {self.label} data available"

    def error_message(self, error: BaseException) -> str:
        return f"Error exporting {self.label}: {error}"


def _dump(row: SQLModel, exclude: Sequence[str] = ()) -> Dict[str, Any]:
    # Les champs optionnels non renseignés restent absents, comme dans un document
    return row.model_dump(exclude_none=True, exclude=set(exclude))


def _user_refs(session: Session) -> Dict[int, Dict[str, str]]:
    return {u.id: {"name": u.name, "email": u.email} for u in session.exec(select(User)).all()}


def _resolve(refs: Dict[int, Dict[str, Any]], ref_id: Optional[int]) -> Optional[Dict[str, Any]]:
    if ref_id is None:
        return None
    return refs.get(ref_id, {"id": ref_id, "missing": True})


def fetch_users(session: Session) -> List[Dict[str, Any]]:
    users = session.exec(select(User).order_by(User.id)).all()
    return [_dump(u, exclude=("hashed_password",)) for u in users]


def fetch_work_orders(session: Session) -> List[Dict[str, Any]]:
    users = _user_refs(session)
    records = []
    for wo in session.exec(select(WorkOrder).order_by(WorkOrder.id)).all():
        record = _dump(wo, exclude=("assigned_staff_id", "created_by_id", "updated_by_id"))
        record["assigned_staff"] = _resolve(users, wo.assigned_staff_id)
        record["created_by"] = _resolve(users, wo.created_by_id)
        record["updated_by"] = _resolve(users, wo.updated_by_id)
        records.append({k: v for k, v in record.items() if v is not None})
    return records


def fetch_invoices(session: Session) -> List[Dict[str, Any]]:
    users = _user_refs(session)
    work_orders = {
        wo.id: {
            "work_order_number": wo.work_order_number,
            "client_name": wo.client_name,
            "company_name": wo.company_name,
        }
        for wo in session.exec(select(WorkOrder)).all()
    }
    records = []
    for invoice in session.exec(select(Invoice).order_by(Invoice.id)).all():
        record = _dump(invoice, exclude=("work_order_id", "created_by_id", "updated_by_id"))
        record["work_order"] = _resolve(work_orders, invoice.work_order_id)
        record["created_by"] = _resolve(users, invoice.created_by_id)
        record["updated_by"] = _resolve(users, invoice.updated_by_id)
        records.append({k: v for k, v in record.items() if v is not None})
    return records


def fetch_activity_logs(session: Session) -> List[Dict[str, Any]]:
    users = _user_refs(session)
    records = []
    for log in session.exec(select(ActivityLog).order_by(ActivityLog.timestamp)).all():
        record = _dump(log, exclude=("user_id",))
        user = _resolve(users, log.user_id)
        if user is not None:
            record["user"] = user
        records.append(record)
    return records


DEFAULT_COLLECTIONS: List[CollectionSpec] = [
    CollectionSpec("users", "users", User, fetch_users),
    CollectionSpec("work_orders", "work orders", WorkOrder, fetch_work_orders),
    CollectionSpec("invoices", "invoices", Invoice, fetch_invoices),
    CollectionSpec("activity_logs", "activity logs", ActivityLog, fetch_activity_logs),
]


def get_collection_counts(session: Session, collections: Sequence[CollectionSpec] = DEFAULT_COLLECTIONS) -> Dict[str, int]:
    counts = {
        spec.name: session.exec(select(func.count()).select_from(spec.model)).one()
        for spec in collections
    }
    counts["total"] = sum(counts.values())
    return counts
