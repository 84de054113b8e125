# app/db/seed.py
from app.db.base import engine
from app.db.models import ActivityLog, ActivityAction, Invoice, Role, User, WorkOrder
from sqlmodel import Session, select
from app.core.security import hash_password
from datetime import datetime, timedelta, timezone

def seed_initial_data(bind=None):
    with Session(bind or engine) as session:
        if session.exec(select(User)).first():
            return False

        admin = User(
            email="admin@example.com",
            hashed_password=hash_password("adminpass"),
            name="Admin",
            role=Role.admin,
        )
        staff = User(
            email="staff@example.com",
            hashed_password=hash_password("staffpass"),
            name="Field Staff",
            role=Role.staff,
        )
        session.add_all([admin, staff])
        session.flush()

        now = datetime.now(timezone.utc)
        work_order = WorkOrder(
            work_order_number="WO-0001",
            details="Replace kitchen faucet",
            address="12 Lake Road",
            work_type="plumbing",
            schedule_date=now + timedelta(days=1),
            due_date=now + timedelta(days=7),
            client_name="Jane Client",
            company_name="Acme Property",
            nte=250.0,
            assigned_staff_id=staff.id,
            created_by_id=admin.id,
            activities=[{"message": "Work order created", "timestamp": now.isoformat(), "user_id": admin.id}],
        )
        session.add(work_order)
        session.flush()

        invoice = Invoice(
            invoice_number="INV-0001",
            work_order_id=work_order.id,
            client_payments=[{"amount": 250.0, "payment_method": "cash", "payment_date": now.isoformat()}],
            expenses=[
                {"type": "material", "amount": 80.0, "status": "paid"},
                {"type": "labor", "amount": 60.0, "status": "unpaid"},
            ],
            created_by_id=admin.id,
        )
        invoice.calculate_revenue()
        session.add(invoice)

        session.add(ActivityLog(
            user_id=admin.id,
            action=ActivityAction.create,
            entity_type="WorkOrder",
            entity_id=work_order.id,
            description=f"Created work order {work_order.work_order_number}",
            new_values={"status": "pending"},
        ))
        session.commit()
        print("✅ Admin, staff and sample work order/invoice seeded")
        return True
