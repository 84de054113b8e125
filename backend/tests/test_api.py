import pytest
from fastapi.testclient import TestClient

from app.core.deps import get_current_user, get_db
from app.core.security import create_access_token
from main import app

from conftest import make_user


@pytest.fixture
def client(session, scheduler, scenario):
    def override_db():
        yield session

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_current_user] = lambda: scenario["admin"]
    app.state.backup_scheduler = scheduler
    # Pas de contexte : le lifespan (et le planificateur réel) ne démarre pas
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.backup_scheduler = None


def test_status(client):
    res = client.get("/backup/status")
    assert res.status_code == 200
    body = res.json()
    assert body["is_running"] is False
    assert body["next_run_at"] is None
    assert body["cron_expression"] == "0 6 * * *"


def test_control_start_and_stop(client):
    res = client.post("/backup/control", json={"action": "start"})
    assert res.status_code == 200
    assert res.json()["status"]["is_running"] is True
    assert res.json()["status"]["next_run_at"] == "2026-10-19T06:00:00+06:00"

    res = client.post("/backup/control", json={"action": "stop"})
    assert res.json()["message"] == "Backup scheduler stopped"
    assert res.json()["status"]["next_run_at"] is None


def test_control_restart(client, scheduler):
    res = client.post("/backup/control", json={"action": "restart"})
    assert res.status_code == 200
    assert res.json()["status"]["is_running"] is True
    assert scheduler.sleeps == [0.5]


def test_control_manual_backup(client, transport):
    res = client.post("/backup/control", json={"action": "manual-backup"})
    assert res.status_code == 200
    body = res.json()
    assert body["message"] == "Manual backup completed"
    assert body["backup"]["success"] is True
    assert body["backup"]["files_created"] == 5
    assert body["backup"]["delivery"]["delivered"] is True
    assert len(transport.sent) == 1


def test_control_rejects_unknown_action(client):
    res = client.post("/backup/control", json={"action": "explode"})
    assert res.status_code == 422


def test_run_without_email(client, transport):
    res = client.post("/backup/run", json={"send_email": False, "clean_old": False})
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["delivery"] is None
    assert body["deleted_count"] is None
    assert body["records"]["work_orders"] == 3
    assert transport.sent == []


def test_run_conflicts_with_active_run(client, scheduler):
    scheduler._run_lock.acquire()
    try:
        res = client.post("/backup/run", json={})
    finally:
        scheduler._run_lock.release()
    assert res.status_code == 409


def test_info(client):
    res = client.get("/backup/info")
    assert res.status_code == 200
    assert res.json()["configuration"]["timezone"] == "Asia/Dhaka"
    assert res.json()["validation"]["valid"] is True


def test_clean_old(client):
    res = client.delete("/backup/old")
    assert res.status_code == 200
    assert res.json()["deleted_count"] == 0
    assert res.json()["errors"] == []


def test_probe_transport(client, transport):
    res = client.get("/backup/probe-transport")
    assert res.status_code == 200
    assert res.json()["delivered"] is True
    assert transport.sent[0][0]["Subject"] == "Backup Email Configuration Test"


def test_collection_counts(client):
    res = client.get("/backup/collection-counts")
    assert res.json() == {"users": 2, "work_orders": 3, "invoices": 0, "activity_logs": 0, "total": 5}


def test_staff_is_forbidden(client, session):
    staff = make_user(session, "other@example.com", "Other")
    app.dependency_overrides[get_current_user] = lambda: staff
    assert client.get("/backup/status").status_code == 403


def test_missing_token_is_unauthorized(client):
    del app.dependency_overrides[get_current_user]
    assert client.get("/backup/status").status_code == 401


def test_real_token_reaches_admin_route(client, scenario):
    del app.dependency_overrides[get_current_user]
    token = create_access_token(scenario["admin"].id)
    res = client.get("/backup/status", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 200


def test_scheduler_not_initialised(client):
    app.state.backup_scheduler = None
    assert client.get("/backup/status").status_code == 503


def test_metrics(client):
    res = client.get("/admin/metrics")
    assert res.json()["status"] == "ok"
    assert res.json()["backup_scheduler_running"] is False
