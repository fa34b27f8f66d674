from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from shared.exceptions import AlreadyClockedIn
from shared.models import AttendanceLog
from shared.scheduler import auto_clock_out
from services.attendance_service import tools as attendance_tools
from services.attendance_service.tools import clock_in, clock_out


def test_clock_in_and_out(client, staff, headers):
    resp = client.post("/api/attendance/clock-in", headers=headers(staff.packer))
    assert resp.status_code == 201
    assert resp.json()["data"]["status"] == "present"

    status = client.get("/api/attendance/status", headers=headers(staff.packer)).json()
    assert status["data"]["is_clocked_in"] is True

    resp = client.post(
        "/api/attendance/clock-out", json={"notes": "done"}, headers=headers(staff.packer),
    )
    assert resp.status_code == 200
    body = resp.json()["data"]
    assert body["clock_out_time"] is not None
    assert body["notes"] == "done"

    status = client.get("/api/attendance/status", headers=headers(staff.packer)).json()
    assert status["data"]["is_clocked_in"] is False


def test_clock_in_twice_conflicts(client, staff, headers):
    client.post("/api/attendance/clock-in", headers=headers(staff.loader))
    resp = client.post("/api/attendance/clock-in", headers=headers(staff.loader))
    assert resp.status_code == 409
    assert resp.json()["success"] is False


def test_clock_out_without_session(client, staff, headers):
    resp = client.post("/api/attendance/clock-out", headers=headers(staff.loader))
    assert resp.status_code == 404
    assert resp.json()["error"] == "NoActiveSession"


def test_auto_clock_out_closes_open_sessions(db, session_factory, staff):
    started = datetime.utcnow() - timedelta(hours=3)
    db.add_all([
        AttendanceLog(
            employee_id=staff.packer.id, attendance_date=started.date(),
            clock_in_time=started, status="present",
        ),
        AttendanceLog(
            employee_id=staff.loader.id, attendance_date=started.date(),
            clock_in_time=started, clock_out_time=started + timedelta(hours=1),
            total_hours=1, status="present",
        ),
    ])
    db.commit()

    assert auto_clock_out(session_factory) == 1

    db.expire_all()
    closed = db.query(AttendanceLog).filter_by(employee_id=staff.packer.id).one()
    assert closed.status == "auto_closed"
    assert closed.clock_out_time is not None
    assert closed.total_hours >= 2

    untouched = db.query(AttendanceLog).filter_by(employee_id=staff.loader.id).one()
    assert untouched.status == "present"


def test_second_open_session_violates_index(db, staff):
    started = datetime.utcnow()
    db.add(AttendanceLog(
        employee_id=staff.packer.id, attendance_date=started.date(),
        clock_in_time=started, status="present",
    ))
    db.flush()

    db.add(AttendanceLog(
        employee_id=staff.packer.id, attendance_date=started.date(),
        clock_in_time=started + timedelta(minutes=1), status="present",
    ))
    with pytest.raises(IntegrityError):
        db.flush()
    db.rollback()


def test_closed_session_allows_new_clock_in(db, staff):
    clock_in(staff.loader, db)
    clock_out(staff.loader, db)
    session = clock_in(staff.loader, db)
    assert session.clock_out_time is None


def test_racing_clock_in_reports_already_clocked_in(db, staff, monkeypatch):
    clock_in(staff.packer, db)
    # the other request read before this one inserted
    monkeypatch.setattr(attendance_tools, "_open_session", lambda db, employee_id: None)
    with pytest.raises(AlreadyClockedIn):
        clock_in(staff.packer, db)
    db.rollback()
