from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.activity import record_activity
from shared.exceptions import AlreadyClockedIn, NoActiveSession
from shared.logger import get_logger
from shared.models import AttendanceLog, Employee

logger = get_logger("attendance.tools")


def worked_hours(clock_in: datetime, clock_out: datetime) -> Decimal:
    seconds = max((clock_out - clock_in).total_seconds(), 0)
    return (Decimal(seconds) / Decimal(3600)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _open_session(db: Session, employee_id: int) -> AttendanceLog | None:
    today = datetime.utcnow().date()
    return db.execute(
        select(AttendanceLog)
        .where(
            AttendanceLog.employee_id == employee_id,
            AttendanceLog.attendance_date == today,
            AttendanceLog.clock_out_time.is_(None),
        )
        .order_by(AttendanceLog.clock_in_time.desc())
        .limit(1)
    ).scalar_one_or_none()


def clock_in(actor: Employee, db: Session) -> AttendanceLog:
    # Lock the employee row so concurrent clock-ins for one person run one at a time.
    db.get(Employee, actor.id, with_for_update=True)
    if _open_session(db, actor.id):
        raise AlreadyClockedIn()

    now = datetime.utcnow()
    session = AttendanceLog(
        employee_id=actor.id,
        attendance_date=now.date(),
        clock_in_time=now,
        status="present",
    )
    db.add(session)
    try:
        db.flush()
    except IntegrityError:
        # idx_attendance_one_open_session
        logger.warning(f"Concurrent clock-in rejected for employee {actor.id}")
        raise AlreadyClockedIn()

    record_activity(db, actor.id, "clock_in", f"{actor.name} clocked in")
    logger.info(f"Clock-in: employee {actor.id}")
    return session


def clock_out(actor: Employee, db: Session, notes: str | None = None) -> AttendanceLog:
    session = _open_session(db, actor.id)
    if session is None:
        raise NoActiveSession()

    now = datetime.utcnow()
    session.clock_out_time = now
    session.total_hours = worked_hours(session.clock_in_time, now)
    if notes:
        session.notes = notes
    db.flush()

    record_activity(
        db, actor.id, "clock_out", f"{actor.name} clocked out after {session.total_hours}h",
    )
    logger.info(f"Clock-out: employee {actor.id} ({session.total_hours}h)")
    return session


def attendance_status(actor: Employee, db: Session) -> dict:
    """Today's latest session, open or closed."""
    today = datetime.utcnow().date()
    latest = db.execute(
        select(AttendanceLog)
        .where(AttendanceLog.employee_id == actor.id, AttendanceLog.attendance_date == today)
        .order_by(AttendanceLog.clock_in_time.desc(), AttendanceLog.id.desc())
        .limit(1)
    ).scalar_one_or_none()

    return {
        "is_clocked_in": latest is not None and latest.clock_out_time is None,
        "session": latest,
    }
