from datetime import datetime

from sqlalchemy import select

from shared.database import session_scope
from shared.models import AttendanceLog
from shared.logger import get_logger

logger = get_logger("scheduler")


def auto_clock_out(session_factory=None) -> int:
    """Close every attendance session still open at the end of the working day."""
    now = datetime.utcnow()
    logger.info(f"Running auto clock-out at {now.strftime('%Y-%m-%d %H:%M:%S')} UTC")

    try:
        with session_scope(session_factory) as db:
            open_sessions = db.execute(
                select(AttendanceLog).where(AttendanceLog.clock_out_time.is_(None))
            ).scalars().all()

            for session in open_sessions:
                hours = max((now - session.clock_in_time).total_seconds(), 0) / 3600
                session.clock_out_time = now
                session.total_hours = round(hours, 2)
                session.status = "auto_closed"
                session.notes = "Auto clock-out (end of day)"
            closed = len(open_sessions)
    except Exception as e:
        logger.error(f"Auto clock-out failed: {e}")
        return 0

    logger.info(f"Auto clock-out complete: {closed} sessions closed")
    return closed
