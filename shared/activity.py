from datetime import datetime

from sqlalchemy.orm import Session

from shared.models import SystemActivity


def record_activity(
    db: Session, employee_id: int | None, activity_type: str, description: str
) -> None:
    """Append an audit row; flushed with the surrounding request transaction."""
    db.add(SystemActivity(
        employee_id=employee_id,
        activity_type=activity_type,
        description=description,
        timestamp=datetime.utcnow(),
    ))
