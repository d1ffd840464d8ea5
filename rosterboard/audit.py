import logging
from typing import Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from .auth import CurrentUser
from .models import AuditLog

logger = logging.getLogger(__name__)


def log_action(
    db: Session,
    user: Optional[CurrentUser],
    action: str,
    table_name: str,
    record_id=None,
    before: Optional[dict] = None,
    after: Optional[dict] = None,
) -> None:
    """Write an audit log entry. Never raises."""
    try:
        entry = AuditLog(
            user_id=user.id if user else None,
            user_email=user.email if user else None,
            action=action,
            table_name=table_name,
            record_id=str(record_id) if record_id is not None else None,
            before=jsonable_encoder(before) if before is not None else None,
            after=jsonable_encoder(after) if after is not None else None,
        )
        db.add(entry)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning(f"⚠️ Audit log failed: {e}")
