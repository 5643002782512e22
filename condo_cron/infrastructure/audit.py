"""Best-effort writer for the system_logs audit table"""

import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from condo_cron.infrastructure.database.repositories import SystemLogRepository

logger = logging.getLogger(__name__)


class AuditLog:
    """
    Audit rows are written in their own short session so a failed insert never
    rolls back, or gets rolled back with, the job's own writes.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def log_or_ignore(
        self,
        level: str,
        source: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Append one audit row. Any failure is reported as a warning and swallowed.

        Returns:
            True if the row was committed, False otherwise
        """
        db = self.session_factory()
        try:
            SystemLogRepository(db).append(level, source, message, metadata)
            db.commit()
            return True
        except Exception as e:
            db.rollback()
            logger.warning(
                f"Audit write failed: {e}",
                extra={"audit_source": source, "audit_message": message},
            )
            return False
        finally:
            db.close()
