"""Maintenance sweep - alerts condos about equipment maintenance coming due"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from condo_cron.domain.exceptions import CandidateFetchError
from condo_cron.domain.models import MaintenanceDue, MaintenanceSweepResult
from condo_cron.infrastructure.audit import AuditLog
from condo_cron.infrastructure.database.repositories import MaintenanceRepository
from condo_cron.utils.date_utils import add_days, utc_now

logger = logging.getLogger(__name__)


class MaintenanceSweep:
    name = "maintenance-check"

    def __init__(
        self,
        session_factory: Callable[[], Session],
        audit: AuditLog,
        lookahead_days: int = 7,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session_factory = session_factory
        self.audit = audit
        self.lookahead_days = lookahead_days
        self.clock = clock

    async def run(self) -> MaintenanceSweepResult:
        """
        Raise one alert per condo for occurrences due within the lookahead.

        An occurrence is marked as alerted only after its alert row is written,
        so a failed audit write is retried on the next run.
        """
        today = self.clock().date()
        horizon = add_days(today, self.lookahead_days)

        db = self.session_factory()
        try:
            repo = MaintenanceRepository(db)
            try:
                due = repo.get_due_unalerted(horizon, today)
            except SQLAlchemyError as e:
                db.rollback()
                raise CandidateFetchError(self.name, str(e)) from e

            by_condo: Dict[str, List[MaintenanceDue]] = defaultdict(list)
            for item in due:
                by_condo[item.tenant_id].append(item)

            alerts = 0
            for condo_id, items in by_condo.items():
                written = self.audit.log_or_ignore(
                    level="warning",
                    source="maintenance_alert",
                    message=f"{len(items)} maintenance item(s) due for condo {condo_id}",
                    metadata={
                        "condo_id": condo_id,
                        "items": [
                            {
                                "schedule_id": item.schedule_id,
                                "equipment": item.equipment_name,
                                "next_date": item.next_date.isoformat(),
                                "overdue": item.overdue,
                            }
                            for item in items
                        ],
                    },
                )
                if not written:
                    continue
                for item in items:
                    repo.mark_alerted(item.schedule_id, item.next_date)
                db.commit()
                alerts += 1
        finally:
            db.close()

        logger.info(f"Maintenance sweep: {alerts} alerts", extra={"job": self.name})
        return MaintenanceSweepResult(
            checked=len(due),
            alerts=alerts,
            overdue=sum(1 for item in due if item.overdue),
        )
