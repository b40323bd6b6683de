"""Run the recurring payment batch once.

Usage:
    python -m propertyhub.app.jobs.recurring_payments

Scheduling (cron, a platform scheduler) is external; only one instance may
run at a time.
"""

import logging
import sys

from propertyhub.app.core.logging import setup_logging
from propertyhub.app.core.settings import get_settings
from propertyhub.app.db.base import Base
from propertyhub.app.db.session import SessionLocal, engine
from propertyhub.app.services.recurring import process_recurring_payments

logger = logging.getLogger("propertyhub.jobs.recurring_payments")


def main() -> int:
    setup_logging(get_settings().log_level)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        created = process_recurring_payments(db)
    finally:
        db.close()
    logger.info("Recurring payment run finished: %d payment(s) created", len(created))
    return 0


if __name__ == "__main__":
    sys.exit(main())
