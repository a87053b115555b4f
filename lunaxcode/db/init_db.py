import logging

from lunaxcode.db.session import engine
from lunaxcode.db.base import Base
from lunaxcode.db import models  # noqa: F401  registers every table on Base.metadata

logger = logging.getLogger(__name__)


def init_db(bind=engine) -> None:
    """Create missing tables. Deployments run Alembic migrations instead."""
    Base.metadata.create_all(bind=bind)
    logger.info("Database tables ensured")
