# tablebook/init_db.py
"""
Create the schema and seed the configured resources.

Run with ``python -m tablebook.init_db``; the API also does this on
startup so a fresh SQLite file works out of the box.
"""

import logging
from typing import Optional

from sqlalchemy.engine import Engine

from . import models  # noqa: F401 - registers every table on Base.metadata
from .core.config import settings
from .database import Base, SessionLocal, engine
from .repositories.factory import RepositoryFactory

logger = logging.getLogger(__name__)


def init_db(bind: Optional[Engine] = None) -> None:
    target = bind or engine
    Base.metadata.create_all(bind=target)

    db = SessionLocal(bind=target)
    try:
        RepositoryFactory.create_resource_repository(db).sync_configured(settings.resources)
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
    logger.info("Database initialised with resources: %s", ", ".join(settings.resource_ids))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
