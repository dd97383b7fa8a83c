from __future__ import annotations

import logging

from sqlalchemy.engine import Engine

from smart_timetable.db.base import Base
from smart_timetable.db.session import engine as default_engine
from smart_timetable import models  # noqa: F401  registers tables on Base.metadata

logger = logging.getLogger(__name__)


def init_db(bind: Engine | None = None) -> None:
    target = bind or default_engine
    try:
        Base.metadata.create_all(bind=target)
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Database bootstrap failed")
        raise RuntimeError("Database bootstrap failed") from exc
