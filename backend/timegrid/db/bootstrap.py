from __future__ import annotations

import logging

from sqlalchemy import inspect

import timegrid.models  # noqa: F401
from timegrid.db.base import Base
from timegrid.db.session import engine

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ("timetables", "timetable_entries")


def ensure_schema() -> None:
    with engine.begin() as connection:
        existing = set(inspect(connection).get_table_names())
        missing = [name for name in REQUIRED_TABLES if name not in existing]
        if not missing:
            return
        logger.info("Creating missing tables | tables=%s", ",".join(missing))
        Base.metadata.create_all(bind=connection)
