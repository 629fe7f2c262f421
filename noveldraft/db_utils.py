"""Database helper utilities for ensuring schema consistency."""
from __future__ import annotations

from typing import Iterable

from sqlalchemy import inspect

from .extensions import db

REQUIRED_TABLES = ("users", "novels")


def ensure_database_schema() -> None:
    """Create any missing tables on application start.

    Column changes to existing tables go through Flask-Migrate.
    """

    table_names: Iterable[str] = inspect(db.engine).get_table_names()
    if any(name not in table_names for name in REQUIRED_TABLES):
        db.create_all()
