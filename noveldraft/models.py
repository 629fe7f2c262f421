from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from .extensions import db, login_manager


def utcnow() -> datetime:
    # Naive UTC, matching the timezone-less DateTime columns.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _new_job_id() -> str:
    return uuid.uuid4().hex


def _empty_outline() -> dict:
    return {"current": None, "iterations": []}


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    display_name = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    novels = db.relationship("Novel", backref="owner", lazy=True, cascade="all, delete-orphan")

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def __repr__(self) -> str:  # pragma: no cover - repr for debugging
        return f"<User {self.email}>"


@login_manager.user_loader
def load_user(user_id: str) -> Optional["User"]:
    return db.session.get(User, int(user_id))


class Novel(db.Model):
    """One novel generation job.

    ``stage`` holds the key of the last completed stage (``start`` before any
    work) and doubles as the guard column for conditional updates. Outline
    and chapter artifacts are kept as JSON documents on the row.
    """

    __tablename__ = "novels"

    id = db.Column(db.String(32), primary_key=True, default=_new_job_id)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    parameters = db.Column(db.JSON, nullable=False)
    stage = db.Column(db.String(64), nullable=False, default="start")
    status = db.Column(db.String(32), nullable=False, default="initializing", index=True)
    outline_data = db.Column(db.JSON, nullable=False, default=_empty_outline)
    chapters_data = db.Column(db.JSON, nullable=False, default=list)
    chapter_count = db.Column(db.Integer, nullable=False, default=0)
    current_chapter_index = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Novel {self.title} ({self.status} @ {self.stage})>"
