from datetime import datetime, timedelta, timezone

from sqlalchemy import inspect

from noveldraft.db_utils import ensure_database_schema
from noveldraft.extensions import db
from noveldraft.models import utcnow


def test_missing_tables_are_created(app_instance):
    db.drop_all()
    assert "novels" not in inspect(db.engine).get_table_names()

    ensure_database_schema()

    assert {"users", "novels"} <= set(inspect(db.engine).get_table_names())


def test_existing_schema_is_left_alone(app_instance, job, store):
    ensure_database_schema()

    assert store.get(job.id).title == "The Salt Archive"


def test_utcnow_is_naive_utc():
    now = utcnow()

    assert now.tzinfo is None
    assert abs(datetime.now(timezone.utc).replace(tzinfo=None) - now) < timedelta(seconds=5)


def test_job_timestamps_use_utc(store, job):
    assert store.get(job.id).updated_at.tzinfo is None
    assert abs(store.get(job.id).updated_at - utcnow()) < timedelta(seconds=5)
