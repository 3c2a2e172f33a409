import pytest

from pgjobstore.hints import (
    DatabaseErrorInfo,
    DieselDatabaseError,
    RecordNotFound,
    database_hint,
)

REGISTER = "; register the worker for this queue before locking or acknowledging jobs"
SETUP = "; run apalis_diesel_postgres::setup(&pool).await before using the storage"


def hint_for(message="irrelevant", table_name=None, constraint_name=None):
    info = DatabaseErrorInfo(
        message=message, table_name=table_name, constraint_name=constraint_name
    )
    return database_hint(DieselDatabaseError(info))


def test_non_database_error_has_no_hint():
    assert database_hint(RecordNotFound()) == ""


def test_unrelated_exception_has_no_hint():
    assert database_hint(ValueError("apalis.jobs does not exist")) == ""


@pytest.mark.parametrize(
    ("message", "table_name", "constraint_name", "expected"),
    [
        ("irrelevant", "jobs", "jobs_lock_by_worker_type_fkey", REGISTER),
        ("irrelevant", "jobs", "jobs_lock_by_fkey", REGISTER),
        ('relation "apalis.jobs" does not exist', None, None, SETUP),
        ("missing relation apalis.jobs from schema", None, None, SETUP),
        ("foreign key constraint violated", None, None, REGISTER),
        ("jobs_lock_by_worker_type_fkey conflict", None, None, REGISTER),
        ("jobs_lock_by_fkey conflict", None, None, REGISTER),
        ("deadlock detected on update", None, None, ""),
        (
            "deadlock detected on update",
            "custom_mirror",
            "jobs_lock_by_worker_type_fkey",
            "",
        ),
        ("violates check constraint", "jobs", "jobs_status_check", ""),
    ],
)
def test_database_hint_cases(message, table_name, constraint_name, expected):
    assert hint_for(message, table_name, constraint_name) == expected


def test_record_not_found_display():
    assert str(RecordNotFound()) == "Record not found"


def test_database_error_displays_message_and_keeps_info():
    info = DatabaseErrorInfo(message="boom", table_name="jobs")
    error = DieselDatabaseError(info)
    assert str(error) == "boom"
    assert error.info.table_name == "jobs"
    assert error.kind == "unknown"