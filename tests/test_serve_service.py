from datetime import datetime, timezone

import pytest
from peewee import OperationalError

from database.models import ServeAttempt
from services.serves import serve_service
from services.serves.dto import ServeCreateCommand, ServeUpdateCommand
from services.serves.serve_service import (
    ServeNotFoundError,
    create_serve_attempt,
    delete_serve_attempt,
    fetch_serve_attempts,
    get_serves_for_client,
    next_attempt_number,
    update_serve_attempt,
)
from services.validators import ValidationError

pytestmark = pytest.mark.usefixtures("in_memory_db")


def test_attempt_number_counts_per_client_and_case(make_serve):
    make_serve("s1", client_id="c1", case_number="CV-1")
    make_serve("s2", client_id="c1", case_number="CV-1", minutes=1)
    make_serve("s3", client_id="c1", case_number="CV-2", minutes=2)
    make_serve("s4", client_id="c2", case_number="CV-1", minutes=3)

    assert next_attempt_number("c1", "CV-1") == 3
    assert next_attempt_number("c1", "CV-2") == 2
    assert next_attempt_number("c1", "CV-9") == 1


def test_create_serve_attempt_assigns_next_number(make_serve):
    make_serve("s1", client_id="c1", case_number="CV-1")

    serve = create_serve_attempt(
        ServeCreateCommand(
            client_id="c1",
            case_number="CV-1",
            status="completed",
            notes="Left with spouse",
            coordinates={"latitude": 40.7128, "longitude": -74.006, "accuracy": 8},
            timestamp=datetime(2024, 3, 2, 9, 30, tzinfo=timezone.utc),
        )
    )

    assert serve.attempt_number == 2
    row = ServeAttempt.get_by_id(serve.id)
    assert row.status == "completed"
    assert row.coordinates["accuracy"] == 8
    assert row.timestamp == datetime(2024, 3, 2, 9, 30)


def test_create_serve_attempt_rejects_unknown_status():
    with pytest.raises(ValidationError):
        create_serve_attempt(ServeCreateCommand(client_id="c1", case_number=None, status="lost"))
    assert ServeAttempt.select().count() == 0


def test_fetch_returns_newest_first(make_serve):
    make_serve("old", minutes=0)
    make_serve("new", minutes=30)
    make_serve("mid", minutes=10)
    assert [s.id for s in fetch_serve_attempts()] == ["new", "mid", "old"]


def test_fetch_retries_with_fixed_delay(monkeypatch, make_serve):
    make_serve("s1")
    real_select = ServeAttempt.select
    calls = {"n": 0}

    def flaky_select(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] < 3:
            raise OperationalError("connection reset")
        return real_select(*args, **kwargs)

    monkeypatch.setattr(ServeAttempt, "select", flaky_select)
    sleeps = []

    serves = fetch_serve_attempts(retries=3, delay=0.5, sleep=sleeps.append)

    assert [s.id for s in serves] == ["s1"]
    assert sleeps == [0.5, 0.5]


def test_fetch_gives_up_after_last_retry(monkeypatch):
    def broken_select(*args, **kwargs):
        raise OperationalError("down")

    monkeypatch.setattr(ServeAttempt, "select", broken_select)
    sleeps = []
    with pytest.raises(OperationalError):
        fetch_serve_attempts(retries=3, delay=0.5, sleep=sleeps.append)
    assert sleeps == [0.5, 0.5]


def test_update_serve_attempt_changes_only_editable_fields(make_serve):
    make_serve("s1", status="failed", image_data="abc")

    updated = update_serve_attempt(
        ServeUpdateCommand(id="s1", status="completed", notes="Served at door")
    )

    assert updated.status == "completed"
    assert updated.notes == "Served at door"
    assert updated.image_data == "abc"
    assert updated.case_number == "CV-1"


def test_update_missing_serve_raises():
    with pytest.raises(ServeNotFoundError):
        update_serve_attempt(ServeUpdateCommand(id="nope", status="completed"))


def test_delete_serve_attempt(make_serve):
    make_serve("s1")
    assert delete_serve_attempt("s1") == 1
    assert delete_serve_attempt("s1") == 0


def test_delete_serves_where_collects_failures(monkeypatch, make_serve):
    make_serve("s1", client_id="c1")
    make_serve("s2", client_id="c1", minutes=1)
    real_delete = serve_service.delete_serve_attempt

    def delete(serve_id):
        if serve_id == "s1":
            raise OperationalError("locked")
        return real_delete(serve_id)

    monkeypatch.setattr(serve_service, "delete_serve_attempt", delete)
    deleted, failures = serve_service.delete_serves_for_client("c1")

    assert deleted == 1
    assert failures == [("s1", "locked")]
    assert [s.id for s in get_serves_for_client("c1")] == ["s1"]
