import os
import signal
import sys
from pathlib import Path
import pytest
from peewee import SqliteDatabase

# Force tests to use in-memory SQLite by default to avoid touching any real DB.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

# ensure project root is on sys.path when running tests
sys.path.append(str(Path(__file__).resolve().parent))

from config import Settings
from database.db import db
from database.init import ALL_MODELS
from infrastructure.local_store import LocalStore

_TEST_TIMEOUT = int(os.environ.get("PYTEST_TIMEOUT", "60"))


@pytest.fixture(autouse=True)
def watchdog():
    """Fail a test if it hangs longer than the timeout."""
    if not hasattr(signal, "SIGALRM"):
        yield
        return

    def handler(signum, frame):  # pragma: no cover - timeout handler
        pytest.fail("Test timeout exceeded", pytrace=False)

    signal.signal(signal.SIGALRM, handler)
    signal.alarm(_TEST_TIMEOUT)
    try:
        yield
    finally:
        signal.alarm(0)


def pytest_runtest_logstart(nodeid, location):
    print(f"-- START {nodeid}")


def pytest_runtest_logfinish(nodeid, location):
    print(f"-- FINISH {nodeid}")


@pytest.fixture()
def in_memory_db(monkeypatch):
    # If db is not initialized yet, bind it to a fresh in-memory DB.
    # If it is already initialized, reuse that handle.
    test_db = getattr(db, "obj", None)
    if test_db is None:
        test_db = SqliteDatabase(":memory:")
        db.initialize(test_db)
    else:
        # Safety guard: never run tests against a non in-memory DB.
        if not (isinstance(test_db, SqliteDatabase) and getattr(test_db, "database", None) == ":memory:"):
            raise RuntimeError("Refusing to run tests on a non in-memory database")

    test_db.create_tables(ALL_MODELS)
    try:
        yield test_db
    finally:
        test_db.drop_tables(ALL_MODELS)
        try:
            test_db.close()
        except Exception:
            pass


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        database_url="sqlite:///:memory:",
        local_store_path=str(tmp_path / "local_store.db"),
        log_dir=str(tmp_path / "logs"),
        supabase_url="https://project.supabase.co",
        supabase_key="anon-key",
        fetch_retry_delay=0,
        sync_interval=0.05,
    )


@pytest.fixture()
def local_store():
    store = LocalStore(SqliteDatabase(":memory:"))
    try:
        yield store
    finally:
        store.close()
