import json

from infrastructure.local_store import CLIENTS_KEY, SERVES_KEY, LocalStore


def test_empty_store_returns_empty_lists(local_store):
    assert local_store.load_clients() == []
    assert local_store.load_serves() == []


def test_saved_collections_are_read_back(local_store):
    clients = [{"id": "c1", "name": "Jane Doe", "additionalEmails": ["x@y.io"]}]
    serves = [{"id": "s1", "clientId": "c1", "caseNumber": "CV-1"}]
    local_store.save_clients(clients)
    local_store.save_serves(serves)

    assert local_store.load_clients() == clients
    assert local_store.load_serves() == serves


def test_save_overwrites_previous_value(local_store):
    local_store.save_serves([{"id": "s1"}, {"id": "s2"}])
    local_store.save_serves([])
    assert local_store.load_serves() == []


def test_malformed_values_read_as_empty(local_store):
    local_store._kv[CLIENTS_KEY] = "{not json"
    local_store._kv[SERVES_KEY] = json.dumps({"id": "s1"})
    assert local_store.load_clients() == []
    assert local_store.load_serves() == []


def test_clear_removes_everything(local_store):
    local_store.save_clients([{"id": "c1"}])
    local_store.clear()
    assert local_store.load_clients() == []


def test_open_creates_file_and_persists(tmp_path):
    path = tmp_path / "nested" / "store.db"
    store = LocalStore.open(path)
    store.save_clients([{"id": "c1", "name": "Имя"}])
    store.close()

    assert path.exists()
    reopened = LocalStore.open(path)
    try:
        assert reopened.load_clients() == [{"id": "c1", "name": "Имя"}]
    finally:
        reopened.close()
