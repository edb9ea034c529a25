import threading
from datetime import datetime, timedelta, timezone

import pytest

from database.models import Client, ClientCase, ClientDocument, ServeAttempt
from infrastructure.supabase_http import RemoteServiceError


class FakeStorage:
    """Хранилище файлов в памяти с управляемыми ошибками удаления."""

    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.removed: list[str] = []
        self.fail_remove: set[str] = set()

    def upload(self, path, content, content_type=None):
        self.files[path] = content
        return path

    def remove(self, paths):
        paths = list(paths)
        for path in paths:
            if path in self.fail_remove:
                raise RemoteServiceError(f"cannot remove {path}", 503)
        for path in paths:
            self.files.pop(path, None)
        self.removed.extend(paths)
        return len(paths)

    def public_url(self, path):
        return f"https://storage.test/{path}"


class FakeFunctions:
    """Записывает вызовы удалённых функций; адреса из ``fail_for`` падают."""

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []
        self.fail_for: set[str] = set()
        self._lock = threading.Lock()

    def invoke(self, name, body):
        with self._lock:
            self.calls.append((name, body))
        if body.get("to") in self.fail_for:
            raise RemoteServiceError("SMTP relay refused", 500)
        return {"success": True, "id": f"msg-{body['to']}"}

    @property
    def recipients(self):
        return sorted(body["to"] for _, body in self.calls)


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def fake_functions():
    return FakeFunctions()


BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_client():
    def _make_client(client_id="c1", name="Jane Doe", email="jane@example.com", **kwargs):
        Client.insert(id=client_id, name=name, email=email, **kwargs).execute()
        return Client.get_by_id(client_id)

    return _make_client


@pytest.fixture
def make_serve():
    def _make_serve(
        serve_id,
        client_id="c1",
        case_number="CV-1",
        minutes=0,
        status="failed",
        **kwargs,
    ):
        ServeAttempt.insert(
            id=serve_id,
            client_id=client_id,
            case_number=case_number,
            status=status,
            timestamp=(BASE_TIME + timedelta(minutes=minutes)).replace(tzinfo=None),
            **kwargs,
        ).execute()
        return ServeAttempt.get_by_id(serve_id)

    return _make_serve


@pytest.fixture
def make_case():
    def _make_case(case_id="case1", client_id="c1", case_number="CV-1", **kwargs):
        ClientCase.insert(
            id=case_id, client_id=client_id, case_number=case_number, **kwargs
        ).execute()
        return ClientCase.get_by_id(case_id)

    return _make_case


@pytest.fixture
def make_document(fake_storage):
    def _make_document(doc_id="d1", client_id="c1", case_id=None, path=None):
        path = path or f"{client_id}/{doc_id}.pdf"
        fake_storage.files[path] = b"%PDF"
        ClientDocument.insert(
            id=doc_id,
            client_id=client_id,
            case_id=case_id,
            file_name=f"{doc_id}.pdf",
            file_path=path,
        ).execute()
        return ClientDocument.get_by_id(doc_id)

    return _make_document
