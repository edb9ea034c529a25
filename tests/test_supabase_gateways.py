from __future__ import annotations

import json

import httpx
import pytest

from config import Settings
from infrastructure.functions_gateway import FunctionsGateway
from infrastructure.storage_gateway import StorageGateway, sanitize_object_name
from infrastructure.supabase_http import GatewayNotConfiguredError, RemoteServiceError


class _Recorder:
    def __init__(self, responder):
        self.requests: list[httpx.Request] = []
        self._responder = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)


def _gateway(cls, settings, responder):
    recorder = _Recorder(responder)
    return cls(settings, transport=httpx.MockTransport(recorder)), recorder


def test_upload_posts_to_bucket(settings):
    gateway, recorder = _gateway(
        StorageGateway, settings, lambda r: httpx.Response(200, json={"Key": "x"})
    )

    path = gateway.upload("c1/summons 1.pdf", b"%PDF")

    request = recorder.requests[0]
    assert path == "c1/summons 1.pdf"
    assert request.method == "POST"
    assert request.url.path == "/storage/v1/object/client-documents/c1/summons 1.pdf"
    assert request.headers["content-type"] == "application/pdf"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["authorization"] == "Bearer anon-key"
    assert request.content == b"%PDF"


def test_remove_sends_prefixes(settings):
    gateway, recorder = _gateway(StorageGateway, settings, lambda r: httpx.Response(200, json=[]))

    assert gateway.remove(["a.pdf", "", "b.pdf"]) == 2
    assert gateway.remove([]) == 0

    assert len(recorder.requests) == 1
    request = recorder.requests[0]
    assert request.method == "DELETE"
    assert json.loads(request.content) == {"prefixes": ["a.pdf", "b.pdf"]}


def test_storage_error_is_wrapped(settings):
    gateway, _ = _gateway(
        StorageGateway,
        settings,
        lambda r: httpx.Response(404, json={"message": "Bucket not found"}),
    )
    with pytest.raises(RemoteServiceError) as exc:
        gateway.remove(["a.pdf"])
    assert str(exc.value) == "Bucket not found"
    assert exc.value.status_code == 404


def test_transport_error_is_wrapped(settings):
    def fail(request):
        raise httpx.ConnectError("no route", request=request)

    gateway, _ = _gateway(StorageGateway, settings, fail)
    with pytest.raises(RemoteServiceError):
        gateway.upload("a.pdf", b"")


def test_public_url(settings):
    gateway = StorageGateway(settings)
    assert (
        gateway.public_url("c1/a b.pdf")
        == "https://project.supabase.co/storage/v1/object/public/client-documents/c1/a%20b.pdf"
    )


def test_unconfigured_gateway_raises(tmp_path):
    gateway = StorageGateway(Settings(local_store_path=str(tmp_path / "s.db")))
    with pytest.raises(GatewayNotConfiguredError):
        gateway.upload("a.pdf", b"")


def test_sanitize_object_name():
    assert sanitize_object_name('bad:name?.pdf') == "bad_name_.pdf"
    assert sanitize_object_name("  spaced   out.  ") == "spaced out"


def test_invoke_function_returns_json(settings):
    gateway, recorder = _gateway(
        FunctionsGateway,
        settings,
        lambda r: httpx.Response(200, json={"success": True, "id": "msg-1"}),
    )

    data = gateway.invoke("send-email", {"to": "a@example.com"})

    assert data["id"] == "msg-1"
    request = recorder.requests[0]
    assert request.url.path == "/functions/v1/send-email"
    assert json.loads(request.content) == {"to": "a@example.com"}


def test_invoke_function_error_payload(settings):
    gateway, _ = _gateway(
        FunctionsGateway,
        settings,
        lambda r: httpx.Response(500, json={"success": False, "error": "SMTP down"}),
    )
    with pytest.raises(RemoteServiceError, match="SMTP down"):
        gateway.invoke("send-email", {"to": "a@example.com"})


def test_invoke_function_unsuccessful_body(settings):
    gateway, _ = _gateway(
        FunctionsGateway,
        settings,
        lambda r: httpx.Response(200, json={"success": False, "message": "quota"}),
    )
    with pytest.raises(RemoteServiceError, match="quota"):
        gateway.invoke("send-email", {})


def test_invoke_function_non_json(settings):
    gateway, _ = _gateway(FunctionsGateway, settings, lambda r: httpx.Response(200, text="ok"))
    with pytest.raises(RemoteServiceError):
        gateway.invoke("send-email", {})


def test_close_resets_client(settings):
    gateway, _ = _gateway(FunctionsGateway, settings, lambda r: httpx.Response(200, json={}))
    gateway.invoke("ping", {})
    gateway.close()
    assert gateway._client is None


def test_concurrent_first_requests_share_one_client(settings, monkeypatch):
    import threading
    import time

    import infrastructure.supabase_http as supabase_http

    real_client = httpx.Client
    created = []

    def slow_client(*args, **kwargs):
        time.sleep(0.05)
        client = real_client(*args, **kwargs)
        created.append(client)
        return client

    monkeypatch.setattr(supabase_http.httpx, "Client", slow_client)
    gateway = FunctionsGateway(
        settings, transport=httpx.MockTransport(lambda r: httpx.Response(200, json={}))
    )
    barrier = threading.Barrier(4)

    def send():
        barrier.wait()
        gateway.invoke("send-email", {})

    threads = [threading.Thread(target=send) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(created) == 1
    gateway.close()
    assert gateway._client is None
