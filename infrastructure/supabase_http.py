"""Общая HTTP-обвязка над Supabase (Storage, Edge Functions)."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

import httpx

from config import Settings


class GatewayNotConfiguredError(RuntimeError):
    """Не заданы SUPABASE_URL/SUPABASE_KEY."""


class RemoteServiceError(RuntimeError):
    """Ошибка ответа удалённого сервиса."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class SupabaseHttpGateway:
    """Ленивая обёртка над ``httpx.Client`` с заголовками Supabase."""

    settings: Settings
    transport: httpx.BaseTransport | None = None
    _client: httpx.Client | None = field(default=None, init=False, repr=False)
    _client_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    @property
    def base_url(self) -> str:
        if not self.settings.supabase_url or not self.settings.supabase_key:
            raise GatewayNotConfiguredError("SUPABASE_URL/SUPABASE_KEY не заданы")
        return self.settings.supabase_url

    def _get_client(self) -> httpx.Client:
        if self._client is not None:
            return self._client
        # рассылка писем вызывает шлюз из нескольких потоков сразу
        with self._client_lock:
            if self._client is None:
                key = self.settings.supabase_key
                self._client = httpx.Client(
                    base_url=self.base_url,
                    headers={"apikey": key, "Authorization": f"Bearer {key}"},
                    timeout=self.settings.http_timeout,
                    transport=self.transport,
                )
        return self._client

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        client = self._get_client()
        try:
            response = client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteServiceError(
                _error_message(exc.response), exc.response.status_code
            ) from exc
        except httpx.RequestError as exc:
            raise RemoteServiceError(f"{method} {path}: {exc}") from exc
        return response

    def close(self) -> None:
        with self._client_lock:
            client, self._client = self._client, None
        if client is not None:
            client.close()


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        for key in ("message", "error", "msg"):
            if data.get(key):
                return str(data[key])
    return f"HTTP {response.status_code}"


__all__ = ["SupabaseHttpGateway", "RemoteServiceError", "GatewayNotConfiguredError"]
