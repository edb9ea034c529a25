"""Состояние приложения: клиенты и попытки вручения в памяти.

Все изменения сначала выполняются в удалённой базе и только после
подтверждения попадают в память и локальное хранилище. Ошибка удалённого
вызова возвращается вызывающему коду как :class:`OperationResult` и не
меняет состояние.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable

from infrastructure.local_store import LocalStore
from infrastructure.storage_gateway import StorageGateway
from services.clients import client_service
from services.clients.dto import ClientCreateCommand, ClientDTO, ClientUpdateCommand
from services.notification_service import DispatchResult, NotificationDispatcher
from services.serves import serve_service
from services.serves.dto import (
    ServeAttemptDTO,
    ServeCreateCommand,
    ServeUpdateCommand,
    sort_newest_first,
)

logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    """Итог действия пользователя для отображения в интерфейсе."""

    success: bool
    message: str = ""
    data: Any = None


class ServeSession:
    """Коллекции ``clients`` и ``serves`` с мутаторами."""

    def __init__(
        self,
        store: LocalStore,
        storage: StorageGateway,
        dispatcher: NotificationDispatcher | None = None,
        *,
        executor: Executor | None = None,
    ) -> None:
        self._store = store
        self._storage = storage
        self._dispatcher = dispatcher
        self._executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="notify"
        )
        self._owns_executor = executor is None
        self._lock = threading.RLock()
        self._pending: list[Future] = []
        self.clients: list[ClientDTO] = []
        self.serves: list[ServeAttemptDTO] = []
        self.warnings: list[str] = []
        self.trigger_sync: Callable[[str], None] | None = None

    # ─────────────────────────── жизненный цикл ───────────────────────────

    def hydrate(self) -> None:
        """Загрузить коллекции из локального хранилища."""
        with self._lock:
            self.clients = _parse_cached(self._store.load_clients(), ClientDTO.from_local, "клиент")
            self.serves = sort_newest_first(
                _parse_cached(self._store.load_serves(), ServeAttemptDTO.from_local, "попытка")
            )
        logger.info(
            "📦 Из локального хранилища: клиентов %s, попыток %s",
            len(self.clients),
            len(self.serves),
        )

    def on_focus_regained(self) -> None:
        if self.trigger_sync is not None:
            self.trigger_sync("focus")

    def close(self) -> None:
        self.wait_for_notifications()
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    # ─────────────────────────── StateSink ───────────────────────────

    def apply_serves(self, serves: list[ServeAttemptDTO]) -> None:
        with self._lock:
            self.serves = sort_newest_first(list(serves))
            self._persist_serves()

    def apply_clients(self, clients: list[ClientDTO]) -> None:
        with self._lock:
            self.clients = list(clients)
            self._persist_clients()

    # ─────────────────────────── выборки ───────────────────────────

    def get_client(self, client_id: str) -> ClientDTO | None:
        with self._lock:
            return next((c for c in self.clients if c.id == client_id), None)

    def get_serve(self, serve_id: str) -> ServeAttemptDTO | None:
        with self._lock:
            return next((s for s in self.serves if s.id == serve_id), None)

    def serves_for(self, client_id: str, case_number: str | None = None) -> list[ServeAttemptDTO]:
        with self._lock:
            return [
                s
                for s in self.serves
                if s.client_id == client_id
                and (case_number is None or s.case_number == case_number)
            ]

    # ─────────────────────────── клиенты ───────────────────────────

    def add_client(self, command: ClientCreateCommand) -> OperationResult:
        try:
            client = client_service.create_client(command)
        except Exception as exc:  # noqa: BLE001
            logger.error("❌ Ошибка создания клиента: %s", exc)
            return OperationResult(False, str(exc))
        with self._lock:
            self.clients = [c for c in self.clients if c.id != client.id] + [client]
            self._persist_clients()
        return OperationResult(True, "Client added", client)

    def update_client(self, command: ClientUpdateCommand) -> OperationResult:
        try:
            client = client_service.update_client(command)
        except Exception as exc:  # noqa: BLE001
            logger.error("❌ Ошибка обновления клиента %s: %s", command.id, exc)
            return OperationResult(False, str(exc))
        with self._lock:
            self.clients = [client if c.id == client.id else c for c in self.clients]
            if not any(c.id == client.id for c in self.clients):
                self.clients.append(client)
            self._persist_clients()
        return OperationResult(True, "Client updated", client)

    def delete_client(self, client_id: str) -> OperationResult:
        """Каскадно удалить клиента.

        Если не удалось удалить саму строку клиента — состояние не меняется.
        Ошибки зависимых шагов попадают в предупреждения, клиент всё равно
        считается удалённым.
        """
        try:
            result = client_service.delete_client_cascade(self._storage, client_id)
        except Exception as exc:  # noqa: BLE001
            logger.error("❌ Ошибка удаления клиента %s: %s", client_id, exc)
            return OperationResult(False, str(exc))
        if not result.client_deleted:
            return OperationResult(False, "Failed to delete client", result)

        with self._lock:
            self.clients = [c for c in self.clients if c.id != client_id]
            self.serves = [s for s in self.serves if s.client_id != client_id]
            self._persist_clients()
            self._persist_serves()
            if result.failures:
                self.warnings.append(
                    f"Client deleted, but some related data was not removed: {result.summary()}"
                )
        return OperationResult(True, "Client deleted", result)

    # ─────────────────────────── попытки вручения ───────────────────────────

    def add_serve(self, command: ServeCreateCommand) -> OperationResult:
        try:
            serve = serve_service.create_serve_attempt(command)
        except Exception as exc:  # noqa: BLE001
            logger.error("❌ Ошибка сохранения попытки вручения: %s", exc)
            return OperationResult(False, str(exc))
        with self._lock:
            self.serves = sort_newest_first([serve] + [s for s in self.serves if s.id != serve.id])
            self._persist_serves()
        client = self.get_client(serve.client_id)
        if client is not None:
            self._notify(lambda d: d.notify_new_serve(client, serve))
        return OperationResult(True, "Serve attempt saved", serve)

    def update_serve(self, command: ServeUpdateCommand) -> OperationResult:
        before = self.get_serve(command.id)
        try:
            before = before or serve_service.get_serve_by_id(command.id)
            serve = serve_service.update_serve_attempt(command)
        except Exception as exc:  # noqa: BLE001
            logger.error("❌ Ошибка обновления попытки %s: %s", command.id, exc)
            return OperationResult(False, str(exc))
        with self._lock:
            self.serves = sort_newest_first(
                [serve] + [s for s in self.serves if s.id != serve.id]
            )
            self._persist_serves()
        client = self.get_client(serve.client_id)
        if client is not None and before is not None and before.status != serve.status:
            self._notify(lambda d: d.notify_status_change(client, before, serve))
        return OperationResult(True, "Serve attempt updated", serve)

    def delete_serve(self, serve_id: str, reason: str | None = None) -> OperationResult:
        """Удалить попытку: сначала удалённо, затем локально."""
        existing = self.get_serve(serve_id)
        try:
            serve_service.delete_serve_attempt(serve_id)
        except Exception as exc:  # noqa: BLE001
            logger.error("❌ Ошибка удаления попытки %s: %s", serve_id, exc)
            return OperationResult(False, f"Failed to delete serve attempt: {exc}")
        with self._lock:
            self.serves = [s for s in self.serves if s.id != serve_id]
            self._persist_serves()
        if existing is not None:
            client = self.get_client(existing.client_id)
            if client is not None:
                self._notify(lambda d: d.notify_deletion(client, existing, reason))
        return OperationResult(True, "Serve attempt deleted")

    # ─────────────────────────── уведомления ───────────────────────────

    def dismiss_warning(self, index: int) -> None:
        with self._lock:
            if 0 <= index < len(self.warnings):
                self.warnings.pop(index)

    def wait_for_notifications(self, timeout: float | None = None) -> None:
        with self._lock:
            pending, self._pending = self._pending, []
        if pending:
            wait(pending, timeout=timeout)

    def _notify(self, send: Callable[[NotificationDispatcher], DispatchResult | None]) -> None:
        if self._dispatcher is None:
            return
        future = self._executor.submit(self._run_notification, send)
        with self._lock:
            self._pending.append(future)
        # колбэк может сработать сразу, поэтому добавляем до подписки
        future.add_done_callback(self._forget_future)

    def _forget_future(self, future: Future) -> None:
        with self._lock:
            if future in self._pending:
                self._pending.remove(future)

    def _run_notification(
        self, send: Callable[[NotificationDispatcher], DispatchResult | None]
    ) -> None:
        try:
            result = send(self._dispatcher)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Ошибка отправки уведомления")
            result = DispatchResult(False, str(exc))
        if result is not None and not result.success:
            with self._lock:
                self.warnings.append(f"Email notification failed: {result.message}")

    # ─────────────────────────── локальное хранилище ───────────────────────────

    def _persist_clients(self) -> None:
        self._store.save_clients([c.to_local() for c in self.clients])

    def _persist_serves(self) -> None:
        self._store.save_serves([s.to_local() for s in self.serves])


def _parse_cached(items: list[dict], parser: Callable[[dict], Any], label: str) -> list:
    """Разобрать записи кэша, пропуская повреждённые."""
    parsed = []
    for item in items:
        try:
            parsed.append(parser(item))
        except (KeyError, ValueError, TypeError, AttributeError) as exc:
            logger.warning("⚠️ Пропущена повреждённая запись (%s): %r", label, exc)
    return parsed


__all__ = ["OperationResult", "ServeSession"]
