"""Синхронизация удалённой базы с локальным хранилищем.

Удалённая база — источник истины: каждая выборка полностью перезаписывает
локальные коллекции, в том числе пустым списком. Все триггеры (старт,
возврат фокуса, таймер, уведомления об изменениях) сходятся в один
идемпотентный :meth:`ReconciliationService.reconcile_now`.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

from config import Settings
from infrastructure.local_store import LocalStore
from services.clients.client_service import get_all_clients
from services.clients.dto import ClientDTO
from services.serves.dto import ServeAttemptDTO
from services.serves.serve_service import fetch_serve_attempts

logger = logging.getLogger(__name__)


class StateSink(Protocol):
    """Получатель свежих коллекций (сессия приложения)."""

    def apply_serves(self, serves: list[ServeAttemptDTO]) -> None: ...

    def apply_clients(self, clients: list[ClientDTO]) -> None: ...


class StoreSink:
    """Получатель по умолчанию: пишет только в локальное хранилище."""

    def __init__(self, store: LocalStore):
        self._store = store

    def apply_serves(self, serves: list[ServeAttemptDTO]) -> None:
        self._store.save_serves([s.to_local() for s in serves])

    def apply_clients(self, clients: list[ClientDTO]) -> None:
        self._store.save_clients([c.to_local() for c in clients])


@dataclass
class SyncReport:
    serves: int | None = None
    clients: int | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class ReconciliationService:
    """Оркестратор выборки удалённых коллекций в локальное состояние."""

    def __init__(
        self,
        settings: Settings,
        sink: StateSink,
        *,
        fetch_serves: Callable[..., list[ServeAttemptDTO]] = fetch_serve_attempts,
        fetch_clients: Callable[[], list[ClientDTO]] = get_all_clients,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._sink = sink
        self._fetch_serves = fetch_serves
        self._fetch_clients = fetch_clients
        self._sleep = sleep
        self._lock = threading.Lock()

    # ─────────────────────────── публичные методы ───────────────────────────

    def pull_serve_attempts(self) -> list[ServeAttemptDTO] | None:
        """Перезаписать попытки вручения удалённым набором.

        При ошибке возвращает ``None`` и оставляет локальные данные как есть.
        """
        try:
            serves = self._fetch_serves(
                retries=self._settings.fetch_retries,
                delay=self._settings.fetch_retry_delay,
                sleep=self._sleep,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("⚠️ Не удалось загрузить serve_attempts, используем кэш: %s", exc)
            return None
        self._sink.apply_serves(serves)
        logger.debug("🔄 serve_attempts синхронизированы: %s", len(serves))
        return serves

    def pull_clients(self) -> list[ClientDTO] | None:
        try:
            clients = self._fetch_clients()
        except Exception as exc:  # noqa: BLE001
            logger.warning("⚠️ Не удалось загрузить clients, используем кэш: %s", exc)
            return None
        self._sink.apply_clients(clients)
        logger.debug("🔄 clients синхронизированы: %s", len(clients))
        return clients

    def reconcile_now(self) -> SyncReport:
        """Выполнить полную синхронизацию. Безопасно вызывать повторно."""
        with self._lock:
            report = SyncReport()
            clients = self.pull_clients()
            if clients is None:
                report.errors.append("clients")
            else:
                report.clients = len(clients)
            serves = self.pull_serve_attempts()
            if serves is None:
                report.errors.append("serve_attempts")
            else:
                report.serves = len(serves)
            return report


class SyncScheduler:
    """Единая отменяемая задача синхронизации.

    Запускает ``reconcile`` сразу при старте, затем каждые ``interval``
    секунд или раньше — по :meth:`trigger`. Триггеры во время выполнения
    схлопываются в один повторный запуск.
    """

    def __init__(
        self,
        reconcile: Callable[[], object],
        interval: float,
        *,
        name: str = "sync-scheduler",
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._reconcile = reconcile
        self._interval = interval
        self._name = name
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._stop_event.clear()
            self._wake_event.clear()
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()

    def trigger(self, reason: str = "manual") -> None:
        logger.debug("⏰ Внеочередная синхронизация: %s", reason)
        self._wake_event.set()

    def stop(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            thread = self._thread
            self._stop_event.set()
            self._wake_event.set()
        if thread is not None:
            thread.join(timeout)
        with self._lock:
            self._thread = None

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self._reconcile()
            except Exception:  # noqa: BLE001
                logger.exception("Ошибка фоновой синхронизации")
            self.runs += 1
            self._wake_event.wait(self._interval)
            self._wake_event.clear()
        logger.debug("Поток %s завершён", self._name)


__all__ = [
    "StateSink",
    "StoreSink",
    "SyncReport",
    "ReconciliationService",
    "SyncScheduler",
]
