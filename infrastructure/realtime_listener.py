"""Подписка на изменения таблиц через PostgreSQL ``LISTEN/NOTIFY``."""

from __future__ import annotations

import json
import logging
import select
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str, str], None]


def parse_notification(payload: str) -> tuple[str, str] | None:
    """Разобрать полезную нагрузку триггера ``notify_table_change``.

    Возвращает пару ``(table, op)`` или ``None`` для некорректных данных.
    """
    try:
        data = json.loads(payload)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict) or not data.get("table"):
        return None
    return str(data["table"]), str(data.get("op") or "")


class RealtimeListener:
    """Фоновый поток, слушающий канал уведомлений и вызывающий ``on_change``.

    ``connect`` должен вернуть DB-API соединение psycopg2 — для него
    включается autocommit и выполняется ``LISTEN``.

    После обрыва соединения поток ждёт ``reconnect_delay`` секунд и
    подключается заново, пока не вызван :meth:`stop`.
    """

    def __init__(
        self,
        connect: Callable[[], Any],
        channel: str,
        on_change: ChangeCallback,
        *,
        tables: tuple[str, ...] = ("serve_attempts", "clients"),
        poll_timeout: float = 1.0,
        reconnect_delay: float = 5.0,
        name: str = "realtime-listener",
    ) -> None:
        self._connect = connect
        self._channel = channel
        self._on_change = on_change
        self._tables = set(tables)
        self._poll_timeout = poll_timeout
        self._reconnect_delay = reconnect_delay
        self._name = name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            thread = self._thread
            self._stop_event.set()
        if thread is not None:
            thread.join(timeout)
        with self._lock:
            self._thread = None

    def dispatch(self, payload: str) -> bool:
        """Обработать одно уведомление. True, если вызван ``on_change``."""
        parsed = parse_notification(payload)
        if parsed is None:
            logger.debug("Пропущено уведомление: %r", payload)
            return False
        table, op = parsed
        if table not in self._tables:
            return False
        try:
            self._on_change(table, op)
        except Exception:  # noqa: BLE001
            logger.exception("Ошибка обработчика изменений таблицы %s", table)
        return True

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self._listen_once()
            except Exception:  # noqa: BLE001
                logger.exception("📡 Подписка на канал %s прервана", self._channel)
            if self._stop_event.wait(self._reconnect_delay):
                break
            logger.info("📡 Переподключение к каналу %s", self._channel)
        logger.debug("Поток %s завершён", self._name)

    def _listen_once(self) -> None:
        """Одна сессия LISTEN: до остановки или до ошибки соединения."""
        conn = self._connect()
        try:
            conn.autocommit = True
            with conn.cursor() as cur:
                cur.execute(f'LISTEN "{self._channel}"')
            logger.info("📡 Подписка на канал %s", self._channel)
            while not self._stop_event.is_set():
                ready, _, _ = select.select([conn], [], [], self._poll_timeout)
                if not ready:
                    continue
                conn.poll()
                while conn.notifies:
                    notify = conn.notifies.pop(0)
                    self.dispatch(notify.payload)
        finally:
            try:
                conn.close()
            except Exception:  # noqa: BLE001
                logger.debug("Не удалось закрыть соединение LISTEN", exc_info=True)


__all__ = ["RealtimeListener", "parse_notification"]
