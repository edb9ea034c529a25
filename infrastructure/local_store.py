"""Локальное key-value хранилище коллекций клиентов и попыток вручения."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from peewee import SqliteDatabase, TextField
from playhouse.kv import KeyValue

logger = logging.getLogger(__name__)

CLIENTS_KEY = "serve-tracker-clients"
SERVES_KEY = "serve-tracker-serves"


class LocalStore:
    """Синхронная пара чтения/записи JSON-списков под фиксированными ключами.

    Схема не версионируется: читатель обязан понимать любые ранее
    сохранённые записи.
    """

    def __init__(self, database: SqliteDatabase):
        self._database = database
        self._kv = KeyValue(
            value_field=TextField(),
            database=database,
            table_name="local_store",
        )

    @classmethod
    def open(cls, path: str | Path) -> "LocalStore":
        """Открыть (или создать) файл локального хранилища."""
        path = str(path)
        if path != ":memory:":
            Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        return cls(SqliteDatabase(path))

    # ─────────────────────────── коллекции ───────────────────────────

    def load_clients(self) -> list[dict[str, Any]]:
        return self._load(CLIENTS_KEY)

    def save_clients(self, clients: list[dict[str, Any]]) -> None:
        self._save(CLIENTS_KEY, clients)

    def load_serves(self) -> list[dict[str, Any]]:
        return self._load(SERVES_KEY)

    def save_serves(self, serves: list[dict[str, Any]]) -> None:
        self._save(SERVES_KEY, serves)

    def clear(self) -> None:
        self._kv.clear()

    def close(self) -> None:
        self._database.close()

    # ─────────────────────────── внутренние ──────────────────────────

    def _load(self, key: str) -> list[dict[str, Any]]:
        raw = self._kv.get(key)
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("⚠️ Повреждённое значение по ключу %s — игнорируем", key)
            return []
        if not isinstance(data, list):
            logger.warning("⚠️ По ключу %s ожидался список, получено %s", key, type(data).__name__)
            return []
        return data

    def _save(self, key: str, items: list[dict[str, Any]]) -> None:
        self._kv[key] = json.dumps(items, ensure_ascii=False)
        logger.debug("💾 %s: сохранено записей %s", key, len(items))


__all__ = ["LocalStore", "CLIENTS_KEY", "SERVES_KEY"]
