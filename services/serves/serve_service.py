"""Сервисный модуль для попыток вручения в удалённой базе."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Callable

from peewee import PeeweeException, fn

from database.db import db
from database.models import ServeAttempt, ServeStatus
from services.validators import ValidationError
from utils.time_utils import utc_now

from .dto import (
    ServeAttemptDTO,
    ServeCreateCommand,
    ServeUpdateCommand,
)

logger = logging.getLogger(__name__)

DEFAULT_FETCH_RETRIES = 3
DEFAULT_RETRY_DELAY = 0.5

SERVE_STATUSES = {s.value for s in ServeStatus}


class ServeNotFoundError(LookupError):
    """Попытка вручения с указанным идентификатором не найдена."""


def _check_status(status: str) -> None:
    if status not in SERVE_STATUSES:
        raise ValidationError(f"Unknown serve status: {status}", field="status")


# ──────────────────────────── Получение ─────────────────────────────


def fetch_serve_attempts(
    retries: int = DEFAULT_FETCH_RETRIES,
    delay: float = DEFAULT_RETRY_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> list[ServeAttemptDTO]:
    """Получить все попытки вручения, новые первыми.

    Делает до ``retries`` попыток с фиксированной паузой ``delay`` между
    ними; после последней неудачи пробрасывает исключение.
    """
    attempts = max(1, retries)
    for attempt in range(1, attempts + 1):
        try:
            query = ServeAttempt.select().order_by(ServeAttempt.timestamp.desc())
            return [ServeAttemptDTO.from_model(row) for row in query]
        except PeeweeException as exc:
            if attempt == attempts:
                raise
            logger.warning(
                "⚠️ Попытка %s/%s загрузки serve_attempts не удалась: %s",
                attempt,
                attempts,
                exc,
            )
            sleep(delay)
    return []


def get_serve_by_id(serve_id: str) -> ServeAttemptDTO | None:
    row = ServeAttempt.get_or_none(ServeAttempt.id == serve_id)
    return ServeAttemptDTO.from_model(row) if row else None


def get_serves_for_client(client_id: str) -> list[ServeAttemptDTO]:
    query = (
        ServeAttempt.select()
        .where(ServeAttempt.client_id == client_id)
        .order_by(ServeAttempt.timestamp.desc())
    )
    return [ServeAttemptDTO.from_model(row) for row in query]


def count_attempts(client_id: str, case_number: str | None) -> int:
    query = ServeAttempt.select(fn.COUNT(ServeAttempt.id)).where(
        ServeAttempt.client_id == client_id
    )
    if case_number:
        query = query.where(ServeAttempt.case_number == case_number)
    else:
        query = query.where(
            ServeAttempt.case_number.is_null() | (ServeAttempt.case_number == "")
        )
    return query.scalar() or 0


def next_attempt_number(client_id: str, case_number: str | None) -> int:
    """Номер следующей попытки для пары клиент + дело (с единицы)."""
    return count_attempts(client_id, case_number) + 1


# ──────────────────────────── Изменение ─────────────────────────────


def create_serve_attempt(command: ServeCreateCommand) -> ServeAttemptDTO:
    """Создать попытку вручения и вернуть сохранённую запись."""
    if not command.client_id:
        raise ValidationError("Client is required", field="clientId")
    _check_status(command.status)

    with db.atomic():
        serve = ServeAttemptDTO(
            id=command.id or str(uuid.uuid4()),
            client_id=command.client_id,
            case_number=command.case_number or None,
            status=command.status,
            notes=command.notes,
            coordinates=command.coordinates,
            timestamp=command.timestamp or utc_now(),
            image_data=command.image_data,
            attempt_number=next_attempt_number(command.client_id, command.case_number),
        )
        ServeAttempt.insert(**serve.to_row()).execute()

    logger.info(
        "📸 Создана попытка #%s для клиента %s (дело %s)",
        serve.attempt_number,
        serve.client_id,
        serve.case_number,
    )
    return serve


def update_serve_attempt(command: ServeUpdateCommand) -> ServeAttemptDTO:
    """Обновить статус, номер дела и заметки. Фото и координаты неизменны."""
    updates = command.to_payload()
    if "status" in updates:
        _check_status(updates["status"])

    row = ServeAttempt.get_or_none(ServeAttempt.id == command.id)
    if row is None:
        raise ServeNotFoundError(f"Попытка вручения {command.id} не найдена")
    if updates:
        logger.info("✏️ Обновление попытки %s: %s", command.id, updates)
        for key, value in updates.items():
            setattr(row, key, value)
        row.save()
    return ServeAttemptDTO.from_model(row)


def delete_serve_attempt(serve_id: str) -> int:
    """Удалить попытку вручения. Возвращает число удалённых строк."""
    deleted = ServeAttempt.delete().where(ServeAttempt.id == serve_id).execute()
    if deleted:
        logger.info("🗑 Попытка вручения %s удалена", serve_id)
    else:
        logger.warning("❗ Попытка вручения %s не найдена для удаления", serve_id)
    return deleted


def delete_serves_where(condition, label: str) -> tuple[int, list[tuple[str, str]]]:
    """Удалить попытки по условию поштучно.

    Returns:
        tuple: количество удалённых строк и список ``(id, ошибка)`` для неудач.
    """
    ids = [row.id for row in ServeAttempt.select(ServeAttempt.id).where(condition)]
    deleted = 0
    failures: list[tuple[str, str]] = []
    for serve_id in ids:
        try:
            deleted += delete_serve_attempt(serve_id)
        except PeeweeException as exc:
            logger.error("❌ Ошибка удаления попытки %s (%s): %s", serve_id, label, exc)
            failures.append((serve_id, str(exc)))
    return deleted, failures


def delete_serves_for_client(client_id: str) -> tuple[int, list[tuple[str, str]]]:
    return delete_serves_where(
        ServeAttempt.client_id == client_id, f"клиент {client_id}"
    )


__all__ = [
    "ServeNotFoundError",
    "fetch_serve_attempts",
    "get_serve_by_id",
    "get_serves_for_client",
    "count_attempts",
    "next_attempt_number",
    "create_serve_attempt",
    "update_serve_attempt",
    "delete_serve_attempt",
    "delete_serves_where",
    "delete_serves_for_client",
]
