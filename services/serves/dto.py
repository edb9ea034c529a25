"""DTO попыток вручения и перевод имён полей wire ↔ память."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from database.models import SERVE_STATUS_LABELS, ServeAttempt, ServeStatus
from utils.gps import coordinates_from_mapping
from utils.time_utils import ensure_utc, parse_iso, to_iso, to_naive_utc, utc_now

# snake_case в удалённой таблице → camelCase в локальном хранилище
WIRE_TO_MEMORY = {
    "client_id": "clientId",
    "case_number": "caseNumber",
    "image_data": "imageData",
    "attempt_number": "attemptNumber",
}
MEMORY_TO_WIRE = {v: k for k, v in WIRE_TO_MEMORY.items()}


def wire_to_memory(row: Mapping[str, Any]) -> dict[str, Any]:
    """Переименовать ключи строки таблицы в имена локального хранилища."""
    return {WIRE_TO_MEMORY.get(k, k): v for k, v in row.items()}


def memory_to_wire(item: Mapping[str, Any]) -> dict[str, Any]:
    return {MEMORY_TO_WIRE.get(k, k): v for k, v in item.items()}


def generate_serve_id() -> str:
    """Запасной идентификатор для записей кэша без ``id``."""
    return f"serve-{int(time.time() * 1000)}"


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str) and value:
        return parse_iso(value)
    return utc_now()


@dataclass
class ServeAttemptDTO:
    id: str
    client_id: str
    case_number: str | None = None
    status: str = ServeStatus.FAILED.value
    notes: str | None = None
    coordinates: dict[str, float] | None = None
    timestamp: datetime = field(default_factory=utc_now)
    image_data: str | None = None
    attempt_number: int = 1

    @property
    def status_label(self) -> str:
        return SERVE_STATUS_LABELS.get(self.status, self.status)

    @classmethod
    def from_model(cls, row: ServeAttempt) -> "ServeAttemptDTO":
        return cls(
            id=row.id,
            client_id=row.client_id,
            case_number=row.case_number,
            status=row.status,
            notes=row.notes,
            coordinates=coordinates_from_mapping(row.coordinates),
            timestamp=_parse_timestamp(row.timestamp),
            image_data=row.image_data,
            attempt_number=row.attempt_number or 1,
        )

    def to_row(self) -> dict[str, Any]:
        """Поля для вставки в таблицу ``serve_attempts``."""
        return {
            "id": self.id,
            "client_id": self.client_id,
            "case_number": self.case_number,
            "status": self.status,
            "notes": self.notes,
            "coordinates": self.coordinates,
            "timestamp": to_naive_utc(self.timestamp),
            "image_data": self.image_data,
            "attempt_number": self.attempt_number,
        }

    def to_local(self) -> dict[str, Any]:
        item = {
            "id": self.id,
            "client_id": self.client_id,
            "case_number": self.case_number or "",
            "status": self.status,
            "notes": self.notes or "",
            "coordinates": self.coordinates,
            "timestamp": to_iso(self.timestamp),
            "image_data": self.image_data,
            "attempt_number": self.attempt_number,
        }
        return wire_to_memory(item)

    @classmethod
    def from_local(cls, data: Mapping[str, Any]) -> "ServeAttemptDTO":
        item = memory_to_wire(data)
        return cls(
            id=str(item.get("id") or generate_serve_id()),
            client_id=str(item.get("client_id") or ""),
            case_number=item.get("case_number") or None,
            status=item.get("status") or ServeStatus.FAILED.value,
            notes=item.get("notes") or None,
            coordinates=coordinates_from_mapping(item.get("coordinates")),
            timestamp=_parse_timestamp(item.get("timestamp")),
            image_data=item.get("image_data"),
            attempt_number=int(item.get("attempt_number") or 1),
        )


@dataclass(frozen=True)
class ServeCreateCommand:
    client_id: str
    case_number: str | None
    status: str
    notes: str | None = None
    coordinates: dict[str, float] | None = None
    timestamp: datetime | None = None
    image_data: str | None = None
    id: str | None = None


@dataclass(frozen=True)
class ServeUpdateCommand:
    """Редактируемые поля: статус, номер дела и заметки."""

    id: str
    status: str | None = None
    case_number: str | None = None
    notes: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.status is not None:
            payload["status"] = self.status
        if self.case_number is not None:
            payload["case_number"] = self.case_number
        if self.notes is not None:
            payload["notes"] = self.notes
        return payload


def sort_newest_first(serves: list[ServeAttemptDTO]) -> list[ServeAttemptDTO]:
    return sorted(serves, key=lambda s: s.timestamp, reverse=True)
