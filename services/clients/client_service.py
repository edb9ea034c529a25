"""Сервисный модуль для управления клиентами."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from peewee import PeeweeException

from database.models import Client, db
from infrastructure.storage_gateway import StorageGateway
from infrastructure.supabase_http import RemoteServiceError
from services.cases.case_service import delete_cases_for_client
from services.documents.document_service import delete_documents_for_client
from services.serves.serve_service import delete_serves_for_client
from services.validators import (
    normalize_email,
    normalize_full_name,
    normalize_phone,
    validate_additional_emails,
    validate_client_fields,
)

from .dto import ClientCreateCommand, ClientDTO, ClientUpdateCommand

logger = logging.getLogger(__name__)

CLIENT_ALLOWED_FIELDS = {
    "name",
    "email",
    "additional_emails",
    "phone",
    "address",
    "notes",
}


class ClientNotFoundError(LookupError):
    """Ошибка отсутствия клиента по запрошенному идентификатору."""


@dataclass
class CascadeFailure:
    step: str
    item_id: str | None
    error: str


@dataclass
class CascadeResult:
    """Итог каскадного удаления клиента: что удалено и что не получилось."""

    client_id: str
    deleted: dict[str, int] = field(default_factory=dict)
    failures: list[CascadeFailure] = field(default_factory=list)
    client_deleted: bool = False

    @property
    def complete(self) -> bool:
        return self.client_deleted and not self.failures

    def summary(self) -> str:
        parts = [f"{step}: {count}" for step, count in self.deleted.items()]
        text = ", ".join(parts) or "nothing deleted"
        if self.failures:
            text += f"; {len(self.failures)} step(s) failed"
        return text


# ──────────────────────────── Получение ─────────────────────────────


def get_all_clients() -> list[ClientDTO]:
    """Вернуть всех клиентов, отсортированных по имени."""
    return [ClientDTO.from_model(c) for c in Client.select().order_by(Client.name.asc())]


def get_client_by_id(client_id: str) -> ClientDTO | None:
    """Получить клиента по его идентификатору."""
    client = Client.get_or_none(Client.id == client_id)
    return ClientDTO.from_model(client) if client else None


# ──────────────────────────── Добавление ─────────────────────────────


def _clean(data: dict) -> dict:
    if "name" in data:
        data["name"] = normalize_full_name(data["name"])
    if "email" in data:
        data["email"] = normalize_email(data["email"]) or None
    if data.get("phone"):
        data["phone"] = normalize_phone(data["phone"])
    if "additional_emails" in data:
        data["additional_emails"] = validate_additional_emails(
            data.get("email"), data["additional_emails"] or []
        )
    return data


def create_client(command: ClientCreateCommand) -> ClientDTO:
    """Создать и вернуть нового клиента. Идентификатор задаётся на клиенте."""
    validate_client_fields(
        name=command.name,
        email=command.email,
        phone=command.phone,
        address=command.address,
    )
    data = _clean(command.to_payload())
    client_id = command.id or str(uuid.uuid4())

    with db.atomic():
        Client.insert(id=client_id, **data).execute()

    logger.info("👤 Создан клиент %s (%s)", data["name"], client_id)
    return get_client_by_id(client_id)


# ──────────────────────────── Обновление ─────────────────────────────


def update_client(command: ClientUpdateCommand) -> ClientDTO:
    """Обновить данные клиента; идентификатор не меняется."""
    client = Client.get_or_none(Client.id == command.id)
    if client is None:
        raise ClientNotFoundError(f"Клиент id={command.id} не найден")

    updates = {
        k: v for k, v in command.to_payload().items() if k in CLIENT_ALLOWED_FIELDS
    }
    validate_client_fields(
        name=updates.get("name", client.name),
        email=updates.get("email", client.email),
        phone=updates.get("phone"),
        address=updates.get("address"),
    )
    if "email" in updates and "additional_emails" not in updates:
        updates["additional_emails"] = list(client.additional_emails or [])
    if "additional_emails" in updates and "email" not in updates:
        updates["email"] = client.email
    updates = _clean(updates)

    if not updates:
        return ClientDTO.from_model(client)

    logger.info("✏️ Обновление клиента %s: %s", client.id, sorted(updates))
    for key, value in updates.items():
        setattr(client, key, value)
    client.save()
    return ClientDTO.from_model(client)


# ──────────────────────────── Удаление ─────────────────────────────


def delete_client_cascade(storage: StorageGateway, client_id: str) -> CascadeResult:
    """Удалить клиента и все зависимые записи.

    Порядок: попытки вручения → документы (файл, затем строка) → дела →
    сам клиент. Каждый шаг выполняется независимо: ошибка одного шага
    записывается в результат и не прерывает следующие. Отката нет.
    """
    result = CascadeResult(client_id=client_id)

    try:
        deleted, failures = delete_serves_for_client(client_id)
        result.deleted["serve_attempts"] = deleted
        result.failures += [CascadeFailure("serve_attempts", i, e) for i, e in failures]
    except PeeweeException as exc:
        logger.error("❌ Не удалось получить попытки клиента %s: %s", client_id, exc)
        result.failures.append(CascadeFailure("serve_attempts", None, str(exc)))

    try:
        deleted, failures = delete_documents_for_client(storage, client_id)
        result.deleted["documents"] = deleted
        result.failures += [CascadeFailure("documents", i, e) for i, e in failures]
    except (PeeweeException, RemoteServiceError) as exc:
        logger.error("❌ Не удалось получить документы клиента %s: %s", client_id, exc)
        result.failures.append(CascadeFailure("documents", None, str(exc)))

    try:
        result.deleted["cases"] = delete_cases_for_client(client_id)
    except PeeweeException as exc:
        result.failures.append(CascadeFailure("cases", None, str(exc)))

    try:
        removed = Client.delete().where(Client.id == client_id).execute()
        result.deleted["clients"] = removed
        result.client_deleted = removed > 0
        if removed:
            logger.info("🗑 Клиент %s удалён: %s", client_id, result.summary())
        else:
            logger.warning("❗ Клиент %s не найден для удаления", client_id)
            result.failures.append(CascadeFailure("clients", client_id, "Client not found"))
    except PeeweeException as exc:
        logger.error("❌ Ошибка удаления клиента %s: %s", client_id, exc)
        result.failures.append(CascadeFailure("clients", client_id, str(exc)))

    return result


__all__ = [
    "ClientNotFoundError",
    "CascadeFailure",
    "CascadeResult",
    "get_all_clients",
    "get_client_by_id",
    "create_client",
    "update_client",
    "delete_client_cascade",
]
