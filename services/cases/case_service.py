"""Сервисный модуль для дел (client_cases)."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from peewee import PeeweeException

from database.models import CaseStatus, ClientCase, ClientDocument, ServeAttempt
from infrastructure.storage_gateway import StorageGateway
from services.documents.document_service import delete_documents_where
from services.serves.serve_service import delete_serves_where
from services.validators import ValidationError

from .dto import CaseCreateCommand, CaseDTO

logger = logging.getLogger(__name__)

CASE_ALLOWED_FIELDS = {
    "case_number",
    "case_name",
    "defendant_name",
    "service_address",
    "status",
}
CASE_STATUSES = {s.value for s in CaseStatus}


class CaseNotFoundError(LookupError):
    """Дело не найдено."""


# ──────────────────────────── Получение ─────────────────────────────


def get_cases(client_id: str | None = None) -> list[CaseDTO]:
    query = ClientCase.select()
    if client_id:
        query = query.where(ClientCase.client_id == client_id)
    query = query.order_by(ClientCase.created_at.desc())
    return [CaseDTO.from_model(c) for c in query]


def get_case(case_id: str) -> CaseDTO:
    case = ClientCase.get_or_none(ClientCase.id == case_id)
    if case is None:
        raise CaseNotFoundError(f"Дело {case_id} не найдено")
    return CaseDTO.from_model(case)


def search_cases(text: str) -> list[CaseDTO]:
    """Поиск по названию дела и адресу вручения, без дубликатов."""
    text = (text or "").strip()
    if not text:
        return []
    by_name = ClientCase.select().where(ClientCase.case_name.contains(text))
    by_address = ClientCase.select().where(ClientCase.service_address.contains(text))
    seen: dict[str, CaseDTO] = {}
    for case in list(by_name) + list(by_address):
        seen.setdefault(case.id, CaseDTO.from_model(case))
    return list(seen.values())


# ──────────────────────────── Изменение ─────────────────────────────


def create_case(command: CaseCreateCommand) -> CaseDTO:
    if not command.client_id:
        raise ValidationError("Client is required", field="clientId")
    if not (command.case_number or "").strip():
        raise ValidationError("Case number is required", field="caseNumber")

    case_id = str(uuid.uuid4())
    ClientCase.insert(
        id=case_id,
        client_id=command.client_id,
        case_number=command.case_number.strip(),
        case_name=command.case_name,
        defendant_name=command.defendant_name,
        service_address=command.service_address,
        status=CaseStatus.PENDING.value,
    ).execute()
    logger.info("📂 Создано дело %s для клиента %s", command.case_number, command.client_id)
    return get_case(case_id)


def update_case(case_id: str, **kwargs: Any) -> CaseDTO:
    updates = {k: v for k, v in kwargs.items() if k in CASE_ALLOWED_FIELDS and v is not None}
    if "status" in updates and updates["status"] not in CASE_STATUSES:
        raise ValidationError(f"Unknown case status: {updates['status']}", field="status")

    case = ClientCase.get_or_none(ClientCase.id == case_id)
    if case is None:
        raise CaseNotFoundError(f"Дело {case_id} не найдено")
    if updates:
        logger.info("✏️ Обновление дела %s: %s", case_id, updates)
        for key, value in updates.items():
            setattr(case, key, value)
        case.save()
    return CaseDTO.from_model(case)


def update_case_status(case_id: str, status: str) -> CaseDTO:
    return update_case(case_id, status=status)


# ──────────────────────────── Удаление ─────────────────────────────


def delete_case(storage: StorageGateway, case_id: str) -> list[tuple[str, str]]:
    """Удалить дело вместе с его попытками вручения и документами.

    Returns:
        list: неудачные зависимые удаления ``(id, ошибка)``.
    """
    case = ClientCase.get_or_none(ClientCase.id == case_id)
    if case is None:
        raise CaseNotFoundError(f"Дело {case_id} не найдено")

    label = f"дело {case.case_number}"
    _, serve_failures = delete_serves_where(
        (ServeAttempt.client_id == case.client_id)
        & (ServeAttempt.case_number == case.case_number),
        label,
    )
    _, doc_failures = delete_documents_where(
        storage, ClientDocument.case_id == case_id, label
    )
    case.delete_instance()
    logger.info("🗑 Дело %s удалено", case_id)
    return serve_failures + doc_failures


def delete_cases_for_client(client_id: str) -> int:
    """Удалить все дела клиента одним запросом."""
    try:
        deleted = ClientCase.delete().where(ClientCase.client_id == client_id).execute()
    except PeeweeException:
        logger.error("❌ Ошибка удаления дел клиента %s", client_id)
        raise
    logger.info("🗑 Удалено дел клиента %s: %s", client_id, deleted)
    return deleted


__all__ = [
    "CaseNotFoundError",
    "get_cases",
    "get_case",
    "search_cases",
    "create_case",
    "update_case",
    "update_case_status",
    "delete_case",
    "delete_cases_for_client",
]
