"""Документы клиентов и дел: файл в хранилище + строка метаданных."""

from __future__ import annotations

import logging
import uuid

from peewee import PeeweeException

from database.models import ClientDocument
from infrastructure.storage_gateway import StorageGateway, sanitize_object_name
from infrastructure.supabase_http import RemoteServiceError
from services.validators import ValidationError

from .dto import DocumentDTO

logger = logging.getLogger(__name__)


class DocumentNotFoundError(LookupError):
    """Документ не найден."""


def _build_path(owner_id: str, file_name: str) -> str:
    return f"{owner_id}/{uuid.uuid4().hex[:8]}-{sanitize_object_name(file_name)}"


def upload_document(
    storage: StorageGateway,
    file_name: str,
    content: bytes,
    *,
    client_id: str | None = None,
    case_id: str | None = None,
    description: str | None = None,
    content_type: str | None = None,
) -> DocumentDTO:
    """Загрузить файл и создать строку метаданных.

    Если вставка строки не удалась, загруженный файл удаляется, чтобы
    в хранилище не оставалось сирот.
    """
    if not client_id and not case_id:
        raise ValidationError("Document must belong to a client or a case")
    if not file_name:
        raise ValidationError("File name is required", field="fileName")

    path = storage.upload(_build_path(case_id or client_id, file_name), content, content_type)
    doc_id = str(uuid.uuid4())
    try:
        ClientDocument.insert(
            id=doc_id,
            client_id=client_id,
            case_id=case_id,
            file_name=file_name,
            file_path=path,
            description=description,
        ).execute()
    except PeeweeException:
        logger.error("❌ Не удалось сохранить метаданные %s — удаляем файл", path)
        try:
            storage.remove([path])
        except RemoteServiceError:
            logger.exception("Файл %s остался в хранилище без метаданных", path)
        raise

    logger.info("📎 Документ %s загружен (%s)", file_name, path)
    return DocumentDTO.from_model(ClientDocument.get_by_id(doc_id))


def get_documents(
    *, client_id: str | None = None, case_id: str | None = None
) -> list[DocumentDTO]:
    query = ClientDocument.select()
    if client_id:
        query = query.where(ClientDocument.client_id == client_id)
    if case_id:
        query = query.where(ClientDocument.case_id == case_id)
    query = query.order_by(ClientDocument.created_at.desc())
    return [DocumentDTO.from_model(doc) for doc in query]


def document_url(storage: StorageGateway, document: DocumentDTO) -> str:
    return storage.public_url(document.file_path)


def delete_document(storage: StorageGateway, document_id: str) -> None:
    """Удалить файл, затем строку метаданных.

    Если удалить файл не удалось, строка сохраняется — по ней файл можно
    будет найти и удалить повторно.
    """
    doc = ClientDocument.get_or_none(ClientDocument.id == document_id)
    if doc is None:
        raise DocumentNotFoundError(f"Документ {document_id} не найден")
    if doc.file_path:
        storage.remove([doc.file_path])
    doc.delete_instance()
    logger.info("🗑 Документ %s удалён", document_id)


def delete_documents_where(
    storage: StorageGateway, condition, label: str
) -> tuple[int, list[tuple[str, str]]]:
    """Удалить документы по условию, каждый — файл перед строкой."""
    deleted = 0
    failures: list[tuple[str, str]] = []
    for doc in list(ClientDocument.select().where(condition)):
        try:
            delete_document(storage, doc.id)
            deleted += 1
        except (RemoteServiceError, PeeweeException) as exc:
            logger.error("❌ Ошибка удаления документа %s (%s): %s", doc.id, label, exc)
            failures.append((doc.id, str(exc)))
    return deleted, failures


def delete_documents_for_client(
    storage: StorageGateway, client_id: str
) -> tuple[int, list[tuple[str, str]]]:
    return delete_documents_where(
        storage, ClientDocument.client_id == client_id, f"клиент {client_id}"
    )


__all__ = [
    "DocumentNotFoundError",
    "upload_document",
    "get_documents",
    "document_url",
    "delete_document",
    "delete_documents_where",
    "delete_documents_for_client",
]
