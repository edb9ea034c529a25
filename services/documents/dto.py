from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from database.models import ClientDocument
from utils.time_utils import ensure_utc


@dataclass
class DocumentDTO:
    id: str
    file_name: str
    file_path: str
    client_id: str | None = None
    case_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, doc: ClientDocument) -> "DocumentDTO":
        return cls(
            id=doc.id,
            file_name=doc.file_name,
            file_path=doc.file_path,
            client_id=doc.client_id,
            case_id=doc.case_id,
            description=doc.description,
            created_at=ensure_utc(doc.created_at) if doc.created_at else None,
        )
