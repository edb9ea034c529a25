from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from database.models import CaseStatus, ClientCase
from utils.time_utils import ensure_utc


@dataclass
class CaseDTO:
    id: str
    client_id: str
    case_number: str
    case_name: str | None = None
    defendant_name: str | None = None
    service_address: str | None = None
    status: str = CaseStatus.PENDING.value
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, case: ClientCase) -> "CaseDTO":
        return cls(
            id=case.id,
            client_id=case.client_id,
            case_number=case.case_number,
            case_name=case.case_name,
            defendant_name=case.defendant_name,
            service_address=case.service_address,
            status=case.status,
            created_at=ensure_utc(case.created_at) if case.created_at else None,
        )


@dataclass(frozen=True)
class CaseCreateCommand:
    client_id: str
    case_number: str
    case_name: str | None = None
    defendant_name: str | None = None
    service_address: str | None = None
