from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Mapping

from database.models import Client


@dataclass
class ClientDTO:
    id: str
    name: str
    email: str | None = None
    additional_emails: list[str] = field(default_factory=list)
    phone: str | None = None
    address: str | None = None
    notes: str | None = None

    @property
    def recipients(self) -> list[str]:
        """Основной адрес и дополнительные, без пустых значений."""
        emails = [self.email] if self.email else []
        return emails + [e for e in self.additional_emails if e and e != self.email]

    @classmethod
    def from_model(cls, client: Client) -> "ClientDTO":
        return cls(
            id=client.id,
            name=client.name,
            email=client.email,
            additional_emails=list(client.additional_emails or []),
            phone=client.phone,
            address=client.address,
            notes=client.notes,
        )

    def to_local(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email or "",
            "additionalEmails": list(self.additional_emails),
            "phone": self.phone or "",
            "address": self.address or "",
            "notes": self.notes or "",
        }

    @classmethod
    def from_local(cls, data: Mapping[str, Any]) -> "ClientDTO":
        # старые записи в локальном хранилище могли быть сохранены в snake_case
        additional = data.get("additionalEmails", data.get("additional_emails")) or []
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            email=data.get("email") or None,
            additional_emails=list(additional),
            phone=data.get("phone") or None,
            address=data.get("address") or None,
            notes=data.get("notes") or None,
        )


@dataclass(frozen=True)
class ClientCreateCommand:
    name: str
    email: str | None = None
    additional_emails: tuple[str, ...] = ()
    phone: str | None = None
    address: str | None = None
    notes: str | None = None
    id: str | None = None

    def to_payload(self) -> dict:
        payload: dict[str, object] = {}
        for key, value in asdict(self).items():
            if key == "id":
                continue
            if value in (None, ""):
                continue
            payload[key] = value
        payload["additional_emails"] = list(self.additional_emails)
        return payload


@dataclass(frozen=True)
class ClientUpdateCommand:
    id: str
    name: str | None = None
    email: str | None = None
    additional_emails: tuple[str, ...] | None = None
    phone: str | None = None
    address: str | None = None
    notes: str | None = None

    def to_payload(self) -> dict:
        payload: dict[str, object] = {}
        for key, value in asdict(self).items():
            if key == "id":
                continue
            if value is None:
                continue
            if key == "additional_emails":
                value = list(value)
            payload[key] = value
        return payload
