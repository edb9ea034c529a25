import json
from datetime import datetime
from enum import Enum

from peewee import (
    CharField,
    DateTimeField,
    IntegerField,
    Model,
    TextField,
)

from database.db import db


class JSONTextField(TextField):
    """JSON, сохранённый в текстовой колонке (работает и в SQLite, и в PostgreSQL)."""

    def db_value(self, value):
        if value is None:
            return None
        return json.dumps(value, ensure_ascii=False)

    def python_value(self, value):
        if value is None or value == "":
            return None
        if isinstance(value, (dict, list)):
            return value
        return json.loads(value)


class BaseModel(Model):
    class Meta:
        database = db


class ServeStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


SERVE_STATUS_LABELS = {
    ServeStatus.COMPLETED.value: "Served",
    ServeStatus.FAILED.value: "No Answer",
}


class CaseStatus(str, Enum):
    PENDING = "pending"
    ATTEMPTED = "attempted"
    SERVED = "served"
    CANCELED = "canceled"


class Client(BaseModel):
    id = CharField(primary_key=True)
    name = CharField(index=True)
    email = CharField(null=True)
    additional_emails = JSONTextField(null=True)
    phone = CharField(null=True)
    address = TextField(null=True)
    notes = TextField(null=True)
    created_at = DateTimeField(default=datetime.utcnow)

    class Meta:
        table_name = "clients"

    def __str__(self) -> str:
        return self.name


class ServeAttempt(BaseModel):
    id = CharField(primary_key=True)
    client_id = CharField(index=True)
    case_number = CharField(null=True, index=True)
    status = CharField(default=ServeStatus.FAILED.value)
    notes = TextField(null=True)
    coordinates = JSONTextField(null=True)
    timestamp = DateTimeField(default=datetime.utcnow, index=True)
    image_data = TextField(null=True)
    attempt_number = IntegerField(default=1)

    class Meta:
        table_name = "serve_attempts"


class ClientCase(BaseModel):
    id = CharField(primary_key=True)
    client_id = CharField(index=True)
    case_number = CharField()
    case_name = CharField(null=True)
    defendant_name = CharField(null=True)
    service_address = TextField(null=True)
    status = CharField(default=CaseStatus.PENDING.value)
    created_at = DateTimeField(default=datetime.utcnow)

    class Meta:
        table_name = "client_cases"

    def __str__(self) -> str:
        return f"{self.case_number} — {self.case_name or ''}".strip(" —")


class ClientDocument(BaseModel):
    id = CharField(primary_key=True)
    client_id = CharField(null=True, index=True)
    case_id = CharField(null=True, index=True)
    file_name = CharField()
    file_path = CharField()
    description = TextField(null=True)
    created_at = DateTimeField(default=datetime.utcnow)

    class Meta:
        table_name = "client_documents"
