"""Валидаторы и нормализаторы входных данных."""

import re
from typing import Sequence

EMAIL_RE = re.compile(r"^\S+@\S+\.\S+$")


class ValidationError(ValueError):
    """Ошибка проверки введённых данных (до любых удалённых вызовов)."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


def is_valid_email(email: str | None) -> bool:
    return bool(email) and bool(EMAIL_RE.match(email.strip()))


def normalize_email(email: str | None) -> str:
    return (email or "").strip()


def normalize_phone(phone: str) -> str:
    """Нормализовать номер телефона, оставив ведущий ``+`` и цифры.

    Args:
        phone: Исходный номер.

    Returns:
        str: Номер без пробелов, скобок и дефисов.

    Raises:
        ValidationError: если цифр меньше десяти.
    """
    text = (phone or "").strip()
    digits = re.sub(r"\D", "", text)
    if len(digits) < 10:
        raise ValidationError("Please enter a valid phone number", field="phone")
    return ("+" if text.startswith("+") else "") + digits


def normalize_full_name(name: str) -> str:
    """Схлопывает повторяющиеся пробелы в имени."""
    return " ".join(part for part in re.split(r"\s+", (name or "").strip()) if part)


def validate_client_fields(
    *,
    name: str | None,
    email: str | None = None,
    phone: str | None = None,
    address: str | None = None,
) -> None:
    """Проверить поля формы клиента, как это делает форма ввода."""
    if name is None or len(normalize_full_name(name)) < 2:
        raise ValidationError("Name must be at least 2 characters", field="name")
    if email and not is_valid_email(email):
        raise ValidationError("Please enter a valid email", field="email")
    if phone:
        normalize_phone(phone)
    if address is not None and address != "" and len(address.strip()) < 5:
        raise ValidationError("Address must be at least 5 characters", field="address")


def add_additional_email(
    additional: Sequence[str], primary: str | None, new_email: str
) -> list[str]:
    """Вернуть новый список дополнительных адресов с ``new_email`` в конце.

    Исходная последовательность не изменяется; при ошибке бросается
    :class:`ValidationError`.
    """
    candidate = normalize_email(new_email)
    if not candidate:
        raise ValidationError("Email cannot be empty", field="additionalEmails")
    if not is_valid_email(candidate):
        raise ValidationError(
            "Please enter a valid email address", field="additionalEmails"
        )
    if candidate in additional or candidate == normalize_email(primary):
        raise ValidationError("This email is already added", field="additionalEmails")
    return [*additional, candidate]


def remove_additional_email(additional: Sequence[str], index: int) -> list[str]:
    items = list(additional)
    if 0 <= index < len(items):
        items.pop(index)
    return items


def validate_additional_emails(primary: str | None, emails: Sequence[str]) -> list[str]:
    """Проверить весь список целиком (при сохранении клиента)."""
    result: list[str] = []
    for email in emails:
        result = add_additional_email(result, primary, email)
    return result
