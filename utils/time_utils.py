from datetime import datetime, timezone

DISPLAY_FORMAT = "%m/%d/%Y, %I:%M:%S %p"


def utc_now() -> datetime:
    """Текущий момент в UTC (aware)."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Привести дату к aware-UTC; наивные значения считаются UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_naive_utc(value: datetime) -> datetime:
    """Наивный UTC для хранения в peewee ``DateTimeField``."""
    return ensure_utc(value).replace(tzinfo=None)


def to_iso(value: datetime) -> str:
    return ensure_utc(value).isoformat().replace("+00:00", "Z")


def parse_iso(text: str) -> datetime:
    """Разобрать ISO-строку (в том числе с суффиксом ``Z``) в aware-UTC."""
    text = text.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def display_str(value: datetime) -> str:
    return ensure_utc(value).strftime(DISPLAY_FORMAT)
