"""Конфигурация логирования агента синхронизации."""

import logging
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

from config import Settings, get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)-16s | %(name)s │ %(message)s"
_BASE64_IMAGE = re.compile(r"(data:image/[a-z]+;base64,)[A-Za-z0-9+/=]{16,}")


class PeeweeFilter(logging.Filter):
    """Фильтрует SELECT-запросы peewee (фоновая синхронизация делает их постоянно)."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 - short doc
        """True, если SQL-запрос не начинается с ``SELECT``."""
        msg = getattr(record, "sql", None) or record.getMessage()
        return not str(msg).lstrip().upper().startswith("SELECT")


class RedactingFilter(logging.Filter):
    """Сокращает base64-фото и скрывает ключ API в тексте сообщения."""

    def __init__(self, secrets: tuple[str, ...] = ()):
        super().__init__()
        self._secrets = tuple(s for s in secrets if s)

    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage()
        redacted = _BASE64_IMAGE.sub(r"\1…", msg)
        for secret in self._secrets:
            redacted = redacted.replace(secret, "***")
        if redacted != msg:
            record.msg, record.args = redacted, None
        return True


def _build_handlers(settings: Settings, level: int) -> list[logging.Handler]:
    logs_dir = Path(settings.log_dir).expanduser()
    logs_dir.mkdir(parents=True, exist_ok=True)

    fmt = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    redact = RedactingFilter((settings.supabase_key,))
    handlers: list[logging.Handler] = [
        RotatingFileHandler(
            logs_dir / "serve_tracker.log",
            maxBytes=2_000_000,  # 2 MB
            backupCount=3,
            encoding="utf-8",
        ),
        logging.StreamHandler(),
    ]
    for handler in handlers:
        handler.setFormatter(fmt)
        handler.setLevel(level)
        handler.addFilter(redact)
    return handlers


def setup_logging(settings: Settings | None = None) -> None:
    """Настраивает вывод логов в консоль и файл ``serve_tracker.log``."""
    settings = settings or get_settings()
    level = logging.DEBUG if settings.detailed_logging else getattr(
        logging, settings.log_level, logging.INFO
    )

    logging.basicConfig(level=level, handlers=_build_handlers(settings, level), force=True)

    # httpx пишет каждый запрос на INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    if not settings.detailed_logging:
        logging.getLogger("peewee").addFilter(PeeweeFilter())
