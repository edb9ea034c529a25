import logging
import signal
import threading

from config import Settings, get_settings
from core.app_context import build_app_context
from database.init import init_from_env
from utils.logging_config import setup_logging

__all__ = ["main"]


def main(settings: Settings | None = None) -> int:
    """Запускает агент синхронизации ServeTracker до SIGINT/SIGTERM."""

    settings = settings or get_settings()
    if not settings.database_url:
        raise RuntimeError("DATABASE_URL не задан в .env")

    init_from_env(settings.database_url)
    setup_logging(settings)
    logger = logging.getLogger(__name__)

    stop_event = threading.Event()

    def _handle_signal(signum, frame):
        logger.info("Получен сигнал %s, завершаем работу", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    context = build_app_context(settings)
    context.start()
    try:
        stop_event.wait()
    finally:
        context.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
