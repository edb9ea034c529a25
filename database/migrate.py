"""Create database tables if they don't exist and install change triggers."""
from config import get_settings

from .init import init_from_env, install_change_triggers, ALL_MODELS
from .db import db


def main() -> None:
    settings = get_settings()
    init_from_env(settings.database_url or None)
    db.create_tables(ALL_MODELS, safe=True)
    install_change_triggers(db.obj, settings.realtime_channel)


if __name__ == "__main__":
    main()
