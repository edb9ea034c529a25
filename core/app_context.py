"""Контекст приложения и управление зависимостями."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, ClassVar

from peewee import PostgresqlDatabase

from config import Settings, get_settings
from core.session import ServeSession
from database.db import db
from database.init import REALTIME_TABLES
from infrastructure.functions_gateway import FunctionsGateway
from infrastructure.local_store import LocalStore
from infrastructure.realtime_listener import RealtimeListener
from infrastructure.storage_gateway import StorageGateway
from services.notification_service import NotificationDispatcher
from services.sync_service import ReconciliationService, SyncScheduler

logger = logging.getLogger(__name__)

DependencyName = str


def _postgres_connect(database: PostgresqlDatabase) -> Callable[[], Any]:
    """Отдельное соединение psycopg2 для ``LISTEN`` (вне пула peewee)."""

    def connect():
        import psycopg2

        return psycopg2.connect(dbname=database.database, **database.connect_params)

    return connect


class AppContext:
    """Контекст приложения с ленивым созданием зависимостей."""

    _DEPENDENCY_NAMES: ClassVar[set[str]] = {
        "local_store",
        "storage_gateway",
        "functions_gateway",
        "notification_dispatcher",
        "session",
        "reconciliation_service",
        "sync_scheduler",
        "realtime_listener",
    }

    def __init__(
        self,
        settings: Settings,
        *,
        overrides: dict[str, Any] | None = None,
        instances: dict[str, Any] | None = None,
    ) -> None:
        self._settings = settings
        self._overrides: dict[str, Any] = dict(overrides or {})
        self._instances: dict[str, Any] = dict(instances or {})
        self._started = False

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def local_store(self) -> LocalStore:
        return self._get_dependency(
            "local_store",
            lambda: LocalStore.open(self._settings.local_store_path),
        )

    @property
    def storage_gateway(self) -> StorageGateway:
        return self._get_dependency(
            "storage_gateway", lambda: StorageGateway(self._settings)
        )

    @property
    def functions_gateway(self) -> FunctionsGateway:
        return self._get_dependency(
            "functions_gateway", lambda: FunctionsGateway(self._settings)
        )

    @property
    def notification_dispatcher(self) -> NotificationDispatcher | None:
        def build() -> NotificationDispatcher | None:
            if not self._settings.supabase_url or not self._settings.supabase_key:
                logger.warning("✉️ SUPABASE_URL не задан — уведомления отключены")
                return None
            return NotificationDispatcher(
                self.functions_gateway, self._settings.email_function
            )

        return self._get_dependency("notification_dispatcher", build)

    @property
    def session(self) -> ServeSession:
        return self._get_dependency(
            "session",
            lambda: ServeSession(
                self.local_store,
                self.storage_gateway,
                self.notification_dispatcher,
            ),
        )

    @property
    def reconciliation_service(self) -> ReconciliationService:
        return self._get_dependency(
            "reconciliation_service",
            lambda: ReconciliationService(self._settings, self.session),
        )

    @property
    def sync_scheduler(self) -> SyncScheduler:
        return self._get_dependency(
            "sync_scheduler",
            lambda: SyncScheduler(
                self.reconciliation_service.reconcile_now,
                self._settings.sync_interval,
            ),
        )

    @property
    def realtime_listener(self) -> RealtimeListener | None:
        def build() -> RealtimeListener | None:
            database = getattr(db, "obj", None)
            if not isinstance(database, PostgresqlDatabase):
                logger.info("📡 Realtime недоступен для %s", type(database).__name__)
                return None
            scheduler = self.sync_scheduler
            return RealtimeListener(
                _postgres_connect(database),
                self._settings.realtime_channel,
                lambda table, op: scheduler.trigger(f"{table}:{op}"),
                tables=REALTIME_TABLES,
            )

        return self._get_dependency("realtime_listener", build)

    # ─────────────────────────── жизненный цикл ───────────────────────────

    def start(self) -> None:
        """Поднять состояние из кэша и запустить фоновую синхронизацию."""
        if self._started:
            return
        session = self.session
        session.hydrate()
        scheduler = self.sync_scheduler
        session.trigger_sync = scheduler.trigger
        scheduler.start()
        listener = self.realtime_listener
        if listener is not None:
            listener.start()
        self._started = True
        logger.info("🚀 Синхронизация запущена (интервал %s с)", self._settings.sync_interval)

    def stop(self) -> None:
        """Остановить подписки и фоновые задачи, освободить ресурсы."""
        if not self._started:
            return
        listener = self._instances.get("realtime_listener") or self._overrides.get(
            "realtime_listener"
        )
        if listener is not None:
            listener.stop(timeout=5)
        self.sync_scheduler.stop(timeout=5)
        self.session.trigger_sync = None
        self.session.close()
        for name in ("storage_gateway", "functions_gateway"):
            gateway = self._instances.get(name)
            if gateway is not None:
                gateway.close()
        store = self._instances.get("local_store")
        if store is not None:
            store.close()
        self._started = False
        logger.info("🛑 Синхронизация остановлена")

    def override(self, **deps: Any) -> "AppContext":
        """Создать новый контекст с переопределёнными зависимостями."""

        override_args = dict(deps)
        new_settings = override_args.pop("settings", self._settings)

        unknown = set(override_args) - self._DEPENDENCY_NAMES
        if unknown:
            names = ", ".join(sorted(unknown))
            raise ValueError(f"Неизвестные зависимости для переопределения: {names}")

        overrides = dict(self._overrides)
        overrides.update(override_args)
        if new_settings is self._settings:
            instances = {
                key: value
                for key, value in self._instances.items()
                if key not in override_args
            }
        else:
            instances = {}
        return AppContext(
            settings=new_settings,
            overrides=overrides,
            instances=instances,
        )

    def _get_dependency(
        self, name: DependencyName, factory: Callable[[], Any]
    ) -> Any:
        if name in self._overrides:
            return self._overrides[name]
        if name not in self._instances:
            self._instances[name] = factory()
        return self._instances[name]


def build_app_context(settings: Settings | None = None) -> AppContext:
    """Создать контекст приложения с настройками по умолчанию."""

    return AppContext(settings=settings or get_settings())


__all__ = ["AppContext", "build_app_context"]
