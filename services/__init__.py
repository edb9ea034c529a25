"""Пакет прикладных сервисов.

Подмодули не импортируются на уровне пакета: сервисы клиентов, попыток
вручения и синхронизации тянут за собой модели peewee и httpx-шлюзы.

Импортируйте нужные подмодули напрямую, например:
    from services.serves import serve_service
    from services.sync_service import ReconciliationService
"""

__all__: list[str] = []
