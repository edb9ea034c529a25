"""Адаптер для работы с файловым хранилищем Supabase Storage."""

from __future__ import annotations

import logging
import mimetypes
import re
import urllib.parse
from dataclasses import dataclass
from typing import Iterable

from infrastructure.supabase_http import SupabaseHttpGateway

logger = logging.getLogger(__name__)


def sanitize_object_name(name: str) -> str:
    """Очистить имя файла от символов, недопустимых в ключе объекта."""

    cleaned = re.sub(r'[<>:"\\|?*\n\r\t#%]', "_", name)
    cleaned = re.sub(r"\s{2,}", " ", cleaned).strip()
    return cleaned.rstrip(" .")


@dataclass
class StorageGateway(SupabaseHttpGateway):
    """Загрузка, удаление и ссылки на файлы в бакете."""

    @property
    def bucket(self) -> str:
        return self.settings.storage_bucket

    def _object_path(self, path: str) -> str:
        return urllib.parse.quote(path.lstrip("/"), safe="/")

    def upload(self, path: str, content: bytes, content_type: str | None = None) -> str:
        """Загрузить файл и вернуть его путь внутри бакета."""

        content_type = (
            content_type
            or mimetypes.guess_type(path)[0]
            or "application/octet-stream"
        )
        self._request(
            "POST",
            f"/storage/v1/object/{self.bucket}/{self._object_path(path)}",
            content=content,
            headers={"Content-Type": content_type, "x-upsert": "false"},
        )
        logger.info("☁️ Загружен файл: %s", path)
        return path

    def remove(self, paths: Iterable[str]) -> int:
        """Удалить файлы из бакета. Возвращает количество переданных путей."""

        prefixes = [p for p in paths if p]
        if not prefixes:
            return 0
        self._request(
            "DELETE",
            f"/storage/v1/object/{self.bucket}",
            json={"prefixes": prefixes},
        )
        logger.info("🗑 Удалено файлов из хранилища: %s", len(prefixes))
        return len(prefixes)

    def public_url(self, path: str) -> str:
        return (
            f"{self.base_url}/storage/v1/object/public/"
            f"{self.bucket}/{self._object_path(path)}"
        )


__all__ = ["StorageGateway", "sanitize_object_name"]
