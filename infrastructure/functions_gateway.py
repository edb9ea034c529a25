"""Вызов Edge Functions Supabase."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from infrastructure.supabase_http import RemoteServiceError, SupabaseHttpGateway


@dataclass
class FunctionsGateway(SupabaseHttpGateway):
    """Удалённый вызов функции с JSON-телом."""

    def invoke(self, name: str, body: dict[str, Any]) -> dict[str, Any]:
        """Вызвать функцию ``name`` и вернуть JSON-ответ.

        Функция ``send-email`` при ошибке отвечает ``{"success": false, "error": ...}``
        со статусом 500 — такой ответ превращается в :class:`RemoteServiceError`.
        """
        response = self._request("POST", f"/functions/v1/{name}", json=body)
        try:
            data = response.json()
        except ValueError as exc:
            raise RemoteServiceError(f"Некорректный ответ функции {name}") from exc
        if not isinstance(data, dict):
            raise RemoteServiceError(f"Некорректный ответ функции {name}")
        if data.get("success") is False:
            raise RemoteServiceError(str(data.get("error") or data.get("message")))
        return data


__all__ = ["FunctionsGateway"]
