"""Email-уведомления об изменениях попыток вручения.

Письма отправляются удалённой функцией ``send-email``: один вызов на
получателя, получатели обрабатываются параллельно. Ошибка отправки никогда
не откатывает и не блокирует изменение, ради которого письмо отправлялось.
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Sequence

from database.models import SERVE_STATUS_LABELS
from infrastructure.functions_gateway import FunctionsGateway
from services.clients.dto import ClientDTO
from services.serves.dto import ServeAttemptDTO
from utils.gps import coordinates_from_mapping, google_maps_url
from utils.time_utils import display_str

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = re.compile(r"^data:image/(png|jpeg|jpg);base64,")
SIGNATURE = "---\nThis is an automated message from ServeTracker."


@dataclass
class RecipientResult:
    recipient: str
    success: bool
    message: str
    id: str | None = None


@dataclass
class DispatchResult:
    success: bool
    message: str
    results: list[RecipientResult] = field(default_factory=list)

    @property
    def failed_recipients(self) -> list[str]:
        return [r.recipient for r in self.results if not r.success]


def prepare_image(image_data: str | None) -> tuple[str | None, str | None]:
    """Отрезать префикс data URL и определить формат изображения.

    Returns:
        tuple: base64 без префикса и ``"png"``/``"jpeg"`` (или ``(None, None)``).
    """
    if not image_data:
        return None, None
    image_format = "png" if image_data.startswith("data:image/png") else "jpeg"
    return DATA_URL_PREFIX.sub("", image_data, count=1), image_format


def _location_lines(coordinates: Mapping[str, Any] | None) -> list[str]:
    coords = coordinates_from_mapping(coordinates)
    if not coords:
        return []
    lat, lon = coords["latitude"], coords["longitude"]
    return [
        f"GPS Coordinates: {lat}, {lon}",
        f"Location Link: {google_maps_url(lat, lon)}",
    ]


# ─────────────────────────── тексты писем ───────────────────────────


def create_serve_email_body(
    client_name: str,
    address: str | None,
    notes: str | None,
    timestamp: datetime,
    coordinates: Mapping[str, Any] | None,
    attempt_number: int,
) -> str:
    lines = [
        f"Process Serve Attempt #{attempt_number}",
        "",
        f"Client: {client_name}",
        f"Address: {address or ''}",
        f"Date: {display_str(timestamp)}",
        *_location_lines(coordinates),
        "",
        "Notes:",
        notes or "",
        "",
        SIGNATURE,
    ]
    return "\n".join(lines)


def create_update_notification_email(
    client_name: str,
    case_number: str | None,
    serve_date: datetime,
    old_status: str,
    new_status: str,
    notes: str | None = None,
) -> str:
    lines = [
        "Serve Attempt Updated",
        "",
        f"Client: {client_name}",
        f"Case: {case_number or ''}",
        f"Serve Date: {display_str(serve_date)}",
        f'Status: Changed from "{old_status}" to "{new_status}"',
    ]
    if notes:
        lines += ["", f"Notes: {notes}"]
    lines += ["", SIGNATURE]
    return "\n".join(lines)


def create_delete_notification_email(
    client_name: str,
    case_number: str | None,
    serve_date: datetime,
    delete_reason: str | None = None,
) -> str:
    lines = [
        "Serve Attempt Deleted",
        "",
        f"Client: {client_name}",
        f"Case: {case_number or ''}",
        f"Original Serve Date: {display_str(serve_date)}",
    ]
    if delete_reason:
        lines += ["", f"Reason for deletion: {delete_reason}"]
    lines += [
        "",
        "This serve attempt has been permanently removed from the system.",
        "",
        SIGNATURE,
    ]
    return "\n".join(lines)


# ─────────────────────────── отправка ───────────────────────────


class NotificationDispatcher:
    """Отправка писем через удалённую функцию с отчётом по каждому адресу."""

    def __init__(
        self,
        gateway: FunctionsGateway,
        function_name: str = "send-email",
        max_workers: int = 4,
    ) -> None:
        self._gateway = gateway
        self._function_name = function_name
        self._max_workers = max(1, max_workers)

    def send_email(
        self,
        to: str | Sequence[str],
        subject: str,
        body: str,
        image_data: str | None = None,
        coordinates: Mapping[str, Any] | None = None,
    ) -> DispatchResult:
        """Отправить письмо каждому получателю.

        Адрес без ``@`` сразу считается неудачей и не отправляется; остальные
        получатели всё равно обрабатываются. Повторных попыток нет.
        """
        recipients = [to] if isinstance(to, str) else list(to)
        if not recipients:
            return DispatchResult(False, "No recipients")

        image, image_format = prepare_image(image_data)
        payload: dict[str, Any] = {"subject": subject, "body": body}
        if image:
            payload["imageData"] = image
            payload["imageFormat"] = image_format
        coords = coordinates_from_mapping(coordinates)
        if coords:
            payload["coordinates"] = {
                "latitude": coords["latitude"],
                "longitude": coords["longitude"],
                "accuracy": coords.get("accuracy"),
            }

        logger.info("✉️ Отправка письма «%s» получателям: %s", subject, recipients)
        workers = min(self._max_workers, len(recipients))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="email") as pool:
            results = list(
                pool.map(
                    lambda r: self._send_one(r, payload, has_image=bool(image)),
                    recipients,
                )
            )

        failed = [r.recipient for r in results if not r.success]
        if failed:
            message = (
                f"Failed to send email to {len(failed)} recipient(s): {', '.join(failed)}"
            )
            logger.warning("⚠️ %s", message)
            return DispatchResult(False, message, results)
        return DispatchResult(
            True, f"Email sent to {len(recipients)} recipient(s)", results
        )

    def _send_one(self, recipient: str, payload: dict[str, Any], has_image: bool) -> RecipientResult:
        if not recipient or "@" not in recipient:
            return RecipientResult(
                recipient, False, f"Invalid recipient email address: {recipient}"
            )
        try:
            data = self._gateway.invoke(self._function_name, {"to": recipient, **payload})
        except Exception as exc:  # noqa: BLE001
            logger.error("❌ Ошибка отправки письма %s: %s", recipient, exc)
            return RecipientResult(recipient, False, str(exc) or "Failed to send email")
        suffix = " with image attachment" if has_image else ""
        return RecipientResult(
            recipient,
            True,
            data.get("message") or f"Email sent to {recipient}{suffix}",
            id=data.get("id"),
        )

    # ─────────────────────── события попыток ───────────────────────

    def notify_new_serve(
        self, client: ClientDTO, serve: ServeAttemptDTO, address: str | None = None
    ) -> DispatchResult:
        body = create_serve_email_body(
            client.name,
            address or client.address,
            serve.notes,
            serve.timestamp,
            serve.coordinates,
            serve.attempt_number,
        )
        subject = f"Serve Attempt #{serve.attempt_number}"
        if serve.case_number:
            subject = f"Case #{serve.case_number} - {subject}"
        return self.send_email(
            client.recipients, subject, body, serve.image_data, serve.coordinates
        )

    def notify_status_change(
        self, client: ClientDTO, before: ServeAttemptDTO, after: ServeAttemptDTO
    ) -> DispatchResult | None:
        """Письмо о смене статуса; ``None``, если статус не менялся."""
        if before.status == after.status:
            return None
        body = create_update_notification_email(
            client.name,
            after.case_number,
            after.timestamp,
            SERVE_STATUS_LABELS.get(before.status, before.status),
            SERVE_STATUS_LABELS.get(after.status, after.status),
            after.notes,
        )
        return self.send_email(
            client.recipients,
            f"Serve Attempt Updated - {after.case_number or ''}".rstrip(" -"),
            body,
        )

    def notify_deletion(
        self, client: ClientDTO, serve: ServeAttemptDTO, reason: str | None = None
    ) -> DispatchResult:
        body = create_delete_notification_email(
            client.name, serve.case_number, serve.timestamp, reason
        )
        return self.send_email(
            client.recipients,
            f"Serve Attempt Deleted - {serve.case_number or ''}".rstrip(" -"),
            body,
        )


__all__ = [
    "RecipientResult",
    "DispatchResult",
    "NotificationDispatcher",
    "prepare_image",
    "create_serve_email_body",
    "create_update_notification_email",
    "create_delete_notification_email",
]
