"""
Notification sinks for committed approval decisions.

The gateway hands every committed decision to a NotificationSink.  The
kernel ships a sink that writes a structured log event; hosts that send
e-mail or push messages implement their own.
"""

from __future__ import annotations

from procurement_kernel.domain.protocols import DecisionNotification
from procurement_kernel.logging_config import get_logger

logger = get_logger("services.notification")


class LoggingNotificationSink:
    """Emits one ``approval_notification`` log event per decision."""

    def notify(self, notification: DecisionNotification) -> None:
        logger.info(
            "approval_notification",
            extra={
                "entity_type": notification.entity_type.value,
                "entity_id": notification.entity_id,
                "actor_id": notification.actor_id,
                "decision": notification.decision,
                "step_name": notification.step_name,
                "step_order": notification.step_order,
                "status_code": notification.status_code.value,
                "resulting_label": notification.resulting_label,
                "next_step_name": notification.next_step_name,
            },
        )


class RecordingNotificationSink:
    """Keeps notifications in memory, in delivery order."""

    def __init__(self) -> None:
        self.notifications: list[DecisionNotification] = []

    def notify(self, notification: DecisionNotification) -> None:
        self.notifications.append(notification)
