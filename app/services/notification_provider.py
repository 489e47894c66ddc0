from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.orm import Session

from app.core.id_utils import generate_shortuuid
from app.core.observability import automation_logger, log_event
from app.models.notification import SellerNotification


@dataclass(frozen=True)
class NotificationRequest:
    seller_id: str
    message: str
    notification_type: str = "automation"
    entity_type: str | None = None
    entity_id: str | None = None


@dataclass(frozen=True)
class NotificationResult:
    provider: str
    notification_id: str
    status: str


class NotificationProvider(Protocol):
    name: str

    def send(self, db: Session, request: NotificationRequest) -> NotificationResult:
        ...


class SellerInboxProvider:
    """Writes the notification to the seller's inbox table."""

    name = "seller_inbox"

    def send(self, db: Session, request: NotificationRequest) -> NotificationResult:
        notification = SellerNotification(
            id=generate_shortuuid(),
            seller_id=request.seller_id,
            notification_type=request.notification_type,
            message=request.message[:500],
            entity_type=request.entity_type,
            entity_id=request.entity_id,
        )
        db.add(notification)
        db.flush()
        log_event(
            automation_logger,
            "automation_notification",
            provider=self.name,
            seller_id=request.seller_id,
            entity_type=request.entity_type,
            entity_id=request.entity_id,
            message=request.message,
        )
        return NotificationResult(provider=self.name, notification_id=notification.id, status="sent")


class LogOnlyProvider:
    name = "log_only"

    def send(self, db: Session, request: NotificationRequest) -> NotificationResult:
        log_event(
            automation_logger,
            "automation_notification",
            provider=self.name,
            seller_id=request.seller_id,
            entity_type=request.entity_type,
            entity_id=request.entity_id,
            message=request.message,
        )
        return NotificationResult(provider=self.name, notification_id=f"log-{generate_shortuuid()}", status="logged")


_NOTIFICATION_PROVIDERS: dict[str, NotificationProvider] = {
    "seller_inbox": SellerInboxProvider(),
    "log_only": LogOnlyProvider(),
}


def get_notification_provider(name: str) -> NotificationProvider:
    normalized = (name or "").strip().lower()
    provider = _NOTIFICATION_PROVIDERS.get(normalized)
    if not provider:
        available = ", ".join(sorted(_NOTIFICATION_PROVIDERS))
        raise ValueError(f"Unknown notification provider '{name}'. Available: {available}")
    return provider
