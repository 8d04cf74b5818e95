"""Invitation lifecycle: publish, load, delete, and expiry cleanup."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Sequence

from .config import AppConfig
from .invitation import InvitationData
from .messages import MessageCatalog
from .playback import Slide
from .slide_builder import build_slides
from ..stores.invitation_store import InvitationStore, validate_invitation_id
from ..stores.media_store import MediaStore, compress_image
from ..stores.orders import OrderError, OrderRegistry

logger = logging.getLogger("StoryInvitation.service")

DAY_MS = 24 * 60 * 60 * 1000


class InvitationNotFoundError(LookupError):
    def __init__(self, invitation_id: str):
        self.invitation_id = invitation_id
        super().__init__(f"Invitation '{invitation_id}' not found")


def now_ms() -> int:
    return int(time.time() * 1000)


def media_namespace(invitation_id: str) -> str:
    return f"invitations/{invitation_id}"


@dataclass
class PublishResult:
    invitation_id: str
    url: str
    image_urls: list[str]
    expires_at: Optional[int] = None


@dataclass
class CleanupReport:
    deleted_ids: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        payload = {
            "success": True,
            "deletedCount": len(self.deleted_ids),
            "deletedIds": self.deleted_ids,
            "timestamp": self.timestamp,
        }
        if self.errors:
            payload["errors"] = self.errors
        return payload


class InvitationService:
    """Coordinates the invitation store, media store, and order registry."""

    def __init__(self, store: InvitationStore, media: MediaStore,
                 orders: Optional[OrderRegistry] = None,
                 config: Optional[AppConfig] = None,
                 catalog: Optional[MessageCatalog] = None):
        self.store = store
        self.media = media
        self.orders = orders
        self.config = config or AppConfig()
        self.catalog = catalog or MessageCatalog()

    @classmethod
    def from_config(cls, config: AppConfig) -> "InvitationService":
        return cls(
            store=InvitationStore(config.invitations_dir),
            media=MediaStore(config.media_dir, config.media_url),
            orders=OrderRegistry.load(config.orders_path),
            config=config,
        )

    def share_url(self, invitation_id: str) -> str:
        return f"{self.config.public_url.rstrip('/')}/{invitation_id}"

    def publish(self, invitation_id: str, data: InvitationData, photos: Sequence[bytes],
                order_id: Optional[str] = None, overwrite: bool = False,
                compress: bool = True) -> PublishResult:
        """Validate, upload photos, persist, and return the share URL."""
        validate_invitation_id(invitation_id)
        if self.store.exists(invitation_id) and not overwrite:
            raise ValueError(f"Invitation '{invitation_id}' already exists")

        data.validate_for_publish(self.catalog.ids(), photo_count=len(photos))

        if self.config.require_order:
            if not order_id:
                raise OrderError("An approved order number is required")
            if self.orders is None:
                raise OrderError("Order registry is not available")
            order = self.orders.find(order_id)
            if order is None or order.used:
                raise OrderError(f"Order {order_id} is not approved or already used")

        # Encode every photo before storage is touched; a bad photo must leave
        # an existing invitation intact.
        payloads = [compress_image(photo) if compress else photo for photo in photos]

        namespace = media_namespace(invitation_id)
        self.media.delete_namespace(namespace)
        urls = [
            self.media.upload(namespace, payload, filename=f"photo_{i:02d}.jpg")
            for i, payload in enumerate(payloads)
        ]

        created = now_ms()
        record = data.model_copy(deep=True)
        record.image_urls = urls
        record.created_at = created
        record.expires_at = created + self.config.retention_days * DAY_MS if self.config.retention_days > 0 else None
        self.store.save(invitation_id, record)

        if self.config.require_order:
            self.orders.redeem(order_id, invitation_id)

        logger.info(f"Published invitation {invitation_id} with {len(urls)} photos")
        return PublishResult(
            invitation_id=invitation_id,
            url=self.share_url(invitation_id),
            image_urls=urls,
            expires_at=record.expires_at,
        )

    def load(self, invitation_id: str) -> InvitationData:
        data = self.store.get(invitation_id)
        if data is None:
            raise InvitationNotFoundError(invitation_id)
        return data

    def load_slides(self, invitation_id: str) -> list[Slide]:
        return build_slides(self.load(invitation_id), self.catalog)

    def delete(self, invitation_id: str) -> bool:
        """Remove photos first, then the document."""
        if not self.store.exists(invitation_id):
            return False
        self.media.delete_namespace(media_namespace(invitation_id))
        return self.store.delete(invitation_id)

    def cleanup_expired(self, now: Optional[int] = None) -> CleanupReport:
        """Delete every expired invitation; failures are reported, not raised."""
        now = now_ms() if now is None else now
        report = CleanupReport()
        for invitation_id, _ in self.store.list_expired(now):
            try:
                self.delete(invitation_id)
                report.deleted_ids.append(invitation_id)
                logger.info(f"Deleted expired invitation: {invitation_id}")
            except OSError as e:
                logger.error(f"Error deleting invitation {invitation_id}: {e}")
                report.errors.append(f"{invitation_id}: {e}")
        return report
