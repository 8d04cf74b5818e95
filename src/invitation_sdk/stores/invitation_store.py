"""File-backed invitation documents, one JSON file per invitation id."""

import json
import logging
import re
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..core.invitation import InvitationData

logger = logging.getLogger("StoryInvitation.stores.invitations")

# Route segments that can never be invitation ids.
RESERVED_IDS = {"create", "admin", "api", "invitation", "media", "static"}
_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def validate_invitation_id(invitation_id: str) -> str:
    if not invitation_id or not _ID_PATTERN.match(invitation_id):
        raise ValueError(f"Invalid invitation id '{invitation_id}'")
    if invitation_id.lower() in RESERVED_IDS:
        raise ValueError(f"Invitation id '{invitation_id}' is reserved")
    return invitation_id


class InvitationStore:
    """Reads and writes invitation documents under ``root``."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _path(self, invitation_id: str) -> Path:
        return self.root / f"{validate_invitation_id(invitation_id)}.json"

    def exists(self, invitation_id: str) -> bool:
        return self._path(invitation_id).exists()

    def get(self, invitation_id: str) -> Optional[InvitationData]:
        """Load an invitation. Returns None if it doesn't exist."""
        path = self._path(invitation_id)
        if not path.exists():
            return None
        return InvitationData.model_validate_json(path.read_text(encoding="utf-8"))

    def save(self, invitation_id: str, data: InvitationData) -> InvitationData:
        """Create or replace the document for ``invitation_id``."""
        path = self._path(invitation_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(data.to_document(), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        logger.info(f"Saved invitation {invitation_id}")
        return data

    def delete(self, invitation_id: str) -> bool:
        path = self._path(invitation_id)
        if not path.exists():
            return False
        path.unlink()
        logger.info(f"Deleted invitation {invitation_id}")
        return True

    def list_invitations(self) -> list[tuple[str, InvitationData]]:
        """All readable invitations, newest first by creation time."""
        if not self.root.exists():
            return []
        items = []
        for path in self.root.glob("*.json"):
            try:
                items.append((path.stem, InvitationData.model_validate_json(path.read_text(encoding="utf-8"))))
            except (ValidationError, ValueError) as e:
                logger.warning(f"Skipping unreadable invitation {path.name}: {e}")
        items.sort(key=lambda item: item[1].created_at or 0, reverse=True)
        return items

    def list_expired(self, now_ms: int) -> list[tuple[str, InvitationData]]:
        return [(i, d) for i, d in self.list_invitations() if d.is_expired(now_ms)]
