"""Invitation record models.

Stored JSON uses camelCase keys (``groomName``, ``imageUrls``...) so records
written by earlier versions of the product load unchanged; Python code uses
the snake_case attribute names.
"""

import uuid
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MIN_PHOTOS = 6
MAX_PHOTOS = 10


class InvitationValidationError(ValueError):
    """Raised when an invitation is not complete enough to publish."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("; ".join(problems))


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AccountInfo(_Record):
    """A gift account shown on the details page."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: Literal["groom", "bride"] = "groom"
    relationship: str = ""
    name: str = ""
    bank_name: str = ""
    account_number: str = ""


class TransportationInfo(_Record):
    """A directions note (subway, bus, parking...)."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: str = ""
    description: str = ""


class Place(_Record):
    """A venue returned by place search."""
    name: str
    address: str = ""
    road_address: str = ""
    lat: float
    lng: float


class InvitationData(_Record):
    """Everything needed to render one invitation."""
    groom_name: str = ""
    bride_name: str = ""
    groom_english_last_name: str = ""
    groom_english_first_name: str = ""
    bride_english_last_name: str = ""
    bride_english_first_name: str = ""
    groom_father_name: str = ""
    groom_mother_name: str = ""
    bride_father_name: str = ""
    bride_mother_name: str = ""
    wedding_date: str = ""  # YYYY-MM-DD
    wedding_time: str = ""  # HH:MM
    wedding_location: str = ""
    wedding_hall: str = ""
    wedding_address: str = ""
    wedding_lat: Optional[float] = None
    wedding_lng: Optional[float] = None
    transportation_infos: list[TransportationInfo] = Field(default_factory=list)
    message_set_id: str = ""
    accounts: list[AccountInfo] = Field(default_factory=list)
    image_urls: list[str] = Field(default_factory=list)
    created_at: Optional[int] = None  # epoch ms
    expires_at: Optional[int] = None  # epoch ms

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)

    # ── Editing helpers ─────────────────────────────────────────────────

    def add_account(self, type: str = "groom", **fields) -> AccountInfo:
        account = AccountInfo(type=type, **fields)
        self.accounts.append(account)
        return account

    def remove_account(self, account_id: str) -> bool:
        original_len = len(self.accounts)
        self.accounts = [a for a in self.accounts if a.id != account_id]
        return len(self.accounts) < original_len

    def add_transportation(self, title: str = "", description: str = "") -> TransportationInfo:
        info = TransportationInfo(title=title, description=description)
        self.transportation_infos.append(info)
        return info

    def remove_transportation(self, info_id: str) -> bool:
        original_len = len(self.transportation_infos)
        self.transportation_infos = [t for t in self.transportation_infos if t.id != info_id]
        return len(self.transportation_infos) < original_len

    def apply_place(self, place: Place) -> None:
        """Fill the venue fields from a place search result."""
        self.wedding_location = place.name
        self.wedding_address = place.road_address or place.address
        self.wedding_lat = place.lat
        self.wedding_lng = place.lng

    def reorder_images(self, from_index: int, to_index: int) -> bool:
        """Move one photo to a new position (drag and drop)."""
        n = len(self.image_urls)
        if from_index == to_index or not (0 <= from_index < n and 0 <= to_index < n):
            return False
        url = self.image_urls.pop(from_index)
        self.image_urls.insert(to_index, url)
        return True

    # ── Lifecycle ───────────────────────────────────────────────────────

    def is_expired(self, now_ms: int) -> bool:
        return self.expires_at is not None and self.expires_at <= now_ms

    def validate_for_publish(self, known_message_sets: Optional[set[str]] = None,
                             photo_count: Optional[int] = None) -> None:
        """Check the rules the creation form enforces; raise on any failure.

        ``photo_count`` overrides ``len(image_urls)`` for invitations whose
        photos have not been uploaded yet.
        """
        problems = []
        if not self.groom_name.strip():
            problems.append("groom name is required")
        if not self.bride_name.strip():
            problems.append("bride name is required")
        if not self.wedding_date.strip():
            problems.append("wedding date is required")
        count = len(self.image_urls) if photo_count is None else photo_count
        if count < MIN_PHOTOS or count > MAX_PHOTOS:
            problems.append(f"between {MIN_PHOTOS} and {MAX_PHOTOS} photos are required (got {count})")
        if known_message_sets is not None and self.message_set_id not in known_message_sets:
            problems.append(f"unknown message set '{self.message_set_id}'")
        if problems:
            raise InvitationValidationError(problems)


def time_options() -> list[str]:
    """Wedding time choices in 30-minute steps."""
    return [f"{h:02d}:{m:02d}" for h in range(24) for m in (0, 30)]
