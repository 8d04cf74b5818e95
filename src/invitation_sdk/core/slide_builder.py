"""Turns an invitation record into the slide sequence the player runs.

Sequence layout:
1. Intro slide on the first photo (names, parents, date, venue).
2. One message slide per message, on photos 2..N.
3. The terminal details page (map links, directions, gift accounts).

An invitation that cannot be shown (photo count outside 6-10, or a known
message set without messages for that count) yields an empty list.
"""

import logging
from datetime import date
from typing import Optional
from urllib.parse import quote

from pydantic import BaseModel, Field

from .invitation import AccountInfo, InvitationData, TransportationInfo, MIN_PHOTOS, MAX_PHOTOS
from .messages import MessageCatalog
from .playback import Slide

logger = logging.getLogger("StoryInvitation.slide_builder")

WEEKDAYS_KO = ["월", "화", "수", "목", "금", "토", "일"]


class IntroContent(BaseModel):
    kind: str = "intro"
    heading: str = "초대합니다"
    groom_line: str
    bride_line: str
    date_text: str
    time_text: str
    location: str
    hall: str = ""


class MessageContent(BaseModel):
    kind: str = "message"
    text: str


class MapLinks(BaseModel):
    lat: float
    lng: float
    kakao_url: str
    naver_url: str


class DetailsContent(BaseModel):
    kind: str = "details"
    location: str = ""
    address: str = ""
    map: Optional[MapLinks] = None
    transportation: list[TransportationInfo] = Field(default_factory=list)
    groom_accounts: list[AccountInfo] = Field(default_factory=list)
    bride_accounts: list[AccountInfo] = Field(default_factory=list)
    restart_label: str = "청첩장 다시보기"


def format_wedding_date(value: str) -> str:
    """``2025-05-03`` -> ``2025년 5월 3일 토요일``."""
    if not value:
        return ""
    try:
        d = date.fromisoformat(value[:10])
    except ValueError:
        return value
    return f"{d.year}년 {d.month}월 {d.day}일 {WEEKDAYS_KO[d.weekday()]}요일"


def parents_line(father: str, mother: str) -> str:
    return " · ".join(p for p in (father, mother) if p)


def _person_line(parents: str, relation: str, role: str, name: str) -> str:
    prefix = f"{parents}의 {relation} " if parents else ""
    return f"{prefix}{role} {name}"


def map_links(location: str, lat: Optional[float], lng: Optional[float]) -> Optional[MapLinks]:
    if not lat or not lng:
        return None
    encoded = quote(location, safe="")
    return MapLinks(
        lat=lat,
        lng=lng,
        kakao_url=f"https://map.kakao.com/link/map/{encoded},{lat},{lng}",
        naver_url=f"https://map.naver.com/v5/search/{encoded}?lat={lat}&lng={lng}",
    )


def build_intro(data: InvitationData) -> IntroContent:
    groom_parents = parents_line(data.groom_father_name, data.groom_mother_name)
    bride_parents = parents_line(data.bride_father_name, data.bride_mother_name)
    return IntroContent(
        groom_line=_person_line(groom_parents, "아들", "신랑", data.groom_name),
        bride_line=_person_line(bride_parents, "딸", "신부", data.bride_name),
        date_text=format_wedding_date(data.wedding_date),
        time_text=data.wedding_time,
        location=data.wedding_location,
        hall=data.wedding_hall,
    )


def build_details(data: InvitationData) -> DetailsContent:
    return DetailsContent(
        location=data.wedding_location,
        address=data.wedding_address,
        map=map_links(data.wedding_location, data.wedding_lat, data.wedding_lng),
        transportation=list(data.transportation_infos),
        groom_accounts=[a for a in data.accounts if a.type == "groom"],
        bride_accounts=[a for a in data.accounts if a.type == "bride"],
    )


def build_slides(data: InvitationData, catalog: Optional[MessageCatalog] = None) -> list[Slide]:
    """Build the full playback sequence, or ``[]`` if it cannot be shown."""
    catalog = catalog or MessageCatalog()
    urls = data.image_urls
    if len(urls) < MIN_PHOTOS or len(urls) > MAX_PHOTOS:
        logger.info(f"Cannot build slides: {len(urls)} photos")
        return []

    # An unknown set still plays the intro and details pages.
    message_set = catalog.get(data.message_set_id)
    messages = message_set.for_photo_count(len(urls)) if message_set else []
    if messages is None:
        logger.info(f"Cannot build slides: no messages in '{data.message_set_id}' for {len(urls)} photos")
        return []

    slides = [Slide(id=1, image_url=urls[0], content=build_intro(data))]
    for i, text in enumerate(messages):
        image_url = urls[i + 1] if i + 1 < len(urls) else None
        slides.append(Slide(id=i + 2, image_url=image_url, content=MessageContent(text=text)))

    slides.append(Slide(id=len(slides) + 1, content=build_details(data), is_terminal=True))
    return slides
