"""Built-in message sets shown over the photo slides.

A message set holds one message list per supported photo count. The first
photo carries the intro slide, so a set for N photos has N - 1 messages.
"""

from typing import Optional
from pydantic import BaseModel, Field

from .invitation import MIN_PHOTOS, MAX_PHOTOS


class MessageSet(BaseModel):
    """A named family of slide messages keyed by photo count."""
    id: str
    name: str
    messages: dict[int, list[str]] = Field(default_factory=dict)

    def for_photo_count(self, count: int) -> Optional[list[str]]:
        return self.messages.get(count)


def _expand(body: list[str], closing: str) -> dict[int, list[str]]:
    # N photos -> the first N - 2 body lines followed by the closing line.
    return {
        count: body[:count - 2] + [closing]
        for count in range(MIN_PHOTOS, MAX_PHOTOS + 1)
    }


BUILTIN_MESSAGE_SETS: dict[str, MessageSet] = {
    "classic": MessageSet(
        id="classic",
        name="클래식",
        messages=_expand(
            body=[
                "서로 다른 길을 걸어온 두 사람이\n이제 같은 길을 걸어가려 합니다.",
                "처음 만난 그날처럼\n설레는 마음으로",
                "함께한 계절들이 모여\n하나의 약속이 되었습니다.",
                "웃음도, 눈물도\n함께 나누며 살겠습니다.",
                "서로의 가장 좋은 친구로\n평생을 걸어가겠습니다.",
                "저희의 새로운 시작을\n축복해 주세요.",
                "소중한 분들을 모시고\n사랑을 약속합니다.",
                "귀한 걸음 하시어\n자리를 빛내 주세요.",
            ],
            closing="감사합니다.\n행복하게 잘 살겠습니다.",
        ),
    ),
    "warm": MessageSet(
        id="warm",
        name="따뜻한",
        messages=_expand(
            body=[
                "봄날의 햇살처럼\n따뜻한 사람을 만났습니다.",
                "매일이 새로운\n우리의 이야기",
                "작은 순간들이 쌓여\n큰 사랑이 되었어요.",
                "손을 맞잡고\n같은 곳을 바라봅니다.",
                "앞으로의 모든 날을\n함께하기로 했습니다.",
                "사랑으로 키워주신\n부모님께 감사드립니다.",
                "저희 두 사람의 첫걸음에\n함께해 주세요.",
                "그 자리에 오셔서\n축하해 주시면 큰 기쁨이겠습니다.",
            ],
            closing="오래오래\n예쁘게 살겠습니다.",
        ),
    ),
}


class MessageCatalog(BaseModel):
    """Lookup over the available message sets."""
    sets: dict[str, MessageSet] = Field(
        default_factory=lambda: {k: v.model_copy(deep=True) for k, v in BUILTIN_MESSAGE_SETS.items()}
    )

    def get(self, set_id: str) -> Optional[MessageSet]:
        return self.sets.get(set_id)

    def ids(self) -> set[str]:
        return set(self.sets)

    def list_sets(self) -> list[dict]:
        return [
            {
                "id": s.id,
                "name": s.name,
                "photo_counts": sorted(s.messages),
            }
            for s in self.sets.values()
        ]
