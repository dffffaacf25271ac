"""
가사 후보 필터.
저장소에 쓰기 전에 연주곡 안내 문구를 걸러내고, 같은 가사의 반복 갱신을 막습니다.
"""

import re
from typing import Optional

from core.constants import INSTRUMENTAL_MARKERS

_INSTRUMENTAL_PATTERN = re.compile(
    "|".join(re.escape(marker) for marker in INSTRUMENTAL_MARKERS),
    re.IGNORECASE,
)


def is_instrumental(text: Optional[str]) -> bool:
    """"가사 없음" 안내 문구인지 확인"""
    return bool(text) and _INSTRUMENTAL_PATTERN.search(text) is not None


class LyricGate:
    """
    직전에 받아들인 가사와 같으면 버립니다.
    비교 기준은 출처 앱이 바뀌면 초기화됩니다.
    """

    def __init__(self) -> None:
        self._last_source: Optional[str] = None
        self._last_lyric: Optional[str] = None

    def accept(self, lyric: str, source: str) -> bool:
        if source != self._last_source:
            self._last_source = source
            self._last_lyric = None

        if lyric == self._last_lyric:
            return False

        self._last_lyric = lyric
        return True

    def reset(self) -> None:
        self._last_source = None
        self._last_lyric = None
