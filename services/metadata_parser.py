"""
세션 메타데이터 정규화 모듈.
원본 (제목, 아티스트, 패키지 ID)를 표시용 (제목, 아티스트, 가사?)로 변환합니다.

일부 앱(QQ Music, Mi Music 등)은 차량 블루투스 표시용으로
제목 필드에 현재 가사를, 아티스트 필드에 "곡 제목 - 아티스트"를 넣어 보냅니다.
"""

import logging
from typing import Iterable, Optional

from core.constants import (
    APP_NAME_KEYWORDS,
    CAR_PROTOCOL_KEYWORDS,
    DEFAULT_APP_NAME,
    SPACED_SEPARATOR,
    TIGHT_SEPARATOR,
    UNKNOWN_ARTIST,
    UNKNOWN_TITLE,
)
from core.models import FieldOrder, ParsedMetadata, ParserRule

logger = logging.getLogger(__name__)


def get_app_name(package_id: Optional[str]) -> str:
    """패키지 ID → 표시용 앱 이름"""
    if not package_id:
        return DEFAULT_APP_NAME
    lowered = package_id.lower()
    for keyword, name in APP_NAME_KEYWORDS:
        if keyword in lowered:
            return name
    return package_id


def split_auto(raw_artist: str) -> Optional[tuple[str, str]]:
    """
    자동 구분자로 "곡 제목 - 아티스트" 분할

    - " - " 가 있으면 마지막 위치 ("Anti-Hero - Taylor Swift" 보호)
    - 없고 "-" 가 있으면 첫 위치 ("Song-HOYO-MiX" → "Song", "HOYO-MiX")

    Returns:
        (앞부분, 뒷부분) 또는 구분자가 없으면 None
    """
    if SPACED_SEPARATOR in raw_artist:
        index = raw_artist.rfind(SPACED_SEPARATOR)
        offset = len(SPACED_SEPARATOR)
    elif TIGHT_SEPARATOR in raw_artist:
        index = raw_artist.find(TIGHT_SEPARATOR)
        offset = len(TIGHT_SEPARATOR)
    else:
        return None
    return raw_artist[:index].strip(), raw_artist[index + offset:].strip()


def split_with_separator(raw_artist: str, separator: str) -> Optional[tuple[str, str]]:
    """지정 구분자의 첫 위치에서 분할"""
    index = raw_artist.find(separator)
    if index == -1:
        return None
    return raw_artist[:index].strip(), raw_artist[index + len(separator):].strip()


class MetadataParser:
    """세션 메타데이터 파서 (상태 없음, 규칙 목록만 보관)"""

    def __init__(self, rules: Optional[Iterable[ParserRule]] = None) -> None:
        self._rules: dict[str, ParserRule] = {}
        self.set_rules(rules or [])

    def set_rules(self, rules: Iterable[ParserRule]) -> None:
        self._rules = {rule.package_id: rule for rule in rules if rule.enabled}

    def rule_for(self, package_id: str) -> Optional[ParserRule]:
        """
        차량 프로토콜 규칙 조회.
        명시 규칙이 우선이고, 없으면 알려진 벤더 계열이면 자동 규칙을 돌려줍니다.
        """
        rule = self._rules.get(package_id)
        if rule is not None:
            return rule if rule.uses_car_protocol else None

        lowered = package_id.lower()
        if any(keyword in lowered for keyword in CAR_PROTOCOL_KEYWORDS):
            return ParserRule(package_id)
        return None

    def parse(
        self,
        raw_title: Optional[str],
        raw_artist: Optional[str],
        package_id: str,
    ) -> ParsedMetadata:
        """
        메타데이터 정규화

        Args:
            raw_title: 세션이 보고한 제목 (None 가능)
            raw_artist: 세션이 보고한 아티스트 (None 가능)
            package_id: 세션 앱 ID

        Returns:
            ParsedMetadata. 차량 프로토콜로 분할에 성공했을 때만 lyric이 채워집니다.
        """
        title = raw_title.strip() if raw_title and raw_title.strip() else UNKNOWN_TITLE
        artist = raw_artist.strip() if raw_artist and raw_artist.strip() else UNKNOWN_ARTIST
        source_app = get_app_name(package_id)

        rule = self.rule_for(package_id)
        if rule is None or not raw_artist:
            return ParsedMetadata(title, artist, None, source_app)

        if rule.separator:
            parts = split_with_separator(raw_artist, rule.separator)
        else:
            parts = split_auto(raw_artist)

        if parts is None:
            logger.debug("구분자 없음, 기본 처리: %r", raw_artist)
            return ParsedMetadata(title, artist, None, source_app)

        first, second = parts
        if rule.field_order is FieldOrder.ARTIST_TITLE:
            first, second = second, first

        if not first:
            logger.debug("분할 결과 제목이 비어 있음, 기본 처리: %r", raw_artist)
            return ParsedMetadata(title, artist, None, source_app)

        lyric = raw_title if raw_title and raw_title.strip() else None
        logger.debug("차량 프로토콜 감지 [%s]: 제목=%s, 아티스트=%s", package_id, first, second)
        return ParsedMetadata(first, second or UNKNOWN_ARTIST, lyric, source_app)
