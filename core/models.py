"""
도메인 데이터 클래스 통합 모듈.
세션 스냅샷, 저장소 레코드, 파서 결과를 한 곳에서 관리합니다.
모든 레코드는 불변(frozen)이며, 갱신은 항상 새 객체로 교체합니다.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


# ── 미디어 세션 ───────────────────────────────────────────────────────────────

class PlaybackState(Enum):
    """세션 재생 상태"""
    PLAYING = "playing"
    PAUSED = "paused"
    OTHER = "other"


@dataclass(frozen=True)
class Session:
    """외부에서 보고된 재생 세션 스냅샷 (앱 하나당 하나)"""
    package_id: str
    state: PlaybackState = PlaybackState.OTHER
    position_ms: int = 0            # 마지막으로 보고된 재생 위치
    position_timestamp_ms: int = 0  # 위치 보고 시각 (monotonic, 밀리초)
    speed: float = 1.0
    raw_title: Optional[str] = None
    raw_artist: Optional[str] = None
    duration_ms: int = 0            # 0 = 알 수 없음

    @property
    def is_playing(self) -> bool:
        return self.state is PlaybackState.PLAYING


# ── 파싱 결과 ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ParsedMetadata:
    """메타데이터 파서가 정규화한 결과"""
    title: str
    artist: str
    lyric: Optional[str]    # 차량 프로토콜일 때만 존재
    source_app: str         # 표시용 앱 이름


class FieldOrder(Enum):
    """구분자로 나눈 두 부분의 순서"""
    TITLE_ARTIST = "TITLE_ARTIST"   # "晴天-周杰伦"
    ARTIST_TITLE = "ARTIST_TITLE"   # "周杰伦-晴天"


@dataclass(frozen=True)
class ParserRule:
    """
    앱별 메타데이터 파싱 규칙.
    separator가 None이면 자동 구분자(" - " 마지막 → "-" 처음)를 사용합니다.
    """
    package_id: str
    enabled: bool = True
    uses_car_protocol: bool = True
    separator: Optional[str] = None
    field_order: FieldOrder = FieldOrder.TITLE_ARTIST


# ── 저장소 레코드 ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MediaInfo:
    """현재 곡 정보 (항상 한 단위로 교체)"""
    title: str
    artist: str
    package_id: str
    duration_ms: int = 0


@dataclass(frozen=True)
class LyricInfo:
    """현재 가사 (항상 한 단위로 교체)"""
    lyric: str
    source_app: str


class ServiceStatus(Enum):
    """렌더러에 노출되는 엔진 상태"""
    ACTIVE = "active"
    DISABLED = "disabled"                       # 마스터 스위치 꺼짐
    PERMISSION_MISSING = "permission_missing"   # 세션 조회 권한 없음


# ── 재생 위치 ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PositionEstimate:
    """추정 재생 위치"""
    position_ms: int
    duration_ms: int

    @property
    def has_duration(self) -> bool:
        """길이를 알 수 없으면 진행률 표시를 생략해야 함"""
        return self.duration_ms > 0

    @property
    def progress(self) -> Optional[float]:
        if not self.has_duration:
            return None
        return min(1.0, max(0.0, self.position_ms / self.duration_ms))

    @property
    def position_str(self) -> str:
        """재생 위치를 MM:SS 형식으로 반환"""
        total_seconds = self.position_ms // 1000
        return f"{total_seconds // 60:02d}:{total_seconds % 60:02d}"


@dataclass(frozen=True)
class ProjectionRefresh:
    """틱마다 렌더러에 전달되는 갱신 묶음"""
    position: PositionEstimate
    lyric: Optional[LyricInfo]
    media: Optional[MediaInfo]
