"""
가사/메타데이터 공유 상태.
엔진이 유일한 쓰기 주체이고, 렌더러는 다른 스레드에서 스냅샷을 읽거나 구독합니다.

레코드(MediaInfo, LyricInfo)는 불변 객체로 통째로 교체되므로
읽는 쪽은 항상 한 번의 쓰기로 완성된 값만 보게 됩니다.
"""

import logging
from typing import Callable, Optional

from core.channel import Channel, Subscription
from core.models import LyricInfo, MediaInfo, ServiceStatus

logger = logging.getLogger(__name__)


class LyricStore:
    """명시적으로 생성해 주입하는 공유 상태 (싱글톤 아님)"""

    def __init__(self) -> None:
        self.media: Channel[Optional[MediaInfo]] = Channel("media", None)
        self.lyric: Channel[Optional[LyricInfo]] = Channel("lyric", None)
        self.playing: Channel[bool] = Channel("playing", False)
        self.status: Channel[ServiceStatus] = Channel("status", ServiceStatus.ACTIVE)

    # ── 쓰기 ──────────────────────────────────────────────────────────────────

    def set_media_info(self, title: str, artist: str, package_id: str, duration_ms: int = 0) -> MediaInfo:
        info = MediaInfo(title=title, artist=artist, package_id=package_id, duration_ms=max(0, duration_ms))
        logger.info("메타데이터: %s - %s [%s]", title, artist, package_id)
        self.media.publish(info)
        return info

    def set_lyric_info(self, lyric: str, source_app: str) -> LyricInfo:
        """가사 갱신. 가사가 들어왔다는 것은 재생 중이라는 뜻이므로 재생 플래그도 켭니다."""
        info = LyricInfo(lyric=lyric, source_app=source_app)
        self.lyric.publish(info)
        self.set_playing_flag(True)
        return info

    def clear_lyric_info(self) -> None:
        """표시 중인 가사 철회 (연주곡 등)"""
        self.lyric.publish(None)

    def set_playing_flag(self, playing: bool) -> None:
        self.playing.publish(bool(playing))

    def set_status(self, status: ServiceStatus) -> None:
        if self.status.value is not status:
            logger.info("서비스 상태: %s", status.value)
        self.status.publish(status)

    # ── 읽기 ──────────────────────────────────────────────────────────────────

    @property
    def media_info(self) -> Optional[MediaInfo]:
        return self.media.value

    @property
    def lyric_info(self) -> Optional[LyricInfo]:
        return self.lyric.value

    @property
    def is_playing(self) -> bool:
        return self.playing.value

    @property
    def service_status(self) -> ServiceStatus:
        return self.status.value

    # ── 구독 ──────────────────────────────────────────────────────────────────

    def observe_media(self, callback: Callable[[Optional[MediaInfo]], None]) -> Subscription:
        return self.media.subscribe(callback)

    def observe_lyric(self, callback: Callable[[Optional[LyricInfo]], None]) -> Subscription:
        return self.lyric.subscribe(callback)

    def observe_playing(self, callback: Callable[[bool], None]) -> Subscription:
        return self.playing.subscribe(callback)

    def observe_status(self, callback: Callable[[ServiceStatus], None]) -> Subscription:
        return self.status.subscribe(callback)
