"""
재생 위치 추정 (dead reckoning).
드문드문 보고되는 (위치, 시각, 속도) 표본으로 현재 위치를 계속 외삽하며,
재생 플래그가 켜져 있는 동안만 고정 주기로 틱을 돌립니다.
"""

import logging
import time
from typing import Any, Callable, Optional

from core.constants import PROGRESS_INTERVAL_MS
from core.models import PositionEstimate, Session

logger = logging.getLogger(__name__)


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


def extrapolate(
    last_position_ms: int,
    last_timestamp_ms: int,
    speed: float,
    duration_ms: int,
    now_ms: int,
) -> int:
    """
    현재 위치 = 마지막 위치 + 경과 시간 × 속도, [0, 길이]로 제한.
    길이가 0(알 수 없음)이면 상한을 두지 않습니다.
    """
    position = last_position_ms + int((now_ms - last_timestamp_ms) * speed)
    if duration_ms > 0 and position > duration_ms:
        position = duration_ms
    return max(0, position)


class PositionExtrapolator:
    """
    Args:
        scheduler: schedule(delay_ms, fn) -> handle / cancel(handle) 를 제공하는 객체
        on_tick: 틱마다 추정 위치를 받는 콜백
        clock: 밀리초 monotonic 시계
        interval_ms: 틱 주기
    """

    def __init__(
        self,
        scheduler: Any,
        on_tick: Callable[[PositionEstimate], None],
        clock: Callable[[], int] = monotonic_ms,
        interval_ms: int = PROGRESS_INTERVAL_MS,
    ) -> None:
        self._scheduler = scheduler
        self._on_tick = on_tick
        self._clock = clock
        self._interval_ms = interval_ms

        # ── 표본 ──────────────────────────────────────────────────────────────
        self._has_sample = False
        self._position_ms = 0
        self._timestamp_ms = 0
        self._speed = 1.0
        self._duration_ms = 0

        # ── 틱 ────────────────────────────────────────────────────────────────
        self._tick_handle: Optional[Any] = None
        self._running = False

    # ── 표본 갱신 ─────────────────────────────────────────────────────────────

    def update_sample(self, position_ms: int, timestamp_ms: int, speed: float, duration_ms: int) -> None:
        self._position_ms = position_ms
        self._timestamp_ms = timestamp_ms
        self._speed = speed
        self._duration_ms = max(0, duration_ms)
        self._has_sample = True

    def update_from_session(self, session: Session) -> None:
        self.update_sample(
            session.position_ms,
            session.position_timestamp_ms,
            session.speed,
            session.duration_ms,
        )

    def clear_sample(self) -> None:
        self._has_sample = False

    @property
    def has_sample(self) -> bool:
        return self._has_sample

    def estimate(self, now_ms: Optional[int] = None) -> Optional[PositionEstimate]:
        if not self._has_sample:
            return None
        now = self._clock() if now_ms is None else now_ms
        position = extrapolate(self._position_ms, self._timestamp_ms, self._speed, self._duration_ms, now)
        return PositionEstimate(position_ms=position, duration_ms=self._duration_ms)

    # ── 틱 제어 ───────────────────────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._running

    def set_interval(self, interval_ms: int) -> None:
        self._interval_ms = max(1, int(interval_ms))

    def start(self) -> None:
        """틱 시작 (이미 돌고 있으면 무시)"""
        if self._running:
            return
        self._running = True
        logger.debug("위치 추정 시작 (%dms 주기)", self._interval_ms)
        self._tick()

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._tick_handle is not None:
            self._scheduler.cancel(self._tick_handle)
            self._tick_handle = None
        logger.debug("위치 추정 중지")

    def _tick(self) -> None:
        self._tick_handle = None
        if not self._running:
            return
        try:
            estimate = self.estimate()
            if estimate is not None:
                self._on_tick(estimate)
        finally:
            if self._running:
                self._tick_handle = self._scheduler.schedule(self._interval_ms, self._tick)
