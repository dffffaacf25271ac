"""
재생 상태 디바운스 상태 머신.

미디어 앱은 탐색/광고/곡 전환 중에 잠깐씩 PAUSED를 보고합니다.
그때마다 표시를 내리면 깜빡이므로, 중지 판정을 일정 시간 유예해
짧은 정지-재개를 하나로 합칩니다.

    STOPPED ──재생──▶ PLAYING ──비재생──▶ STOP_PENDING ──기한 만료──▶ STOPPED
                         ▲                      │
                         └────────재생──────────┘

재생 플래그는 비재생 관측 즉시 false가 되고,
정리(teardown) 신호만 기한이 지난 뒤 한 번 발생합니다.
"""

import logging
from enum import Enum
from typing import Any, Callable, Optional

from core.constants import STOP_DEBOUNCE_MS

logger = logging.getLogger(__name__)


class DebounceState(Enum):
    PLAYING = "playing"
    STOP_PENDING = "stop_pending"
    STOPPED = "stopped"


class PlaybackDebouncer:
    """
    Args:
        scheduler: schedule(delay_ms, fn) -> handle / cancel(handle) 를 제공하는 객체
        on_playing_changed: 재생 플래그 발행 콜백
        on_teardown: 중지 확정 시 호출 (표시 세션 종료 등)
        stop_delay_ms: 중지 유예 시간
    """

    def __init__(
        self,
        scheduler: Any,
        on_playing_changed: Callable[[bool], None],
        on_teardown: Optional[Callable[[], None]] = None,
        stop_delay_ms: int = STOP_DEBOUNCE_MS,
    ) -> None:
        self._scheduler = scheduler
        self._on_playing_changed = on_playing_changed
        self._on_teardown = on_teardown
        self._stop_delay_ms = stop_delay_ms
        self._state = DebounceState.STOPPED
        self._deadline: Optional[Any] = None

    @property
    def state(self) -> DebounceState:
        return self._state

    @property
    def has_pending_stop(self) -> bool:
        return self._deadline is not None

    def set_stop_delay(self, delay_ms: int) -> None:
        self._stop_delay_ms = max(0, int(delay_ms))

    # ── 관측 ──────────────────────────────────────────────────────────────────

    def observe(self, is_playing: bool) -> None:
        """주 세션의 재생 여부 관측값 입력"""
        if is_playing:
            self._cancel_deadline()
            if self._state is not DebounceState.PLAYING:
                logger.debug("디바운스: %s → PLAYING", self._state.name)
            self._state = DebounceState.PLAYING
            self._on_playing_changed(True)
            return

        if self._state is DebounceState.PLAYING:
            self._state = DebounceState.STOP_PENDING
            self._arm_deadline()
            logger.debug("디바운스: PLAYING → STOP_PENDING (%dms)", self._stop_delay_ms)
        # STOP_PENDING 중에는 기존 기한 유지
        self._on_playing_changed(False)

    def shutdown(self) -> None:
        """엔진 종료: 대기 중인 기한 취소, 플래그 해제 (정리 신호는 보내지 않음)"""
        self._cancel_deadline()
        self._state = DebounceState.STOPPED
        self._on_playing_changed(False)

    # ── 기한 ──────────────────────────────────────────────────────────────────

    def _arm_deadline(self) -> None:
        # 항상 취소 후 재등록 → 대기 중인 기한은 최대 하나
        self._cancel_deadline()
        self._deadline = self._scheduler.schedule(self._stop_delay_ms, self._on_deadline)

    def _cancel_deadline(self) -> None:
        if self._deadline is not None:
            self._scheduler.cancel(self._deadline)
            self._deadline = None

    def _on_deadline(self) -> None:
        self._deadline = None
        if self._state is not DebounceState.STOP_PENDING:
            return
        self._state = DebounceState.STOPPED
        logger.info("재생 중지 확정 (디바운스 %dms 경과)", self._stop_delay_ms)
        if self._on_teardown:
            self._on_teardown()
