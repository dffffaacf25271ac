"""
엔진 전용 단일 스레드 이벤트 루프.
세션 콜백, 메타데이터 콜백, 중지 디바운스, 1초 틱을 모두 이 스레드로 직렬화합니다.

asyncio 루프 하나를 데몬 스레드에서 돌리고, 다른 스레드의 요청은 call_soon_threadsafe로 넘깁니다.
지연 작업은 call_later 타이머이며, 취소는 여러 번 호출해도 안전합니다.
"""

import asyncio
import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class TaskHandle:
    """예약된 작업 핸들 (루프 스레드의 TimerHandle을 감쌈)"""

    __slots__ = ("fn", "cancelled", "timer")

    def __init__(self, fn: Callable[[], None]) -> None:
        self.fn = fn
        self.cancelled = False
        self.timer: Optional[asyncio.TimerHandle] = None

    def cancel(self) -> None:
        self.cancelled = True


class Dispatcher:
    """
    asyncio 루프 + 데몬 스레드 하나.
    schedule()/post()/cancel()은 어느 스레드에서 호출해도 되고, start() 전에 넣은 작업은 시작 후 실행됩니다.
    """

    def __init__(self, name: str = "lyric-engine") -> None:
        self._name = name
        self._loop = asyncio.new_event_loop()
        self._thread: Optional[threading.Thread] = None
        self._running = False

    # ── 수명 주기 ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        if self._running or self._loop.is_closed():
            return
        self._running = True
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        """루프 종료. 남은 작업은 버립니다."""
        self._running = False
        thread = self._thread
        if thread is None:
            if not self._loop.is_closed():
                self._loop.close()
            return
        if thread is threading.current_thread():
            # 루프는 현재 작업이 끝난 뒤 멈추고 _run에서 닫힘
            self._loop.stop()
            return
        self._call_threadsafe(self._loop.stop)
        thread.join(timeout)
        self._thread = None

    @property
    def is_running(self) -> bool:
        return self._running

    def is_owner_thread(self) -> bool:
        return self._thread is not None and self._thread is threading.current_thread()

    # ── 작업 예약 ─────────────────────────────────────────────────────────────

    def post(self, fn: Callable[[], None]) -> TaskHandle:
        handle = TaskHandle(fn)
        self._call_threadsafe(self._invoke, handle)
        return handle

    def schedule(self, delay_ms: int, fn: Callable[[], None]) -> TaskHandle:
        handle = TaskHandle(fn)
        delay = max(0, delay_ms) / 1000.0
        if self.is_owner_thread():
            self._arm(handle, delay)
        else:
            self._call_threadsafe(self._arm, handle, delay)
        return handle

    def cancel(self, handle: Optional[TaskHandle]) -> None:
        if handle is None or handle.cancelled:
            return
        handle.cancel()
        timer = handle.timer
        if timer is None:
            # 아직 타이머가 없으면 _arm 이 건너뜀
            return
        if self.is_owner_thread():
            timer.cancel()
        else:
            self._call_threadsafe(timer.cancel)

    # ── 루프 ──────────────────────────────────────────────────────────────────

    def _call_threadsafe(self, fn: Callable[..., Any], *args: Any) -> None:
        try:
            self._loop.call_soon_threadsafe(fn, *args)
        except RuntimeError:
            # 종료 뒤 늦게 도착한 요청
            logger.debug("닫힌 디스패처에 요청 무시: %s", self._name)

    def _arm(self, handle: TaskHandle, delay: float) -> None:
        if handle.cancelled:
            return
        handle.timer = self._loop.call_later(delay, self._invoke, handle)

    def _invoke(self, handle: TaskHandle) -> None:
        if handle.cancelled:
            return
        try:
            handle.fn()
        except Exception:
            # 한 작업의 실패가 루프를 멈추면 안 됨
            logger.exception("작업 실행 실패")

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        logger.debug("디스패처 시작: %s", self._name)
        try:
            self._loop.run_forever()
        finally:
            self._loop.close()
            logger.debug("디스패처 종료: %s", self._name)
