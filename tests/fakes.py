"""
테스트용 가짜 객체.
시간을 직접 진행시키는 스케줄러와 호출을 기록하는 세션 소스를 제공합니다.
"""

import os
import sys
from typing import Callable, List, Optional

TEST_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(TEST_DIR)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from core.models import PlaybackState, Session
from services.session_source import SessionListener, SessionSource


class FakeHandle:
    def __init__(self, due: int, seq: int, fn: Callable[[], None]) -> None:
        self.due = due
        self.seq = seq
        self.fn = fn
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """
    수동 시계 스케줄러.
    post()는 즉시 실행하고, schedule()은 advance()로 시간이 지나야 실행됩니다.
    """

    def __init__(self, now_ms: int = 0) -> None:
        self.now_ms = now_ms
        self._seq = 0
        self._handles: List[FakeHandle] = []

    def clock(self) -> int:
        return self.now_ms

    def is_owner_thread(self) -> bool:
        return True

    def post(self, fn: Callable[[], None]) -> None:
        fn()

    def schedule(self, delay_ms: int, fn: Callable[[], None]) -> FakeHandle:
        self._seq += 1
        handle = FakeHandle(self.now_ms + max(0, delay_ms), self._seq, fn)
        self._handles.append(handle)
        return handle

    def cancel(self, handle: Optional[FakeHandle]) -> None:
        if handle is not None:
            handle.cancel()

    @property
    def pending(self) -> List[FakeHandle]:
        return [h for h in self._handles if not h.cancelled]

    def advance(self, ms: int) -> None:
        """시간을 ms만큼 진행하며 기한이 된 작업을 순서대로 실행"""
        target = self.now_ms + ms
        while True:
            due = [h for h in self._handles if not h.cancelled and h.due <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.due, h.seq))
            self._handles.remove(handle)
            self.now_ms = handle.due
            handle.fn()
        self._handles = [h for h in self._handles if not h.cancelled]
        self.now_ms = target


class FakeSessionSource(SessionSource):
    """세션 목록을 직접 지정하고 watch/unwatch 호출을 기록"""

    def __init__(self, sessions: Optional[List[Session]] = None) -> None:
        self.sessions: List[Session] = list(sessions or [])
        self.error: Optional[Exception] = None
        self.listener: Optional[SessionListener] = None
        self.watch_calls: List[str] = []
        self.unwatch_calls: List[str] = []
        self.get_calls = 0
        self.detached = False

    def attach(self, listener: SessionListener) -> None:
        self.listener = listener

    def detach(self) -> None:
        self.listener = None
        self.detached = True

    def get_sessions(self) -> List[Session]:
        self.get_calls += 1
        if self.error is not None:
            raise self.error
        return list(self.sessions)

    def watch_session(self, session_id: str) -> None:
        self.watch_calls.append(session_id)

    def unwatch_session(self, session_id: str) -> None:
        self.unwatch_calls.append(session_id)


def make_session(
    package_id: str,
    state: PlaybackState = PlaybackState.PAUSED,
    title: Optional[str] = None,
    artist: Optional[str] = None,
    position_ms: int = 0,
    timestamp_ms: int = 0,
    duration_ms: int = 0,
) -> Session:
    return Session(
        package_id=package_id,
        state=state,
        position_ms=position_ms,
        position_timestamp_ms=timestamp_ms,
        speed=1.0 if state is PlaybackState.PLAYING else 0.0,
        raw_title=title,
        raw_artist=artist,
        duration_ms=duration_ms,
    )
