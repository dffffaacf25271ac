"""
Windows Media Session API 기반 세션 소스.
GlobalSystemMediaTransportControlsSessionManager의 세션들을 Session 스냅샷으로 변환하고,
목록/재생 상태/메타데이터 변경 이벤트를 엔진에 전달합니다.

WinRT 비동기 호출은 전용 이벤트 루프 스레드에서 실행합니다.
"""

import asyncio
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from winsdk.windows.media.control import (
    GlobalSystemMediaTransportControlsSessionManager as MediaManager,
    GlobalSystemMediaTransportControlsSessionPlaybackStatus as PlaybackStatus,
)

from core.errors import PermissionDeniedError, SessionSourceError, TransientQueryError
from core.models import PlaybackState, Session
from services.session_source import SessionListener, SessionSource

logger = logging.getLogger(__name__)

# 0x80070005 (E_ACCESSDENIED)
_E_ACCESSDENIED = -2147024891

_ASYNC_TIMEOUT_SEC = 1.0


def _now_ms() -> int:
    return int(time.monotonic() * 1000)


def _map_status(status: Any) -> PlaybackState:
    if status == PlaybackStatus.PLAYING:
        return PlaybackState.PLAYING
    if status == PlaybackStatus.PAUSED:
        return PlaybackState.PAUSED
    return PlaybackState.OTHER


def _to_source_error(e: Exception) -> Exception:
    """플랫폼 예외 → 세션 소스 예외"""
    if isinstance(e, PermissionError) or getattr(e, "winerror", None) == _E_ACCESSDENIED:
        return PermissionDeniedError(str(e))
    return TransientQueryError(str(e))


def _timeline_sample(session: Any) -> Tuple[int, int, int]:
    """
    (위치 ms, 보고 시각 monotonic ms, 길이 ms)

    LastUpdatedTime은 벽시계(UTC) 기준이므로 monotonic 시각으로 환산합니다.
    """
    timeline = session.get_timeline_properties()
    position_ms = int(timeline.position.total_seconds() * 1000)
    duration_ms = int((timeline.end_time - timeline.start_time).total_seconds() * 1000)

    now_ms = _now_ms()
    timestamp_ms = now_ms
    last_updated = getattr(timeline, "last_updated_time", None)
    if last_updated:
        age_ms = int((datetime.now(timezone.utc) - last_updated).total_seconds() * 1000)
        if age_ms > 0:
            timestamp_ms = now_ms - age_ms

    return position_ms, timestamp_ms, max(0, duration_ms)


class WindowsMediaSessionSource(SessionSource):
    """winsdk 세션 매니저 어댑터"""

    def __init__(self) -> None:
        self._loop = asyncio.new_event_loop()
        self._loop_thread = threading.Thread(target=self._loop.run_forever, name="winrt-async", daemon=True)
        self._loop_thread.start()

        self._manager: Optional[Any] = None
        self._listener: Optional[SessionListener] = None
        self._sessions_token: Optional[Any] = None
        self._watches: Dict[str, Tuple[Any, List[Tuple[str, Any]]]] = {}
        self._lock = threading.Lock()

    # ── 비동기 헬퍼 ───────────────────────────────────────────────────────────

    def _run(self, operation: Any) -> Any:
        async def _await() -> Any:
            return await operation

        future = asyncio.run_coroutine_threadsafe(_await(), self._loop)
        return future.result(_ASYNC_TIMEOUT_SEC)

    def _get_manager(self) -> Any:
        if self._manager is None:
            try:
                self._manager = self._run(MediaManager.request_async())
            except Exception as e:
                raise _to_source_error(e) from e
        return self._manager

    # ── SessionSource ─────────────────────────────────────────────────────────

    def attach(self, listener: SessionListener) -> None:
        self._listener = listener
        try:
            manager = self._get_manager()
        except PermissionDeniedError:
            # 엔진이 get_sessions()에서 같은 오류를 받아 상태로 노출함
            return
        except TransientQueryError as e:
            logger.warning("세션 매니저 초기화 실패: %s", e)
            return
        self._sessions_token = manager.add_sessions_changed(self._on_sessions_changed)

    def detach(self) -> None:
        with self._lock:
            session_ids = list(self._watches)
        for session_id in session_ids:
            self.unwatch_session(session_id)

        if self._manager is not None and self._sessions_token is not None:
            try:
                self._manager.remove_sessions_changed(self._sessions_token)
            except Exception as e:
                logger.warning("세션 목록 리스너 해제 실패: %s", e)
        self._sessions_token = None
        self._listener = None
        self._loop.call_soon_threadsafe(self._loop.stop)

    def get_sessions(self) -> List[Session]:
        manager = self._get_manager()
        try:
            raw_sessions = list(manager.get_sessions())
        except Exception as e:
            raise _to_source_error(e) from e

        # 시스템이 지정한 현재 세션을 가장 최근 활성으로 보고 맨 앞에 둠
        try:
            current = manager.get_current_session()
        except Exception:
            current = None
        if current is not None:
            current_id = current.source_app_user_model_id
            raw_sessions.sort(key=lambda s: s.source_app_user_model_id != current_id)

        sessions: List[Session] = []
        for raw in raw_sessions:
            try:
                sessions.append(self._snapshot(raw))
            except Exception as e:
                # 세션 하나가 깨져도 나머지는 사용
                logger.warning("세션 스냅샷 실패 (%s): %s", getattr(raw, "source_app_user_model_id", "?"), e)
        return sessions

    def watch_session(self, session_id: str) -> None:
        with self._lock:
            if session_id in self._watches:
                return

        raw = self._find_session(session_id)
        if raw is None:
            raise TransientQueryError(f"세션을 찾을 수 없음: {session_id}")

        tokens = [
            ("playback_info", raw.add_playback_info_changed(lambda s, _a: self._emit_state(s))),
            ("timeline_properties", raw.add_timeline_properties_changed(lambda s, _a: self._emit_state(s))),
            ("media_properties", raw.add_media_properties_changed(lambda s, _a: self._emit_metadata(s))),
        ]
        with self._lock:
            self._watches[session_id] = (raw, tokens)
        logger.debug("세션 콜백 등록: %s", session_id)

    def unwatch_session(self, session_id: str) -> None:
        with self._lock:
            entry = self._watches.pop(session_id, None)
        if entry is None:
            return

        raw, tokens = entry
        for kind, token in tokens:
            try:
                getattr(raw, f"remove_{kind}_changed")(token)
            except Exception as e:
                # 이미 닫힌 세션이면 해제도 실패할 수 있음
                logger.debug("세션 콜백 해제 실패 (%s, %s): %s", session_id, kind, e)
        logger.debug("세션 콜백 해제: %s", session_id)

    # ── 변환 ──────────────────────────────────────────────────────────────────

    def _find_session(self, session_id: str) -> Optional[Any]:
        try:
            for raw in self._get_manager().get_sessions():
                if raw.source_app_user_model_id == session_id:
                    return raw
        except Exception as e:
            raise _to_source_error(e) from e
        return None

    def _media_properties(self, raw: Any) -> Tuple[Optional[str], Optional[str]]:
        try:
            props = self._run(raw.try_get_media_properties_async())
        except Exception as e:
            logger.debug("미디어 속성 조회 실패: %s", e)
            return None, None
        if props is None:
            return None, None
        return props.title or None, props.artist or None

    def _snapshot(self, raw: Any) -> Session:
        playback = raw.get_playback_info()
        state = _map_status(playback.playback_status)
        position_ms, timestamp_ms, duration_ms = _timeline_sample(raw)
        title, artist = self._media_properties(raw)

        rate = getattr(playback, "playback_rate", None)
        speed = float(rate) if rate else 1.0
        if state is not PlaybackState.PLAYING:
            speed = 0.0

        return Session(
            package_id=raw.source_app_user_model_id or "Unknown",
            state=state,
            position_ms=position_ms,
            position_timestamp_ms=timestamp_ms,
            speed=speed,
            raw_title=title,
            raw_artist=artist,
            duration_ms=duration_ms,
        )

    # ── WinRT 이벤트 (WinRT 스레드) ───────────────────────────────────────────

    def _on_sessions_changed(self, _manager: Any, _args: Any) -> None:
        listener = self._listener
        if listener is None:
            return
        try:
            sessions = self.get_sessions()
        except SessionSourceError as e:
            logger.warning("세션 목록 갱신 실패: %s", e)
            # 엔진이 권한 상태로 전환하거나 재시도를 예약함
            listener.on_sessions_query_failed(e)
            return
        listener.on_sessions_changed(sessions)

    def _emit_state(self, raw: Any) -> None:
        listener = self._listener
        if listener is None:
            return
        try:
            snapshot = self._snapshot(raw)
        except Exception as e:
            logger.warning("재생 상태 조회 실패: %s", e)
            return
        listener.on_session_state_changed(
            snapshot.package_id,
            snapshot.state,
            snapshot.position_ms,
            snapshot.position_timestamp_ms,
            snapshot.speed,
        )

    def _emit_metadata(self, raw: Any) -> None:
        listener = self._listener
        if listener is None:
            return
        try:
            title, artist = self._media_properties(raw)
            _, _, duration_ms = _timeline_sample(raw)
        except Exception as e:
            logger.warning("메타데이터 조회 실패: %s", e)
            return
        listener.on_session_metadata_changed(raw.source_app_user_model_id or "Unknown", title, artist, duration_ms)
