"""
세션 중재 및 가사 투영 엔진.
기존 LyricsViewModel의 자리에서 세션 이벤트를 받아 저장소를 갱신합니다.

책임:
- 세션 목록/상태/메타데이터 이벤트 수신 (소유 스레드로 직렬화)
- 화이트리스트 필터링과 주 세션 선택
- 메타데이터 정규화 및 가사 필터링 후 저장소 기록
- 재생 상태 디바운스와 정리(teardown) 신호
- 재생 중 1초 주기 위치 추정과 진행 신호
- 세션별 콜백 등록을 세션 ID당 한 번으로 관리

모든 공개 입력 메서드는 디스패처에 작업을 넣기만 하므로 어느 스레드에서 호출해도 됩니다.
"""

import logging
import threading
from typing import Any, Callable, Iterable, List, Optional, Set

from core.channel import Subscription
from core.constants import (
    PROGRESS_INTERVAL_MS,
    RESYNC_RETRY_MS,
    STOP_DEBOUNCE_MS,
    UNKNOWN_ARTIST,
    UNKNOWN_TITLE,
)
from core.errors import PermissionDeniedError, SessionSourceError
from core.lyric_store import LyricStore
from core.models import (
    ParserRule,
    PlaybackState,
    PositionEstimate,
    ProjectionRefresh,
    ServiceStatus,
    Session,
)
from services.lyric_filter import LyricGate, is_instrumental
from services.metadata_parser import MetadataParser, get_app_name
from services.playback_debouncer import DebounceState, PlaybackDebouncer
from services.position_extrapolator import PositionExtrapolator, monotonic_ms
from services.session_arbitrator import SessionArbitrator
from services.session_source import SessionSource

logger = logging.getLogger(__name__)

DEBUG_PACKAGE_ID = "debug"
DEBUG_SOURCE_APP = "Debug"


class LyricEngine:
    """
    Args:
        store: 공유 상태 (명시적으로 주입)
        dispatcher: post/schedule/cancel 을 제공하는 소유 스레드 루프
        parser: 메타데이터 파서, 없으면 기본 규칙으로 생성
        clock: 밀리초 monotonic 시계 (위치 추정용)
    """

    def __init__(
        self,
        store: LyricStore,
        dispatcher: Any,
        parser: Optional[MetadataParser] = None,
        clock: Callable[[], int] = monotonic_ms,
        stop_delay_ms: int = STOP_DEBOUNCE_MS,
        progress_interval_ms: int = PROGRESS_INTERVAL_MS,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._parser = parser or MetadataParser()

        self._arbitrator = SessionArbitrator()
        self._gate = LyricGate()
        self._debouncer = PlaybackDebouncer(
            dispatcher,
            on_playing_changed=store.set_playing_flag,
            on_teardown=self._handle_teardown,
            stop_delay_ms=stop_delay_ms,
        )
        self._extrapolator = PositionExtrapolator(
            dispatcher,
            on_tick=self._handle_tick,
            clock=clock,
            interval_ms=progress_interval_ms,
        )

        # ── 상태 변수 ──────────────────────────────────────────────────────────
        self._source: Optional[SessionSource] = None
        self._watched: Set[str] = set()
        self._master_enabled = True
        self._permission_missing = False
        self._needs_resync = False
        self._retry_handle: Optional[Any] = None
        self._primary_id: Optional[str] = None
        self._started = False
        self._subscriptions: List[Subscription] = []

        # ── 출력 콜백 (렌더러가 등록) ──────────────────────────────────────────
        self._on_teardown: Optional[Callable[[], None]] = None
        self._on_progress: Optional[Callable[[ProjectionRefresh], None]] = None

    # ── 콜백 등록 ─────────────────────────────────────────────────────────────

    def set_on_teardown(self, callback: Optional[Callable[[], None]]) -> None:
        self._on_teardown = callback

    def set_on_progress(self, callback: Optional[Callable[[ProjectionRefresh], None]]) -> None:
        self._on_progress = callback

    # ── 수명 주기 ─────────────────────────────────────────────────────────────

    def start(self, source: Optional[SessionSource] = None) -> None:
        """저장소 구독 후 소스 연결 및 초기 세션 조회"""
        def task() -> None:
            if self._started:
                return
            self._started = True
            self._subscriptions.append(self._store.observe_playing(self._on_playing_flag))
            if source is not None:
                self._source = source
                source.attach(self)
                self._resync()
            logger.info("엔진 시작")

        self._dispatcher.post(task)

    def shutdown(self, timeout: float = 2.0) -> None:
        """틱/중지 기한 취소, 세션 콜백 해제, 재생 플래그 해제"""
        is_owner = getattr(self._dispatcher, "is_owner_thread", None)
        if is_owner is not None and is_owner():
            self._shutdown()
            return

        done = threading.Event()

        def task() -> None:
            try:
                self._shutdown()
            finally:
                done.set()

        self._dispatcher.post(task)
        if not done.wait(timeout):
            logger.warning("엔진 종료 대기 시간 초과")

    def _shutdown(self) -> None:
        if not self._started:
            return
        self._started = False
        for subscription in self._subscriptions:
            subscription.dispose()
        self._subscriptions.clear()

        self._clear_resync()
        self._extrapolator.stop()
        self._debouncer.shutdown()
        self._unwatch_all()
        if self._source is not None:
            try:
                self._source.detach()
            except SessionSourceError as e:
                logger.warning("소스 해제 실패: %s", e)
            self._source = None
        self._primary_id = None
        logger.info("엔진 종료")

    # ── 입력: 세션 소스 ───────────────────────────────────────────────────────

    def on_sessions_changed(self, sessions: Iterable[Session]) -> None:
        snapshot = list(sessions)
        self._dispatcher.post(lambda: self._handle_sessions_changed(snapshot))

    def on_session_state_changed(
        self,
        session_id: str,
        state: PlaybackState,
        position_ms: int,
        timestamp_ms: int,
        speed: float,
    ) -> None:
        self._dispatcher.post(
            lambda: self._handle_state_changed(session_id, state, position_ms, timestamp_ms, speed)
        )

    def on_session_metadata_changed(
        self,
        session_id: str,
        raw_title: Optional[str],
        raw_artist: Optional[str],
        duration_ms: int,
    ) -> None:
        self._dispatcher.post(
            lambda: self._handle_metadata_changed(session_id, raw_title, raw_artist, duration_ms)
        )

    def on_sessions_query_failed(self, error: SessionSourceError) -> None:
        self._dispatcher.post(lambda: self._handle_query_failed(error))

    # ── 입력: 설정 ────────────────────────────────────────────────────────────

    def set_whitelist(self, package_ids: Iterable[str]) -> None:
        enabled = frozenset(package_ids)

        def task() -> None:
            self._arbitrator.set_whitelist(enabled)
            logger.info("화이트리스트 갱신: %d개 앱 활성화", len(enabled))
            self._recheck()

        self._dispatcher.post(task)

    def set_master_switch(self, enabled: bool) -> None:
        self._dispatcher.post(lambda: self._handle_master_switch(bool(enabled)))

    def set_parser_rules(self, rules: Iterable[ParserRule]) -> None:
        snapshot = list(rules)
        self._dispatcher.post(lambda: self._parser.set_rules(snapshot))

    def configure(self, stop_delay_ms: Optional[int] = None, progress_interval_ms: Optional[int] = None) -> None:
        def task() -> None:
            if stop_delay_ms is not None:
                self._debouncer.set_stop_delay(stop_delay_ms)
            if progress_interval_ms is not None:
                self._extrapolator.set_interval(progress_interval_ms)

        self._dispatcher.post(task)

    def refresh(self) -> None:
        """소스 재조회 요청 (권한 허용 직후 등)"""
        self._dispatcher.post(self._recheck)

    # ── 입력: 외부 가사 제공자 ────────────────────────────────────────────────

    def on_lyric_pushed(self, package_id: str, lyric: Optional[str]) -> None:
        """가사를 직접 알려주는 앱/모듈에서 받은 가사 한 줄"""
        def task() -> None:
            if not self._master_enabled or not lyric:
                return
            self._offer_lyric(lyric, get_app_name(package_id))

        self._dispatcher.post(task)

    def on_lyric_provider_stopped(self) -> None:
        self._dispatcher.post(lambda: self._debouncer.observe(False))

    # ── 입력: 디버그 ──────────────────────────────────────────────────────────

    def inject_debug(self, title: Optional[str], artist: Optional[str], lyric: Optional[str]) -> None:
        """
        세션/파서를 거치지 않고 저장소에 바로 기록 (자동화 테스트용).
        호출 스레드에서 동기적으로 실행됩니다.
        """
        logger.debug("디버그 주입: %s - %s / %s", title, artist, lyric)
        self._store.set_media_info(title or UNKNOWN_TITLE, artist or UNKNOWN_ARTIST, DEBUG_PACKAGE_ID, 0)
        if lyric:
            self._store.set_lyric_info(lyric, DEBUG_SOURCE_APP)

    # ── 조회 ──────────────────────────────────────────────────────────────────

    @property
    def primary(self) -> Optional[Session]:
        if not self._master_enabled or self._permission_missing:
            return None
        return self._arbitrator.primary()

    @property
    def debounce_state(self) -> DebounceState:
        return self._debouncer.state

    @property
    def watched_sessions(self) -> Set[str]:
        return set(self._watched)

    @property
    def is_ticking(self) -> bool:
        return self._extrapolator.is_running

    def current_position(self) -> Optional[PositionEstimate]:
        return self._extrapolator.estimate()

    # ── 이벤트 처리 (소유 스레드) ─────────────────────────────────────────────

    def _handle_sessions_changed(self, sessions: List[Session]) -> None:
        self._clear_resync()
        self._permission_missing = False
        self._apply_sessions(sessions)

    def _handle_query_failed(self, error: SessionSourceError) -> None:
        if not self._started:
            return
        if isinstance(error, PermissionDeniedError):
            logger.warning("세션 조회 권한 없음: %s", error)
            self._enter_permission_missing()
        else:
            logger.warning("세션 목록 갱신 실패, 재시도 예약: %s", error)
            self._request_resync()

    def _handle_state_changed(
        self,
        session_id: str,
        state: PlaybackState,
        position_ms: int,
        timestamp_ms: int,
        speed: float,
    ) -> None:
        if self._needs_resync:
            self._resync()
        if self._arbitrator.update_state(session_id, state, position_ms, timestamp_ms, speed) is None:
            return
        self._evaluate()

    def _handle_metadata_changed(
        self,
        session_id: str,
        raw_title: Optional[str],
        raw_artist: Optional[str],
        duration_ms: int,
    ) -> None:
        if self._needs_resync:
            self._resync()
        if self._arbitrator.update_metadata(session_id, raw_title, raw_artist, duration_ms) is None:
            return
        self._evaluate(metadata_session_id=session_id)

    def _handle_master_switch(self, enabled: bool) -> None:
        self._master_enabled = enabled
        if enabled:
            logger.info("마스터 스위치 켜짐")
            self._recheck()
        else:
            logger.info("마스터 스위치 꺼짐, 세션 업데이트 무시")
            self._sync_watches()
            self._update_status()
            self._evaluate()

    def _handle_tick(self, estimate: PositionEstimate) -> None:
        if self._needs_resync:
            self._resync()
        if self._on_progress:
            self._on_progress(
                ProjectionRefresh(
                    position=estimate,
                    lyric=self._store.lyric_info,
                    media=self._store.media_info,
                )
            )

    def _handle_teardown(self) -> None:
        logger.info("디바운스 후 표시 종료")
        if self._on_teardown:
            self._on_teardown()

    def _on_playing_flag(self, _playing: bool) -> None:
        # 저장소 알림은 쓰는 쪽 스레드에서 오므로 소유 스레드로 넘김
        self._dispatcher.post(self._sync_ticker)

    def _sync_ticker(self) -> None:
        if not self._started:
            return
        if self._store.is_playing:
            self._extrapolator.start()
        else:
            self._extrapolator.stop()

    # ── 세션 목록 ─────────────────────────────────────────────────────────────

    def _recheck(self) -> None:
        if self._source is not None:
            self._resync()
        else:
            self._apply_sessions(self._arbitrator.sessions)

    def _resync(self) -> None:
        """소스에서 세션 목록을 다시 읽음. 실패해도 엔진은 계속 동작합니다."""
        if self._source is None:
            return
        try:
            sessions = self._source.get_sessions()
        except PermissionDeniedError as e:
            logger.warning("세션 조회 권한 없음: %s", e)
            self._enter_permission_missing()
            return
        except SessionSourceError as e:
            logger.warning("세션 조회 실패, 재시도 예약: %s", e)
            self._request_resync()
            return

        self._clear_resync()
        self._permission_missing = False
        self._apply_sessions(sessions)

    def _enter_permission_missing(self) -> None:
        self._clear_resync()
        self._permission_missing = True
        self._arbitrator.set_sessions([])
        self._sync_watches()
        self._update_status()
        self._evaluate()

    def _request_resync(self) -> None:
        """다음 세션 이벤트나 틱, 또는 예약된 재시도 중 먼저 오는 쪽에서 재조회"""
        self._needs_resync = True
        if self._retry_handle is None and self._started:
            self._retry_handle = self._dispatcher.schedule(RESYNC_RETRY_MS, self._retry_resync)

    def _retry_resync(self) -> None:
        self._retry_handle = None
        if self._needs_resync and self._started:
            self._resync()

    def _clear_resync(self) -> None:
        self._needs_resync = False
        if self._retry_handle is not None:
            self._dispatcher.cancel(self._retry_handle)
            self._retry_handle = None

    def _apply_sessions(self, sessions: List[Session]) -> None:
        self._arbitrator.set_sessions(sessions)
        self._sync_watches()
        self._update_status()
        self._evaluate(force_metadata=True)

    def _evaluate(self, force_metadata: bool = False, metadata_session_id: Optional[str] = None) -> None:
        """주 세션 재선택 → 위치 표본 → 디바운스 → 필요하면 메타데이터 발행"""
        primary = self.primary
        primary_id = primary.package_id if primary else None
        changed = primary_id != self._primary_id
        if changed:
            logger.info("주 세션 변경: %s → %s", self._primary_id, primary_id)
        self._primary_id = primary_id

        if primary is None:
            self._extrapolator.clear_sample()
        else:
            self._extrapolator.update_from_session(primary)

        self._debouncer.observe(primary is not None and primary.is_playing)

        if primary is not None and (force_metadata or changed or metadata_session_id == primary_id):
            self._publish_metadata(primary)

    def _update_status(self) -> None:
        if not self._master_enabled:
            self._store.set_status(ServiceStatus.DISABLED)
        elif self._permission_missing:
            self._store.set_status(ServiceStatus.PERMISSION_MISSING)
        else:
            self._store.set_status(ServiceStatus.ACTIVE)

    # ── 세션별 콜백 ───────────────────────────────────────────────────────────

    def _sync_watches(self) -> None:
        """화이트리스트에 있는 살아 있는 세션에만, 세션 ID당 한 번씩 콜백 등록"""
        if self._source is None:
            return
        if self._master_enabled:
            whitelist = self._arbitrator.whitelist
            wanted = {sid for sid in self._arbitrator.session_ids if sid in whitelist}
        else:
            wanted = set()

        for session_id in sorted(self._watched - wanted):
            self._unwatch(session_id)

        for session_id in sorted(wanted - self._watched):
            try:
                self._source.watch_session(session_id)
            except SessionSourceError as e:
                logger.warning("세션 콜백 등록 실패 (%s): %s", session_id, e)
                continue
            self._watched.add(session_id)

    def _unwatch(self, session_id: str) -> None:
        self._watched.discard(session_id)
        if self._source is None:
            return
        try:
            self._source.unwatch_session(session_id)
        except SessionSourceError as e:
            logger.warning("세션 콜백 해제 실패 (%s): %s", session_id, e)

    def _unwatch_all(self) -> None:
        for session_id in sorted(self._watched):
            self._unwatch(session_id)

    # ── 저장소 기록 ───────────────────────────────────────────────────────────

    def _publish_metadata(self, session: Session) -> None:
        logger.debug("원본 메타데이터 [%s]: 제목=%r, 아티스트=%r", session.package_id, session.raw_title, session.raw_artist)
        parsed = self._parser.parse(session.raw_title, session.raw_artist, session.package_id)

        if parsed.lyric is not None:
            self._offer_lyric(parsed.lyric, parsed.source_app)

        self._store.set_media_info(parsed.title, parsed.artist, session.package_id, session.duration_ms)

    def _offer_lyric(self, lyric: str, source_app: str) -> None:
        if is_instrumental(lyric):
            logger.info("연주곡 감지, 가사 표시 철회: %s", lyric)
            self._gate.reset()
            if self._store.lyric_info is not None:
                self._store.clear_lyric_info()
            return

        if not self._gate.accept(lyric, source_app):
            return

        self._store.set_lyric_info(lyric, source_app)
        # 저장소가 켠 재생 플래그와 디바운서 상태를 맞춤
        self._debouncer.observe(True)
