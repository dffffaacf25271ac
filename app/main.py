"""
앱 조립 및 실행 진입점.
모든 레이어를 조립하고 앱을 시작합니다.
이 파일은 앱의 의존성 주입(DI) 역할을 담당합니다.
"""

import logging
import os
import sys
import threading
from typing import Any, Optional

# 프로젝트 루트를 sys.path에 추가 (패키지 임포트 지원)
_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _ROOT not in sys.path:
    sys.path.insert(0, _ROOT)

from core.app_logger import setup_logging
from core.dispatcher import Dispatcher
from core.lyric_store import LyricStore
from core.models import LyricInfo, MediaInfo, ProjectionRefresh, ServiceStatus
from services.metadata_parser import MetadataParser
from settings.parser_rules import PREF_PARSER_RULES, load_rules
from settings.settings_manager import SettingsManager
from settings.whitelist import PREF_WHITELIST_JSON, get_enabled_packages
from viewmodels.lyric_engine import LyricEngine

# 선택적 모듈
try:
    from services.media_session import WindowsMediaSessionSource
    MEDIA_SESSION_AVAILABLE = True
except ImportError:
    MEDIA_SESSION_AVAILABLE = False
    WindowsMediaSessionSource = None

try:
    from tray.system_tray import SystemTray
    TRAY_AVAILABLE = True
except ImportError:
    TRAY_AVAILABLE = False
    SystemTray = None

logger = logging.getLogger(__name__)


def format_projection(
    media: Optional[MediaInfo],
    lyric: Optional[LyricInfo],
    status: ServiceStatus,
    playing: bool,
) -> str:
    """트레이 툴팁용 한 줄 요약"""
    if status is ServiceStatus.DISABLED:
        return "꺼짐"
    if status is ServiceStatus.PERMISSION_MISSING:
        return "미디어 세션 권한 필요"
    if not playing or media is None:
        return "재생 중인 곡 없음"
    if lyric is not None:
        return f"{lyric.lyric} ({lyric.source_app})"
    return f"{media.title} - {media.artist}"


def apply_setting_change(engine: LyricEngine, settings: SettingsManager, key: str) -> None:
    """설정 변경을 엔진 입력으로 전달"""
    if key == PREF_WHITELIST_JSON:
        engine.set_whitelist(get_enabled_packages(settings))
    elif key == "service_enabled":
        engine.set_master_switch(settings.get_bool("service_enabled"))
    elif key == PREF_PARSER_RULES:
        engine.set_parser_rules(load_rules(settings))
    elif key == "stop_debounce_ms":
        engine.configure(stop_delay_ms=settings.get_int("stop_debounce_ms"))
    elif key == "progress_interval_ms":
        engine.configure(progress_interval_ms=settings.get_int("progress_interval_ms"))


def create_and_run() -> None:
    """앱 생성 및 실행 (의존성 주입)"""

    # ── 1. 설정 및 로그 ────────────────────────────────────────────────────────
    settings = SettingsManager()
    setup_logging(
        level=settings.get("log_level", "INFO"),
        log_file=settings.get("log_file"),
        buffer_chars=settings.get_int("log_buffer_chars"),
    )

    # ── 2. 엔진 생성 ───────────────────────────────────────────────────────────
    store = LyricStore()
    dispatcher = Dispatcher()
    engine = LyricEngine(
        store=store,
        dispatcher=dispatcher,
        parser=MetadataParser(load_rules(settings)),
        stop_delay_ms=settings.get_int("stop_debounce_ms"),
        progress_interval_ms=settings.get_int("progress_interval_ms"),
    )
    engine.set_whitelist(get_enabled_packages(settings))
    engine.set_master_switch(settings.get_bool("service_enabled"))

    # 설정 변경 옵저버 등록
    settings.add_observer(lambda key, _values: apply_setting_change(engine, settings, key))

    # ── 3. 시스템 트레이 생성 ──────────────────────────────────────────────────
    stop_event = threading.Event()
    tray = None
    if TRAY_AVAILABLE and SystemTray:
        try:
            tray = SystemTray()
            tray.set_on_toggle_enabled(lambda: _toggle_enabled(settings, tray))
            tray.set_on_exit(stop_event.set)
            tray.start(initial_enabled=settings.get_bool("service_enabled"))
        except Exception as e:
            logger.warning("트레이 초기화 실패: %s", e)
            tray = None

    # 저장소 → 트레이 툴팁
    def refresh_tooltip(_value: Any = None) -> None:
        text = format_projection(store.media_info, store.lyric_info, store.service_status, store.is_playing)
        if tray:
            tray.update_status(text)

    subscriptions = [
        store.observe_media(refresh_tooltip),
        store.observe_lyric(refresh_tooltip),
        store.observe_playing(refresh_tooltip),
        store.observe_status(refresh_tooltip),
    ]

    engine.set_on_teardown(lambda: logger.info("표시 종료"))
    engine.set_on_progress(_log_progress)

    # ── 4. 세션 소스 연결 및 시작 ──────────────────────────────────────────────
    source = None
    if MEDIA_SESSION_AVAILABLE and WindowsMediaSessionSource:
        try:
            source = WindowsMediaSessionSource()
        except Exception as e:
            logger.warning("미디어 세션 초기화 실패: %s", e)
    else:
        logger.warning("미디어 세션 API를 사용할 수 없음 (winsdk 미설치)")

    dispatcher.start()
    engine.start(source)

    # ── 5. 메인 루프 ───────────────────────────────────────────────────────────
    try:
        while not stop_event.wait(0.5):
            pass
    except KeyboardInterrupt:
        logger.info("사용자 중단")
    finally:
        for subscription in subscriptions:
            subscription.dispose()
        engine.shutdown()
        dispatcher.stop()
        if tray:
            tray.stop()


def _log_progress(refresh: ProjectionRefresh) -> None:
    media = refresh.media
    title = media.title if media else "-"
    logger.debug("진행: %s %s", refresh.position.position_str, title)


def _toggle_enabled(settings: SettingsManager, tray) -> None:
    """마스터 스위치 토글"""
    new_value = not settings.get_bool("service_enabled")
    settings.set("service_enabled", new_value)
    if tray:
        tray.update_enabled_state(new_value)
