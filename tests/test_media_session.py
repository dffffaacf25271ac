"""
Windows 세션 소스 어댑터 테스트.
winsdk 모듈을 가짜로 바꿔 끼우고, 목록 변경 알림 뒤 재조회가 실패할 때 엔진이 회복하는지 검증합니다.
"""

import importlib
import os
import sys
import types
import unittest
from datetime import timedelta
from unittest import mock

TEST_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(TEST_DIR)
for path in (PROJECT_ROOT, TEST_DIR):
    if path not in sys.path:
        sys.path.insert(0, path)

from fakes import FakeScheduler
from core.lyric_store import LyricStore
from core.models import ServiceStatus
from viewmodels.lyric_engine import LyricEngine


class FakePlaybackStatus:
    PLAYING = 4
    PAUSED = 5


class FakeRawSession:
    """GlobalSystemMediaTransportControlsSession 대역"""

    def __init__(self, app_id, status, title, artist):
        self.source_app_user_model_id = app_id
        self._status = status
        self._title = title
        self._artist = artist
        self.handlers = {}

    def get_playback_info(self):
        return types.SimpleNamespace(playback_status=self._status, playback_rate=1.0)

    def get_timeline_properties(self):
        return types.SimpleNamespace(
            position=timedelta(seconds=10),
            start_time=timedelta(0),
            end_time=timedelta(minutes=3),
        )

    async def try_get_media_properties_async(self):
        return types.SimpleNamespace(title=self._title, artist=self._artist)

    def _add(self, kind, handler):
        self.handlers[kind] = handler
        return kind

    def _remove(self, token):
        self.handlers.pop(token, None)

    def add_playback_info_changed(self, handler):
        return self._add("playback_info", handler)

    def add_timeline_properties_changed(self, handler):
        return self._add("timeline_properties", handler)

    def add_media_properties_changed(self, handler):
        return self._add("media_properties", handler)

    def remove_playback_info_changed(self, token):
        self._remove(token)

    def remove_timeline_properties_changed(self, token):
        self._remove(token)

    def remove_media_properties_changed(self, token):
        self._remove(token)


class FakeManager:
    """세션 매니저 대역. failures에 넣은 예외를 get_sessions()가 차례로 던짐"""

    def __init__(self, sessions):
        self.sessions = list(sessions)
        self.failures = []
        self.handler = None

    def add_sessions_changed(self, handler):
        self.handler = handler
        return "sessions"

    def remove_sessions_changed(self, _token):
        self.handler = None

    def get_sessions(self):
        if self.failures:
            raise self.failures.pop(0)
        return list(self.sessions)

    def get_current_session(self):
        return None

    def fire_sessions_changed(self):
        self.handler(self, None)


def _fake_winsdk_modules():
    control = types.ModuleType("winsdk.windows.media.control")
    control.GlobalSystemMediaTransportControlsSessionManager = mock.Mock()
    control.GlobalSystemMediaTransportControlsSessionPlaybackStatus = FakePlaybackStatus
    return {
        "winsdk": types.ModuleType("winsdk"),
        "winsdk.windows": types.ModuleType("winsdk.windows"),
        "winsdk.windows.media": types.ModuleType("winsdk.windows.media"),
        "winsdk.windows.media.control": control,
    }


class TestWindowsSessionSource(unittest.TestCase):
    def setUp(self):
        # 테스트가 끝나면 sys.modules 원상 복구 (실제 winsdk가 있어도 영향 없음)
        patcher = mock.patch.dict(sys.modules, _fake_winsdk_modules())
        patcher.start()
        self.addCleanup(patcher.stop)
        sys.modules.pop("services.media_session", None)
        media_session = importlib.import_module("services.media_session")

        self.manager = FakeManager([FakeRawSession("A", FakePlaybackStatus.PAUSED, "a-title", "a-artist")])
        self.source = media_session.WindowsMediaSessionSource()
        self.source._manager = self.manager

        self.store = LyricStore()
        self.scheduler = FakeScheduler()
        self.engine = LyricEngine(self.store, self.scheduler, clock=self.scheduler.clock)
        self.engine.set_whitelist({"A", "B"})
        self.engine.start(self.source)
        self.addCleanup(self.engine.shutdown)

    def test_initial_sessions_watched(self):
        self.assertEqual(self.engine.primary.package_id, "A")
        self.assertEqual(self.store.media_info.title, "a-title")
        self.assertEqual(
            set(self.manager.sessions[0].handlers),
            {"playback_info", "timeline_properties", "media_properties"},
        )

    def test_list_query_failing_once_is_retried(self):
        self.manager.sessions.append(FakeRawSession("B", FakePlaybackStatus.PLAYING, "b-title", "b-artist"))
        self.manager.failures.append(OSError("busy"))
        self.manager.fire_sessions_changed()

        # 실패 직후에는 이전 목록 유지, 재시도만 예약됨
        self.assertEqual(self.engine.primary.package_id, "A")
        self.assertEqual(len(self.scheduler.pending), 1)

        self.scheduler.advance(1000)
        self.assertEqual(self.engine.primary.package_id, "B")
        self.assertEqual(self.engine.watched_sessions, {"A", "B"})
        self.assertEqual(self.store.media_info.title, "b-title")
        self.assertTrue(self.store.is_playing)

    def test_list_query_access_denied(self):
        self.manager.failures.append(PermissionError("access denied"))
        self.manager.fire_sessions_changed()
        self.assertEqual(self.store.service_status, ServiceStatus.PERMISSION_MISSING)
        self.assertIsNone(self.engine.primary)
        self.assertEqual(self.manager.sessions[0].handlers, {})

    def test_detach_releases_handlers(self):
        self.engine.shutdown()
        self.assertIsNone(self.manager.handler)
        self.assertEqual(self.manager.sessions[0].handlers, {})


if __name__ == "__main__":
    unittest.main()
