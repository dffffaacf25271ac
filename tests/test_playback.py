"""
재생 상태 관련 테스트.
주 세션 선택, 가사 필터, 디바운스 상태 머신, 위치 추정을 검증합니다.
"""

import os
import sys
import unittest

TEST_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(TEST_DIR)
for path in (PROJECT_ROOT, TEST_DIR):
    if path not in sys.path:
        sys.path.insert(0, path)

from fakes import FakeScheduler, make_session
from core.models import PlaybackState
from services.lyric_filter import LyricGate, is_instrumental
from services.playback_debouncer import DebounceState, PlaybackDebouncer
from services.position_extrapolator import PositionExtrapolator, extrapolate
from services.session_arbitrator import SessionArbitrator, select_primary

PLAYING = PlaybackState.PLAYING
PAUSED = PlaybackState.PAUSED


class TestSelectPrimary(unittest.TestCase):
    def test_first_playing_wins(self):
        sessions = [make_session("A", PAUSED), make_session("B", PLAYING), make_session("C", PAUSED)]
        self.assertEqual(select_primary(sessions, {"A", "B", "C"}).package_id, "B")

    def test_all_paused_returns_first(self):
        sessions = [make_session("A", PAUSED), make_session("B", PAUSED)]
        self.assertEqual(select_primary(sessions, {"A", "B"}).package_id, "A")

    def test_empty(self):
        self.assertIsNone(select_primary([], {"A"}))

    def test_whitelist_filters(self):
        sessions = [make_session("A", PLAYING), make_session("B", PAUSED)]
        self.assertEqual(select_primary(sessions, {"B"}).package_id, "B")
        self.assertIsNone(select_primary(sessions, set()))


class TestSessionArbitrator(unittest.TestCase):
    def setUp(self):
        self.arbitrator = SessionArbitrator()
        self.arbitrator.set_whitelist({"A", "B"})

    def test_duplicate_ids_keep_first(self):
        self.arbitrator.set_sessions([make_session("A", PAUSED), make_session("A", PLAYING)])
        self.assertEqual(len(self.arbitrator.sessions), 1)
        self.assertEqual(self.arbitrator.get("A").state, PAUSED)

    def test_state_update_replaces_snapshot(self):
        self.arbitrator.set_sessions([make_session("A", PAUSED), make_session("B", PAUSED)])
        before = self.arbitrator.get("B")
        self.arbitrator.update_state("B", PLAYING, 500, 10, 1.0)
        self.assertEqual(before.state, PAUSED)
        self.assertEqual(self.arbitrator.primary().package_id, "B")

    def test_unknown_session_update_ignored(self):
        self.assertIsNone(self.arbitrator.update_metadata("Z", "t", "a", 0))


class TestLyricFilter(unittest.TestCase):
    def test_instrumental_markers(self):
        self.assertTrue(is_instrumental("此歌曲为没有填词的纯音乐，请您欣赏"))
        self.assertTrue(is_instrumental("instrumental"))
        self.assertFalse(is_instrumental("我的朋友 在哪里"))
        self.assertFalse(is_instrumental(None))

    def test_gate_rejects_repeat(self):
        gate = LyricGate()
        self.assertTrue(gate.accept("line", "QQ Music"))
        self.assertFalse(gate.accept("line", "QQ Music"))
        self.assertTrue(gate.accept("next", "QQ Music"))

    def test_gate_resets_on_source_change(self):
        gate = LyricGate()
        gate.accept("line", "QQ Music")
        self.assertTrue(gate.accept("line", "NetEase"))


class TestPlaybackDebouncer(unittest.TestCase):
    def setUp(self):
        self.scheduler = FakeScheduler()
        self.flags = []
        self.teardowns = 0
        self.debouncer = PlaybackDebouncer(self.scheduler, self.flags.append, self._on_teardown, 500)

    def _on_teardown(self):
        self.teardowns += 1

    def test_flapping_never_tears_down(self):
        self.debouncer.observe(True)
        for _ in range(5):
            self.debouncer.observe(False)
            self.scheduler.advance(200)
            self.debouncer.observe(True)
            self.scheduler.advance(100)
        self.scheduler.advance(1000)
        self.assertEqual(self.teardowns, 0)
        self.assertIs(self.debouncer.state, DebounceState.PLAYING)

    def test_held_pause_tears_down_once(self):
        self.debouncer.observe(True)
        self.debouncer.observe(False)
        self.assertIs(self.debouncer.state, DebounceState.STOP_PENDING)
        self.assertFalse(self.flags[-1])
        self.scheduler.advance(499)
        self.assertEqual(self.teardowns, 0)
        self.scheduler.advance(1)
        self.assertEqual(self.teardowns, 1)
        self.debouncer.observe(False)
        self.scheduler.advance(2000)
        self.assertEqual(self.teardowns, 1)
        self.assertIs(self.debouncer.state, DebounceState.STOPPED)

    def test_repeated_pause_keeps_deadline(self):
        self.debouncer.observe(True)
        self.debouncer.observe(False)
        self.scheduler.advance(300)
        self.debouncer.observe(False)
        self.scheduler.advance(200)
        self.assertEqual(self.teardowns, 1)

    def test_at_most_one_pending_deadline(self):
        self.debouncer.observe(True)
        self.debouncer.observe(False)
        self.debouncer.observe(False)
        self.assertEqual(len(self.scheduler.pending), 1)

    def test_shutdown_cancels_without_teardown(self):
        self.debouncer.observe(True)
        self.debouncer.observe(False)
        self.debouncer.shutdown()
        self.scheduler.advance(1000)
        self.assertEqual(self.teardowns, 0)
        self.assertFalse(self.debouncer.has_pending_stop)
        self.assertFalse(self.flags[-1])


class TestPositionExtrapolator(unittest.TestCase):
    def test_extrapolate(self):
        self.assertEqual(extrapolate(10000, 0, 1.0, 300000, 2000), 12000)

    def test_clamp_to_duration(self):
        self.assertEqual(extrapolate(10000, 0, 1.0, 11000, 2000), 11000)

    def test_unknown_duration_not_clamped(self):
        self.assertEqual(extrapolate(10000, 0, 1.0, 0, 2000), 12000)

    def test_never_negative(self):
        self.assertEqual(extrapolate(100, 1000, 1.0, 0, 0), 0)

    def test_ticks_while_running(self):
        scheduler = FakeScheduler()
        ticks = []
        extrapolator = PositionExtrapolator(scheduler, ticks.append, clock=scheduler.clock, interval_ms=1000)
        extrapolator.update_sample(10000, 0, 1.0, 0)

        extrapolator.start()
        self.assertEqual(ticks[-1].position_ms, 10000)
        scheduler.advance(2000)
        self.assertEqual(len(ticks), 3)
        self.assertEqual(ticks[-1].position_ms, 12000)
        self.assertIsNone(ticks[-1].progress)

        extrapolator.stop()
        scheduler.advance(5000)
        self.assertEqual(len(ticks), 3)
        self.assertEqual(scheduler.pending, [])

    def test_no_sample_no_tick(self):
        scheduler = FakeScheduler()
        ticks = []
        extrapolator = PositionExtrapolator(scheduler, ticks.append, clock=scheduler.clock)
        extrapolator.start()
        scheduler.advance(3000)
        self.assertEqual(ticks, [])
        self.assertIsNone(extrapolator.estimate())


if __name__ == "__main__":
    unittest.main()
