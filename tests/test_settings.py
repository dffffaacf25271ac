"""
설정 관리 테스트.
SettingsManager, 화이트리스트 마이그레이션, 파서 규칙 저장/로드, 파일 로그를 검증합니다.
"""

import json
import logging
import os
import shutil
import sys
import tempfile
import unittest

TEST_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(TEST_DIR)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from core.app_logger import LogBuffer, clear_log, read_log_entries
from core.constants import DEFAULT_WHITELIST
from core.models import FieldOrder, ParserRule
from settings.parser_rules import DEFAULT_RULES, PREF_PARSER_RULES, get_rule_for_package, load_rules, save_rules
from settings.settings_manager import SettingsManager
from settings.whitelist import (
    PREF_WHITELIST_JSON,
    PREF_WHITELIST_OLD,
    get_enabled_packages,
    load_whitelist,
    set_enabled,
)
from app.main import apply_setting_change


class RecordingEngine:
    """엔진 입력 호출 기록"""

    def __init__(self):
        self.calls = []
        self.whitelist = set()

    def set_whitelist(self, package_ids):
        self.whitelist = set(package_ids)

    def set_master_switch(self, enabled):
        self.calls.append(("set_master_switch", enabled))

    def set_parser_rules(self, rules):
        self.calls.append(("set_parser_rules", len(list(rules))))

    def configure(self, stop_delay_ms=None, progress_interval_ms=None):
        self.calls.append(("configure", stop_delay_ms or progress_interval_ms))


class SettingsTestCase(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.path = os.path.join(self.temp_dir, "settings.json")

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def make_settings(self, initial=None):
        if initial is not None:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(initial, f)
        return SettingsManager(self.path)


class TestSettingsManager(SettingsTestCase):
    def test_defaults_and_persistence(self):
        settings = self.make_settings()
        self.assertTrue(settings.get("service_enabled"))
        self.assertEqual(settings.get("stop_debounce_ms"), 500)
        settings.set("service_enabled", False)
        self.assertFalse(SettingsManager(self.path).get("service_enabled"))

    def test_observer_receives_key(self):
        settings = self.make_settings()
        changes = []
        settings.add_observer(lambda key, values: changes.append((key, values[key])))
        settings.update({"log_level": "DEBUG", "stop_debounce_ms": 800})
        self.assertEqual(changes, [("log_level", "DEBUG"), ("stop_debounce_ms", 800)])

    def test_typed_getters_fall_back(self):
        settings = self.make_settings({"stop_debounce_ms": "fast"})
        self.assertEqual(settings.get_int("stop_debounce_ms"), 500)
        self.assertTrue(settings.get_bool("service_enabled"))

    def test_setting_changes_reach_engine(self):
        settings = self.make_settings()
        engine = RecordingEngine()
        settings.add_observer(lambda key, _values: apply_setting_change(engine, settings, key))
        settings.set("service_enabled", False)
        settings.set("stop_debounce_ms", 800)
        set_enabled(settings, "Player.exe", True)
        self.assertIn(("set_master_switch", False), engine.calls)
        self.assertIn(("configure", 800), engine.calls)
        self.assertIn("Player.exe", engine.whitelist)

    def test_broken_file_keeps_defaults(self):
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("{not json")
        settings = SettingsManager(self.path)
        self.assertEqual(settings.get("progress_interval_ms"), 1000)


class TestWhitelist(SettingsTestCase):
    def test_first_run_saves_defaults(self):
        settings = self.make_settings()
        items = load_whitelist(settings)
        self.assertEqual({item.package_id for item in items}, set(DEFAULT_WHITELIST))
        self.assertTrue(settings.contains(PREF_WHITELIST_JSON))

    def test_old_format_migrated(self):
        settings = self.make_settings({PREF_WHITELIST_OLD: ["b.player", "a.player"]})
        items = load_whitelist(settings)
        self.assertEqual([item.package_id for item in items], ["a.player", "b.player"])
        self.assertFalse(settings.contains(PREF_WHITELIST_OLD))
        self.assertEqual(get_enabled_packages(SettingsManager(self.path)), {"a.player", "b.player"})

    def test_disabled_items_excluded(self):
        settings = self.make_settings({PREF_WHITELIST_JSON: [{"pkg": "a", "enabled": True}]})
        set_enabled(settings, "a", False)
        set_enabled(settings, "b", True)
        self.assertEqual(get_enabled_packages(settings), {"b"})


class TestParserRules(SettingsTestCase):
    def test_first_run_defaults(self):
        settings = self.make_settings()
        rules = load_rules(settings)
        self.assertEqual(len(rules), len(DEFAULT_RULES))
        self.assertTrue(settings.contains(PREF_PARSER_RULES))

    def test_save_and_load(self):
        settings = self.make_settings()
        save_rules(settings, [ParserRule("Player.exe", separator=" | ", field_order=FieldOrder.ARTIST_TITLE)])
        rule = get_rule_for_package(SettingsManager(self.path), "Player.exe")
        self.assertEqual(rule.separator, " | ")
        self.assertIs(rule.field_order, FieldOrder.ARTIST_TITLE)

    def test_malformed_rules_fall_back(self):
        settings = self.make_settings({PREF_PARSER_RULES: [{"enabled": True}]})
        self.assertEqual(load_rules(settings), sorted(DEFAULT_RULES, key=lambda r: r.package_id))


class TestAppLogger(SettingsTestCase):
    def test_buffer_trims_from_front(self):
        buffer = LogBuffer(max_chars=200, trim_chars=50)
        logger = logging.getLogger("test.buffer")
        logger.propagate = False
        logger.addHandler(buffer)
        logger.setLevel(logging.INFO)
        try:
            for i in range(30):
                logger.info("line %02d", i)
        finally:
            logger.removeHandler(buffer)
        self.assertLessEqual(len(buffer.text), 200)
        self.assertIn("line 29", buffer.text)
        self.assertNotIn("line 00", buffer.text)

    def test_buffer_listener_receives_text(self):
        buffer = LogBuffer()
        seen = []
        buffer.add_listener(seen.append)
        logger = logging.getLogger("test.listener")
        logger.propagate = False
        logger.addHandler(buffer)
        logger.setLevel(logging.INFO)
        try:
            logger.info("first")
            buffer.remove_listener(seen.append)
            logger.info("second")
        finally:
            logger.removeHandler(buffer)
        self.assertEqual(len(seen), 1)
        self.assertIn("first", seen[0])
        self.assertIn("second", buffer.text)

    def test_read_log_entries(self):
        log_path = os.path.join(self.temp_dir, "app_log.txt")
        with open(log_path, "w", encoding="utf-8") as f:
            f.write("10-19 12:00:01.123 I/services.metadata_parser: 차량 프로토콜 감지\n")
            f.write("Traceback (most recent call last):\n")
        entries = read_log_entries(log_path)
        self.assertEqual(entries[0].level, "I")
        self.assertEqual(entries[0].tag, "services.metadata_parser")
        self.assertEqual(entries[1].tag, "System")

        clear_log(log_path)
        self.assertEqual(read_log_entries(log_path), [])

    def test_missing_log_file(self):
        self.assertEqual(read_log_entries(os.path.join(self.temp_dir, "none.txt")), [])


if __name__ == "__main__":
    unittest.main()
