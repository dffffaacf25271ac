"""
설정 관리 클래스.
Observer 패턴으로 설정 변경 시 등록된 콜백에 (키, 설정 복사본)을 알립니다.
기본값은 settings/defaults.py에서 임포트합니다.

저장은 임시 파일에 쓴 뒤 교체하므로, 저장 도중 종료돼도 이전 파일이 남습니다.
"""

import json
import logging
import os
import sys
import threading
from typing import Any, Callable, Dict, List

from settings.defaults import DEFAULT_SETTINGS

logger = logging.getLogger(__name__)

SettingsObserver = Callable[[str, Dict[str, Any]], None]


def _base_path() -> str:
    # PyInstaller 환경: exe 옆에 settings.json
    if getattr(sys, "frozen", False):
        return os.path.dirname(sys.executable)
    return os.getcwd()


class SettingsManager:
    """JSON 설정 저장소 (트레이 스레드와 엔진 초기화 양쪽에서 호출됨)"""

    def __init__(self, filepath: str = "settings.json") -> None:
        # 절대 경로면 join이 그대로 돌려줌
        self.filepath = os.path.join(_base_path(), filepath)
        self._values: Dict[str, Any] = dict(DEFAULT_SETTINGS)
        self._observers: List[SettingsObserver] = []
        self._lock = threading.RLock()
        self._read_file()

    # ── 파일 I/O ──────────────────────────────────────────────────────────────

    def _read_file(self) -> None:
        if not os.path.exists(self.filepath):
            return
        try:
            with open(self.filepath, "r", encoding="utf-8") as f:
                stored = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("설정 로드 실패, 기본값 사용: %s", e)
            return
        if not isinstance(stored, dict):
            logger.warning("설정 파일 형식 오류 (객체 아님): %s", self.filepath)
            return
        # 파일에 없는 키는 기본값 유지
        self._values.update(stored)

    def _write_file(self) -> None:
        temp_path = self.filepath + ".tmp"
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(self._values, f, ensure_ascii=False, indent=2)
            os.replace(temp_path, self.filepath)
        except (OSError, TypeError) as e:
            logger.warning("설정 저장 실패: %s", e)

    # ── 조회 ──────────────────────────────────────────────────────────────────

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def get_bool(self, key: str) -> bool:
        return bool(self.get(key, DEFAULT_SETTINGS.get(key, False)))

    def get_int(self, key: str) -> int:
        """정수 설정. 값이 깨져 있으면 기본값"""
        fallback = DEFAULT_SETTINGS.get(key, 0)
        try:
            return int(self.get(key, fallback))
        except (TypeError, ValueError):
            logger.warning("정수가 아닌 설정값 (%s), 기본값 %s 사용", key, fallback)
            return fallback

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._values

    # ── 변경 ──────────────────────────────────────────────────────────────────

    def set(self, key: str, value: Any) -> None:
        self.update({key: value})

    def update(self, changes: Dict[str, Any]) -> None:
        """값 저장 후 바뀐 키마다 한 번씩 알림"""
        with self._lock:
            self._values.update(changes)
            self._write_file()
        for key in changes:
            self._notify(key)

    def remove(self, key: str) -> None:
        """키 삭제 (구버전 키 정리용, 알림 없음)"""
        with self._lock:
            if key in self._values:
                del self._values[key]
                self._write_file()

    # ── Observer 관리 ─────────────────────────────────────────────────────────

    def add_observer(self, callback: SettingsObserver) -> None:
        with self._lock:
            if callback not in self._observers:
                self._observers.append(callback)

    def _notify(self, key: str) -> None:
        with self._lock:
            snapshot = dict(self._values)
            observers = list(self._observers)
        for callback in observers:
            try:
                callback(key, snapshot)
            except Exception:
                logger.exception("설정 옵저버 실패 (%s)", key)
