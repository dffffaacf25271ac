"""
기본 설정값 상수.
SettingsManager 클래스 내부에서 분리하여 독립적으로 관리합니다.
"""

from typing import Any

from core.constants import LOG_BUFFER_MAX_CHARS, PROGRESS_INTERVAL_MS, STOP_DEBOUNCE_MS

# 화이트리스트/파서 규칙은 각 헬퍼가 최초 로드 시 기본값으로 채움
DEFAULT_SETTINGS: dict[str, Any] = {
    "service_enabled": True,
    "stop_debounce_ms": STOP_DEBOUNCE_MS,
    "progress_interval_ms": PROGRESS_INTERVAL_MS,
    "log_level": "INFO",
    "log_file": "app_log.txt",
    "log_buffer_chars": LOG_BUFFER_MAX_CHARS,
}
