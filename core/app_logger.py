"""
로그 설정 및 로그 뷰어용 버퍼.

- 콘솔 출력
- 파일 로그 ("MM-dd HH:mm:ss.SSS L/태그: 메시지" 형식)
- 메모리 버퍼 (최근 로그만 유지, 로그 뷰어가 구독)
"""

import logging
import os
import re
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from core.constants import LOG_BUFFER_MAX_CHARS, LOG_BUFFER_TRIM_CHARS

_FILE_FORMAT = "%(asctime)s.%(msecs)03d %(levelname).1s/%(name)s: %(message)s"
_FILE_DATE_FORMAT = "%m-%d %H:%M:%S"
_BUFFER_FORMAT = "[%(asctime)s] [%(name)s] %(message)s"
_BUFFER_DATE_FORMAT = "%H:%M:%S"

_LOG_PATTERN = re.compile(
    r"^(\d{2}-\d{2}\s\d{2}:\d{2}:\d{2}\.\d{3})\s([A-Z])/(.+?):\s(.*)$"
)


@dataclass(frozen=True)
class LogEntry:
    """파일 로그 한 줄"""
    timestamp: str
    level: str
    tag: str
    message: str


class LogBuffer(logging.Handler):
    """
    최근 로그를 텍스트로 보관하는 핸들러.
    상한을 넘으면 앞쪽 줄 단위로 잘라냅니다.
    """

    def __init__(self, max_chars: int = LOG_BUFFER_MAX_CHARS, trim_chars: int = LOG_BUFFER_TRIM_CHARS) -> None:
        super().__init__()
        self._max_chars = max_chars
        self._trim_chars = min(trim_chars, max_chars)
        self._text = ""
        self._buffer_lock = threading.Lock()
        self._listeners: List[Callable[[str], None]] = []
        self.setFormatter(logging.Formatter(_BUFFER_FORMAT, _BUFFER_DATE_FORMAT))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record) + "\n"
        except Exception:
            self.handleError(record)
            return

        with self._buffer_lock:
            self._text += line
            if len(self._text) > self._max_chars:
                index = self._text.find("\n", self._trim_chars)
                if index != -1:
                    self._text = self._text[index + 1:]
            text = self._text
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(text)
            except Exception:
                # 로그 핸들러 안에서 다시 로그를 남기면 재귀가 됨
                pass

    @property
    def text(self) -> str:
        with self._buffer_lock:
            return self._text

    def add_listener(self, listener: Callable[[str], None]) -> None:
        with self._buffer_lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[str], None]) -> None:
        with self._buffer_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    buffer_chars: int = LOG_BUFFER_MAX_CHARS,
) -> LogBuffer:
    """
    루트 로거 구성.

    Args:
        level: 로그 레벨 이름 ("DEBUG", "INFO" 등)
        log_file: 파일 로그 경로, 없으면 파일 로그 생략
        buffer_chars: 메모리 버퍼 상한

    Returns:
        로그 뷰어가 구독할 LogBuffer
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # 재호출 시 이전에 설치한 핸들러 교체
    for handler in list(root.handlers):
        if getattr(handler, "_island_lyrics", False):
            root.removeHandler(handler)
            handler.close()

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter("[%(name)s] %(message)s"))
    console._island_lyrics = True  # type: ignore[attr-defined]
    root.addHandler(console)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, _FILE_DATE_FORMAT))
            file_handler._island_lyrics = True  # type: ignore[attr-defined]
            root.addHandler(file_handler)
        except OSError as e:
            root.warning("파일 로그 열기 실패 (%s): %s", log_file, e)

    buffer = LogBuffer(max_chars=buffer_chars)
    buffer._island_lyrics = True  # type: ignore[attr-defined]
    root.addHandler(buffer)
    return buffer


def read_log_entries(path: str) -> List[LogEntry]:
    """파일 로그를 LogEntry 목록으로 파싱 (형식이 다른 줄은 System 태그로 보존)"""
    entries: List[LogEntry] = []
    if not os.path.exists(path):
        return entries

    try:
        with open(path, "r", encoding="utf-8") as f:
            for raw in f:
                line = raw.rstrip("\n")
                if not line:
                    continue
                match = _LOG_PATTERN.match(line)
                if match:
                    entries.append(LogEntry(*match.groups()))
                else:
                    entries.append(LogEntry("", "V", "System", line))
    except OSError as e:
        entries.append(LogEntry("", "E", "LogManager", f"Error reading log: {e}"))
    return entries


def clear_log(path: str) -> None:
    """파일 로그 비우기"""
    with open(path, "w", encoding="utf-8"):
        pass
