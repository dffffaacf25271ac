"""
발행/구독 채널.
마지막 값 하나만 보관하며, 쓰기마다 모든 구독자에게 새 값을 전달합니다.
"""

import logging
import threading
from typing import Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription:
    """구독 해제 핸들"""

    def __init__(self, channel: "Channel", callback: Callable) -> None:
        self._channel = channel
        self._callback = callback

    def dispose(self) -> None:
        self._channel.unsubscribe(self._callback)


class Channel(Generic[T]):
    """단일 값 브로드캐스트 채널 (last-write-wins)"""

    def __init__(self, name: str, initial: T) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._value: T = initial
        self._observers: List[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        with self._lock:
            return self._value

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        with self._lock:
            if callback not in self._observers:
                self._observers.append(callback)
        return Subscription(self, callback)

    def unsubscribe(self, callback: Callable[[T], None]) -> None:
        with self._lock:
            if callback in self._observers:
                self._observers.remove(callback)

    @property
    def observer_count(self) -> int:
        with self._lock:
            return len(self._observers)

    def publish(self, value: T) -> None:
        # 값 교체와 구독자 목록 복사는 잠금 안에서, 알림은 잠금 밖에서
        with self._lock:
            self._value = value
            observers = list(self._observers)
        for callback in observers:
            try:
                callback(value)
            except Exception:
                logger.exception("[%s] 옵저버 알림 실패", self.name)
