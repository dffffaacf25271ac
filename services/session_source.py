"""
세션 소스 인터페이스.
플랫폼별 미디어 세션 API를 감싸는 어댑터가 구현하고, 엔진은 이 인터페이스만 사용합니다.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Protocol

from core.errors import SessionSourceError
from core.models import PlaybackState, Session


class SessionListener(Protocol):
    """소스 → 엔진 이벤트 (어느 스레드에서 호출돼도 됨)"""

    def on_sessions_changed(self, sessions: List[Session]) -> None: ...

    def on_session_state_changed(
        self,
        session_id: str,
        state: PlaybackState,
        position_ms: int,
        timestamp_ms: int,
        speed: float,
    ) -> None: ...

    def on_session_metadata_changed(
        self,
        session_id: str,
        raw_title: Optional[str],
        raw_artist: Optional[str],
        duration_ms: int,
    ) -> None: ...

    def on_sessions_query_failed(self, error: SessionSourceError) -> None:
        """목록 변경 알림 뒤 재조회가 실패함 (권한 없음 또는 일시적 실패)"""


class SessionSource(ABC):
    """
    외부 세션 제공자.

    - get_sessions(): 최근 활성 순으로 정렬된 현재 세션 목록.
      권한이 없으면 PermissionDeniedError, 일시적 실패는 TransientQueryError.
    - watch_session()/unwatch_session(): 세션별 상태/메타데이터 콜백 등록/해제.
      엔진이 세션 ID당 한 번만 호출하도록 관리합니다.
    """

    @abstractmethod
    def attach(self, listener: SessionListener) -> None:
        """목록 변경 리스너 등록"""

    @abstractmethod
    def detach(self) -> None:
        """리스너 및 모든 세션 콜백 해제"""

    @abstractmethod
    def get_sessions(self) -> List[Session]:
        """현재 세션 목록"""

    @abstractmethod
    def watch_session(self, session_id: str) -> None:
        """세션별 콜백 등록"""

    @abstractmethod
    def unwatch_session(self, session_id: str) -> None:
        """세션별 콜백 해제"""
