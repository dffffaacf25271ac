"""
주 세션 선택.

전제: 외부 세션 목록은 최근 활성 순(most-recent-first)으로 정렬되어 있습니다.
이 전제를 보장할 수 없는 소스라면 세션에 최근 활성 시각을 따로 실어야 합니다.
"""

import logging
from dataclasses import replace
from typing import AbstractSet, Iterable, List, Optional

from core.models import PlaybackState, Session

logger = logging.getLogger(__name__)


def select_primary(sessions: Iterable[Session], whitelist: AbstractSet[str]) -> Optional[Session]:
    """
    화이트리스트에 있는 세션 중 주 세션 선택

    1순위: 목록 순서상 첫 번째 재생 중 세션
    2순위: 목록의 첫 번째 세션 (대기 상태)
    없으면 None
    """
    filtered = [s for s in sessions if s.package_id in whitelist]
    for session in filtered:
        if session.is_playing:
            return session
    return filtered[0] if filtered else None


class SessionArbitrator:
    """
    현재 세션 목록 스냅샷 보관 및 주 세션 계산.
    개별 세션 이벤트는 목록 내 스냅샷을 새 객체로 교체합니다.
    """

    def __init__(self) -> None:
        self._sessions: List[Session] = []
        self._whitelist: frozenset[str] = frozenset()

    # ── 입력 ──────────────────────────────────────────────────────────────────

    def set_sessions(self, sessions: Iterable[Session]) -> None:
        # 같은 ID가 여러 번 오면 앞쪽(최근) 항목만 유지
        seen: set[str] = set()
        ordered: List[Session] = []
        for session in sessions:
            if session.package_id in seen:
                continue
            seen.add(session.package_id)
            ordered.append(session)
        self._sessions = ordered

    def set_whitelist(self, package_ids: Iterable[str]) -> None:
        self._whitelist = frozenset(package_ids)

    def update_state(
        self,
        session_id: str,
        state: PlaybackState,
        position_ms: int,
        timestamp_ms: int,
        speed: float,
    ) -> Optional[Session]:
        return self._replace(
            session_id,
            state=state,
            position_ms=position_ms,
            position_timestamp_ms=timestamp_ms,
            speed=speed,
        )

    def update_metadata(
        self,
        session_id: str,
        raw_title: Optional[str],
        raw_artist: Optional[str],
        duration_ms: int,
    ) -> Optional[Session]:
        return self._replace(
            session_id,
            raw_title=raw_title,
            raw_artist=raw_artist,
            duration_ms=max(0, duration_ms),
        )

    # ── 조회 ──────────────────────────────────────────────────────────────────

    @property
    def sessions(self) -> List[Session]:
        return list(self._sessions)

    @property
    def whitelist(self) -> frozenset[str]:
        return self._whitelist

    @property
    def session_ids(self) -> set[str]:
        return {s.package_id for s in self._sessions}

    def get(self, session_id: str) -> Optional[Session]:
        for session in self._sessions:
            if session.package_id == session_id:
                return session
        return None

    def primary(self) -> Optional[Session]:
        return select_primary(self._sessions, self._whitelist)

    # ── 내부 ──────────────────────────────────────────────────────────────────

    def _replace(self, session_id: str, **changes) -> Optional[Session]:
        for i, session in enumerate(self._sessions):
            if session.package_id == session_id:
                updated = replace(session, **changes)
                self._sessions[i] = updated
                return updated
        logger.debug("목록에 없는 세션 이벤트 무시: %s", session_id)
        return None
