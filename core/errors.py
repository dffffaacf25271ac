"""
세션 소스 예외 정의.
어댑터는 플랫폼 예외를 이 계층으로 변환하고, 엔진은 모두 로컬에서 복구합니다.
"""


class SessionSourceError(Exception):
    """세션 소스 관련 오류의 기본 클래스"""


class PermissionDeniedError(SessionSourceError):
    """세션 목록 조회 권한이 없음 (알림 접근 권한 미허용 등)"""


class TransientQueryError(SessionSourceError):
    """일시적인 조회 실패. 다음 이벤트/틱에서 재시도합니다."""
