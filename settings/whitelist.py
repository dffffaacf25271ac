"""
앱 화이트리스트 관리.
설정 파일의 "whitelist_json" 키에 [{"pkg": ..., "enabled": ...}] 형태로 저장합니다.
구버전 "whitelist_packages" (패키지 문자열 목록)는 최초 로드 시 변환합니다.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Set

from core.constants import DEFAULT_WHITELIST
from settings.settings_manager import SettingsManager

logger = logging.getLogger(__name__)

PREF_WHITELIST_JSON = "whitelist_json"
PREF_WHITELIST_OLD = "whitelist_packages"


@dataclass(frozen=True)
class WhitelistItem:
    """화이트리스트 항목 (패키지 ID 기준 유일)"""
    package_id: str
    enabled: bool = True


def load_whitelist(settings: SettingsManager) -> List[WhitelistItem]:
    """화이트리스트 로드 (신규 형식 → 구버전 마이그레이션 → 기본값 순)"""
    items: List[WhitelistItem] = []

    if settings.contains(PREF_WHITELIST_JSON):
        raw = settings.get(PREF_WHITELIST_JSON) or []
        try:
            for obj in raw:
                items.append(WhitelistItem(str(obj["pkg"]), bool(obj.get("enabled", True))))
        except (TypeError, KeyError, AttributeError) as e:
            logger.warning("화이트리스트 형식 오류, 읽은 항목까지만 사용: %s", e)
    elif settings.contains(PREF_WHITELIST_OLD):
        old = settings.get(PREF_WHITELIST_OLD) or []
        items = [WhitelistItem(str(pkg), True) for pkg in old]
        save_whitelist(settings, items)
        settings.remove(PREF_WHITELIST_OLD)
        logger.info("구버전 화이트리스트 변환: %d개", len(items))
    else:
        items = [WhitelistItem(pkg, True) for pkg in DEFAULT_WHITELIST]
        save_whitelist(settings, items)

    return _dedupe_sorted(items)


def save_whitelist(settings: SettingsManager, items: Iterable[WhitelistItem]) -> None:
    settings.set(
        PREF_WHITELIST_JSON,
        [{"pkg": item.package_id, "enabled": item.enabled} for item in _dedupe_sorted(items)],
    )


def get_enabled_packages(settings: SettingsManager) -> Set[str]:
    """활성화된 패키지 ID 집합 (엔진 입력용)"""
    return {item.package_id for item in load_whitelist(settings) if item.enabled}


def set_enabled(settings: SettingsManager, package_id: str, enabled: bool) -> None:
    """항목 하나의 활성화 여부 변경 (없으면 추가)"""
    items = [item for item in load_whitelist(settings) if item.package_id != package_id]
    items.append(WhitelistItem(package_id, enabled))
    save_whitelist(settings, items)


def _dedupe_sorted(items: Iterable[WhitelistItem]) -> List[WhitelistItem]:
    # 같은 패키지가 여러 번 있으면 마지막 항목 우선
    by_package = {item.package_id: item for item in items}
    return sorted(by_package.values(), key=lambda item: item.package_id)
