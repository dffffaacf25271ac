"""
앱별 메타데이터 파서 규칙 관리.
설정 파일의 "parser_rules_json" 키에 저장합니다.
"""

import logging
from typing import Iterable, List, Optional

from core.models import FieldOrder, ParserRule
from settings.settings_manager import SettingsManager

logger = logging.getLogger(__name__)

PREF_PARSER_RULES = "parser_rules_json"

# 차량 블루투스 프로토콜을 쓰는 대표 앱 (자동 구분자)
DEFAULT_RULES = (
    ParserRule("com.tencent.qqmusic"),
    ParserRule("com.miui.player"),
    ParserRule("QQMusic.exe"),
)


def load_rules(settings: SettingsManager) -> List[ParserRule]:
    """규칙 로드. 최초 실행이면 기본값을 저장하고, 형식 오류면 기본값으로 대체합니다."""
    if not settings.contains(PREF_PARSER_RULES):
        rules = list(DEFAULT_RULES)
        save_rules(settings, rules)
        return sorted(rules, key=lambda r: r.package_id)

    rules: List[ParserRule] = []
    try:
        for obj in settings.get(PREF_PARSER_RULES) or []:
            rules.append(
                ParserRule(
                    package_id=str(obj["pkg"]),
                    enabled=bool(obj.get("enabled", True)),
                    uses_car_protocol=bool(obj.get("usesCarProtocol", True)),
                    separator=obj.get("separator") or None,
                    field_order=FieldOrder(obj.get("fieldOrder", FieldOrder.TITLE_ARTIST.value)),
                )
            )
    except (TypeError, KeyError, ValueError, AttributeError) as e:
        logger.warning("파서 규칙 형식 오류, 기본값 사용: %s", e)
        return sorted(DEFAULT_RULES, key=lambda r: r.package_id)

    return sorted(rules, key=lambda r: r.package_id)


def save_rules(settings: SettingsManager, rules: Iterable[ParserRule]) -> None:
    settings.set(
        PREF_PARSER_RULES,
        [
            {
                "pkg": rule.package_id,
                "enabled": rule.enabled,
                "usesCarProtocol": rule.uses_car_protocol,
                "separator": rule.separator,
                "fieldOrder": rule.field_order.value,
            }
            for rule in rules
        ],
    )


def get_rule_for_package(settings: SettingsManager, package_id: str) -> Optional[ParserRule]:
    """활성화된 규칙 조회, 없으면 None"""
    for rule in load_rules(settings):
        if rule.package_id == package_id and rule.enabled:
            return rule
    return None
