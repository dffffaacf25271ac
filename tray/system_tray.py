"""
시스템 트레이 아이콘 관리.
pystray를 사용하여 트레이 아이콘과 컨텍스트 메뉴를 제공합니다.
메뉴로 마스터 스위치를 켜고 끄며, 툴팁에 현재 곡/가사를 표시합니다.
"""

import logging
import threading
from typing import Callable, Optional

import pystray
from PIL import Image, ImageDraw

logger = logging.getLogger(__name__)

APP_NAME = "IslandLyrics"

# Windows 트레이 툴팁 최대 길이
_TOOLTIP_MAX_CHARS = 127


def create_icon_image(size: int = 64, active: bool = True) -> Image.Image:
    """음표 모양의 트레이 아이콘 이미지 생성 (비활성이면 회색)"""
    img = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)

    # 배경 원
    draw.ellipse([2, 2, size - 2, size - 2], fill=(26, 26, 46, 220))

    note_color = (233, 69, 96, 255) if active else (128, 128, 128, 255)
    cx, cy = size // 2, size // 2
    u = size / 64  # 64px 기준 좌표 배율

    # 음표 머리 (타원)
    draw.ellipse([cx - 10 * u, cy + 4 * u, cx + 2 * u, cy + 14 * u], fill=note_color)
    # 음표 기둥
    draw.rectangle([cx + 2 * u, cy - 14 * u, cx + 5 * u, cy + 8 * u], fill=note_color)
    # 음표 꼬리
    draw.ellipse([cx + 5 * u, cy - 14 * u, cx + 16 * u, cy - 4 * u], fill=note_color)

    return img


def format_tooltip(text: str) -> str:
    text = text.replace("\n", " ").strip() or APP_NAME
    if len(text) > _TOOLTIP_MAX_CHARS:
        text = text[: _TOOLTIP_MAX_CHARS - 1] + "…"
    return text


class SystemTray:
    """시스템 트레이 아이콘 관리"""

    def __init__(self) -> None:
        self._icon: Optional[pystray.Icon] = None
        self._thread: Optional[threading.Thread] = None

        # 콜백
        self._on_toggle_enabled: Optional[Callable[[], None]] = None
        self._on_exit: Optional[Callable[[], None]] = None

        # 상태
        self._enabled = True
        self._status_text = ""

    # ── 콜백 등록 ─────────────────────────────────────────────────────────────

    def set_on_toggle_enabled(self, callback: Callable[[], None]) -> None:
        self._on_toggle_enabled = callback

    def set_on_exit(self, callback: Callable[[], None]) -> None:
        self._on_exit = callback

    # ── 트레이 시작 ───────────────────────────────────────────────────────────

    def start(self, initial_enabled: bool = True) -> None:
        """트레이 아이콘 시작 (별도 스레드)"""
        self._enabled = initial_enabled

        def run_icon() -> None:
            menu = pystray.Menu(
                pystray.MenuItem(lambda item: self._status_text or "재생 중인 곡 없음", None, enabled=False),
                pystray.Menu.SEPARATOR,
                pystray.MenuItem(
                    "가사 표시",
                    self._handle_toggle_enabled,
                    checked=lambda item: self._enabled,
                ),
                pystray.Menu.SEPARATOR,
                pystray.MenuItem("종료", self._handle_exit),
            )

            self._icon = pystray.Icon(
                APP_NAME,
                create_icon_image(active=self._enabled),
                APP_NAME,
                menu=menu,
            )
            self._icon.run()

        self._thread = threading.Thread(target=run_icon, name="tray", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """트레이 아이콘 종료"""
        if self._icon:
            try:
                self._icon.stop()
            except Exception as e:
                logger.debug("트레이 종료 실패: %s", e)

    def update_enabled_state(self, enabled: bool) -> None:
        """마스터 스위치 상태 반영 (아이콘 색, 메뉴 체크)"""
        self._enabled = enabled
        if self._icon:
            try:
                self._icon.icon = create_icon_image(active=enabled)
                self._icon.update_menu()
            except Exception as e:
                logger.debug("트레이 메뉴 갱신 실패: %s", e)

    def update_status(self, text: str) -> None:
        """툴팁/첫 메뉴 항목에 현재 투영 표시"""
        self._status_text = format_tooltip(text)
        if self._icon:
            try:
                self._icon.title = self._status_text
                self._icon.update_menu()
            except Exception as e:
                logger.debug("트레이 툴팁 갱신 실패: %s", e)

    # ── 이벤트 핸들러 ─────────────────────────────────────────────────────────

    def _handle_toggle_enabled(self, icon: pystray.Icon, item: pystray.MenuItem) -> None:
        if self._on_toggle_enabled:
            self._on_toggle_enabled()

    def _handle_exit(self, icon: pystray.Icon, item: pystray.MenuItem) -> None:
        self.stop()
        if self._on_exit:
            self._on_exit()
