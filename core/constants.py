"""
전역 상수 모음.
디바운스/틱 주기, 기본값 문자열, 벤더 판별 키워드 등을 한 곳에서 관리합니다.
"""

# ── 타이밍 ────────────────────────────────────────────────────────────────────

STOP_DEBOUNCE_MS = 500          # 재생 중지 판정 유예 시간
PROGRESS_INTERVAL_MS = 1000     # 재생 위치 갱신 주기
RESYNC_RETRY_MS = 1000          # 세션 목록 조회 실패 후 재시도 간격

# ── 기본 표시값 ───────────────────────────────────────────────────────────────

UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_ARTIST = "Unknown Artist"
DEFAULT_APP_NAME = "Music"

# ── 벤더 (차량 블루투스 프로토콜) ─────────────────────────────────────────────

# 제목 필드에 가사를 실어 보내는 앱 계열 (패키지 ID 부분 일치)
CAR_PROTOCOL_KEYWORDS = ("tencent", "qqmusic", "miui.player")

# 자동 구분자: " - " 는 마지막 위치, "-" 는 첫 위치에서 분할
SPACED_SEPARATOR = " - "
TIGHT_SEPARATOR = "-"

# 패키지 ID 키워드 → 표시용 앱 이름 (앞에서부터 우선 매칭)
APP_NAME_KEYWORDS = (
    ("qqmusic", "QQ Music"),
    ("netease", "NetEase"),
    ("cloudmusic", "NetEase"),
    ("miui", "Mi Music"),
    ("spotify", "Spotify"),
)

# ── 연주곡 감지 ───────────────────────────────────────────────────────────────

INSTRUMENTAL_MARKERS = (
    "纯音乐",
    "純音樂",
    "Instrumental",
    "No lyrics",
    "请欣赏",
    "没有歌词",
    "暂无歌词",
    "此歌曲为没有填词的纯音乐",
)

# ── 화이트리스트 기본값 ───────────────────────────────────────────────────────

DEFAULT_WHITELIST = (
    "com.tencent.qqmusic",
    "com.miui.player",
    "com.netease.cloudmusic",
    "QQMusic.exe",
    "cloudmusic.exe",
    "Spotify.exe",
)

# ── 로그 ──────────────────────────────────────────────────────────────────────

LOG_BUFFER_MAX_CHARS = 12000    # 메모리 로그 버퍼 상한
LOG_BUFFER_TRIM_CHARS = 4000    # 상한 초과 시 앞부분에서 잘라낼 최소 길이
