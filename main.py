"""
IslandLyrics 진입점.
미디어 세션에서 현재 곡/가사를 읽어 트레이에 표시합니다.
"""

from app.main import create_and_run

if __name__ == "__main__":
    create_and_run()
