"""
트레이 아이콘으로 Windows 실행 파일 아이콘(icon.ico) 생성.
build.py가 빌드 전에 호출합니다.
"""

from tray.system_tray import create_icon_image

# Windows 아이콘에 필요한 다양한 크기
ICON_SIZES = [(256, 256), (128, 128), (64, 64), (48, 48), (32, 32), (16, 16)]


def save_icon(path: str = "icon.ico") -> None:
    images = [create_icon_image(size=size[0]) for size in ICON_SIZES]
    # 첫 번째 이미지를 저장하면서 나머지를 append
    images[0].save(path, format="ICO", sizes=ICON_SIZES, append_images=images[1:])
    print(f"Icon saved to {path} with sizes: {ICON_SIZES}")


if __name__ == "__main__":
    save_icon()
