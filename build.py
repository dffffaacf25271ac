import PyInstaller.__main__
import os
import shutil

from create_icon import save_icon

# 빌드 옵션
options = [
    'main.py',
    '--name=IslandLyrics',
    '--noconsole',
    '--onedir',  # 폴더 형태로 빌드 (디버깅 및 파일 관리 용이)
    '--noconfirm', # 기존 배포 폴더 삭제 시 확인 안 함
    '--clean',   # 캐시 정리
    '--hidden-import=pystray._win32',  # pystray 백엔드는 동적 임포트라 수집되지 않음
]

# 아이콘이 없으면 트레이 아이콘으로 생성
if not os.path.exists('icon.ico'):
    save_icon('icon.ico')
options.append('--icon=icon.ico')

# PyInstaller 실행
print("Building IslandLyrics...")
PyInstaller.__main__.run(options)

# 설정 파일 복사
print("Copying configuration files...")
dist_dir = os.path.join('dist', 'IslandLyrics')
files_to_copy = ['settings.json']

if not os.path.exists(dist_dir):
    print(f"Error: Build directory not found at {dist_dir}")
    raise SystemExit(1)

for file in files_to_copy:
    if os.path.exists(file):
        shutil.copy2(file, dist_dir)
        print(f"Copied {file} to {dist_dir}")
    else:
        print(f"Warning: {file} not found locally.")

print("Build complete!")
print(f"Executable located at: {os.path.abspath(dist_dir)}")
