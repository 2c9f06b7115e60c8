from __future__ import annotations

from pathlib import Path


STORAGE_DIRNAME = ".kothaboli"


def root_path(root: str | None) -> Path:
    return Path(root or ".").resolve()


def storage_dir(root: Path) -> Path:
    return root / STORAGE_DIRNAME


def ensure_dirs(root: Path) -> None:
    for path in [storage_dir(root), exports_dir(root)]:
        if path.exists() and not path.is_dir():
            raise ValueError(f"Expected directory at {path}, found a file")
        path.mkdir(parents=True, exist_ok=True)


def record_path(root: Path, key: str) -> Path:
    return storage_dir(root) / f"{key}.json"


def exports_dir(root: Path) -> Path:
    return root / "out"


def narration_path(root: Path, story_id: str) -> Path:
    return exports_dir(root) / f"narration_{story_id}.wav"
