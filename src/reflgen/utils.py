from __future__ import annotations

from pathlib import Path


def path_is_within(candidate: Path, root: Path) -> bool:
    try:
        Path(candidate).resolve().relative_to(Path(root).resolve())
        return True
    except ValueError:
        return False


def same_file(a: Path, b: Path) -> bool:
    return Path(a).resolve() == Path(b).resolve()
