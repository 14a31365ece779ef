from __future__ import annotations

import re
import shutil
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

FileSet = dict[str, "VirtualFile"]


@dataclass
class VirtualFile:
    contents: bytes
    metadata: dict = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.contents.decode("utf-8")

    @text.setter
    def text(self, value: str) -> None:
        self.contents = value.encode("utf-8")


def list_files(root: Path, patterns: list[str]) -> list[Path]:
    if not root.exists():
        return []
    found: dict[str, Path] = {}
    for pattern in patterns:
        for path in root.glob(pattern):
            if path.is_file():
                found[path.relative_to(root).as_posix()] = path
    return [found[key] for key in sorted(found)]


def read_files(root: Path, patterns: list[str]) -> FileSet:
    files: FileSet = {}
    for path in list_files(root, patterns):
        rel = path.relative_to(root).as_posix()
        files[rel] = VirtualFile(path.read_bytes(), {"source": rel})
    return files


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def write_files(files: FileSet, dest: Path) -> list[Path]:
    written = []
    for rel, file in files.items():
        target = dest / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(file.contents)
        written.append(target)
    return written


def copy_files(root: Path, patterns: list[str], dest: Path) -> list[Path]:
    copied = []
    for path in list_files(root, patterns):
        target = dest / path.relative_to(root)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(path, target)
        copied.append(target)
    return copied


@lru_cache(maxsize=128)
def _glob_regex(pattern: str) -> re.Pattern:
    parts = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(parts) + r"\Z")


def match_path(path: str, pattern: str) -> bool:
    """Glob match where ``*`` stays inside one segment and ``**/`` spans any."""
    return _glob_regex(pattern).match(path) is not None
