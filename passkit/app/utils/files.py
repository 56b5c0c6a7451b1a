"""
Filesystem helpers for directory-shaped bundle content.

Paths returned by this module are relative, forward-slash separated,
and independent of host path conventions. Symlinks and ``.DS_Store``
files are skipped.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path, PurePosixPath
from typing import Dict, Union

from passkit.app.core.errors import ArchiveError, TemplateError

IGNORED_FILE_NAMES = frozenset({".DS_Store"})

PathLike = Union[str, os.PathLike]


def normalize_member_path(name: str) -> str:
    """
    Normalize a bundle member name to a forward-slash relative path.

    Raises:
        ArchiveError: for empty, absolute, or parent-escaping names.
    """
    if not isinstance(name, str) or not name.strip():
        raise ArchiveError(f"invalid bundle member name: {name!r}")

    posix = name.replace("\\", "/")
    if posix.startswith("/") or (posix[:1].isalpha() and posix[1:2] == ":"):
        raise ArchiveError(f"bundle member name must be relative: {name!r}")

    parts = [part for part in PurePosixPath(posix).parts if part not in ("", ".")]
    if not parts or ".." in parts:
        raise ArchiveError(f"invalid bundle member name: {name!r}")

    return "/".join(parts)


def is_ignored_member(name: str) -> bool:
    """True for members that never ship, whichever source supplied them."""
    return name.replace("\\", "/").rsplit("/", 1)[-1] in IGNORED_FILE_NAMES


def _is_skipped(entry: os.DirEntry) -> bool:
    return entry.is_symlink() or is_ignored_member(entry.name)


def load_dir(src: PathLike) -> Dict[str, bytes]:
    """
    Read every regular file under ``src`` into memory.

    Keys are paths relative to ``src``.
    """
    root = Path(src)
    if not root.exists():
        raise TemplateError(f"template directory does not exist: {root}")
    if not root.is_dir():
        raise TemplateError(f"template path is not a directory: {root}")

    files: Dict[str, bytes] = {}
    pending = [root]

    while pending:
        current = pending.pop()
        with os.scandir(current) as entries:
            for entry in entries:
                if _is_skipped(entry):
                    continue
                path = Path(entry.path)
                if entry.is_dir(follow_symlinks=False):
                    pending.append(path)
                    continue
                relative = path.relative_to(root).as_posix()
                files[relative] = path.read_bytes()

    return files


def copy_dir(src: PathLike, dst: PathLike) -> None:
    """
    Recursively copy ``src`` to ``dst``.

    ``dst`` must not exist unless it is an empty directory. Symlinks
    and ``.DS_Store`` files are not copied.
    """
    source = Path(src)
    destination = Path(dst)

    if not source.is_dir():
        raise TemplateError(f"template path is not a directory: {source}")

    if destination.exists() and (
        not destination.is_dir() or any(destination.iterdir())
    ):
        raise TemplateError(f"destination already exists: {destination}")

    shutil.copytree(
        source,
        destination,
        symlinks=True,
        ignore=_ignore_entries,
        dirs_exist_ok=True,
    )


def _ignore_entries(directory: str, names) -> set:
    ignored = set()
    for name in names:
        if name in IGNORED_FILE_NAMES or os.path.islink(os.path.join(directory, name)):
            ignored.add(name)
    return ignored


def write_member(root: PathLike, name: str, data: bytes) -> Path:
    """Write one bundle member below ``root``, creating parent folders."""
    target = Path(root).joinpath(*normalize_member_path(name).split("/"))
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
    return target
