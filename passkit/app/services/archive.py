"""
Archive packaging for signed pass bundles.

Produces a single ZIP byte stream with one entry per bundle member.

Guarantees:
- entry names are forward-slash relative paths on every host
- no directory entries are written
- one entry per distinct path; colliding names abort packaging
- stable ordering and fixed entry timestamps, so the same file set
  always packages to the same bytes
- no partial archive is ever returned
"""

from __future__ import annotations

import io
import logging
import os
import zipfile
from typing import Dict, Mapping, Optional, Union

from passkit.app.core.config import Settings, get_settings
from passkit.app.core.errors import ArchiveError
from passkit.app.utils.files import load_dir, normalize_member_path

logger = logging.getLogger(__name__)

EPOCH_ZIP_DT = (1980, 1, 1, 0, 0, 0)

_COMPRESSION = {
    "deflated": zipfile.ZIP_DEFLATED,
    "stored": zipfile.ZIP_STORED,
}


def _normalized_members(files: Mapping[str, bytes]) -> Dict[str, bytes]:
    members: Dict[str, bytes] = {}
    for name, data in files.items():
        path = normalize_member_path(name)
        if path in members:
            raise ArchiveError(f"duplicate bundle member: {path}")
        if not isinstance(data, (bytes, bytearray)):
            raise ArchiveError(
                f"bundle member {path} must be bytes, "
                f"got {type(data).__name__}"
            )
        members[path] = bytes(data)
    return members


def create_zip_archive(
    files: Mapping[str, bytes],
    *,
    settings: Optional[Settings] = None,
) -> bytes:
    """
    Package a file set into ZIP bytes.

    Args:
        files:
            Relative path to content for every bundle member, including
            the synthesized documents, manifest and signature.

    Raises:
        ArchiveError:
            On invalid or colliding member names, or if writing fails.
    """
    settings = settings or get_settings()
    compression = _COMPRESSION[settings.archive_compression]
    members = _normalized_members(files)

    buffer = io.BytesIO()
    try:
        with zipfile.ZipFile(buffer, mode="w", compression=compression) as zf:
            for path in sorted(members):
                info = zipfile.ZipInfo(path, date_time=EPOCH_ZIP_DT)
                info.compress_type = compression
                info.external_attr = 0o644 << 16
                zf.writestr(info, members[path])
    except (OSError, ValueError, zipfile.BadZipFile) as exc:
        raise ArchiveError(f"Failed to write archive: {exc}") from exc

    archive = buffer.getvalue()
    logger.debug(
        "archive_packaged",
        extra={"entries": len(members), "size": len(archive)},
    )
    return archive


def create_zip_archive_from_directory(
    root: Union[str, os.PathLike],
    *,
    settings: Optional[Settings] = None,
) -> bytes:
    """Package every regular file below ``root`` at its relative path."""
    return create_zip_archive(load_dir(root), settings=settings)


def read_zip_archive(archive: bytes) -> Dict[str, bytes]:
    """Return the members of a ZIP archive keyed by entry name."""
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        return {
            info.filename: zf.read(info)
            for info in zf.infolist()
            if not info.is_dir()
        }
