"""
Manifest construction for pass bundles.

The manifest maps every shipped bundle member to its content digest.
It covers the serialized pass (and personalization) documents and all
content-source files, and excludes itself and the detached signature.

Keys are full forward-slash relative paths, so localized resources with
the same file name in different ``<locale>.lproj`` folders never collide.

Serialization is deterministic: UTF-8 JSON, sorted keys, compact
separators. The bytes returned by ``serialize_manifest`` are exactly the
bytes that are signed and shipped.
"""

from __future__ import annotations

import json
import logging
from typing import Dict, Mapping

from passkit.app.core.errors import ArchiveError
from passkit.app.utils.files import normalize_member_path
from passkit.app.utils.hashing import compute_file_digest

logger = logging.getLogger(__name__)

MANIFEST_FILE_NAME = "manifest.json"
SIGNATURE_FILE_NAME = "signature"
PASS_FILE_NAME = "pass.json"
PERSONALIZATION_FILE_NAME = "personalization.json"

# Members computed from the manifest itself; never hashed into it.
COMPUTED_FILE_NAMES = frozenset({MANIFEST_FILE_NAME, SIGNATURE_FILE_NAME})


def build_manifest(files: Mapping[str, bytes]) -> Dict[str, str]:
    """
    Hash every bundle member.

    Args:
        files:
            Relative path to content for every file that will ship,
            excluding the manifest and signature.

    Returns:
        Normalized relative path to lowercase hex SHA-1 digest.
    """
    manifest: Dict[str, str] = {}

    for name, data in files.items():
        path = normalize_member_path(name)
        if path in COMPUTED_FILE_NAMES:
            continue
        if path in manifest:
            raise ArchiveError(f"duplicate bundle member: {path}")
        manifest[path] = compute_file_digest(data)

    logger.debug(
        "manifest_built",
        extra={"entries": len(manifest)},
    )
    return manifest


def serialize_manifest(manifest: Mapping[str, str]) -> bytes:
    """Encode a manifest as canonical JSON bytes."""
    return json.dumps(
        dict(manifest),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def create_manifest_json(files: Mapping[str, bytes]) -> bytes:
    """Build and serialize the manifest for ``files`` in one step."""
    return serialize_manifest(build_manifest(files))
