"""
Pass template content sources.

A template supplies every bundle member that is not derived from the
pass itself: images, localized strings, and other static resources.
Two realizations are provided:

- ``FolderPassTemplate``: content read from an on-disk template tree
- ``InMemoryPassTemplate``: an in-process store filled from bytes,
  local directories, or remote URLs

``InMemoryPassTemplate`` is the only shared mutable collaborator of the
pipeline. All inserts and reads go through a single lock, and readers
receive a snapshot copy.
"""

from __future__ import annotations

import abc
import logging
import os
import shutil
import threading
import time
from pathlib import Path
from typing import Dict, Optional, Union

import requests

from passkit.app.core.config import Settings, get_settings
from passkit.app.core.errors import TemplateError
from passkit.app.utils.files import (
    copy_dir,
    is_ignored_member,
    load_dir,
    normalize_member_path,
    write_member,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


# ---------------------------------------------------------------------------
# Bundle asset names
# ---------------------------------------------------------------------------

BUNDLE_ICON_RETINA_HD = "icon@3x.png"
BUNDLE_ICON_RETINA = "icon@2x.png"
BUNDLE_ICON = "icon.png"
BUNDLE_LOGO_RETINA_HD = "logo@3x.png"
BUNDLE_LOGO_RETINA = "logo@2x.png"
BUNDLE_LOGO = "logo.png"
BUNDLE_THUMBNAIL_RETINA_HD = "thumbnail@3x.png"
BUNDLE_THUMBNAIL_RETINA = "thumbnail@2x.png"
BUNDLE_THUMBNAIL = "thumbnail.png"
BUNDLE_STRIP_RETINA_HD = "strip@3x.png"
BUNDLE_STRIP_RETINA = "strip@2x.png"
BUNDLE_STRIP = "strip.png"
BUNDLE_BACKGROUND_RETINA_HD = "background@3x.png"
BUNDLE_BACKGROUND_RETINA = "background@2x.png"
BUNDLE_BACKGROUND = "background.png"
BUNDLE_FOOTER_RETINA_HD = "footer@3x.png"
BUNDLE_FOOTER_RETINA = "footer@2x.png"
BUNDLE_FOOTER = "footer.png"
BUNDLE_PERSONALIZATION_LOGO_RETINA_HD = "personalizationLogo@3x.png"
BUNDLE_PERSONALIZATION_LOGO_RETINA = "personalizationLogo@2x.png"
BUNDLE_PERSONALIZATION_LOGO = "personalizationLogo.png"


def path_for_locale(name: str, locale: Optional[str]) -> str:
    """Place ``name`` in the ``<locale>.lproj`` folder, if a locale is given."""
    if not locale or not locale.strip():
        return normalize_member_path(name)
    return normalize_member_path(f"{locale.strip()}.lproj/{name}")


# ---------------------------------------------------------------------------
# Content source interface
# ---------------------------------------------------------------------------

class PassTemplate(abc.ABC):
    """Supplies the non-synthesized members of a pass bundle."""

    @abc.abstractmethod
    def provision(self, destination: PathLike) -> None:
        """Stage all template content below ``destination``."""

    @abc.abstractmethod
    def get_all_files(self) -> Dict[str, bytes]:
        """Return all template content keyed by relative path."""


# ---------------------------------------------------------------------------
# Folder-backed template
# ---------------------------------------------------------------------------

class FolderPassTemplate(PassTemplate):
    """Template content read from a directory tree on disk."""

    def __init__(self, template_dir: PathLike):
        self.template_dir = Path(template_dir)

    def provision(self, destination: PathLike) -> None:
        copy_dir(self.template_dir, destination)

    def get_all_files(self) -> Dict[str, bytes]:
        return load_dir(self.template_dir)


# ---------------------------------------------------------------------------
# In-memory template
# ---------------------------------------------------------------------------

class InMemoryPassTemplate(PassTemplate):
    """
    Thread-safe in-memory template store.

    Remote downloads happen outside the lock; only the insert is
    serialized.
    """

    def __init__(self, *, settings: Optional[Settings] = None):
        self._files: Dict[str, bytes] = {}
        self._lock = threading.Lock()
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_all_files(self) -> Dict[str, bytes]:
        with self._lock:
            return dict(self._files)

    def provision(self, destination: PathLike) -> None:
        target = Path(destination)
        files = self.get_all_files()

        created = not target.exists()
        target.mkdir(parents=True, exist_ok=True)

        try:
            for name, data in files.items():
                write_member(target, name, data)
        except OSError:
            if created:
                shutil.rmtree(target, ignore_errors=True)
            raise

    # ------------------------------------------------------------------
    # Inserts
    # ------------------------------------------------------------------

    def _store(self, path: str, data: bytes) -> None:
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError(
                f"template content must be bytes, got {type(data).__name__}"
            )
        if is_ignored_member(path):
            logger.debug("template_member_ignored", extra={"member": path})
            return
        with self._lock:
            self._files[path] = bytes(data)

    def add_file_bytes(self, name: str, data: bytes) -> None:
        self._store(normalize_member_path(name), data)

    def add_file_bytes_localized(self, name: str, locale: str, data: bytes) -> None:
        self._store(path_for_locale(name, locale), data)

    def add_file_from_url(self, name: str, url: str) -> None:
        path = normalize_member_path(name)
        self._store(path, self._download(url))

    def add_file_from_url_localized(self, name: str, locale: str, url: str) -> None:
        path = path_for_locale(name, locale)
        self._store(path, self._download(url))

    def add_all_files(self, directory: PathLike) -> None:
        """Add every file below ``directory`` at its relative path."""
        loaded = load_dir(directory)
        with self._lock:
            self._files.update(loaded)

    # ------------------------------------------------------------------
    # Remote retrieval
    # ------------------------------------------------------------------

    def _download(self, url: str) -> bytes:
        """
        Fetch a remote asset.

        Bounded by ``download_timeout_seconds`` end to end, and by
        ``max_download_size_mb`` in size. The transfer runs on a worker
        thread so a peer that trickles bytes cannot hold the caller past
        the ceiling. Network errors propagate.
        """
        timeout = self.settings.download_timeout_seconds
        cancelled = threading.Event()
        outcome: Dict[str, object] = {}

        def fetch() -> None:
            try:
                outcome["data"] = self._fetch(url, cancelled)
            except Exception as exc:  # re-raised on the calling thread
                outcome["error"] = exc

        worker = threading.Thread(
            target=fetch,
            name="template-download",
            daemon=True,
        )
        started = time.monotonic()
        worker.start()
        worker.join(timeout)

        if worker.is_alive():
            cancelled.set()
            logger.warning(
                "template_download_timed_out",
                extra={"url": url, "timeout": timeout},
            )
            raise TemplateError(
                f"Template download exceeded {timeout}s (url={url})"
            )

        if "error" in outcome:
            raise outcome["error"]

        data = outcome["data"]
        logger.debug(
            "template_file_downloaded",
            extra={
                "url": url,
                "size": len(data),
                "elapsed": round(time.monotonic() - started, 3),
            },
        )
        return data

    def _fetch(self, url: str, cancelled: threading.Event) -> bytes:
        settings = self.settings
        max_bytes = settings.max_download_size_mb * 1024 * 1024

        with requests.get(
            url,
            timeout=settings.download_timeout_seconds,
            stream=True,
        ) as response:
            if not 200 <= response.status_code < 300:
                raise TemplateError(
                    f"Template download failed (status={response.status_code}, "
                    f"url={url})"
                )

            chunks = []
            received = 0
            for chunk in response.iter_content(chunk_size=8192):
                if cancelled.is_set():
                    raise TemplateError(f"Template download cancelled (url={url})")
                received += len(chunk)
                if received > max_bytes:
                    raise TemplateError(
                        f"Template download exceeds {settings.max_download_size_mb} MB "
                        f"(url={url})"
                    )
                chunks.append(chunk)

        return b"".join(chunks)
