"""
Signed pass archive pipeline.

Composes validation, serialization, manifest construction, detached
signing, and packaging into the two public operations:

- ``build_signed_archive``
- ``build_signed_personalized_archive``

Flow (both realizations):
    (a) obtain template content
    (b) validate the pass; fail with every violation
    (c) serialize the pass as ``pass.json``
    (d) validate and serialize the optional personalization document
    (e) build ``manifest.json`` over the resulting file set
    (f) sign the exact manifest bytes
    (g) add manifest and signature to the file set
    (h) package the file set

A validation failure at (b) or (d) aborts before any hashing or signing.
No partial manifest, signature or archive is ever produced.

Realizations:
- ``MemoryBasedSigner`` works on in-memory byte buffers only
- ``FileBasedSigner`` stages the bundle in a transient directory and
  packages by walking it; the directory is removed on every exit path

For the same template, documents and credentials, both realizations
produce archives with identical members.
"""

from __future__ import annotations

import abc
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Optional

from passkit.app.core.config import Settings, get_settings
from passkit.app.core.errors import PassValidationError
from passkit.app.schemas.pass_document import Pass
from passkit.app.schemas.personalization import Personalization
from passkit.app.services.archive import (
    create_zip_archive,
    create_zip_archive_from_directory,
)
from passkit.app.services.manifest import (
    COMPUTED_FILE_NAMES,
    MANIFEST_FILE_NAME,
    PASS_FILE_NAME,
    PERSONALIZATION_FILE_NAME,
    SIGNATURE_FILE_NAME,
    create_manifest_json,
)
from passkit.app.services.signing import SigningInformation, sign_manifest_file
from passkit.app.services.templates import PassTemplate
from passkit.app.utils.files import is_ignored_member, load_dir, write_member

logger = logging.getLogger(__name__)


class PassSigner(abc.ABC):
    """Common surface of the pipeline realizations."""

    def __init__(self, *, settings: Optional[Settings] = None):
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def build_signed_archive(
        self,
        pass_document: Pass,
        template: PassTemplate,
        signing_info: SigningInformation,
    ) -> bytes:
        """Build a signed, zipped pass bundle."""
        return self.build_signed_personalized_archive(
            pass_document,
            None,
            template,
            signing_info,
        )

    @abc.abstractmethod
    def build_signed_personalized_archive(
        self,
        pass_document: Pass,
        personalization: Optional[Personalization],
        template: PassTemplate,
        signing_info: SigningInformation,
    ) -> bytes:
        """Build a signed, zipped pass bundle with optional personalization."""

    def sign_manifest_file(
        self,
        manifest_json: bytes,
        signing_info: SigningInformation,
    ) -> bytes:
        return sign_manifest_file(
            manifest_json,
            signing_info,
            settings=self.settings,
        )

    # ------------------------------------------------------------------
    # Shared stages
    # ------------------------------------------------------------------

    @staticmethod
    def _serialize_documents(
        pass_document: Pass,
        personalization: Optional[Personalization],
    ) -> Dict[str, bytes]:
        violations = pass_document.get_validation_errors()
        if violations:
            raise PassValidationError("pass", violations)

        documents = {PASS_FILE_NAME: pass_document.to_json()}

        if personalization is not None:
            violations = personalization.get_validation_errors()
            if violations:
                raise PassValidationError("personalization", violations)
            documents[PERSONALIZATION_FILE_NAME] = personalization.to_json()

        return documents

    @staticmethod
    def _warn_computed_members(names) -> None:
        reserved = sorted(COMPUTED_FILE_NAMES.intersection(names))
        if reserved:
            logger.warning(
                "template_reserved_members_dropped",
                extra={"members": reserved},
            )

    def _log_built(
        self,
        pass_document: Pass,
        personalized: bool,
        members: int,
        archive: bytes,
    ) -> None:
        logger.info(
            "pass_archive_built",
            extra={
                "signer": type(self).__name__,
                "serial_number": pass_document.serial_number,
                "personalized": personalized,
                "members": members,
                "size": len(archive),
            },
        )


# ----------------------------------------------------------------------
# In-memory realization
# ----------------------------------------------------------------------

class MemoryBasedSigner(PassSigner):
    """Builds bundles purely from in-memory byte buffers."""

    def build_signed_personalized_archive(
        self,
        pass_document: Pass,
        personalization: Optional[Personalization],
        template: PassTemplate,
        signing_info: SigningInformation,
    ) -> bytes:
        files = {
            name: data
            for name, data in template.get_all_files().items()
            if not is_ignored_member(name)
        }

        documents = self._serialize_documents(pass_document, personalization)

        self._warn_computed_members(files)
        for name in COMPUTED_FILE_NAMES:
            files.pop(name, None)
        files.update(documents)

        manifest = create_manifest_json(files)
        signature = self.sign_manifest_file(manifest, signing_info)

        files[MANIFEST_FILE_NAME] = manifest
        files[SIGNATURE_FILE_NAME] = signature

        archive = create_zip_archive(files, settings=self.settings)
        self._log_built(pass_document, personalization is not None, len(files), archive)
        return archive


# ----------------------------------------------------------------------
# Staged-directory realization
# ----------------------------------------------------------------------

class FileBasedSigner(PassSigner):
    """
    Builds bundles by staging them in a transient directory.

    The staging directory is removed after success and after failure.
    A failed removal is logged and otherwise ignored.
    """

    def build_signed_personalized_archive(
        self,
        pass_document: Pass,
        personalization: Optional[Personalization],
        template: PassTemplate,
        signing_info: SigningInformation,
    ) -> bytes:
        staging = Path(tempfile.mkdtemp(prefix=self.settings.staging_dir_prefix))
        logger.debug("staging_directory_created", extra={"path": str(staging)})

        try:
            template.provision(staging)

            documents = self._serialize_documents(pass_document, personalization)

            self._warn_computed_members(
                name for name in COMPUTED_FILE_NAMES if (staging / name).exists()
            )
            for name in COMPUTED_FILE_NAMES:
                (staging / name).unlink(missing_ok=True)

            for name, data in documents.items():
                write_member(staging, name, data)

            files = load_dir(staging)
            manifest = create_manifest_json(files)
            write_member(staging, MANIFEST_FILE_NAME, manifest)

            signature = self.sign_manifest_file(manifest, signing_info)
            write_member(staging, SIGNATURE_FILE_NAME, signature)

            archive = create_zip_archive_from_directory(staging, settings=self.settings)
        finally:
            self._remove_staging(staging)

        self._log_built(pass_document, personalization is not None, len(files) + 2, archive)
        return archive

    @staticmethod
    def _remove_staging(staging: Path) -> None:
        try:
            shutil.rmtree(staging)
        except OSError as exc:
            logger.warning(
                "staging_cleanup_failed",
                extra={"path": str(staging), "error_type": type(exc).__name__},
            )
