"""
Exception taxonomy for the pass bundling pipeline.

Validation problems are aggregated and reported in one exception.
Credential, signing and packaging failures are fatal to the call that
raised them. Filesystem and network errors from content sources are not
wrapped; they propagate unchanged.
"""

from typing import List, Sequence


class PassKitError(RuntimeError):
    """Base class for all pipeline failures."""


class PassValidationError(PassKitError):
    """
    Raised when a document fails validation before bundling.

    Carries the complete violation list so callers can report every
    problem in one pass.
    """

    def __init__(self, document: str, violations: Sequence[str]):
        self.document = document
        self.violations: List[str] = list(violations)
        super().__init__(
            f"{document} is invalid: " + "; ".join(self.violations)
        )


class CredentialError(PassKitError):
    """Raised when signing credentials cannot be loaded or are expired."""


class SigningError(PassKitError):
    """Raised when the detached manifest signature cannot be produced."""


class SignatureVerificationError(PassKitError):
    """Raised when a detached signature does not verify."""


class ArchiveError(PassKitError):
    """Raised when the bundle archive cannot be written."""


class TemplateError(PassKitError):
    """Raised when a content source is misconfigured or unusable."""
