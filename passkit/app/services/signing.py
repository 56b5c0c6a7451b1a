"""
Detached manifest signing.

This module owns the signing credentials and the cryptographic message
produced over ``manifest.json``:

- credential bundles are loaded from a PKCS#12 key store plus a
  trust-anchor certificate (DER or PEM), from bytes or from files
- certificate validity is checked once, when the bundle is built
- signatures are detached CMS SignedData: the manifest travels beside
  the signature in the archive, never inside it
- the trust anchor and any intermediates carried by the key store are
  embedded as additional certificates, and a signing-time authenticated
  attribute is attached to the signer

Trust model:
    The trust anchor is supplied out-of-band and is not expected to be
    installed in any system trust store. An issuer that cannot be traced
    to a known authority is therefore tolerated at load time; expiry is
    not.
"""

from __future__ import annotations

import hmac
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple, Union

from asn1crypto import cms
from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.serialization import pkcs7, pkcs12
from pydantic import BaseModel, ConfigDict, Field

from passkit.app.core.config import Settings, get_settings
from passkit.app.core.errors import (
    CredentialError,
    SignatureVerificationError,
    SigningError,
)
from passkit.app.utils.hashing import compute_digest

logger = logging.getLogger(__name__)

SigningKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]

_HASH_ALGORITHMS = {
    "sha1": hashes.SHA1,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}


# ----------------------------------------------------------------------
# Credential bundle
# ----------------------------------------------------------------------

class SigningInformation(BaseModel):
    """
    Signing certificate, trust-anchor certificate and private key.

    Immutable once constructed. Never serialized into a bundle.
    """

    signing_cert: x509.Certificate
    trust_anchor_cert: x509.Certificate
    chain_certs: Tuple[x509.Certificate, ...] = ()
    private_key: SigningKey = Field(repr=False)

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


def load_certificate(data: bytes) -> x509.Certificate:
    """Parse an X.509 certificate from PEM or DER bytes."""
    try:
        if data.lstrip().startswith(b"-----BEGIN"):
            return x509.load_pem_x509_certificate(data)
        return x509.load_der_x509_certificate(data)
    except (ValueError, TypeError, AttributeError) as exc:
        raise CredentialError(
            f"Failed to parse certificate: {exc}"
        ) from exc


def _verify_validity(
    cert: x509.Certificate,
    *,
    role: str,
    now: datetime,
) -> None:
    if now < cert.not_valid_before_utc or now > cert.not_valid_after_utc:
        raise CredentialError(
            f"{role} has expired or is not yet valid "
            f"(not_before={cert.not_valid_before_utc.isoformat()}, "
            f"not_after={cert.not_valid_after_utc.isoformat()})"
        )


def _check_issuer(cert: x509.Certificate, anchor: x509.Certificate) -> None:
    """
    Log, but tolerate, a signing certificate the anchor did not issue.

    An unknown issuing authority is not a credential error.
    """
    try:
        cert.verify_directly_issued_by(anchor)
    except (ValueError, TypeError, InvalidSignature) as exc:
        logger.warning(
            "signing_certificate_issuer_unknown",
            extra={
                "subject": cert.subject.rfc4514_string(),
                "issuer": cert.issuer.rfc4514_string(),
                "error_type": type(exc).__name__,
            },
        )


def load_signing_information_from_bytes(
    pkcs12_data: bytes,
    passphrase: Optional[str],
    trust_anchor_data: bytes,
    *,
    now: Optional[datetime] = None,
) -> SigningInformation:
    """
    Build a credential bundle from in-memory key-store and certificate.

    Raises:
        CredentialError:
            If the key store cannot be decoded, a certificate cannot be
            parsed, or either certificate is outside its validity window.
    """
    now = now or datetime.now(timezone.utc)

    try:
        private_key, signing_cert, additional = pkcs12.load_key_and_certificates(
            pkcs12_data,
            passphrase.encode("utf-8") if passphrase else None,
        )
    except (ValueError, TypeError) as exc:
        raise CredentialError(
            f"Failed to load PKCS#12 signing key: {exc}"
        ) from exc

    if private_key is None or signing_cert is None:
        raise CredentialError(
            "PKCS#12 key store must contain a private key and a certificate"
        )

    if not isinstance(private_key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise CredentialError(
            f"Unsupported signing key type: {type(private_key).__name__}"
        )

    _verify_validity(signing_cert, role="signing certificate", now=now)

    trust_anchor = load_certificate(trust_anchor_data)
    _verify_validity(trust_anchor, role="trust anchor certificate", now=now)

    _check_issuer(signing_cert, trust_anchor)

    logger.info(
        "signing_information_loaded",
        extra={
            "subject": signing_cert.subject.rfc4514_string(),
            "not_after": signing_cert.not_valid_after_utc.isoformat(),
        },
    )

    return SigningInformation(
        signing_cert=signing_cert,
        trust_anchor_cert=trust_anchor,
        chain_certs=tuple(additional or ()),
        private_key=private_key,
    )


def load_signing_information_from_files(
    pkcs12_path: Union[str, os.PathLike],
    passphrase: Optional[str],
    trust_anchor_path: Union[str, os.PathLike],
    *,
    now: Optional[datetime] = None,
) -> SigningInformation:
    """Build a credential bundle from a key-store file and a certificate file."""
    try:
        pkcs12_data = Path(pkcs12_path).read_bytes()
        trust_anchor_data = Path(trust_anchor_path).read_bytes()
    except OSError as exc:
        raise CredentialError(
            f"Failed to read signing credentials: {exc}"
        ) from exc

    return load_signing_information_from_bytes(
        pkcs12_data,
        passphrase,
        trust_anchor_data,
        now=now,
    )


# ----------------------------------------------------------------------
# Signing
# ----------------------------------------------------------------------

def _embedded_chain(signing_info: SigningInformation) -> List[x509.Certificate]:
    """Intermediates from the key store, then the trust anchor, deduplicated."""
    embedded: List[x509.Certificate] = []
    for cert in (*signing_info.chain_certs, signing_info.trust_anchor_cert):
        if cert == signing_info.signing_cert or cert in embedded:
            continue
        embedded.append(cert)
    return embedded


def sign_manifest_file(
    manifest_json: Optional[bytes],
    signing_info: SigningInformation,
    *,
    settings: Optional[Settings] = None,
) -> bytes:
    """
    Produce a detached DER-encoded CMS signature over the manifest bytes.

    The exact bytes passed in are signed; nothing is re-serialized.

    Raises:
        SigningError:
            If the manifest bytes are missing or empty.
    """
    if not manifest_json:
        raise SigningError("manifest bytes have to be present")

    settings = settings or get_settings()
    digest = _HASH_ALGORITHMS[settings.signature_digest_algorithm]()

    # OpenSSL-compatible builders attach contentType, signingTime and
    # messageDigest as authenticated attributes by default.
    builder = (
        pkcs7.PKCS7SignatureBuilder()
        .set_data(bytes(manifest_json))
        .add_signer(signing_info.signing_cert, signing_info.private_key, digest)
    )
    for cert in _embedded_chain(signing_info):
        builder = builder.add_certificate(cert)

    signature = builder.sign(
        serialization.Encoding.DER,
        [
            pkcs7.PKCS7Options.DetachedSignature,
            pkcs7.PKCS7Options.Binary,
        ],
    )

    logger.debug(
        "manifest_signed",
        extra={
            "digest_algorithm": settings.signature_digest_algorithm,
            "signature_size": len(signature),
        },
    )
    return signature


# ----------------------------------------------------------------------
# Verification
# ----------------------------------------------------------------------

class SignatureDetails(BaseModel):
    """Facts established by a successful signature verification."""

    signing_time: datetime
    signer_subject: str
    digest_algorithm: str
    certificate_count: int

    model_config = ConfigDict(frozen=True)


def _signed_attrs_for_verification(signed_attrs: cms.CMSAttributes) -> bytes:
    # Signed attributes are stored IMPLICIT [0] but signed as a SET OF.
    encoded = signed_attrs.dump()
    return b"\x31" + encoded[1:]


def _embedded_certificates(signed_data: cms.SignedData) -> List[x509.Certificate]:
    certificates: List[x509.Certificate] = []
    for choice in signed_data["certificates"] or []:
        if choice.name != "certificate":
            continue
        certificates.append(
            x509.load_der_x509_certificate(choice.chosen.dump())
        )
    return certificates


def _signer_candidates(
    signer_info: cms.SignerInfo,
    certificates: List[x509.Certificate],
) -> List[x509.Certificate]:
    sid = signer_info["sid"]
    if sid.name != "issuer_and_serial_number":
        raise SignatureVerificationError(
            f"Unsupported signer identifier: {sid.name}"
        )

    # Serials are only unique per issuer. A self-signed authority shares
    # its issuer name with the certificates it issues, so several
    # candidates may remain; the signature value decides between them.
    issuer = sid.chosen["issuer"].dump()
    serial = sid.chosen["serial_number"].native
    candidates = [
        cert
        for cert in certificates
        if cert.serial_number == serial and cert.issuer.public_bytes() == issuer
    ]
    if candidates:
        return candidates

    raise SignatureVerificationError(
        "Signer certificate is not embedded in the signature"
    )


def _verify_signature_value(
    cert: x509.Certificate,
    signature: bytes,
    data: bytes,
    digest_algorithm: str,
) -> None:
    algorithm = _HASH_ALGORITHMS[digest_algorithm]()
    public_key = cert.public_key()

    try:
        if isinstance(public_key, rsa.RSAPublicKey):
            public_key.verify(signature, data, padding.PKCS1v15(), algorithm)
        elif isinstance(public_key, ec.EllipticCurvePublicKey):
            public_key.verify(signature, data, ec.ECDSA(algorithm))
        else:
            raise SignatureVerificationError(
                f"Unsupported signer key type: {type(public_key).__name__}"
            )
    except InvalidSignature as exc:
        raise SignatureVerificationError(
            "Signature value does not match the signed attributes"
        ) from exc


def _verified_signer(
    candidates: List[x509.Certificate],
    signature: bytes,
    data: bytes,
    digest_algorithm: str,
) -> x509.Certificate:
    """First candidate whose key verifies ``signature``; the last failure otherwise."""
    failure: Optional[SignatureVerificationError] = None
    for cert in candidates:
        try:
            _verify_signature_value(cert, signature, data, digest_algorithm)
        except SignatureVerificationError as exc:
            failure = exc
            continue
        return cert
    raise failure


def verify_manifest_signature(
    manifest_json: bytes,
    signature: bytes,
    trust_anchor: Optional[x509.Certificate] = None,
) -> SignatureDetails:
    """
    Verify a detached manifest signature.

    Checks that the blob is detached SignedData, that its message digest
    matches ``manifest_json`` byte for byte, that the signature value is
    valid for the embedded signer certificate and, when ``trust_anchor``
    is given, that the signer certificate was issued by it.

    Raises:
        SignatureVerificationError:
            On any structural or cryptographic mismatch.
    """
    try:
        content_info = cms.ContentInfo.load(signature)
        if content_info["content_type"].native != "signed_data":
            raise SignatureVerificationError("Signature is not CMS SignedData")

        signed_data = content_info["content"]
        if signed_data["encap_content_info"]["content"].native is not None:
            raise SignatureVerificationError("Signature is not detached")

        signer_infos = signed_data["signer_infos"]
        if len(signer_infos) != 1:
            raise SignatureVerificationError(
                f"Expected exactly one signer, found {len(signer_infos)}"
            )
        signer_info = signer_infos[0]

        certificates = _embedded_certificates(signed_data)
        candidates = _signer_candidates(signer_info, certificates)

        digest_algorithm = signer_info["digest_algorithm"]["algorithm"].native
        if digest_algorithm not in _HASH_ALGORITHMS:
            raise SignatureVerificationError(
                f"Unsupported digest algorithm: {digest_algorithm}"
            )

        signed_attrs = signer_info["signed_attrs"]
        attributes = {
            attr["type"].native: attr["values"][0] for attr in signed_attrs
        }
        message_digest = attributes["message_digest"].native
        signing_time = attributes["signing_time"].native
        signature_value = signer_info["signature"].native
    except SignatureVerificationError:
        raise
    except (ValueError, KeyError, TypeError, IndexError) as exc:
        raise SignatureVerificationError(
            f"Malformed signature: {exc}"
        ) from exc

    expected_digest = compute_digest(manifest_json, digest_algorithm)
    if not hmac.compare_digest(expected_digest, message_digest):
        raise SignatureVerificationError(
            "Manifest digest does not match the signed message digest"
        )

    signer_cert = _verified_signer(
        candidates,
        signature_value,
        _signed_attrs_for_verification(signed_attrs),
        digest_algorithm,
    )

    if trust_anchor is not None:
        try:
            signer_cert.verify_directly_issued_by(trust_anchor)
        except (ValueError, TypeError, InvalidSignature) as exc:
            raise SignatureVerificationError(
                "Signer certificate was not issued by the trust anchor"
            ) from exc

    return SignatureDetails(
        signing_time=signing_time,
        signer_subject=signer_cert.subject.rfc4514_string(),
        digest_algorithm=digest_algorithm,
        certificate_count=len(certificates),
    )
