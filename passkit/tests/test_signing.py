"""
Tests for signing credentials, detached manifest signatures and their
verification.

Coverage matrix:

  Loading       key store plus anchor, DER or PEM, bytes or files   → SigningInformation
  Loading       wrong passphrase, expired leaf or anchor            → CredentialError
  Loading       leaf from an unknown issuer                         → warning only
  Signing       missing or empty manifest                           → SigningError
  Signing       detached SignedData, anchor embedded                → verifies
  Chains        key store intermediates                             → kept and embedded
  Chains        anchor and leaf sharing a serial number             → leaf picked as signer
  Verification  tampered manifest, foreign anchor, garbage blob     → SignatureVerificationError
"""

import logging
from datetime import timedelta

import pytest
from asn1crypto import cms

from passkit.app.core.config import Settings
from passkit.app.core.errors import (
    CredentialError,
    SignatureVerificationError,
    SigningError,
)
from passkit.app.services.manifest import create_manifest_json
from passkit.app.services.signing import (
    load_certificate,
    load_signing_information_from_bytes,
    load_signing_information_from_files,
    sign_manifest_file,
    verify_manifest_signature,
)

from passkit.tests.fixtures.credentials_factory import make_credentials


MANIFEST = create_manifest_json({"pass.json": b"{}", "icon.png": b"icon"})


# ------------------------------------------------------------------
# Credential loading
# ------------------------------------------------------------------

def test_load_from_bytes(credentials, signing_info):
    assert signing_info.signing_cert == credentials.signing_cert
    assert signing_info.trust_anchor_cert == credentials.trust_anchor
    assert "private_key" not in repr(signing_info)


def test_trust_anchor_accepted_as_pem(credentials):
    info = load_signing_information_from_bytes(
        credentials.pkcs12,
        credentials.passphrase,
        credentials.trust_anchor_pem,
    )

    assert info.trust_anchor_cert == credentials.trust_anchor


def test_load_from_files(tmp_path, credentials):
    p12_path = tmp_path / "pass.p12"
    anchor_path = tmp_path / "anchor.cer"
    p12_path.write_bytes(credentials.pkcs12)
    anchor_path.write_bytes(credentials.trust_anchor_der)

    info = load_signing_information_from_files(
        p12_path,
        credentials.passphrase,
        anchor_path,
    )

    assert info.signing_cert == credentials.signing_cert


def test_missing_files_raise_credential_error(tmp_path, credentials):
    with pytest.raises(CredentialError):
        load_signing_information_from_files(
            tmp_path / "missing.p12",
            credentials.passphrase,
            tmp_path / "missing.cer",
        )


def test_wrong_passphrase_is_rejected(credentials):
    with pytest.raises(CredentialError):
        load_signing_information_from_bytes(
            credentials.pkcs12,
            "not-the-passphrase",
            credentials.trust_anchor_der,
        )


def test_unparseable_trust_anchor_is_rejected(credentials):
    with pytest.raises(CredentialError):
        load_signing_information_from_bytes(
            credentials.pkcs12,
            credentials.passphrase,
            b"not a certificate",
        )

    with pytest.raises(CredentialError):
        load_certificate(b"-----BEGIN CERTIFICATE-----\nbroken\n")


def test_expired_signing_certificate_is_rejected():
    expired = make_credentials(expired_leaf=True)

    with pytest.raises(CredentialError, match="expired"):
        load_signing_information_from_bytes(
            expired.pkcs12,
            expired.passphrase,
            expired.trust_anchor_der,
        )


def test_expired_trust_anchor_is_rejected():
    expired = make_credentials(expired_anchor=True)

    with pytest.raises(CredentialError, match="trust anchor"):
        load_signing_information_from_bytes(
            expired.pkcs12,
            expired.passphrase,
            expired.trust_anchor_der,
        )


def test_validity_is_judged_at_given_time(credentials):
    later = credentials.signing_cert.not_valid_after_utc + timedelta(days=1)

    with pytest.raises(CredentialError):
        load_signing_information_from_bytes(
            credentials.pkcs12,
            credentials.passphrase,
            credentials.trust_anchor_der,
            now=later,
        )


def test_unknown_issuer_is_tolerated(caplog):
    foreign = make_credentials(foreign_issuer=True)

    with caplog.at_level(logging.WARNING, logger="passkit.app.services.signing"):
        info = load_signing_information_from_bytes(
            foreign.pkcs12,
            foreign.passphrase,
            foreign.trust_anchor_der,
        )

    assert info.signing_cert == foreign.signing_cert
    assert "signing_certificate_issuer_unknown" in caplog.messages


# ------------------------------------------------------------------
# Signing
# ------------------------------------------------------------------

@pytest.mark.parametrize("manifest", [None, b""])
def test_missing_manifest_bytes_raise(signing_info, manifest):
    with pytest.raises(SigningError):
        sign_manifest_file(manifest, signing_info)


def test_signature_is_detached_and_embeds_trust_anchor(signing_info):
    signature = sign_manifest_file(MANIFEST, signing_info)

    content_info = cms.ContentInfo.load(signature)
    signed_data = content_info["content"]

    assert content_info["content_type"].native == "signed_data"
    assert signed_data["encap_content_info"]["content"].native is None
    assert len(signed_data["certificates"]) == 2
    assert MANIFEST not in signature


def test_signature_verifies_against_trust_anchor(credentials, signing_info):
    signature = sign_manifest_file(MANIFEST, signing_info)

    details = verify_manifest_signature(
        MANIFEST,
        signature,
        trust_anchor=credentials.trust_anchor,
    )

    assert details.digest_algorithm == "sha256"
    assert details.certificate_count == 2
    assert "Pass Type ID" in details.signer_subject
    assert details.signing_time is not None


def test_signatures_differ_but_both_verify(credentials, signing_info):
    first = sign_manifest_file(MANIFEST, signing_info)
    second = sign_manifest_file(
        MANIFEST,
        signing_info,
        settings=Settings(signature_digest_algorithm="sha384"),
    )

    assert first != second
    verify_manifest_signature(MANIFEST, first, credentials.trust_anchor)
    details = verify_manifest_signature(MANIFEST, second, credentials.trust_anchor)
    assert details.digest_algorithm == "sha384"


def test_tampered_manifest_fails_verification(signing_info):
    signature = sign_manifest_file(MANIFEST, signing_info)
    tampered = MANIFEST.replace(b"pass.json", b"pass.jsox")

    with pytest.raises(SignatureVerificationError, match="digest"):
        verify_manifest_signature(tampered, signature)


def test_foreign_trust_anchor_fails_verification(signing_info):
    signature = sign_manifest_file(MANIFEST, signing_info)
    other = make_credentials()

    with pytest.raises(SignatureVerificationError, match="trust anchor"):
        verify_manifest_signature(MANIFEST, signature, other.trust_anchor)


def test_garbage_signature_fails_verification():
    with pytest.raises(SignatureVerificationError):
        verify_manifest_signature(MANIFEST, b"\x30\x03\x02\x01\x00")


# ------------------------------------------------------------------
# Certificate chains
# ------------------------------------------------------------------

def test_signer_is_told_apart_from_anchor_with_same_serial():
    shared = make_credentials(shared_serial=True)
    info = load_signing_information_from_bytes(
        shared.pkcs12,
        shared.passphrase,
        shared.trust_anchor_der,
    )
    assert shared.trust_anchor.serial_number == shared.signing_cert.serial_number

    signature = sign_manifest_file(MANIFEST, info)
    details = verify_manifest_signature(MANIFEST, signature, shared.trust_anchor)

    assert "Pass Type ID" in details.signer_subject


def test_key_store_intermediates_are_kept_and_embedded():
    chained = make_credentials(with_intermediate=True)
    info = load_signing_information_from_bytes(
        chained.pkcs12,
        chained.passphrase,
        chained.trust_anchor_der,
    )

    assert info.chain_certs == (chained.intermediate,)

    signature = sign_manifest_file(MANIFEST, info)
    details = verify_manifest_signature(MANIFEST, signature)

    assert details.certificate_count == 3
    assert "Pass Type ID" in details.signer_subject
