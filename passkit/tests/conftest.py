"""Shared fixtures: generated credentials, a valid pass, and template content."""

from datetime import datetime, timezone

import pytest

from passkit.app.core.config import Settings
from passkit.app.schemas.pass_document import (
    Barcode,
    BarcodeFormat,
    EventTicket,
    Pass,
    PassField,
)
from passkit.app.schemas.personalization import (
    Personalization,
    PersonalizationField,
)
from passkit.app.services.signing import load_signing_information_from_bytes
from passkit.app.services.templates import InMemoryPassTemplate

from passkit.tests.fixtures.credentials_factory import make_credentials


@pytest.fixture(scope="session")
def credentials():
    return make_credentials()


@pytest.fixture(scope="session")
def signing_info(credentials):
    return load_signing_information_from_bytes(
        credentials.pkcs12,
        credentials.passphrase,
        credentials.trust_anchor_der,
    )


@pytest.fixture
def settings():
    return Settings()


def build_valid_pass() -> Pass:
    ticket = EventTicket()
    ticket.add_primary_field(PassField(key="event", label="Event", value="Concert"))
    ticket.add_secondary_field(
        PassField(
            key="doors",
            label="Doors",
            value=datetime(2025, 6, 19, 18, 0, tzinfo=timezone.utc),
        )
    )

    document = Pass(
        format_version=1,
        serial_number="E5982H-I2",
        pass_type_identifier="pass.com.example.test",
        team_identifier="A93A5CM278",
        description="Concert ticket",
        organization_name="Example Events",
        barcodes=[
            Barcode(
                format=BarcodeFormat.QR,
                message="E5982H-I2",
                message_encoding="iso-8859-1",
                alt_text="E5982H-I2",
            )
        ],
    )
    document.attach(ticket)
    return document


@pytest.fixture
def valid_pass():
    return build_valid_pass()


@pytest.fixture
def personalization():
    return Personalization(
        required_personalization_fields=[
            PersonalizationField.NAME,
            PersonalizationField.EMAIL_ADDRESS,
        ],
        description="Join the rewards program",
    )


@pytest.fixture
def template_files():
    return {
        "icon.png": b"\x89PNG icon",
        "logo.png": b"\x89PNG logo",
        "en.lproj/pass.strings": b'"event" = "Event";',
        "de.lproj/pass.strings": b'"event" = "Veranstaltung";',
    }


@pytest.fixture
def template_dir(tmp_path, template_files):
    root = tmp_path / "template"
    for name, data in template_files.items():
        target = root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    return root


@pytest.fixture
def memory_template(template_files):
    template = InMemoryPassTemplate()
    for name, data in template_files.items():
        template.add_file_bytes(name, data)
    return template
