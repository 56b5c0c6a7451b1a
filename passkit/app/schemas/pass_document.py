"""
Pass document model.

Defines the top-level pass record, its five mutually exclusive kind
sub-documents, and the nested records (fields, barcodes, beacons,
locations, NFC payload, relevant-date entries) that gate entry into the
bundling pipeline.

Models are permissive at construction time: required values default to
empty so that an incomplete document can still be built and inspected.
Completeness is checked by ``get_validation_errors()``, which reports
every violation in one pass and never raises.
"""

from __future__ import annotations

import math
import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import (
    Field,
    SerializerFunctionWrapHandler,
    field_serializer,
    model_serializer,
    model_validator,
)

from passkit.app.schemas.base import (
    Timestamp,
    WalletModel,
    format_timestamp,
    is_blank,
)
from passkit.app.schemas.semantics import SemanticTags


EXPECTED_AUTH_TOKEN_LEN = 16
CHANGE_MESSAGE_PLACEHOLDER = "%@"

_INT64_MIN = -(2**63)
_UINT64_MAX = 2**64 - 1


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class TextAlignment(str, Enum):
    LEFT = "PKTextAlignmentLeft"
    CENTER = "PKTextAlignmentCenter"
    RIGHT = "PKTextAlignmentRight"
    NATURAL = "PKTextAlignmentNatural"


class BarcodeFormat(str, Enum):
    QR = "PKBarcodeFormatQR"
    PDF417 = "PKBarcodeFormatPDF417"
    AZTEC = "PKBarcodeFormatAztec"
    CODE128 = "PKBarcodeFormatCode128"


# Formats readable by devices that predate Code 128 support.
BARCODE_TYPES_BEFORE_IOS9: Tuple[BarcodeFormat, ...] = (
    BarcodeFormat.QR,
    BarcodeFormat.PDF417,
    BarcodeFormat.AZTEC,
)


class DataDetectorType(str, Enum):
    PHONE_NUMBER = "PKDataDetectorTypePhoneNumber"
    LINK = "PKDataDetectorTypeLink"
    ADDRESS = "PKDataDetectorTypeAddress"
    CALENDAR_EVENT = "PKDataDetectorTypeCalendarEvent"


class DateStyle(str, Enum):
    NONE = "PKDateStyleNone"
    SHORT = "PKDateStyleShort"
    MEDIUM = "PKDateStyleMedium"
    LONG = "PKDateStyleLong"
    FULL = "PKDateStyleFull"


class NumberStyle(str, Enum):
    DECIMAL = "PKNumberStyleDecimal"
    PERCENT = "PKNumberStylePercent"
    SCIENTIFIC = "PKNumberStyleScientific"
    SPELL_OUT = "PKNumberStyleSpellOut"


class TransitType(str, Enum):
    AIR = "PKTransitTypeAir"
    BOAT = "PKTransitTypeBoat"
    BUS = "PKTransitTypeBus"
    GENERIC = "PKTransitTypeGeneric"
    TRAIN = "PKTransitTypeTrain"


class PassKind(str, Enum):
    """
    The five mutually exclusive pass variants.

    Values are the JSON keys under which each kind is serialized.
    """

    BOARDING_PASS = "boardingPass"
    COUPON = "coupon"
    EVENT_TICKET = "eventTicket"
    GENERIC = "generic"
    STORE_CARD = "storeCard"


# ---------------------------------------------------------------------------
# Field values
# ---------------------------------------------------------------------------


class FieldValueKind(str, Enum):
    """
    Closed classification of a field value.

    Anything that is not text, a number of a supported width, or a
    timestamp classifies as UNSUPPORTED.
    """

    ABSENT = "absent"
    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"
    TIMESTAMP = "timestamp"
    UNSUPPORTED = "unsupported"

    @classmethod
    def classify(cls, value: Any) -> "FieldValueKind":
        if value is None:
            return cls.ABSENT
        # bool is an int subclass but not a numeric field value
        if isinstance(value, bool):
            return cls.UNSUPPORTED
        if isinstance(value, str):
            return cls.TEXT
        if isinstance(value, int):
            if _INT64_MIN <= value <= _UINT64_MAX:
                return cls.INTEGER
            return cls.UNSUPPORTED
        if isinstance(value, float):
            # JSON has no representation for inf or nan
            return cls.FLOAT if math.isfinite(value) else cls.UNSUPPORTED
        if isinstance(value, datetime):
            return cls.TIMESTAMP
        return cls.UNSUPPORTED

    @property
    def is_numeric(self) -> bool:
        return self in (FieldValueKind.INTEGER, FieldValueKind.FLOAT)


class PassField(WalletModel):
    """A single labeled, typed and formatted value on a pass."""

    omit_only_if_none = frozenset({"value", "attributed_value"})

    key: str = ""
    label: str = ""
    value: Any = None
    attributed_value: Any = None
    change_message: str = ""
    text_alignment: Optional[TextAlignment] = None
    data_detector_types: List[DataDetectorType] = Field(default_factory=list)
    currency_code: str = ""
    number_style: Optional[NumberStyle] = None
    date_style: Optional[DateStyle] = None
    time_style: Optional[DateStyle] = None
    is_relative: bool = False
    ignores_time_zone: bool = False

    @field_serializer("value", "attributed_value", when_used="json")
    def _serialize_value(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return format_timestamp(value)
        return value

    @property
    def value_kind(self) -> FieldValueKind:
        return FieldValueKind.classify(self.value)

    def get_validation_errors(self) -> List[str]:
        errors: List[str] = []
        kind = self.value_kind

        if kind is FieldValueKind.ABSENT or is_blank(self.key):
            errors.append(
                "Not all required Fields are set. "
                f"Key: {self.key!r} Value: {self.value!r}"
            )

        if kind is FieldValueKind.UNSUPPORTED:
            errors.append(
                "Invalid value type. Allowed: string, int, float, datetime"
            )

        has_currency = not is_blank(self.currency_code)
        has_number_style = self.number_style is not None
        has_date_style = (
            self.date_style is not None or self.time_style is not None
        )

        if has_currency and has_number_style:
            errors.append("CurrencyCode and numberStyle are both set")

        if (has_currency or has_number_style) and has_date_style:
            errors.append(
                "Can't be number/currency and date at the same time"
            )

        if (
            not is_blank(self.change_message)
            and CHANGE_MESSAGE_PLACEHOLDER not in self.change_message
        ):
            errors.append(
                "ChangeMessage needs to contain %@ placeholder"
            )

        if has_currency and not kind.is_numeric:
            errors.append(
                "When using currencies, the values have to be numbers"
            )

        return errors


# ---------------------------------------------------------------------------
# Kind sub-documents
# ---------------------------------------------------------------------------


class PassStructure(WalletModel):
    """
    Field groups shared by every pass kind.

    Group order is rendering order and is preserved through
    serialization.
    """

    header_fields: List[PassField] = Field(default_factory=list)
    primary_fields: List[PassField] = Field(default_factory=list)
    secondary_fields: List[PassField] = Field(default_factory=list)
    auxiliary_fields: List[PassField] = Field(default_factory=list)
    back_fields: List[PassField] = Field(default_factory=list)

    def add_header_field(self, field: PassField) -> None:
        self.header_fields.append(field)

    def add_primary_field(self, field: PassField) -> None:
        self.primary_fields.append(field)

    def add_secondary_field(self, field: PassField) -> None:
        self.secondary_fields.append(field)

    def add_auxiliary_field(self, field: PassField) -> None:
        self.auxiliary_fields.append(field)

    def add_back_field(self, field: PassField) -> None:
        self.back_fields.append(field)

    def iter_fields(self) -> Iterable[PassField]:
        for group in (
            self.header_fields,
            self.primary_fields,
            self.secondary_fields,
            self.auxiliary_fields,
            self.back_fields,
        ):
            yield from group or []

    def get_validation_errors(self) -> List[str]:
        errors: List[str] = []
        for field in self.iter_fields():
            errors.extend(field.get_validation_errors())
        return errors


class GenericPass(PassStructure):
    pass


class Coupon(PassStructure):
    pass


class EventTicket(PassStructure):
    pass


class StoreCard(PassStructure):
    pass


class BoardingPass(PassStructure):
    transit_type: Optional[TransitType] = None

    def get_validation_errors(self) -> List[str]:
        errors = super().get_validation_errors()
        if self.transit_type is None:
            errors.append("TransitType is not set")
        return errors


_KIND_ATTRIBUTES: Dict[PassKind, str] = {
    PassKind.BOARDING_PASS: "boarding_pass",
    PassKind.COUPON: "coupon",
    PassKind.EVENT_TICKET: "event_ticket",
    PassKind.GENERIC: "generic",
    PassKind.STORE_CARD: "store_card",
}

_KIND_TYPES: Dict[type, PassKind] = {
    BoardingPass: PassKind.BOARDING_PASS,
    Coupon: PassKind.COUPON,
    EventTicket: PassKind.EVENT_TICKET,
    GenericPass: PassKind.GENERIC,
    StoreCard: PassKind.STORE_CARD,
}


# ---------------------------------------------------------------------------
# Nested records
# ---------------------------------------------------------------------------


class Beacon(WalletModel):
    major: int = 0
    minor: int = 0
    proximity_uuid: str = Field(default="", alias="proximityUUID")
    relevant_text: str = ""

    def get_validation_errors(self) -> List[str]:
        if is_blank(self.proximity_uuid):
            return ["Not all required Fields are set: proximityUUID"]
        return []


class Location(WalletModel):
    emit_always = frozenset({"latitude", "longitude"})

    latitude: float = 0.0
    longitude: float = 0.0
    altitude: Optional[float] = None
    relevant_text: str = ""


class Barcode(WalletModel):
    format: Optional[BarcodeFormat] = None
    alt_text: str = ""
    message: str = ""
    message_encoding: str = ""

    @property
    def readable_before_ios9(self) -> bool:
        return self.format in BARCODE_TYPES_BEFORE_IOS9

    def get_validation_errors(self) -> List[str]:
        if (
            self.format is None
            or is_blank(self.message)
            or is_blank(self.message_encoding)
            or is_blank(self.alt_text)
        ):
            return [
                "Not all required Fields are set. "
                f"Format: {self.format}, Message: {self.message!r}, "
                f"MessageEncoding: {self.message_encoding!r}, "
                f"AltText: {self.alt_text!r}"
            ]
        return []


class NFC(WalletModel):
    message: str = ""
    encryption_public_key: str = ""
    requires_authentication: bool = False


class RelevantDate(WalletModel):
    """
    A relevance window for the pass.

    Serializes as ``{"relevantDate": t}`` when only a start is present,
    and as ``{"startDate": t1, "endDate": t2}`` otherwise.
    """

    start_date: Optional[Timestamp] = None
    end_date: Optional[Timestamp] = None

    @model_validator(mode="wrap")
    @classmethod
    def _accept_wire_form(cls, data: Any, handler):
        if isinstance(data, dict) and "relevantDate" in data:
            data = dict(data)
            data["startDate"] = data.pop("relevantDate")
        return handler(data)

    @model_serializer(mode="wrap")
    def serialize_model(
        self,
        handler: SerializerFunctionWrapHandler,
    ) -> Dict[str, Any]:
        if self.start_date is None:
            return {}
        if self.end_date is None:
            return {"relevantDate": format_timestamp(self.start_date)}
        return {
            "startDate": format_timestamp(self.start_date),
            "endDate": format_timestamp(self.end_date),
        }

    def get_validation_errors(self) -> List[str]:
        if self.start_date is None:
            return ["RelevantDate requires a startDate"]
        return []


# ---------------------------------------------------------------------------
# Colours
# ---------------------------------------------------------------------------

_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def rgb_string(r: int, g: int, b: int) -> str:
    for channel in (r, g, b):
        if isinstance(channel, bool) or not isinstance(channel, int):
            raise ValueError(f"colour channel must be an int, got {channel!r}")
        if not 0 <= channel <= 255:
            raise ValueError(f"colour channel out of range: {channel}")
    return f"rgb({r}, {g}, {b})"


def hex_to_rgb_string(value: str) -> str:
    """Convert ``#rgb`` or ``#rrggbb`` to the ``rgb(r, g, b)`` form."""
    match = _HEX_COLOR.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"invalid hex colour: {value!r}")

    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)

    return rgb_string(
        int(digits[0:2], 16),
        int(digits[2:4], 16),
        int(digits[4:6], 16),
    )


# ---------------------------------------------------------------------------
# Pass document
# ---------------------------------------------------------------------------


class Pass(WalletModel):
    """
    The top-level pass record serialized into ``pass.json``.

    Exactly one kind sub-document must be attached. The five kind slots
    mirror the wire format; ``attach()`` is the supported way to set the
    active kind, and ``kind`` / ``structure`` expose it.
    """

    format_version: int = 0
    serial_number: str = ""
    pass_type_identifier: str = ""
    web_service_url: str = Field(default="", alias="webServiceURL")
    authentication_token: str = ""
    description: str = ""
    team_identifier: str = ""
    organization_name: str = ""
    logo_text: str = ""
    foreground_color: str = ""
    background_color: str = ""
    label_color: str = ""
    grouping_identifier: str = ""
    beacons: List[Beacon] = Field(default_factory=list)
    locations: List[Location] = Field(default_factory=list)
    barcodes: List[Barcode] = Field(default_factory=list)
    event_ticket: Optional[EventTicket] = None
    coupon: Optional[Coupon] = None
    store_card: Optional[StoreCard] = None
    boarding_pass: Optional[BoardingPass] = None
    generic: Optional[GenericPass] = None
    app_launch_url: str = Field(default="", alias="appLaunchURL")
    associated_store_identifiers: List[int] = Field(default_factory=list)
    user_info: Dict[str, Any] = Field(default_factory=dict)
    max_distance: int = 0
    relevant_date: Optional[Timestamp] = None
    relevant_dates: List[RelevantDate] = Field(default_factory=list)
    expiration_date: Optional[Timestamp] = None
    voided: bool = False
    nfc: Optional[NFC] = None
    sharing_prohibited: bool = False
    semantics: Optional[SemanticTags] = None

    @model_validator(mode="after")
    def _derive_relevant_date(self) -> "Pass":
        if self.relevant_dates:
            derived = _earliest_start(self.relevant_dates)
            if derived is not None:
                self.relevant_date = derived
        return self

    # ------------------------------------------------------------------
    # Kind handling
    # ------------------------------------------------------------------

    def present_kinds(self) -> List[PassKind]:
        return [
            kind
            for kind, attribute in _KIND_ATTRIBUTES.items()
            if getattr(self, attribute, None) is not None
        ]

    @property
    def kind(self) -> Optional[PassKind]:
        kinds = self.present_kinds()
        return kinds[0] if len(kinds) == 1 else None

    @property
    def structure(self) -> Optional[PassStructure]:
        kind = self.kind
        if kind is None:
            return None
        return getattr(self, _KIND_ATTRIBUTES[kind])

    def attach(self, structure: PassStructure) -> None:
        """Make ``structure`` the single active kind, detaching any other."""
        kind = _KIND_TYPES.get(type(structure))
        if kind is None:
            raise TypeError(
                f"unsupported pass structure: {type(structure).__name__}"
            )
        for attribute in _KIND_ATTRIBUTES.values():
            setattr(self, attribute, None)
        setattr(self, _KIND_ATTRIBUTES[kind], structure)

    # ------------------------------------------------------------------
    # Relevant dates
    # ------------------------------------------------------------------

    def set_relevant_dates(self, dates: Iterable[RelevantDate]) -> None:
        """
        Replace the relevant-date entries.

        The single ``relevant_date`` is re-derived as the earliest start.
        """
        self.relevant_dates = list(dates)
        self.relevant_date = _earliest_start(self.relevant_dates)

    # ------------------------------------------------------------------
    # Colours
    # ------------------------------------------------------------------

    def set_foreground_color_hex(self, value: str) -> None:
        self.foreground_color = hex_to_rgb_string(value)

    def set_foreground_color_rgb(self, r: int, g: int, b: int) -> None:
        self.foreground_color = rgb_string(r, g, b)

    def set_background_color_hex(self, value: str) -> None:
        self.background_color = hex_to_rgb_string(value)

    def set_background_color_rgb(self, r: int, g: int, b: int) -> None:
        self.background_color = rgb_string(r, g, b)

    def set_label_color_hex(self, value: str) -> None:
        self.label_color = hex_to_rgb_string(value)

    def set_label_color_rgb(self, r: int, g: int, b: int) -> None:
        self.label_color = rgb_string(r, g, b)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def get_validation_errors(self) -> List[str]:
        errors: List[str] = []

        if (
            is_blank(self.serial_number)
            or is_blank(self.pass_type_identifier)
            or is_blank(self.team_identifier)
            or is_blank(self.description)
            or not _is_positive_int(self.format_version)
            or is_blank(self.organization_name)
        ):
            errors.append(
                "Not all required Fields are set. "
                f"SerialNumber: {self.serial_number!r}, "
                f"PassTypeIdentifier: {self.pass_type_identifier!r}, "
                f"TeamIdentifier: {self.team_identifier!r}, "
                f"Description: {self.description!r}, "
                f"FormatVersion: {self.format_version!r}, "
                f"OrganizationName: {self.organization_name!r}"
            )

        kinds = self.present_kinds()
        if not kinds:
            errors.append(
                "No pass was set. One of eventTicket, boardingPass, "
                "coupon, storeCard or generic is required"
            )
        elif len(kinds) > 1:
            errors.append(
                "Only one pass should be set. Found: "
                + ", ".join(kind.value for kind in kinds)
            )

        if not is_blank(self.web_service_url) and (
            not isinstance(self.authentication_token, str)
            or len(self.authentication_token) < EXPECTED_AUTH_TOKEN_LEN
        ):
            errors.append(
                "The authenticationToken needs to be at least "
                f"{EXPECTED_AUTH_TOKEN_LEN} characters long"
            )

        for kind in kinds:
            structure = getattr(self, _KIND_ATTRIBUTES[kind])
            errors.extend(structure.get_validation_errors())

        for beacon in self.beacons or []:
            errors.extend(beacon.get_validation_errors())

        for location in self.locations or []:
            errors.extend(location.get_validation_errors())

        for barcode in self.barcodes or []:
            errors.extend(barcode.get_validation_errors())

        for relevant_date in self.relevant_dates or []:
            errors.extend(relevant_date.get_validation_errors())

        if self.semantics is not None:
            errors.extend(self.semantics.get_validation_errors())

        if not is_blank(self.app_launch_url) and not self.associated_store_identifiers:
            errors.append(
                "The appLaunchURL requires associatedStoreIdentifiers "
                "to be specified"
            )

        if (
            kinds
            and not is_blank(self.grouping_identifier)
            and PassKind.EVENT_TICKET not in kinds
            and PassKind.BOARDING_PASS not in kinds
        ):
            errors.append(
                "The groupingIdentifier is optional for event tickets and "
                "boarding passes, otherwise not allowed"
            )

        return errors


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _earliest_start(dates: Iterable[RelevantDate]) -> Optional[datetime]:
    starts = [d.start_date for d in dates if d.start_date is not None]
    return min(starts) if starts else None
