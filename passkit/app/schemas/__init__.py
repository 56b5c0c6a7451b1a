from .pass_document import (
    BARCODE_TYPES_BEFORE_IOS9,
    Barcode,
    BarcodeFormat,
    Beacon,
    BoardingPass,
    Coupon,
    DataDetectorType,
    DateStyle,
    EventTicket,
    FieldValueKind,
    GenericPass,
    Location,
    NFC,
    NumberStyle,
    Pass,
    PassField,
    PassKind,
    PassStructure,
    RelevantDate,
    StoreCard,
    TextAlignment,
    TransitType,
)
from .base import WalletModel, is_valid, validate
from .personalization import Personalization, PersonalizationField
from .semantics import SemanticTags, SemanticTagWifiNetwork

__all__ = [
    "WalletModel",
    "is_valid",
    "validate",
    "BARCODE_TYPES_BEFORE_IOS9",
    "Barcode",
    "BarcodeFormat",
    "Beacon",
    "BoardingPass",
    "Coupon",
    "DataDetectorType",
    "DateStyle",
    "EventTicket",
    "FieldValueKind",
    "GenericPass",
    "Location",
    "NFC",
    "NumberStyle",
    "Pass",
    "PassField",
    "PassKind",
    "PassStructure",
    "RelevantDate",
    "StoreCard",
    "TextAlignment",
    "TransitType",
    "Personalization",
    "PersonalizationField",
    "SemanticTags",
    "SemanticTagWifiNetwork",
]
