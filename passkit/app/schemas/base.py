"""
Shared base for every wallet document model.

Serialization contract:
- JSON keys use the documented camelCase names
- optional values that are empty, zero, false or absent are omitted
  rather than emitted as null
- timestamps are written as RFC 3339 strings, UTC rendered with ``Z``

Validation contract:
- ``get_validation_errors()`` is pure and total; it never raises and
  always returns the complete list of violations
- ``is_valid()`` is defined as "the violation list is empty"
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, ClassVar, Dict, FrozenSet, List

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    PlainSerializer,
    SerializerFunctionWrapHandler,
    model_serializer,
)
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------

def ensure_utc_aware(value: datetime) -> datetime:
    """Interpret naive timestamps as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def format_timestamp(value: datetime) -> str:
    """
    Render a timestamp as RFC 3339.

    Example: ``2025-06-19T01:23:45Z``
    """
    text = ensure_utc_aware(value).isoformat()
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


Timestamp = Annotated[
    datetime,
    AfterValidator(ensure_utc_aware),
    PlainSerializer(format_timestamp, return_type=str, when_used="json"),
]


def is_blank(value: Any) -> bool:
    """True for anything that is not a string with visible content."""
    return not isinstance(value, str) or not value.strip()


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, BaseModel):
        return False
    if isinstance(value, (str, list, tuple, dict, set)):
        return len(value) == 0
    if isinstance(value, (bool, int, float)):
        return not value
    return False


# ---------------------------------------------------------------------------
# Base model
# ---------------------------------------------------------------------------

class WalletModel(BaseModel):
    """
    Base class for pass documents and their nested records.

    Subclasses tune serialization with two class-level sets of field
    names:

    - ``emit_always``: emitted even when empty
    - ``omit_only_if_none``: omitted only when absent (zero is kept)
    """

    emit_always: ClassVar[FrozenSet[str]] = frozenset()
    omit_only_if_none: ClassVar[FrozenSet[str]] = frozenset()

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @model_serializer(mode="wrap")
    def serialize_model(
        self,
        handler: SerializerFunctionWrapHandler,
    ) -> Dict[str, Any]:
        data = handler(self)
        fields = type(self).model_fields

        # Emptiness is judged on the attribute, not on its serialized form:
        # an attached sub-document with no content is still emitted as {}.
        for name, info in fields.items():
            if name in self.emit_always:
                continue

            value = getattr(self, name, None)
            if name in self.omit_only_if_none:
                drop = value is None
            else:
                drop = _is_empty(value)

            if drop:
                data.pop(info.alias or name, None)
                data.pop(name, None)

        extras = self.model_extra or {}
        for key, value in extras.items():
            if value is None:
                data.pop(key, None)

        return data

    # ------------------------------------------------------------------
    # Validation contract
    # ------------------------------------------------------------------

    def get_validation_errors(self) -> List[str]:
        return []

    def is_valid(self) -> bool:
        return len(self.get_validation_errors()) == 0

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_json(self) -> bytes:
        """Serialize to compact UTF-8 JSON using the documented key names."""
        return self.model_dump_json(by_alias=True).encode("utf-8")


def validate(document: WalletModel) -> List[str]:
    """Every violation of ``document``; empty when it is valid."""
    return document.get_validation_errors()


def is_valid(document: WalletModel) -> bool:
    return document.is_valid()
