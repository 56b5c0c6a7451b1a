"""
Personalization document serialized into ``personalization.json``.

A personalizable pass asks the holder for a set of details before it is
added to the device. All three keys are always emitted.
"""

from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import Field

from passkit.app.schemas.base import WalletModel, is_blank


class PersonalizationField(str, Enum):
    NAME = "PKPassPersonalizationFieldName"
    POSTAL_CODE = "PKPassPersonalizationFieldPostalCode"
    EMAIL_ADDRESS = "PKPassPersonalizationFieldEmailAddress"
    PHONE_NUMBER = "PKPassPersonalizationFieldPhoneNumber"


class Personalization(WalletModel):
    emit_always = frozenset(
        {"required_personalization_fields", "description", "terms_and_conditions"}
    )

    required_personalization_fields: List[PersonalizationField] = Field(
        default_factory=list
    )
    description: str = ""
    terms_and_conditions: str = ""

    def get_validation_errors(self) -> List[str]:
        errors: List[str] = []

        if not self.required_personalization_fields:
            errors.append(
                "You need to provide at least one requiredPersonalizationField"
            )

        if is_blank(self.description):
            errors.append("You need to provide a description")

        return errors
