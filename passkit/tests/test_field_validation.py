"""
Tests for pass field value classification and field-level checks.

Coverage matrix:

  Value kinds     str, int within 64 bits, finite float, datetime   → accepted
  Value kinds     bool, lists, oversized int, inf and nan           → unsupported
  Currency        numeric values only                               → violation otherwise
  Styles          currency, number and date styles are exclusive    → violation
  Change message  must carry the %@ placeholder                     → violation
"""

import math
from datetime import datetime, timezone

import pytest

from passkit.app.schemas.pass_document import (
    DateStyle,
    FieldValueKind,
    NumberStyle,
    PassField,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, FieldValueKind.ABSENT),
        ("text", FieldValueKind.TEXT),
        (42, FieldValueKind.INTEGER),
        (-(2**63), FieldValueKind.INTEGER),
        (2**64 - 1, FieldValueKind.INTEGER),
        (2**64, FieldValueKind.UNSUPPORTED),
        (1.5, FieldValueKind.FLOAT),
        (datetime(2025, 1, 1, tzinfo=timezone.utc), FieldValueKind.TIMESTAMP),
        (True, FieldValueKind.UNSUPPORTED),
        ([1, 2], FieldValueKind.UNSUPPORTED),
    ],
)
def test_value_classification(value, expected):
    assert FieldValueKind.classify(value) is expected


@pytest.mark.parametrize("value", [0, 7, -3, 2**40, 0.0, 12.75])
def test_currency_accepts_every_numeric_value(value):
    field = PassField(key="balance", value=value, currency_code="EUR")

    assert field.get_validation_errors() == []


@pytest.mark.parametrize(
    "value",
    ["12.00", datetime(2025, 1, 1, tzinfo=timezone.utc), True],
)
def test_currency_rejects_non_numeric_values(value):
    field = PassField(key="balance", value=value, currency_code="EUR")

    errors = field.get_validation_errors()

    assert "When using currencies, the values have to be numbers" in errors


@pytest.mark.parametrize("value", [math.inf, -math.inf, math.nan])
def test_non_finite_float_is_unsupported(value):
    field = PassField(key="k", label="l", value=value)

    assert FieldValueKind.classify(value) is FieldValueKind.UNSUPPORTED
    assert not field.is_valid()
    assert field.get_validation_errors() == [
        "Invalid value type. Allowed: string, int, float, datetime"
    ]


def test_boolean_value_is_unsupported():
    errors = PassField(key="flag", value=False).get_validation_errors()

    assert errors == ["Invalid value type. Allowed: string, int, float, datetime"]


def test_missing_key_or_value_yields_one_violation():
    assert len(PassField(key="", value="v").get_validation_errors()) == 1
    assert len(PassField(key="k").get_validation_errors()) == 1
    assert len(PassField().get_validation_errors()) == 1


def test_zero_is_a_present_value():
    assert PassField(key="count", value=0).get_validation_errors() == []


def test_change_message_requires_placeholder():
    bad = PassField(key="gate", value="A1", change_message="Gate changed")
    good = PassField(key="gate", value="A1", change_message="Gate changed to %@")

    assert bad.get_validation_errors() == [
        "ChangeMessage needs to contain %@ placeholder"
    ]
    assert good.get_validation_errors() == []


def test_currency_and_number_style_are_exclusive():
    field = PassField(
        key="amount",
        value=10,
        currency_code="USD",
        number_style=NumberStyle.DECIMAL,
    )

    assert field.get_validation_errors() == [
        "CurrencyCode and numberStyle are both set"
    ]


@pytest.mark.parametrize(
    "extra",
    [
        {"currency_code": "USD"},
        {"number_style": NumberStyle.PERCENT},
    ],
)
@pytest.mark.parametrize(
    "style",
    [
        {"date_style": DateStyle.SHORT},
        {"time_style": DateStyle.LONG},
    ],
)
def test_number_and_date_styles_are_exclusive(extra, style):
    field = PassField(key="amount", value=10, **extra, **style)

    assert "Can't be number/currency and date at the same time" in (
        field.get_validation_errors()
    )


def test_violations_accumulate():
    field = PassField(
        key="amount",
        value="ten",
        currency_code="USD",
        number_style=NumberStyle.DECIMAL,
        date_style=DateStyle.SHORT,
        change_message="changed",
    )

    assert len(field.get_validation_errors()) == 4
