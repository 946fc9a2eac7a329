"""Tests for input validation helpers."""

from decimal import Decimal

import pytest

from payout_engine.errors import ValidationError
from payout_engine.services.validation import (
    generate_idempotency_key,
    is_valid_bank_account,
    is_valid_email,
    is_valid_idempotency_key,
    sanitize_string,
    validate_amount,
    validate_idempotency_key,
)

CEILING = Decimal("1000000")


class TestIdempotencyKeys:
    """Test idempotency key generation and shape checks."""

    def test_generated_keys_are_valid_and_unique(self):
        keys = {generate_idempotency_key() for _ in range(50)}
        assert len(keys) == 50
        assert all(is_valid_idempotency_key(k) for k in keys)

    def test_uppercase_uuid_accepted(self):
        assert is_valid_idempotency_key("3F2504E0-4F89-41D3-9A0C-0305E82C3301") is True

    @pytest.mark.parametrize(
        "key",
        [
            "not-a-uuid",
            "",
            "3f2504e0-4f89-11d3-9a0c-0305e82c3301",  # version 1
            "3f2504e0-4f89-41d3-7a0c-0305e82c3301",  # bad variant
            "3f2504e04f8941d39a0c0305e82c3301",  # no hyphens
        ],
    )
    def test_malformed_keys_rejected(self, key):
        assert is_valid_idempotency_key(key) is False
        with pytest.raises(ValidationError):
            validate_idempotency_key(key)

    def test_missing_key_is_generated(self):
        key = validate_idempotency_key(None)
        assert is_valid_idempotency_key(key)

    def test_supplied_key_returned_unchanged(self):
        key = generate_idempotency_key()
        assert validate_idempotency_key(key) == key


class TestAmountValidation:
    """Test amount bounds."""

    def test_zero_rejected(self):
        with pytest.raises(ValidationError):
            validate_amount(Decimal("0"), CEILING)

    def test_negative_rejected(self):
        with pytest.raises(ValidationError):
            validate_amount(Decimal("-5"), CEILING)

    def test_ceiling_inclusive(self):
        assert validate_amount(Decimal("1000000"), CEILING) == Decimal("1000000")

    def test_above_ceiling_rejected(self):
        with pytest.raises(ValidationError):
            validate_amount(Decimal("1000000.01"), CEILING)

    def test_non_finite_rejected(self):
        with pytest.raises(ValidationError):
            validate_amount(Decimal("Infinity"), CEILING)
        with pytest.raises(ValidationError):
            validate_amount(Decimal("NaN"), CEILING)

    def test_smallest_amount_accepted(self):
        assert validate_amount(Decimal("0.01"), CEILING) == Decimal("0.01")

    def test_six_decimal_places_accepted(self):
        assert validate_amount(Decimal("0.000001"), CEILING) == Decimal("0.000001")
        assert validate_amount(Decimal("12.5000000"), CEILING) == Decimal("12.5")

    @pytest.mark.parametrize("value", ["0.0000001", "0.0000004", "10.1234567"])
    def test_excess_precision_rejected(self, value):
        with pytest.raises(ValidationError, match="6 decimal places"):
            validate_amount(Decimal(value), CEILING)


class TestVendorFieldValidation:
    """Test email and bank detail formats."""

    def test_email(self):
        assert is_valid_email("ap@vendor.example") is True
        assert is_valid_email("no-at-sign.example") is False
        assert is_valid_email("two words@vendor.example") is False
        assert is_valid_email("missing@tld") is False

    def test_bank_account_lengths(self):
        assert is_valid_bank_account("12345678", "021000021") is True
        assert is_valid_bank_account("12345678901234567", "021000021") is True
        assert is_valid_bank_account("1234567", "021000021") is False
        assert is_valid_bank_account("123456789012345678", "021000021") is False

    def test_routing_number_is_nine_digits(self):
        assert is_valid_bank_account("12345678", "02100002") is False
        assert is_valid_bank_account("12345678", "0210000210") is False
        assert is_valid_bank_account("12345678", "02100002a") is False

    def test_sanitize_string(self):
        assert sanitize_string("  <b>Acme</b>  ") == "bAcme/b"
        assert sanitize_string("Plain") == "Plain"
