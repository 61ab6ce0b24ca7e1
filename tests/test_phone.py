"""Unit tests for core/phone.py -- E.164 normalization.

Covers:
- Leading "+" numbers parse as international and ignore the region hint
- Region hint supplies the country for national-format numbers
- Idempotence on E.164 input
- Unparseable and invalid numbers raise InvalidPhoneNumber
"""

import pytest

from core.errors import InvalidPhoneNumber
from core.phone import normalize_phone, try_normalize_phone


class TestNormalizePhone:
    def test_international_number_with_separators(self):
        assert normalize_phone("+1 (201) 555-0123") == "+12015550123"

    def test_region_hint_for_national_number(self):
        assert normalize_phone("(201) 555-0123", "US") == "+12015550123"

    def test_region_hint_is_case_insensitive(self):
        assert normalize_phone("07400 123456", "gb") == "+447400123456"

    def test_region_ignored_when_number_starts_with_plus(self):
        """A fully-specified number keeps its own country even if the hint disagrees."""
        assert normalize_phone("+44 7400 123456", "US") == "+447400123456"

    def test_iraq_mobile_with_region(self):
        assert normalize_phone("0791 234 5678", "IQ") == "+9647912345678"

    @pytest.mark.parametrize("e164", ["+12015550123", "+447400123456", "+16502530000"])
    def test_e164_is_idempotent(self, e164):
        once = normalize_phone(e164)
        assert once == e164
        assert normalize_phone(once) == once

    def test_short_local_number_is_invalid_for_us(self):
        """Seven digits parse under US but are not a valid US number."""
        with pytest.raises(InvalidPhoneNumber):
            normalize_phone("5551234", "US")

    def test_national_number_without_region_is_rejected(self):
        with pytest.raises(InvalidPhoneNumber):
            normalize_phone("2015550123")

    def test_text_is_rejected(self):
        with pytest.raises(InvalidPhoneNumber) as exc_info:
            normalize_phone("call me maybe", "US")
        assert exc_info.value.message == "Invalid phone number"

    @pytest.mark.parametrize("raw", ["", "   "])
    def test_blank_is_rejected(self, raw):
        with pytest.raises(InvalidPhoneNumber):
            normalize_phone(raw, "US")

    def test_unknown_country_code_is_rejected(self):
        with pytest.raises(InvalidPhoneNumber):
            normalize_phone("+999 1234 5678")


class TestTryNormalizePhone:
    def test_returns_none_instead_of_raising(self):
        assert try_normalize_phone("not a phone") is None

    def test_returns_e164_on_success(self):
        assert try_normalize_phone("+1 650 253 0000") == "+16502530000"
