"""
Tests for field-level masking.

Sensitive keys are replaced wholesale; other strings go through pattern masking.
"""

from telestack.config import MaskingSettings
from telestack.core.masking import Masker, create_masker


class TestFieldMasking:
    """Test masking of flat field mappings."""

    def test_sensitive_keys_fully_masked(self, masker: Masker) -> None:
        """Test values under sensitive keys are replaced by the mask token."""
        masked = masker.mask_fields({
            "password": "hunter2",
            "user_email": "jane.doe@example.com",
            "Authorization_Token": "abc123",
        })

        assert masked == {
            "password": "[MASKED]",
            "user_email": "[MASKED]",
            "Authorization_Token": "[MASKED]",
        }

    def test_other_strings_are_pattern_masked(self, masker: Masker) -> None:
        """Test free-form values still have patterns applied."""
        masked = masker.mask_fields({"note": "reach me at jane.doe@example.com"})
        assert masked["note"] == "reach me at ja***@example.com"

    def test_non_string_values_pass_through(self, masker: Masker) -> None:
        """Test numbers, None and nested structures are untouched."""
        nested = {"password": "inner"}
        masked = masker.mask_fields({"count": 3, "price": 9.5, "missing": None, "extra": nested})

        assert masked["count"] == 3
        assert masked["price"] == 9.5
        assert masked["missing"] is None
        assert masked["extra"] is nested

    def test_input_is_not_mutated(self, masker: Masker) -> None:
        """Test a new mapping is returned."""
        fields = {"password": "hunter2", "name": "Widget"}
        masked = masker.mask_fields(fields)

        assert fields == {"password": "hunter2", "name": "Widget"}
        assert masked is not fields

    def test_field_match_is_case_insensitive_substring(self, masker: Masker) -> None:
        """Test field names match on any sensitive fragment."""
        assert masker.is_sensitive_field("Customer_API_Key")
        assert masker.is_sensitive_field("client_ip")
        assert not masker.is_sensitive_field("product_name")
        assert not masker.is_sensitive_field(7)

    def test_extra_sensitive_fields_from_settings(self) -> None:
        """Test configured fragments extend the built-in list."""
        masker = create_masker(MaskingSettings(extra_sensitive_fields=["iban"], mask_token="***"))

        masked = masker.mask_fields({"customer_iban": "DE89370400440532013000", "name": "Widget"})

        assert masked == {"customer_iban": "***", "name": "Widget"}
