"""Unit tests for typed tenant settings."""

import pytest

from tenantguard.core.errors import ValidationError
from tenantguard.modules.tenants.settings import (
    BooleanSetting,
    NumberSetting,
    StructuredSetting,
    TextSetting,
    infer_setting,
    load_setting,
)


class TestInferSetting:
    """Tests for wrapping plain values."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (True, BooleanSetting),
            (10, NumberSetting),
            (2.5, NumberSetting),
            ("medium", TextSetting),
            (["10.0.0.1"], StructuredSetting),
            ({"a": 1}, StructuredSetting),
        ],
    )
    def test_kind_follows_type(self, value, expected):
        """Each plain type maps to one setting kind."""
        setting = infer_setting(value)

        assert isinstance(setting, expected)
        assert setting.value == value

    def test_bool_is_not_a_number(self):
        """Booleans stay booleans even though bool subclasses int."""
        assert infer_setting(False).kind == "boolean"

    def test_unsupported_value(self):
        """Values with no setting kind are rejected."""
        with pytest.raises(ValidationError):
            infer_setting(None)


class TestLoadSetting:
    """Tests for rebuilding stored settings."""

    def test_load_by_kind(self):
        """The stored kind selects the setting type."""
        setting = load_setting("number", 500)

        assert isinstance(setting, NumberSetting)
        assert setting.value == 500

    def test_load_rejects_mismatched_value(self):
        """A value that does not fit its kind fails validation."""
        with pytest.raises(ValueError):
            load_setting("boolean", {"not": "a flag"})
