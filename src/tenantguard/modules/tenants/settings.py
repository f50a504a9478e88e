"""Typed tenant settings.

A setting value is a tagged union discriminated by ``kind`` instead of a
string that has to be cast at runtime. Defaults provisioned for every new
tenant live in ``DEFAULT_SETTINGS``.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from tenantguard.core.errors import ValidationError


class _Setting(BaseModel):
    model_config = ConfigDict(frozen=True)


class TextSetting(_Setting):
    """Free-form text value."""

    kind: Literal["text"] = "text"
    value: str


class NumberSetting(_Setting):
    """Numeric value (limits, quotas, timeouts)."""

    kind: Literal["number"] = "number"
    value: int | float


class BooleanSetting(_Setting):
    """Feature flag or toggle."""

    kind: Literal["boolean"] = "boolean"
    value: bool


class StructuredSetting(_Setting):
    """Structured JSON value (lists or objects)."""

    kind: Literal["structured"] = "structured"
    value: list[Any] | dict[str, Any]


SettingValue = Annotated[
    TextSetting | NumberSetting | BooleanSetting | StructuredSetting,
    Field(discriminator="kind"),
]

setting_adapter: TypeAdapter[SettingValue] = TypeAdapter(SettingValue)


DEFAULT_SETTINGS: dict[str, dict[str, Any]] = {
    "limits": {
        "max_users": 10,
        "max_storage_gb": 10,
        "max_leads": 1000,
        "max_contacts": 5000,
        "max_products": 500,
        "max_email_per_day": 500,
        "api_rate_limit_per_hour": 1000,
    },
    "features": {
        "email_integration": True,
        "workflow_automation": True,
        "web_forms": True,
        "custom_fields": True,
        "api_access": True,
        "export_import": True,
        "email_templates": True,
        "activity_tracking": True,
    },
    "security": {
        "ip_whitelist": [],
        "two_factor_auth": False,
        "password_policy": "medium",
        "session_timeout_minutes": 60,
        "max_login_attempts": 5,
    },
}


def infer_setting(value: Any) -> SettingValue:
    """Wrap a plain Python value in the matching setting type.

    Args:
        value: A str, bool, int, float, list or dict

    Returns:
        The typed setting value

    Raises:
        ValidationError: If the value has no setting kind
    """
    # bool is a subclass of int, so it has to be checked first
    if isinstance(value, bool):
        return BooleanSetting(value=value)
    if isinstance(value, int | float):
        return NumberSetting(value=value)
    if isinstance(value, str):
        return TextSetting(value=value)
    if isinstance(value, list | dict):
        return StructuredSetting(value=value)
    raise ValidationError(
        "Unsupported setting value",
        errors=[{"field": "value", "message": f"Unsupported type {type(value).__name__}"}],
    )


def load_setting(kind: str, value: Any) -> SettingValue:
    """Rebuild a typed setting from its stored kind and JSON value."""
    return setting_adapter.validate_python({"kind": str(kind), "value": value})
