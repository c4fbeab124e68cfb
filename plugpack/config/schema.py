"""
Configuration Schema.

This module provides typed field definitions and validation for the
``[plugpack]`` configuration table.

Key features:
- Type-safe field definitions with constraints
- Typed list items
- Validation of whole tables with defaults for missing keys
"""

from dataclasses import dataclass
from typing import Any


class SchemaError(Exception):
    """Base exception for schema-related errors."""

    pass


class ValidationError(SchemaError):
    """Raised when value validation fails."""

    pass


def _is_instance(value: Any, type_: type) -> bool:
    # bool is an int subclass; never accept it for numeric fields
    if isinstance(value, bool) and type_ is not bool:
        return False
    if type_ is float:
        return isinstance(value, (int, float))
    return isinstance(value, type_)


@dataclass
class ConfigField:
    """
    Represents a configuration field with type and constraints.

    Attributes:
        type_: The expected type of the field value
        default: Default value for the field
        description: Human-readable description
        min: Minimum value (numbers) or minimum length (strings/lists)
        max: Maximum value (numbers) or maximum length (strings/lists)
        item_type: Element type for list fields
    """

    type_: type
    default: Any
    description: str = ""
    min: Any = None
    max: Any = None
    item_type: type | None = None

    def __post_init__(self):
        if (self.min is not None or self.max is not None) and self.type_ not in (
            int,
            float,
            str,
            list,
        ):
            raise SchemaError(
                f"min/max constraints only supported for int, float, str, list. Got {self.type_.__name__}"
            )
        if self.item_type is not None and self.type_ is not list:
            raise SchemaError("item_type is only supported for list fields")
        self.validate(self.default)

    def validate(self, value: Any) -> None:
        """
        Validate a value against this field's constraints.

        Raises:
            ValidationError: If validation fails
        """
        if not _is_instance(value, self.type_):
            raise ValidationError(
                f"Expected type {self.type_.__name__}, got {type(value).__name__}"
            )

        if self.type_ in (int, float):
            if self.min is not None and value < self.min:
                raise ValidationError(f"Value {value} is less than minimum {self.min}")
            if self.max is not None and value > self.max:
                raise ValidationError(f"Value {value} is greater than maximum {self.max}")
        elif self.type_ in (str, list):
            if self.min is not None and len(value) < self.min:
                raise ValidationError(
                    f"Length {len(value)} is less than minimum {self.min}"
                )
            if self.max is not None and len(value) > self.max:
                raise ValidationError(
                    f"Length {len(value)} is greater than maximum {self.max}"
                )

        if self.item_type is not None:
            for item in value:
                if not _is_instance(item, self.item_type):
                    raise ValidationError(
                        f"List items must be {self.item_type.__name__}, got {type(item).__name__}"
                    )


def validate_config(config: dict[str, Any], schema: dict[str, ConfigField]) -> dict[str, Any]:
    """
    Validate a configuration table, filling in defaults for missing keys.

    Args:
        config: Parsed configuration table
        schema: Schema dictionary (field_name -> ConfigField)

    Returns:
        Complete configuration (every schema key present)

    Raises:
        ValidationError: On unknown keys or invalid values
    """
    for key in config:
        if key not in schema:
            raise ValidationError(f"Unknown configuration field: {key}")

    resolved = {}
    for field_name, field in schema.items():
        value = config.get(field_name, field.default)
        try:
            field.validate(value)
        except ValidationError as e:
            raise ValidationError(f"Field '{field_name}': {e}") from e
        resolved[field_name] = value
    return resolved
