"""
TOML File I/O Handler.

Key features:
- Parse TOML files using tomllib
- Write TOML files using tomlkit (preserves comments and formatting)
- Generate a commented configuration file from the schema
"""

import tomllib
from pathlib import Path
from typing import Any

import tomlkit

from plugpack.config.schema import ConfigField


class TOMLError(Exception):
    """Base exception for TOML-related errors."""

    pass


def read_toml(file_path: Path) -> dict[str, Any]:
    """
    Read and parse a TOML file.

    Raises:
        TOMLError: If file cannot be read or parsed
    """
    try:
        with open(file_path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise TOMLError(f"TOML file not found: {file_path}") from e
    except tomllib.TOMLDecodeError as e:
        raise TOMLError(f"Failed to parse TOML file {file_path}: {e}") from e
    except OSError as e:
        raise TOMLError(f"Failed to read TOML file {file_path}: {e}") from e


def write_toml(file_path: Path, document: tomlkit.TOMLDocument | dict[str, Any]) -> None:
    """
    Write a TOML document, creating parent directories as needed.

    Raises:
        TOMLError: If file cannot be written
    """
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w", encoding="utf-8") as f:
            tomlkit.dump(document, f)
    except OSError as e:
        raise TOMLError(f"Failed to write TOML file {file_path}: {e}") from e


def generate_toml_from_schema(
    section: str, schema: dict[str, ConfigField], config_data: dict[str, Any] | None = None
) -> tomlkit.TOMLDocument:
    """
    Build a TOML document for one section with descriptive comments.

    Args:
        section: Table name
        schema: Schema dictionary (field_name -> ConfigField)
        config_data: Values to write (defaults for missing keys)

    Returns:
        tomlkit document
    """
    config_data = config_data or {}
    doc = tomlkit.document()
    doc.add(tomlkit.comment(f"Configuration for {section}"))
    doc.add(tomlkit.nl())

    table = tomlkit.table()
    for field_name, field in schema.items():
        if field.description:
            table.add(tomlkit.comment(field.description))

        constraints = []
        if field.min is not None:
            constraints.append(f"min: {field.min}")
        if field.max is not None:
            constraints.append(f"max: {field.max}")
        if constraints:
            table.add(tomlkit.comment(f"Constraints: {', '.join(constraints)}"))

        table.add(field_name, config_data.get(field_name, field.default))
        table.add(tomlkit.nl())

    doc.add(section, table)
    return doc
