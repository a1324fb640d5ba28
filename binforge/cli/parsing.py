"""Parsers for structured CLI option values."""

from __future__ import annotations

import json
from typing import Any

from binforge.errors import ValidationError
from binforge.models.resources import BundleBinary

_BINARY_FORMAT_HELP = (
    "Expected 'key=value' pairs separated by semicolons. Required: prn=value. "
    "Optional: custom_metadata={json|null}. "
    "Example: 'prn=prn:1:org:binary:id;custom_metadata={\"version\":\"1.0\"}' or "
    "'prn=prn:1:org:binary:id;custom_metadata=null'"
)


def parse_json_object(value: str, option: str) -> dict[str, Any]:
    """Parse *value* as a JSON object, naming *option* in the error."""
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Invalid JSON in {option}: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ValidationError(f"{option} must be a JSON object")
    return parsed


def parse_bundle_binary(spec: str) -> BundleBinary:
    """Parse ``prn=<prn>[;custom_metadata=<json object>|null]``.

    A missing or ``null`` ``custom_metadata`` means no metadata.
    """
    prn: str | None = None
    custom_metadata: dict[str, Any] | None = None

    for pair in spec.split(";"):
        key, sep, value = pair.partition("=")
        if not sep:
            raise ValidationError(f"Invalid binary format: '{pair}'. {_BINARY_FORMAT_HELP}")
        key, value = key.strip(), value.strip()

        if key == "prn":
            prn = value
        elif key == "custom_metadata":
            if value == "null":
                custom_metadata = None
            else:
                try:
                    parsed = json.loads(value)
                except json.JSONDecodeError as exc:
                    raise ValidationError(
                        f"Invalid JSON in custom_metadata: {exc}. Use 'null' for explicit "
                        "null or a valid JSON object."
                    ) from exc
                if not isinstance(parsed, dict):
                    raise ValidationError(
                        "custom_metadata must be a JSON object or 'null'"
                    )
                custom_metadata = parsed
        else:
            raise ValidationError(
                f"Unknown key '{key}'. Supported keys: 'prn' (required), "
                "'custom_metadata' (optional: JSON object or 'null')"
            )

    if not prn:
        raise ValidationError("Missing required 'prn' key in --binaries entry")
    return BundleBinary(prn=prn, custom_metadata=custom_metadata)


def split_values(values: list[str] | None) -> list[str]:
    """Flatten repeated and comma-delimited option values."""
    result: list[str] = []
    for value in values or []:
        result.extend(part.strip() for part in value.split(",") if part.strip())
    return result
