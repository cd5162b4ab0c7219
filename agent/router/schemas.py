from __future__ import annotations

from typing import Any, Dict

from jsonschema import Draft202012Validator

ROUTE_EXTRACTION_JSON_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["schema_version", "candidates"],
    "properties": {
        "schema_version": {"const": "route_extraction_v1"},
        "candidates": {
            "type": "array",
            "maxItems": 5,
            "items": {
                "type": "object",
                "required": ["capability_id", "confidence"],
                "properties": {
                    "capability_id": {"type": "string", "minLength": 1},
                    "confidence": {"type": "number", "minimum": 0.0, "maximum": 1.0},
                },
                "additionalProperties": False,
            },
        },
        "reason": {"type": "string"},
    },
    "additionalProperties": False,
}

_validator = Draft202012Validator(ROUTE_EXTRACTION_JSON_SCHEMA)


def validate_route_extraction_payload(payload: Dict[str, Any]) -> list[str]:
    errors = sorted(_validator.iter_errors(payload), key=lambda item: list(item.path))
    messages: list[str] = []
    for item in errors:
        path = ".".join(str(part) for part in item.path)
        location = path if path else "$"
        messages.append(f"{location}: {item.message}")
    return messages
