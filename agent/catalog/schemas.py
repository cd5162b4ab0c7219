from __future__ import annotations

from typing import Any, Dict

from jsonschema import Draft202012Validator

from snapshot import DATA_CATEGORIES

SLOT_TYPE_ENUM = ["period", "amount", "category", "merchant", "account", "goal_id"]
CONTENT_KIND_ENUM = ["factual", "strategy", "educational", "action"]

_THRESHOLDS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "propertyNames": {"enum": list(DATA_CATEGORIES)},
    "additionalProperties": {"type": "integer", "minimum": 1},
}

CAPABILITY_CATALOG_JSON_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["schema_version", "catalog_version", "capabilities"],
    "properties": {
        "schema_version": {"const": "capability_catalog_v1"},
        "catalog_version": {"type": "string", "minLength": 1},
        "capabilities": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["capability_id", "name"],
                "properties": {
                    "capability_id": {"type": "string", "pattern": "^[A-Z][A-Z0-9_]*$"},
                    "name": {"type": "string", "minLength": 1},
                    "description": {"type": "string"},
                    "content_kind": {"type": "string", "enum": CONTENT_KIND_ENUM},
                    "requires": _THRESHOLDS_SCHEMA,
                    "requires_any": _THRESHOLDS_SCHEMA,
                    "optional": {
                        "type": "array",
                        "items": {"type": "string", "enum": list(DATA_CATEGORIES)},
                    },
                    "params": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "required": ["name", "slot_type"],
                            "properties": {
                                "name": {"type": "string", "minLength": 1},
                                "slot_type": {"type": "string", "enum": SLOT_TYPE_ENUM},
                                "required": {"type": "boolean"},
                            },
                            "additionalProperties": False,
                        },
                    },
                    "patterns": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "required": ["regex", "confidence"],
                            "properties": {
                                "regex": {"type": "string", "minLength": 1},
                                "confidence": {"type": "number", "minimum": 0.0, "maximum": 1.0},
                            },
                            "additionalProperties": False,
                        },
                    },
                    "keywords": {"type": "array", "items": {"type": "string", "minLength": 1}},
                    "priority": {"type": "number", "minimum": 0.0, "maximum": 1.0},
                    "example_utterance": {"type": "string"},
                },
                "additionalProperties": False,
            },
        },
    },
    "additionalProperties": False,
}

_validator = Draft202012Validator(CAPABILITY_CATALOG_JSON_SCHEMA)


def validate_capability_catalog_payload(payload: Dict[str, Any]) -> list[str]:
    errors = sorted(_validator.iter_errors(payload), key=lambda item: list(item.path))
    messages: list[str] = []
    for item in errors:
        path = ".".join(str(part) for part in item.path)
        location = path if path else "$"
        messages.append(f"{location}: {item.message}")
    return messages
