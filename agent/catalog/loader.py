from __future__ import annotations

import json
import logging
import re
import threading
from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError

from errors import CatalogError

from .contracts import CapabilityCatalog, CapabilitySpec
from .schemas import validate_capability_catalog_payload

logger = logging.getLogger(__name__)

_CACHE_LOCK = threading.Lock()
_CATALOG_CACHE: Dict[str, CapabilityCatalog] = {}


def parse_capability_catalog(payload: Dict[str, Any]) -> CapabilityCatalog:
    schema_errors = validate_capability_catalog_payload(payload)
    if schema_errors:
        raise CatalogError("capability catalog failed schema validation: " + "; ".join(schema_errors[:5]))

    capabilities: list[CapabilitySpec] = []
    for index, raw in enumerate(payload["capabilities"]):
        try:
            capability = CapabilitySpec.model_validate(raw)
        except ValidationError as exc:
            raise CatalogError(f"capability entry {index} is invalid: {exc}") from exc
        for pattern in capability.patterns:
            try:
                re.compile(pattern.regex, re.IGNORECASE)
            except re.error as exc:
                raise CatalogError(
                    f"{capability.capability_id}: invalid routing pattern {pattern.regex!r}: {exc}"
                ) from exc
        capabilities.append(capability)

    try:
        return CapabilityCatalog(capabilities, version=str(payload["catalog_version"]))
    except ValueError as exc:
        raise CatalogError(str(exc)) from exc


def load_capability_catalog(path: str | Path, *, force_reload: bool = False) -> CapabilityCatalog:
    """Load and validate the versioned catalog file; malformed data is fatal."""
    resolved = str(Path(path).resolve())
    if not force_reload:
        cached = _CATALOG_CACHE.get(resolved)
        if cached is not None:
            return cached

    try:
        raw_text = Path(resolved).read_text(encoding="utf-8")
    except OSError as exc:
        raise CatalogError(f"capability catalog not readable: {resolved}: {exc}") from exc
    try:
        payload = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise CatalogError(f"capability catalog is not valid JSON: {resolved}: {exc}") from exc
    if not isinstance(payload, dict):
        raise CatalogError(f"capability catalog must be a JSON object: {resolved}")

    catalog = parse_capability_catalog(payload)
    with _CACHE_LOCK:
        _CATALOG_CACHE[resolved] = catalog
    logger.info(
        "Capability catalog loaded: version=%s capabilities=%d path=%s",
        catalog.version,
        len(catalog),
        resolved,
    )
    return catalog
