from .contracts import CapabilityCatalog, CapabilitySpec, ContentKind, RoutingPattern, SlotSpec, SlotType
from .loader import load_capability_catalog, parse_capability_catalog
from .schemas import validate_capability_catalog_payload

__all__ = [
    "CapabilityCatalog",
    "CapabilitySpec",
    "ContentKind",
    "RoutingPattern",
    "SlotSpec",
    "SlotType",
    "load_capability_catalog",
    "parse_capability_catalog",
    "validate_capability_catalog_payload",
]
