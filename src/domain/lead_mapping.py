from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from types import MappingProxyType
from typing import Any, Final, Literal, Mapping


LeadProvider = Literal["homeadvisor", "thumbtack", "angi", "custom"]

FULL_NAME: Final[str] = "full_name"
HAZARD_TYPES: Final[str] = "hazard_types"
DEFAULT_LEAD_SOURCE: Final[str] = "webhook"

LEAD_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "first_name",
        "last_name",
        "email",
        "phone",
        "company_name",
        "address_line1",
        "city",
        "state",
        "zip",
        "notes",
        HAZARD_TYPES,
    }
)
MAPPING_TARGETS: Final[frozenset[str]] = LEAD_FIELDS | {FULL_NAME}

PROVIDER_LABELS: Final[Mapping[str, str]] = MappingProxyType(
    {
        "homeadvisor": "HomeAdvisor",
        "thumbtack": "Thumbtack",
        "angi": "Angi",
        "custom": "Custom",
    }
)

PROVIDER_FIELD_MAPPINGS: Final[Mapping[str, Mapping[str, str]]] = MappingProxyType(
    {
        "homeadvisor": MappingProxyType(
            {
                "lead.firstName": "first_name",
                "lead.lastName": "last_name",
                "lead.email": "email",
                "lead.phone": "phone",
                "lead.address.street": "address_line1",
                "lead.address.city": "city",
                "lead.address.state": "state",
                "lead.address.zip": "zip",
                "lead.description": "notes",
            }
        ),
        "thumbtack": MappingProxyType(
            {
                "customer.name": FULL_NAME,
                "customer.email": "email",
                "customer.phone": "phone",
                "location.street_address": "address_line1",
                "location.city": "city",
                "location.state": "state",
                "location.postal_code": "zip",
                "request.description": "notes",
            }
        ),
        "angi": MappingProxyType(
            {
                "consumer.firstName": "first_name",
                "consumer.lastName": "last_name",
                "consumer.email": "email",
                "consumer.phone": "phone",
                "address.streetAddress": "address_line1",
                "address.city": "city",
                "address.state": "state",
                "address.postalCode": "zip",
                "projectDescription": "notes",
            }
        ),
        "custom": MappingProxyType({}),
    }
)


@dataclass
class ParsedLead:
    """Canonical lead extracted from a provider payload."""
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    company_name: str | None = None
    address_line1: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    notes: str | None = None
    lead_source: str = DEFAULT_LEAD_SOURCE
    hazard_types: list[str] = field(default_factory=list)

    def contact_fields(self) -> dict[str, str]:
        """Extracted contact and address fields, absent ones omitted."""
        values = asdict(self)
        values.pop("lead_source")
        values.pop(HAZARD_TYPES)
        return {key: value for key, value in values.items() if value is not None}


def provider_default_mapping(provider: str) -> dict[str, str]:
    return dict(PROVIDER_FIELD_MAPPINGS.get(provider, {}))


def merge_field_mapping(provider: str, overrides: Mapping[str, str] | None) -> dict[str, str]:
    """Provider defaults overlaid key-by-key with caller overrides."""
    mapping = provider_default_mapping(provider)
    if overrides:
        mapping.update(overrides)
    return mapping


def resolve_path(payload: Any, path: str) -> Any:
    """Walk a dotted path through nested dicts/lists. Returns None when any step is missing."""
    current = payload
    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part)
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _as_hazard_types(value: Any) -> list[str]:
    if isinstance(value, list):
        items = [_as_text(item).strip() for item in value if item is not None]
    else:
        items = [item.strip() for item in _as_text(value).split(",")]
    return [item for item in items if item]


def parse_lead(payload: Mapping[str, Any], field_mapping: Mapping[str, str]) -> ParsedLead:
    """Pure transformation of a provider payload into a ParsedLead."""
    lead = ParsedLead()

    for source_path, target in field_mapping.items():
        value = resolve_path(payload, source_path)
        if value is None or value == "":
            continue

        if target == FULL_NAME:
            parts = _as_text(value).split()
            if not parts:
                continue
            lead.first_name = parts[0]
            lead.last_name = " ".join(parts[1:]) or None
        elif target == HAZARD_TYPES:
            lead.hazard_types = _as_hazard_types(value)
        elif target in LEAD_FIELDS:
            setattr(lead, target, _as_text(value))

    return lead
