from __future__ import annotations

from typing import Any, Dict

import jsonschema  # type: ignore[import-untyped]

from ebl_orchestrator.errors import ValidationError

METADATA_VERSION = "1.0"

_ADDRESS = {"type": "string", "pattern": "^[A-Z2-7]{58}$"}
_NON_EMPTY = {"type": "string", "minLength": 1}

INSTRUMENT_METADATA_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "eBL instrument metadata",
    "type": "object",
    "required": [
        "metadata_version",
        "reference",
        "carrier_address",
        "exporter_address",
        "cargo_description",
        "cargo_value",
        "currency",
        "port_of_loading",
        "port_of_discharge",
        "vessel_name",
        "created_at",
    ],
    "properties": {
        "metadata_version": {"const": METADATA_VERSION},
        "reference": {"type": "string", "pattern": "^[A-Za-z0-9._-]{1,64}$"},
        "carrier_address": _ADDRESS,
        "exporter_address": _ADDRESS,
        "cargo_description": _NON_EMPTY,
        "cargo_value": {"type": "integer", "minimum": 0},
        "currency": {"type": "string", "pattern": "^[A-Z]{3,4}$"},
        "port_of_loading": _NON_EMPTY,
        "port_of_discharge": _NON_EMPTY,
        "vessel_name": _NON_EMPTY,
        "created_at": {"type": "string", "format": "date-time"},
        "box_key": {"type": "string"},
        "documents": {"type": "array", "items": {"type": "string"}},
    },
    "additionalProperties": False,
}

DOCUMENT_METADATA_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "trade document metadata",
    "type": "object",
    "required": ["name", "document_type", "exporter_address", "sha256", "size"],
    "properties": {
        "name": _NON_EMPTY,
        "document_type": {"enum": ["INVOICE", "PACKING_LIST", "CERTIFICATE", "OTHER"]},
        "exporter_address": _ADDRESS,
        "sha256": {"type": "string", "pattern": "^[0-9a-f]{64}$"},
        "size": {"type": "integer", "minimum": 1},
    },
    "additionalProperties": False,
}


def validate(instance: Dict[str, Any], schema: Dict[str, Any]) -> None:
    """Check ``instance`` against ``schema``.

    Raises:
        ValidationError: With the first schema violation as reason.
    """
    try:
        jsonschema.validate(instance=instance, schema=schema)
    except jsonschema.ValidationError as exc:
        location = "/".join(str(p) for p in exc.absolute_path) or "<root>"
        raise ValidationError(f"metadata invalid at {location}: {exc.message}") from exc
