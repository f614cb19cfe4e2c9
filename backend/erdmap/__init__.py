"""ERD join-map service.

This package keeps the canonical relationship graph behind a browser ERD
editor and derives the base-table join map exported alongside it.

Package Structure:
    core/       - Core infrastructure (config, interchange models, exceptions)
    schema/     - Relationship graph (model, edits, sorting, join map, interchange)
    security/   - Checks on generated SQL expressions
"""

from .core.config import Settings, get_settings, get_cached_settings
from .core.exceptions import InvalidSchemaError, SchemaValidationError
from .schema import (
    SchemaGraph,
    SchemaStore,
    build_join_map,
    export_payload,
    load_schema,
    resort,
    upsert_link,
)

__all__ = [
    "Settings",
    "get_settings",
    "get_cached_settings",
    "InvalidSchemaError",
    "SchemaValidationError",
    "SchemaGraph",
    "SchemaStore",
    "build_join_map",
    "export_payload",
    "load_schema",
    "resort",
    "upsert_link",
]
