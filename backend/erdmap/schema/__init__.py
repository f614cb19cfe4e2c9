"""Schema graph module.

Contains the graph model, link edits, sorting, base-table control,
join-path resolution, and the JSON interchange.
"""

from .base_table import set_base_table, set_base_table_key
from .interchange import (
    export_payload,
    link_to_payload,
    load_schema,
    parse_schema_json,
    schema_from_payload,
    schema_to_payload,
)
from .join_map import (
    ExpressionFormatter,
    JoinEdge,
    JoinField,
    TableJoinEntry,
    build_adjacency,
    build_join_map,
    edges_from_links,
    join_map_payload,
    unreachable_tables,
)
from .links import add_table, delete_link, delete_table, set_collapsed, upsert_link, validate_connection
from .model import Endpoint, FieldInfo, LinkInfo, Position, Relation, SchemaGraph, Side, TableInfo
from .sorting import linked_field_ids, relation_counts, resort
from .store import SchemaStore, merge_schema

__all__ = [
    "set_base_table",
    "set_base_table_key",
    "export_payload",
    "link_to_payload",
    "load_schema",
    "parse_schema_json",
    "schema_from_payload",
    "schema_to_payload",
    "ExpressionFormatter",
    "JoinEdge",
    "JoinField",
    "TableJoinEntry",
    "build_adjacency",
    "build_join_map",
    "edges_from_links",
    "join_map_payload",
    "unreachable_tables",
    "add_table",
    "delete_link",
    "delete_table",
    "set_collapsed",
    "upsert_link",
    "validate_connection",
    "Endpoint",
    "FieldInfo",
    "LinkInfo",
    "Position",
    "Relation",
    "SchemaGraph",
    "Side",
    "TableInfo",
    "linked_field_ids",
    "relation_counts",
    "resort",
    "SchemaStore",
    "merge_schema",
]
