from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
import logging
from typing import Any, Callable, Mapping

from ..core.models import SchemaPayload
from .interchange import DEFAULT_COLLAPSE_THRESHOLD, load_schema, parse_schema_json, schema_from_payload
from .model import LinkInfo, Position, SchemaGraph, TableInfo, with_link_names
from .sorting import resort

logger = logging.getLogger(__name__)

# Where merged tables without a position land: a staggered cascade
MERGE_ORIGIN = Position(x=100.0, y=100.0)
MERGE_STEP = 40.0


def _merge_position(slot: int) -> Position:
    return Position(x=MERGE_ORIGIN.x + slot * MERGE_STEP, y=MERGE_ORIGIN.y + slot * MERGE_STEP)


def merge_schema(
    current: SchemaGraph,
    incoming: SchemaGraph,
    positioned: set[str] | None = None,
) -> tuple[SchemaGraph, bool]:
    """Add the tables and links of ``incoming`` that ``current`` lacks.

    A table is new when its (id, name) pair is unseen; a link is new when its
    id is unseen and both endpoint tables exist once tables are merged.
    ``positioned`` names incoming tables whose payload carried a position;
    the others are placed on a staggered default grid. Returns the next graph
    and whether anything changed; the graph is resorted only on change.
    """
    positioned = positioned or set()
    known_tables = {(t.id, t.name) for t in current.tables}
    known_ids = {t.id for t in current.tables}

    tables: list[TableInfo] = list(current.tables)
    slot = 0
    for table in incoming.tables:
        if (table.id, table.name) in known_tables:
            continue
        if table.id in known_ids:
            # Same id under another name would break id uniqueness
            logger.warning(f"Skipping merged table {table.id}: id already used by another table")
            continue
        if table.id not in positioned:
            table = replace(table, position=_merge_position(slot))
            slot += 1
        if table.base_table and any(t.base_table for t in tables):
            table = replace(table, base_table=False)
        tables.append(table)
        known_tables.add((table.id, table.name))
        known_ids.add(table.id)

    merged = replace(current, tables=tuple(tables))
    links: list[LinkInfo] = list(current.links)
    known_links = {link.id for link in current.links}
    for link in incoming.links:
        if link.id in known_links or link.source.table_id == link.target.table_id:
            continue
        source_table = merged.table(link.source.table_id)
        target_table = merged.table(link.target.table_id)
        if source_table is None or target_table is None:
            continue
        if source_table.get_field(link.source.field_id) is None:
            continue
        if target_table.get_field(link.target.field_id) is None:
            continue
        links.append(with_link_names(merged, link))
        known_links.add(link.id)

    added_tables = len(tables) - len(current.tables)
    added_links = len(links) - len(current.links)
    if not added_tables and not added_links:
        return current, False

    logger.info(f"Merged {added_tables} tables and {added_links} links")
    return resort(replace(merged, links=tuple(links))), True


class SchemaStore:
    """Holder of the single current schema graph.

    Operations never mutate a graph; the store only swaps its reference.
    """

    def __init__(self, graph: SchemaGraph | None = None) -> None:
        self.graph: SchemaGraph = graph or SchemaGraph()
        self.updated_at: datetime | None = None
        self.collapse_threshold = DEFAULT_COLLAPSE_THRESHOLD

    def replace(self, graph: SchemaGraph) -> SchemaGraph:
        self.graph = graph
        self.updated_at = datetime.now(timezone.utc)
        return graph

    def apply(self, operation: Callable[..., SchemaGraph], *args: Any, **kwargs: Any) -> SchemaGraph:
        """Run ``operation`` on the current graph, resort, and keep the result."""
        return self.replace(resort(operation(self.graph, *args, **kwargs)))

    def load(self, payload: Mapping[str, Any] | SchemaPayload) -> SchemaGraph:
        """Replace the graph wholesale; invalid payloads leave it untouched."""
        return self.replace(load_schema(payload, self.collapse_threshold))

    def load_json(self, text: str | bytes) -> SchemaGraph:
        return self.replace(resort(parse_schema_json(text, self.collapse_threshold)))

    def merge(self, payload: Mapping[str, Any] | SchemaPayload) -> bool:
        incoming = schema_from_payload(payload, self.collapse_threshold, check_links=False)
        if isinstance(payload, SchemaPayload):
            positioned = {t.id for t in payload.tables if t.position is not None}
        else:
            positioned = {
                t.get("id") for t in payload.get("tables", []) or []
                if isinstance(t, Mapping) and t.get("position") is not None
            }
        graph, changed = merge_schema(self.graph, incoming, positioned)
        if changed:
            self.replace(graph)
        return changed

    def resort(self, positions: Mapping[str, Position] | None = None) -> SchemaGraph:
        return self.replace(resort(self.graph, positions))
