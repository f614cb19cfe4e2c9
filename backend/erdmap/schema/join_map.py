"""Join-path resolution relative to the base table.

For each field of each table a filter expression is produced that selects the
field for the base-table record currently in context:

    level 0  the base table itself
    level 1  a table linked directly to the base table
    level 2  a table linked to some table that is linked to the base table

The search is bounded at two hops. Deeper paths would need deeper subquery
nesting, so tables further away are left out of the map.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Iterable

from ..core.config import DEFAULT_KEY_PLACEHOLDER
from .model import LinkInfo, SchemaGraph, TableInfo

logger = logging.getLogger(__name__)

BASE_LEVEL = 0
DIRECT_LEVEL = 1
INDIRECT_LEVEL = 2


@dataclass(frozen=True)
class JoinEdge:
    """One link seen from ``left_table``'s side."""
    left_table: str
    left_field: str
    right_table: str
    right_field: str
    link_id: str


@dataclass(frozen=True)
class JoinField:
    field_id: str
    field_name: str
    expression: str
    join_level: int


@dataclass
class TableJoinEntry:
    table_id: str
    table_name: str
    fields: list[JoinField] = field(default_factory=list)

    def to_payload(self) -> dict:
        return {
            "tableId": self.table_id,
            "tableName": self.table_name,
            "fields": [
                {
                    "fieldId": item.field_id,
                    "fieldName": item.field_name,
                    "sql": item.expression,
                    "joinLevel": item.join_level,
                }
                for item in self.fields
            ],
        }


@dataclass(frozen=True)
class ExpressionFormatter:
    """Renders identifiers and the current-record placeholder as SQL text."""
    quote: str = '"'
    placeholder: str = DEFAULT_KEY_PLACEHOLDER

    def ident(self, name: str) -> str:
        if not self.quote:
            return name
        escaped = name.replace(self.quote, self.quote * 2)
        return f"{self.quote}{escaped}{self.quote}"

    def current_value(self, table_name: str, field_name: str) -> str:
        return self.placeholder.format(table=table_name, field=field_name)

    def select(self, field_name: str, table_name: str, filter_field: str, value: str) -> str:
        return (
            f"SELECT {self.ident(field_name)} FROM {self.ident(table_name)} "
            f"WHERE {self.ident(filter_field)} = {value}"
        )


def edges_from_links(links: Iterable[LinkInfo]) -> list[JoinEdge]:
    return [
        JoinEdge(
            left_table=link.source.table_id,
            left_field=link.source.field_id,
            right_table=link.target.table_id,
            right_field=link.target.field_id,
            link_id=link.id,
        )
        for link in links
    ]


def build_adjacency(edges: Iterable[JoinEdge]) -> dict[str, list[JoinEdge]]:
    """Undirected adjacency; each table's list keeps link order."""
    adjacency: dict[str, list[JoinEdge]] = {}
    for edge in edges:
        adjacency.setdefault(edge.left_table, []).append(edge)
        adjacency.setdefault(edge.right_table, []).append(
            JoinEdge(
                left_table=edge.right_table,
                left_field=edge.right_field,
                right_table=edge.left_table,
                right_field=edge.left_field,
                link_id=edge.link_id,
            )
        )
    return adjacency


def find_edge(adjacency: dict[str, list[JoinEdge]], start: str, goal: str) -> JoinEdge | None:
    """First link between ``start`` and ``goal`` in link order, oriented from ``start``."""
    for edge in adjacency.get(start, []):
        if edge.right_table == goal:
            return edge
    return None


def _field_name(table: TableInfo | None, field_id: str) -> str:
    if table is None:
        return field_id
    found = table.get_field(field_id)
    return found.name if found else field_id


@dataclass(frozen=True)
class _JoinPath:
    level: int
    # Levels 1 and 2: edge from the base table to the next table on the path
    base_edge: JoinEdge | None = None
    # Level 2 only: edge from the intermediate table to the target table
    via_edge: JoinEdge | None = None


def _resolve_path(
    graph: SchemaGraph,
    adjacency: dict[str, list[JoinEdge]],
    base: TableInfo,
    table: TableInfo,
) -> _JoinPath | None:
    if table.id == base.id:
        return _JoinPath(level=BASE_LEVEL)

    direct = find_edge(adjacency, base.id, table.id)
    if direct is not None:
        return _JoinPath(level=DIRECT_LEVEL, base_edge=direct)

    # First qualifying intermediate in current table order wins
    for middle in graph.tables:
        if middle.id in (base.id, table.id):
            continue
        to_middle = find_edge(adjacency, base.id, middle.id)
        if to_middle is None:
            continue
        to_table = find_edge(adjacency, middle.id, table.id)
        if to_table is not None:
            return _JoinPath(level=INDIRECT_LEVEL, base_edge=to_middle, via_edge=to_table)
    return None


def _render(
    graph: SchemaGraph,
    formatter: ExpressionFormatter,
    base: TableInfo,
    key_name: str,
    table: TableInfo,
    field_name: str,
    path: _JoinPath,
) -> str:
    if path.level == BASE_LEVEL:
        return formatter.select(
            field_name, table.name, key_name, formatter.current_value(base.name, key_name)
        )

    base_edge = path.base_edge
    base_field = _field_name(base, base_edge.left_field)
    if path.level == DIRECT_LEVEL:
        foreign_field = _field_name(table, base_edge.right_field)
        return formatter.select(
            field_name, table.name, foreign_field, formatter.current_value(base.name, base_field)
        )

    via_edge = path.via_edge
    middle = graph.table(via_edge.left_table)
    middle_to_base = _field_name(middle, base_edge.right_field)
    middle_to_table = _field_name(middle, via_edge.left_field)
    table_to_middle = _field_name(table, via_edge.right_field)
    subquery = formatter.select(
        middle_to_table, middle.name, middle_to_base, formatter.current_value(base.name, base_field)
    )
    return formatter.select(field_name, table.name, table_to_middle, f"({subquery})")


def build_join_map(
    graph: SchemaGraph,
    formatter: ExpressionFormatter | None = None,
) -> list[TableJoinEntry]:
    """Compute the join expression of every reachable field.

    Returns an empty list until a base table with a key is configured. Fields
    of tables more than two hops from the base table are omitted, and tables
    left with no fields are omitted too.
    """
    formatter = formatter or ExpressionFormatter()
    base = graph.base_table()
    if base is None or not base.base_table_key:
        logger.debug("No base table with a key configured; join map is empty")
        return []

    key_field = base.field_by_id_or_name(base.base_table_key)
    key_name = key_field.name if key_field else base.base_table_key
    adjacency = build_adjacency(edges_from_links(graph.links))

    entries: list[TableJoinEntry] = []
    for table in graph.tables:
        path = _resolve_path(graph, adjacency, base, table)
        if path is None or not table.fields:
            continue
        entry = TableJoinEntry(table_id=table.id, table_name=table.name)
        for item in table.fields:
            entry.fields.append(
                JoinField(
                    field_id=item.id,
                    field_name=item.name,
                    expression=_render(graph, formatter, base, key_name, table, item.name, path),
                    join_level=path.level,
                )
            )
        entries.append(entry)

    logger.debug(f"Join map covers {len(entries)} of {len(graph.tables)} tables")
    return entries


def unreachable_tables(graph: SchemaGraph) -> list[str]:
    """Ids of tables with no path to the base table within two hops."""
    base = graph.base_table()
    if base is None:
        return []
    adjacency = build_adjacency(edges_from_links(graph.links))
    return [
        table.id
        for table in graph.tables
        if _resolve_path(graph, adjacency, base, table) is None
    ]


def join_map_payload(entries: Iterable[TableJoinEntry]) -> list[dict]:
    return [entry.to_payload() for entry in entries]
