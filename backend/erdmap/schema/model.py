"""Canonical relationship-graph types.

Every value here is frozen. Edits build the next ``SchemaGraph`` from the
previous one with ``dataclasses.replace`` so two versions never share mutable
state.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum


class Side(str, Enum):
    """Port polarity of a link endpoint."""
    SOURCE = "R"  # outgoing, right-hand port
    TARGET = "L"  # incoming, left-hand port


class Relation(str, Enum):
    """Cardinalities with a defined visual meaning."""
    EQUAL = "="
    ONE_TO_MANY = "1:N"
    MANY_TO_ONE = "N:1"
    MANY_TO_MANY = "N:N"


@dataclass(frozen=True)
class FieldInfo:
    id: str
    name: str


@dataclass(frozen=True)
class Position:
    x: float = 60.0
    y: float = 60.0


@dataclass(frozen=True)
class TableInfo:
    id: str
    name: str
    fields: tuple[FieldInfo, ...] = ()
    base_table: bool = False
    base_table_key: str | None = None
    position: Position = field(default_factory=Position)
    collapsed: bool = False

    def get_field(self, field_id: str) -> FieldInfo | None:
        for item in self.fields:
            if item.id == field_id:
                return item
        return None

    def field_by_id_or_name(self, ref: str) -> FieldInfo | None:
        found = self.get_field(ref)
        if found is not None:
            return found
        for item in self.fields:
            if item.name == ref:
                return item
        return None


@dataclass(frozen=True)
class Endpoint:
    table_id: str
    side: Side
    field_id: str

    @classmethod
    def parse(cls, value: str) -> Endpoint:
        """Decode ``tableId.<R|L>.fieldId``.

        Splits on the first two dots only, so field ids may contain dots but
        table ids may not.
        """
        parts = str(value).split(".", 2)
        if len(parts) != 3 or not parts[0] or not parts[2]:
            raise ValueError(f"Malformed endpoint: {value!r}")
        table_id, tag, field_id = parts
        try:
            side = Side(tag)
        except ValueError as exc:
            raise ValueError(f"Unknown side tag {tag!r} in endpoint {value!r}") from exc
        return cls(table_id=table_id, side=side, field_id=field_id)

    def encode(self) -> str:
        return f"{self.table_id}.{self.side.value}.{self.field_id}"

    def __str__(self) -> str:
        return self.encode()


@dataclass(frozen=True)
class LinkInfo:
    id: str
    source: Endpoint
    target: Endpoint
    relation: str = Relation.EQUAL.value
    # Name cache, re-derived from the tables; never used as identity.
    source_table_name: str = ""
    source_field_name: str = ""
    target_table_name: str = ""
    target_field_name: str = ""

    def touches(self, table_id: str) -> bool:
        return self.source.table_id == table_id or self.target.table_id == table_id

    @property
    def pair(self) -> tuple[Endpoint, Endpoint]:
        return self.source, self.target


@dataclass(frozen=True)
class SchemaGraph:
    tables: tuple[TableInfo, ...] = ()
    links: tuple[LinkInfo, ...] = ()

    def table(self, table_id: str) -> TableInfo | None:
        for item in self.tables:
            if item.id == table_id:
                return item
        return None

    def table_by_id_or_name(self, ref: str) -> TableInfo | None:
        found = self.table(ref)
        if found is not None:
            return found
        for item in self.tables:
            if item.name == ref:
                return item
        return None

    def base_table(self) -> TableInfo | None:
        for item in self.tables:
            if item.base_table:
                return item
        return None

    def link(self, link_id: str) -> LinkInfo | None:
        for item in self.links:
            if item.id == link_id:
                return item
        return None

    def table_ids(self) -> list[str]:
        return [item.id for item in self.tables]


def with_link_names(graph: SchemaGraph, link: LinkInfo) -> LinkInfo:
    """Refresh the denormalized name cache of ``link`` from ``graph``."""
    source_table = graph.table(link.source.table_id)
    target_table = graph.table(link.target.table_id)
    source_field = source_table.get_field(link.source.field_id) if source_table else None
    target_field = target_table.get_field(link.target.field_id) if target_table else None
    return replace(
        link,
        source_table_name=source_table.name if source_table else link.source_table_name,
        source_field_name=source_field.name if source_field else link.source.field_id,
        target_table_name=target_table.name if target_table else link.target_table_name,
        target_field_name=target_field.name if target_field else link.target.field_id,
    )
