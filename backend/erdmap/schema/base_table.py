from __future__ import annotations

from dataclasses import replace
import logging

from ..core.exceptions import SchemaValidationError
from .model import SchemaGraph

logger = logging.getLogger(__name__)


def set_base_table(graph: SchemaGraph, table_id: str) -> SchemaGraph:
    """Make ``table_id`` the only base table, clearing the flag everywhere else."""
    if graph.table(table_id) is None:
        raise SchemaValidationError(f"Table '{table_id}' was not found")
    tables = tuple(replace(item, base_table=item.id == table_id) for item in graph.tables)
    logger.info(f"Base table set to {table_id}")
    return replace(graph, tables=tables)


def set_base_table_key(graph: SchemaGraph, key: str) -> SchemaGraph:
    """Set the key field of the current base table; no-op without one."""
    base = graph.base_table()
    if base is None:
        logger.warning(f"Ignoring base table key {key!r}: no base table is set")
        return graph
    tables = tuple(
        replace(item, base_table_key=key) if item.id == base.id else item
        for item in graph.tables
    )
    logger.info(f"Base table key for {base.id} set to {key}")
    return replace(graph, tables=tables)
