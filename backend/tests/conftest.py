"""Shared fixtures for the schema graph tests."""

from __future__ import annotations

import os
import sys

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from erdmap.schema import schema_from_payload


def make_table(table_id, fields, base=False, key=None, name=None, position=None):
    table = {
        "id": table_id,
        "name": name or table_id,
        "baseTable": base,
        "baseTableKey": key,
        "fields": [{"id": f, "name": f} for f in fields],
    }
    if position is not None:
        table["position"] = {"x": position[0], "y": position[1]}
    return table


def make_link(link_id, source_table, source_field, target_table, target_field, relation="="):
    return {
        "id": link_id,
        "source": f"{source_table}.R.{source_field}",
        "target": f"{target_table}.L.{target_field}",
        "relation": relation,
    }


@pytest.fixture
def orders_payload():
    """Customers (base) -> Orders -> Lines, plus an unconnected Notes table."""
    return {
        "tables": [
            make_table("Customers", ["CustID", "Name"], base=True, key="CustID"),
            make_table("Orders", ["OrderDate", "OrderID", "CustID"]),
            make_table("Lines", ["LineID", "Amount", "OrderID"]),
            make_table("Notes", ["NoteID", "Text"]),
        ],
        "links": [
            make_link("l1", "Customers", "CustID", "Orders", "CustID", "1:N"),
            make_link("l2", "Orders", "OrderID", "Lines", "OrderID", "1:N"),
        ],
    }


@pytest.fixture
def orders_graph(orders_payload):
    return schema_from_payload(orders_payload)
