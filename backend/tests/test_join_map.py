"""Unit tests for join-path resolution."""

from __future__ import annotations

from erdmap.schema import (
    ExpressionFormatter,
    build_adjacency,
    build_join_map,
    edges_from_links,
    resort,
    schema_from_payload,
    set_base_table,
    unreachable_tables,
)

from conftest import make_link, make_table

PLAIN = ExpressionFormatter(quote='"', placeholder="'{table}::{field}'")


def _entry(entries, table_id):
    return next((e for e in entries if e.table_id == table_id), None)


def _field(entry, field_id):
    return next(f for f in entry.fields if f.field_id == field_id)


class TestAdjacency:
    """Tests for the undirected adjacency list."""

    def test_edges_seen_from_both_sides(self, orders_graph):
        adjacency = build_adjacency(edges_from_links(orders_graph.links))
        orders = adjacency["Orders"]
        assert [(e.right_table, e.left_field, e.right_field) for e in orders] == [
            ("Customers", "CustID", "CustID"),
            ("Lines", "OrderID", "OrderID"),
        ]


class TestJoinLevels:
    """Tests for level classification."""

    def test_levels(self, orders_graph):
        """Base is level 0, direct neighbours level 1, two hops level 2."""
        entries = build_join_map(orders_graph, PLAIN)
        assert {f.join_level for f in _entry(entries, "Customers").fields} == {0}
        assert {f.join_level for f in _entry(entries, "Orders").fields} == {1}
        assert {f.join_level for f in _entry(entries, "Lines").fields} == {2}

    def test_unreachable_table_omitted(self, orders_graph):
        entries = build_join_map(orders_graph, PLAIN)
        assert _entry(entries, "Notes") is None
        assert unreachable_tables(orders_graph) == ["Notes"]

    def test_three_hops_omitted(self, orders_payload):
        orders_payload["tables"].append(make_table("Refunds", ["RefundID", "LineID"]))
        orders_payload["links"].append(make_link("l3", "Lines", "LineID", "Refunds", "LineID"))
        entries = build_join_map(schema_from_payload(orders_payload), PLAIN)
        assert _entry(entries, "Refunds") is None

    def test_every_field_listed(self, orders_graph):
        entries = build_join_map(orders_graph, PLAIN)
        assert [f.field_id for f in _entry(entries, "Lines").fields] == ["LineID", "Amount", "OrderID"]

    def test_follows_table_order(self, orders_graph):
        entries = build_join_map(resort(orders_graph), PLAIN)
        assert [e.table_id for e in entries] == ["Orders", "Customers", "Lines"]

    def test_direct_link_wins_over_indirect(self, orders_payload):
        """A table with both a direct and a two-hop path is level 1."""
        orders_payload["links"].append(make_link("l3", "Customers", "CustID", "Lines", "LineID"))
        entries = build_join_map(schema_from_payload(orders_payload), PLAIN)
        assert {f.join_level for f in _entry(entries, "Lines").fields} == {1}

    def test_link_direction_does_not_matter(self):
        """A link stored with the base table as target still counts as direct."""
        graph = schema_from_payload({
            "tables": [
                make_table("Orders", ["OrderID", "CustID"]),
                make_table("Customers", ["CustID"], base=True, key="CustID"),
            ],
            "links": [make_link("l1", "Orders", "CustID", "Customers", "CustID")],
        })
        entries = build_join_map(graph, PLAIN)
        assert _field(_entry(entries, "Orders"), "OrderID").join_level == 1


class TestExpressions:
    """Tests for generated expression text."""

    def test_base_level(self, orders_graph):
        entries = build_join_map(orders_graph, PLAIN)
        assert _field(_entry(entries, "Customers"), "Name").expression == (
            "SELECT \"Name\" FROM \"Customers\" WHERE \"CustID\" = 'Customers::CustID'"
        )

    def test_direct_level_filters_on_foreign_field(self, orders_graph):
        entries = build_join_map(orders_graph, PLAIN)
        assert _field(_entry(entries, "Orders"), "OrderDate").expression == (
            "SELECT \"OrderDate\" FROM \"Orders\" WHERE \"CustID\" = 'Customers::CustID'"
        )

    def test_two_hop_nests_subquery(self, orders_graph):
        """Lines.Amount reaches Customers through Orders."""
        entries = build_join_map(orders_graph, PLAIN)
        amount = _field(_entry(entries, "Lines"), "Amount")
        assert amount.join_level == 2
        assert amount.expression == (
            "SELECT \"Amount\" FROM \"Lines\" WHERE \"OrderID\" = "
            "(SELECT \"OrderID\" FROM \"Orders\" WHERE \"CustID\" = 'Customers::CustID')"
        )

    def test_uses_field_names_not_ids(self):
        graph = schema_from_payload({
            "tables": [
                {
                    "id": "t1", "name": "Customers", "baseTable": True, "baseTableKey": "c1",
                    "fields": [{"id": "c1", "name": "Customer ID"}],
                },
                {
                    "id": "t2", "name": "Orders",
                    "fields": [{"id": "o1", "name": "Customer Ref"}, {"id": "o2", "name": "Total"}],
                },
            ],
            "links": [{"id": "l1", "source": "t1.R.c1", "target": "t2.L.o1"}],
        })
        entries = build_join_map(graph, PLAIN)
        assert _field(_entry(entries, "t2"), "o2").expression == (
            "SELECT \"Total\" FROM \"Orders\" WHERE \"Customer Ref\" = 'Customers::Customer ID'"
        )

    def test_key_given_by_field_name(self):
        graph = schema_from_payload({
            "tables": [
                {
                    "id": "t1", "name": "Customers", "baseTable": True, "baseTableKey": "Customer ID",
                    "fields": [{"id": "c1", "name": "Customer ID"}],
                },
            ],
        })
        entries = build_join_map(graph, PLAIN)
        assert entries[0].fields[0].expression.endswith("WHERE \"Customer ID\" = 'Customers::Customer ID'")

    def test_quotes_in_names_are_doubled(self):
        formatter = ExpressionFormatter(quote='"', placeholder="?")
        assert formatter.ident('say "hi"') == '"say ""hi"""'

    def test_default_placeholder_is_calculation_splice(self, orders_graph):
        entries = build_join_map(orders_graph)
        expression = _field(_entry(entries, "Customers"), "CustID").expression
        assert expression.endswith("= '\"&Customers::CustID&\"'")


class TestIntermediateChoice:
    """Tests for the first-match intermediate policy."""

    def _payload(self, order):
        tables = {
            "Base": make_table("Base", ["id"], base=True, key="id"),
            "M1": make_table("M1", ["base_id", "t_id"]),
            "M2": make_table("M2", ["base_id", "t_id"]),
            "T": make_table("T", ["id", "value"]),
        }
        return {
            "tables": [tables[name] for name in order],
            "links": [
                make_link("a", "Base", "id", "M1", "base_id"),
                make_link("b", "Base", "id", "M2", "base_id"),
                make_link("c", "M1", "t_id", "T", "id"),
                make_link("d", "M2", "t_id", "T", "id"),
            ],
        }

    def test_first_intermediate_in_table_order(self):
        entries = build_join_map(schema_from_payload(self._payload(["Base", "M1", "M2", "T"])), PLAIN)
        assert '"M1"' in _field(_entry(entries, "T"), "value").expression

    def test_order_change_changes_choice(self):
        entries = build_join_map(schema_from_payload(self._payload(["Base", "M2", "M1", "T"])), PLAIN)
        assert '"M2"' in _field(_entry(entries, "T"), "value").expression


class TestNotConfigured:
    """Missing base configuration degrades to an empty map."""

    def test_no_base_table(self):
        graph = schema_from_payload({"tables": [make_table("A", ["a"])], "links": []})
        assert build_join_map(graph) == []

    def test_base_without_key(self):
        graph = schema_from_payload({"tables": [make_table("A", ["a"], base=True)], "links": []})
        assert build_join_map(graph) == []

    def test_new_base_table_needs_a_key(self, orders_graph):
        graph = set_base_table(orders_graph, "Notes")
        assert build_join_map(graph) == []
