"""Tests for the export command-line tool."""

from __future__ import annotations

import json

import pytest
import yaml

from erdmap.core.exceptions import SchemaValidationError
from tools.export_join_map import build_export, write_export


class TestBuildExport:

    def test_export_with_sql_map(self, orders_payload):
        payload = build_export(orders_payload)
        assert [t["id"] for t in payload["tables"]] == ["Orders", "Customers", "Lines", "Notes"]
        assert [entry["tableId"] for entry in payload["sqlMap"]] == ["Orders", "Customers", "Lines"]

    def test_overrides_base_table_and_key(self, orders_payload):
        payload = build_export(orders_payload, base_table="Orders", key="OrderID")
        orders = next(t for t in payload["tables"] if t["id"] == "Orders")
        assert orders["baseTable"] is True
        assert orders["baseTableKey"] == "OrderID"
        levels = {entry["tableId"]: entry["fields"][0]["joinLevel"] for entry in payload["sqlMap"]}
        assert levels == {"Orders": 0, "Customers": 1, "Lines": 1}

    def test_unknown_base_table(self, orders_payload):
        with pytest.raises(SchemaValidationError):
            build_export(orders_payload, base_table="Missing")


class TestWriteExport:

    def test_writes_json(self, tmp_path, orders_payload):
        path = write_export(build_export(orders_payload), str(tmp_path / "out" / "export.json"))
        with open(path, "r", encoding="utf-8") as handle:
            assert "sqlMap" in json.load(handle)

    def test_writes_yaml(self, tmp_path, orders_payload):
        path = write_export(build_export(orders_payload), str(tmp_path / "export.yaml"))
        with open(path, "r", encoding="utf-8") as handle:
            assert len(yaml.safe_load(handle)["tables"]) == 4
