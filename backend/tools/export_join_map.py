"""Export a schema file together with its base-table join map.

Reads the editor's interchange JSON (or the same shape written as YAML),
normalizes it the way the editor does after a load, and writes the export
payload with ``sqlMap`` attached.

Usage:
    cd backend
    python -m tools.export_join_map schema/demo_erd.json
    python -m tools.export_join_map erd.yaml --output export.json --base-table Customers --key CustID
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any

import yaml

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from erdmap.core.config import get_settings
from erdmap.core.exceptions import SchemaValidationError
from erdmap.schema import (
    ExpressionFormatter,
    SchemaGraph,
    export_payload,
    load_schema,
    resort,
    set_base_table,
    set_base_table_key,
)


def _load_payload(path: str) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        if path.lower().endswith((".yaml", ".yml")):
            return yaml.safe_load(handle) or {}
        return json.load(handle)


def build_export(
    payload: dict[str, Any],
    base_table: str | None = None,
    key: str | None = None,
    formatter: ExpressionFormatter | None = None,
    collapse_threshold: int = 5,
) -> dict[str, Any]:
    graph: SchemaGraph = load_schema(payload, collapse_threshold)
    if base_table:
        table = graph.table_by_id_or_name(base_table)
        if table is None:
            raise SchemaValidationError(f"Table '{base_table}' was not found")
        graph = resort(set_base_table(graph, table.id))
    if key:
        graph = resort(set_base_table_key(graph, key))
    return export_payload(graph, formatter=formatter)


def write_export(payload: dict[str, Any], output_path: str) -> str:
    resolved = os.path.abspath(output_path)
    os.makedirs(os.path.dirname(resolved), exist_ok=True)
    with open(resolved, "w", encoding="utf-8") as handle:
        if resolved.lower().endswith((".yaml", ".yml")):
            yaml.safe_dump(payload, handle, sort_keys=False, allow_unicode=True)
        else:
            json.dump(payload, handle, indent=2, ensure_ascii=False)
    return resolved


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Export an ERD schema with its join map")
    parser.add_argument("input", help="Schema file (.json, .yaml or .yml)")
    parser.add_argument(
        "--output",
        default="erd-export.json",
        help="Path to write the export (.json or .yaml)",
    )
    parser.add_argument("--base-table", help="Table id or name to make the base table")
    parser.add_argument("--key", help="Key field of the base table")
    parser.add_argument(
        "--no-sql-map",
        action="store_true",
        help="Only normalize the schema, skip sqlMap",
    )
    args = parser.parse_args()

    formatter = ExpressionFormatter(
        quote=settings.sql_identifier_quote,
        placeholder=settings.sql_key_placeholder,
    )
    try:
        payload = build_export(
            _load_payload(args.input),
            base_table=args.base_table,
            key=args.key,
            formatter=formatter,
            collapse_threshold=settings.collapse_threshold,
        )
    except (SchemaValidationError, ValueError, yaml.YAMLError) as exc:
        print(f"Invalid data: {exc}", file=sys.stderr)
        sys.exit(1)

    if args.no_sql_map:
        payload.pop("sqlMap", None)

    output_path = write_export(payload, args.output)
    print(f"Wrote {len(payload['tables'])} tables and {len(payload.get('sqlMap', []))} join-map entries to {output_path}")


if __name__ == "__main__":
    main()
