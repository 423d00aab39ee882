# scripts/openapi_snapshot.py
"""Pin the public API contract.

    python scripts/openapi_snapshot.py --write   # regenerate openapi_snapshot.json
    python scripts/openapi_snapshot.py --check   # fail (exit 1) on drift
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient

from taskmarket.main import app

ROOT = Path(__file__).resolve().parents[1]
SNAPSHOT_PATH = ROOT / "openapi_snapshot.json"

HTTP_METHODS = {"get", "post", "put", "patch", "delete"}


def normalize_openapi(schema: dict[str, Any]) -> dict[str, Any]:
    """Keys sorted, runtime-only `servers` dropped."""

    def sort_obj(obj):
        if isinstance(obj, dict):
            return {k: sort_obj(obj[k]) for k in sorted(obj)}
        if isinstance(obj, list):
            return [sort_obj(x) for x in obj]
        return obj

    schema = {k: v for k, v in schema.items() if k != "servers"}
    return sort_obj(schema)


def operations(schema: dict[str, Any]) -> set[str]:
    return {
        f"{method.upper()} {path}"
        for path, item in schema.get("paths", {}).items()
        for method in item
        if method in HTTP_METHODS
    }


def generate_openapi() -> dict[str, Any]:
    with TestClient(app) as client:
        resp = client.get("/openapi.json")
        resp.raise_for_status()
        return normalize_openapi(resp.json())


def write_snapshot() -> None:
    schema = generate_openapi()
    SNAPSHOT_PATH.write_text(json.dumps(schema, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    print(f"[OK] {len(operations(schema))} operations written to {SNAPSHOT_PATH}")


def check_snapshot() -> int:
    if not SNAPSHOT_PATH.exists():
        print(f"[ERROR] Snapshot not found: {SNAPSHOT_PATH}; run with --write first", file=sys.stderr)
        return 1

    current = generate_openapi()
    expected = json.loads(SNAPSHOT_PATH.read_text(encoding="utf-8"))
    if current == expected:
        print("[OK] OpenAPI snapshot matches")
        return 0

    added = sorted(operations(current) - operations(expected))
    removed = sorted(operations(expected) - operations(current))
    print("[ERROR] OpenAPI snapshot mismatch", file=sys.stderr)
    for op in added:
        print(f"  + {op}", file=sys.stderr)
    for op in removed:
        print(f"  - {op}", file=sys.stderr)
    if not added and not removed:
        print("  (schemas or parameters changed)", file=sys.stderr)
    print("If intentional: python scripts/openapi_snapshot.py --write", file=sys.stderr)
    return 1


def main() -> None:
    parser = argparse.ArgumentParser("openapi_snapshot")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--write", action="store_true", help="Write snapshot")
    group.add_argument("--check", action="store_true", help="Check snapshot")
    args = parser.parse_args()

    if args.write:
        write_snapshot()
    else:
        sys.exit(check_snapshot())


if __name__ == "__main__":
    main()
