#!/usr/bin/env python3
"""Seed a demo social graph into a running backend.

Usage:
    # Start the backend first:
    uvicorn socialgraph.web.app:create_app --factory --port 8080

    # Seed the demo graph:
    python3 scripts/seed_demo_graph.py

    # Seed from another file or against a different host:
    python3 scripts/seed_demo_graph.py --data my_graph.yml --base-url http://localhost:9000

All data goes through the public API, so connections are written by the
consistency manager exactly as they would be from the UI.
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path

import httpx
import yaml

DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_DATA = Path(__file__).resolve().parents[1] / "config" / "demo_graph.yml"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def api(
    client: httpx.Client,
    method: str,
    path: str,
    *,
    json: dict | None = None,
) -> dict | list | None:
    """Make an API call and return parsed JSON, or None on failure."""
    resp = client.request(method, path, json=json)
    if resp.status_code >= 400:
        print(f"  FAILED {method} {path} -> {resp.status_code}: {resp.text[:200]}")
        return None
    if resp.headers.get("content-type", "").startswith("application/json"):
        return resp.json()
    return None


def section(title: str) -> None:
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}")


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------


def seed_graph(client: httpx.Client, data: dict) -> int | None:
    section("Graph")
    graph = api(client, "POST", "/api/graphs", json={
        "name": data.get("name", "Demo Network"),
        "owner": data.get("owner"),
    })
    if not graph:
        return None
    print(f"  Created graph {graph['id']}: {graph['name']}")
    return graph["id"]


def seed_groups(client: httpx.Client, graph_id: int, data: dict) -> None:
    section("Organizations & Affiliations")
    for kind in ("organizations", "affiliations"):
        for entry in data.get(kind, []):
            result = api(client, "POST", f"/api/graphs/{graph_id}/{kind}", json=entry)
            if result:
                print(f"  {kind[:-1]}: {result['name']} ({result['color']})")


def seed_people(client: httpx.Client, graph_id: int, data: dict) -> dict[str, int]:
    section("People")
    ids: dict[str, int] = {}
    for entry in data.get("people", []):
        body = {k: v for k, v in entry.items() if k != "key"}
        result = api(client, "POST", f"/api/graphs/{graph_id}/people", json=body)
        if result:
            ids[entry["key"]] = result["id"]
            print(f"  {result['name']} -> id {result['id']}")
    return ids


def seed_connections(
    client: httpx.Client, graph_id: int, data: dict, ids: dict[str, int]
) -> None:
    section("Connections")
    for a, b, connection_type in data.get("connections", []):
        if a not in ids or b not in ids:
            print(f"  SKIPPED {a} <-> {b}: unknown person")
            continue
        result = api(client, "PUT", f"/api/graphs/{graph_id}/connections", json={
            "person_a": ids[a],
            "person_b": ids[b],
            "connection_type": connection_type,
        })
        if result:
            print(f"  {a} <-> {b}: type {result['connection_type']}")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Seed a demo social graph into a running backend"
    )
    parser.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help=f"Backend base URL (default: {DEFAULT_BASE_URL})",
    )
    parser.add_argument(
        "--data",
        default=str(DEFAULT_DATA),
        help="YAML file describing the graph",
    )
    args = parser.parse_args()

    with open(args.data) as fh:
        data = yaml.safe_load(fh) or {}

    print("Social Graph Demo Seeder")
    print(f"Target: {args.base_url}")
    print(f"Time:   {datetime.now(timezone.utc).isoformat()}")

    with httpx.Client(base_url=args.base_url, timeout=30.0) as client:
        try:
            health = api(client, "GET", "/api/health")
        except httpx.ConnectError:
            health = None
        if not health:
            print(f"\nERROR: Cannot reach {args.base_url}. Start the backend first:")
            print("  uvicorn socialgraph.web.app:create_app --factory --port 8080")
            sys.exit(1)

        graph_id = seed_graph(client, data)
        if graph_id is None:
            sys.exit(1)
        seed_groups(client, graph_id, data)
        ids = seed_people(client, graph_id, data)
        seed_connections(client, graph_id, data, ids)

        summary = api(client, "GET", f"/api/graphs/{graph_id}/analysis/summary")
        if summary:
            section("Summary")
            print(f"  {summary['node_count']} people, {summary['edge_count']} connections")
            print(f"  density {summary['density']:.3f}, bridges {summary['bridge_count']}")


if __name__ == "__main__":
    main()
