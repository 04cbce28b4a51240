from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict, replace

import requests
from prometheus_client.parser import text_string_to_metric_families

from versions_exporter.inventory import InventoryUnavailable, build_inventory
from versions_exporter.log_utils import setup_logging
from versions_exporter.metrics import APPLICATION_INFO
from versions_exporter.reconciler import reconcile
from versions_exporter.releases import GitHubReleaseClient, VersionResolver
from versions_exporter.settings import Settings


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _scan(args: argparse.Namespace) -> int:
    settings = Settings.from_env()
    overrides = {}
    if args.annotation:
        overrides["annotation_name"] = args.annotation
    if args.out_of_cluster:
        overrides["out_of_cluster"] = True
    if args.kubeconfig:
        overrides["kubeconfig"] = args.kubeconfig
    settings = replace(settings, **overrides)
    # stdout carries the JSON output
    setup_logging(settings.log_level, stream=sys.stderr)

    try:
        inventory = build_inventory(settings.out_of_cluster, settings.kubeconfig, timeout_s=settings.http_timeout_s)
    except InventoryUnavailable as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    client = GitHubReleaseClient(
        base_url=settings.github_api_url,
        token=settings.github_token,
        timeout_s=settings.http_timeout_s,
    )
    try:
        records = reconcile(
            inventory,
            VersionResolver(client),
            settings.annotation_name,
            kinds=settings.workload_kinds,
            memoize=settings.memoize_lookups,
        )
    finally:
        client.close()
    _print([asdict(r) for r in records])
    return 0


def _metrics(args: argparse.Namespace) -> int:
    base = args.api.rstrip("/")
    try:
        r = requests.get(f"{base}/metrics", timeout=10)
    except requests.RequestException as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    if not r.ok:
        print(f"error: HTTP {r.status_code}", file=sys.stderr)
        return 1

    rows = []
    for family in text_string_to_metric_families(r.text):
        if family.name != APPLICATION_INFO:
            continue
        rows.extend(dict(s.labels) for s in family.samples)
    _print(rows)
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Versions Exporter CLI")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_scan = sub.add_parser("scan", help="Run one reconciliation cycle and print the records")
    s_scan.add_argument("--annotation", help="Annotation holding the upstream 'owner/repo'")
    s_scan.add_argument("--out-of-cluster", action="store_true", help="Use a kubeconfig file instead of the service account")
    s_scan.add_argument("--kubeconfig", help="Path to the kubeconfig file")

    s_met = sub.add_parser("metrics", help="Show the application_info series of a running exporter")
    s_met.add_argument("--api", default="http://localhost:8083", help="Exporter base URL")

    args = p.parse_args(argv)

    if args.cmd == "scan":
        return _scan(args)

    if args.cmd == "metrics":
        return _metrics(args)

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
