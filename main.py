from __future__ import annotations

import logging
import sys

import uvicorn

from versions_exporter.api import create_app
from versions_exporter.inventory import InventoryUnavailable, build_inventory
from versions_exporter.log_utils import setup_logging, uvicorn_log_level
from versions_exporter.metrics import MetricsRegistry
from versions_exporter.reconciler import Reconciler
from versions_exporter.releases import GitHubReleaseClient, VersionResolver
from versions_exporter.settings import Settings

logger = logging.getLogger("versions_exporter.main")


def build_reconciler(settings: Settings, metrics: MetricsRegistry) -> Reconciler:
    """Wire inventory, resolver and gauge together. Raises InventoryUnavailable."""
    inventory = build_inventory(settings.out_of_cluster, settings.kubeconfig, timeout_s=settings.http_timeout_s)
    resolver = VersionResolver(
        GitHubReleaseClient(
            base_url=settings.github_api_url,
            token=settings.github_token,
            timeout_s=settings.http_timeout_s,
        )
    )
    return Reconciler(
        inventory,
        resolver,
        metrics.application_info(),
        settings,
        on_list_error=metrics.record_scan_error,
    )


def main() -> int:
    settings = Settings.from_env()
    setup_logging(settings.log_level)

    metrics = MetricsRegistry()
    try:
        reconciler = build_reconciler(settings, metrics)
    except InventoryUnavailable as e:
        logger.critical("Cannot create Kubernetes client: %s", e)
        return 1

    app = create_app(metrics, reconciler)
    logger.info("Serving metrics on :%d/metrics", settings.listen_port)
    uvicorn.run(app, host="0.0.0.0", port=settings.listen_port, log_level=uvicorn_log_level(settings.log_level))
    return 0


if __name__ == "__main__":
    sys.exit(main())
