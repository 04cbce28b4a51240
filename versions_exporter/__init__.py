"""Versions Exporter.

Long-running Prometheus exporter that:
 - discovers Kubernetes workloads annotated with the upstream project they track
 - looks up the latest GitHub release of each declared project
 - publishes current vs latest versions as the `application_info` gauge

The implementation is intentionally small so it can be audited and explained.
"""

__version__ = "0.1.0"
