from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class Discovery:
    """One (application, current version, upstream project) found by a scan."""

    application_name: str
    current_version: str
    upstream_project: str
    source: str = ""  # kind/namespace/name of the workload it came from


@dataclass(frozen=True)
class VersionRecord:
    application_name: str
    current_version: str
    latest_version: str  # "" when the upstream lookup failed

    def labels(self) -> dict[str, str]:
        return asdict(self)
