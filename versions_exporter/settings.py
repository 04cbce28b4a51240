from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = "1h"
DEFAULT_ANNOTATION_NAME = "versions-exporter/githubRepo"
DEFAULT_PORT = 8083
DEFAULT_LOG_LEVEL = "error"
SUPPORTED_KINDS = ("pods", "deployments", "daemonsets")

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse a Go style duration ("1h", "1h30m", "250ms") into seconds."""
    raw = text.strip()
    sign = 1.0
    if raw[:1] in {"+", "-"}:
        sign = -1.0 if raw[0] == "-" else 1.0
        raw = raw[1:]
    if raw == "0":
        return 0.0
    if not raw:
        raise ValueError(f"invalid duration {text!r}")

    total = 0.0
    pos = 0
    while pos < len(raw):
        m = _DURATION_PART_RE.match(raw, pos)
        if not m:
            raise ValueError(f"invalid duration {text!r}")
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    return sign * total


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_kinds(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    kinds = []
    for part in raw.split(","):
        kind = part.strip().lower()
        if kind in SUPPORTED_KINDS and kind not in kinds:
            kinds.append(kind)
        elif kind:
            logger.warning("Ignoring unsupported workload kind %r", kind)
    if not kinds:
        logger.warning("No supported workload kind in %s=%r, using %s", name, raw, ",".join(default))
        return default
    return tuple(kinds)


@dataclass(frozen=True)
class Settings:
    # Core
    refresh_interval: str = DEFAULT_REFRESH_INTERVAL
    annotation_name: str = DEFAULT_ANNOTATION_NAME
    listen_port: int = DEFAULT_PORT
    log_level: str = DEFAULT_LOG_LEVEL

    # Kubernetes
    out_of_cluster: bool = False
    kubeconfig: str = os.path.expanduser("~/.kube/config")
    workload_kinds: tuple[str, ...] = SUPPORTED_KINDS

    # Upstream lookups
    github_api_url: str = "https://api.github.com"
    github_token: str | None = None
    http_timeout_s: float = 10.0
    # One lookup per declared project per cycle instead of one per record.
    memoize_lookups: bool = False

    @property
    def refresh_interval_s(self) -> float:
        try:
            seconds = parse_duration(self.refresh_interval)
        except ValueError:
            seconds = 0.0
        if seconds <= 0:
            logger.warning(
                "Invalid refresh interval %r, using %s", self.refresh_interval, DEFAULT_REFRESH_INTERVAL
            )
            return parse_duration(DEFAULT_REFRESH_INTERVAL)
        return seconds

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from VERSIONS_EXPORTER_* environment variables."""
        port = _env_int("VERSIONS_EXPORTER_PORT", DEFAULT_PORT)
        if not 0 < port < 65536:
            port = DEFAULT_PORT
        return cls(
            refresh_interval=_env_str("VERSIONS_EXPORTER_REFRESH_INTERVAL", DEFAULT_REFRESH_INTERVAL),
            annotation_name=_env_str("VERSIONS_EXPORTER_ANNOTATION_NAME", DEFAULT_ANNOTATION_NAME),
            listen_port=port,
            log_level=_env_str("VERSIONS_EXPORTER_LOGLEVEL", DEFAULT_LOG_LEVEL).lower(),
            out_of_cluster=_env_bool("VERSIONS_EXPORTER_OUT_OF_CLUSTER", False),
            kubeconfig=os.path.expanduser(_env_str("VERSIONS_EXPORTER_KUBECONFIG", "~/.kube/config")),
            workload_kinds=_env_kinds("VERSIONS_EXPORTER_WORKLOAD_KINDS", SUPPORTED_KINDS),
            github_api_url=_env_str("VERSIONS_EXPORTER_GITHUB_API_URL", "https://api.github.com"),
            github_token=os.getenv("GITHUB_TOKEN") or None,
            http_timeout_s=max(0.1, _env_float("VERSIONS_EXPORTER_HTTP_TIMEOUT_S", 10.0)),
            memoize_lookups=_env_bool("VERSIONS_EXPORTER_MEMOIZE_LOOKUPS", False),
        )
